"""Deal reports with per-user dedupe and a daily quota."""

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import DateTime, String, Text, Uuid, func, insert, literal, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from localdeals.core.exceptions import ConflictError, NotFoundError, RateLimitError, ValidationError
from localdeals.core.sanitize import sanitize_text
from localdeals.models.deal import Deal
from localdeals.models.report import HIGH_SEVERITY_REASONS, REPORT_REASONS, DealReport

logger = structlog.get_logger(__name__)

DEFAULT_DAILY_REPORT_LIMIT = 5
MIN_HIGH_SEVERITY_DETAILS = 30
ALREADY_REPORTED = "You have already reported this deal"


def utc_day_start(now: datetime) -> datetime:
    return now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def reporter_lock(reporter_id: uuid.UUID):
    """Transaction-scoped Postgres advisory lock keyed by the reporter.

    Legacy reporters may have no users row, so the lock cannot be a row lock.
    """
    return select(func.pg_advisory_xact_lock(func.hashtext(str(reporter_id))))


class ReportService:
    """Files abuse reports against deals."""

    def __init__(self, db: AsyncSession, daily_limit: int = DEFAULT_DAILY_REPORT_LIMIT):
        self.db = db
        self.daily_limit = daily_limit
        self.logger = logger.bind(service="report_service")

    async def report(
        self,
        deal_id: uuid.UUID,
        reporter_id: uuid.UUID,
        reason: Optional[str],
        details: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """File a report and return the deal's total report count.

        Raises:
            ValidationError: bad reason, or missing details for spam/misleading
            NotFoundError: unknown deal
            ConflictError: this user already reported this deal
            RateLimitError: the user's daily quota is used up
        """
        reason = (reason or "").strip().lower()
        if reason not in REPORT_REASONS:
            raise ValidationError("Invalid report reason")

        stripped = (details or "").strip()
        if reason in HIGH_SEVERITY_REASONS and len(stripped) < MIN_HIGH_SEVERITY_DETAILS:
            raise ValidationError(
                f"Details are required: high-severity reports need at least "
                f"{MIN_HIGH_SEVERITY_DETAILS} characters"
            )
        clean_details = sanitize_text(stripped)

        exists = await self.db.execute(select(Deal.id).where(Deal.id == deal_id))
        if exists.scalar_one_or_none() is None:
            raise NotFoundError("Deal")

        existing = await self.db.execute(
            select(DealReport.id).where(
                DealReport.deal_id == deal_id,
                DealReport.reported_by == reporter_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(ALREADY_REPORTED)

        now = now or datetime.now(timezone.utc)
        await self._serialize_reporter(reporter_id)
        inserted = await self._insert_within_quota(deal_id, reporter_id, reason, clean_details, now)
        if not inserted:
            self.logger.warning("report_quota_exceeded", reporter=str(reporter_id))
            raise RateLimitError(f"You can only report {self.daily_limit} deals per day")

        report_count = await self.count_reports(deal_id)
        self.logger.info(
            "deal_reported",
            deal_id=str(deal_id),
            reporter=str(reporter_id),
            reason=reason,
            report_count=report_count,
        )
        return report_count

    async def _serialize_reporter(self, reporter_id: uuid.UUID) -> None:
        # Held until commit so concurrent reports from one user count in turn
        if self.db.get_bind().dialect.name == "postgresql":
            await self.db.execute(reporter_lock(reporter_id))

    async def _insert_within_quota(
        self,
        deal_id: uuid.UUID,
        reporter_id: uuid.UUID,
        reason: str,
        details: Optional[str],
        now: datetime,
    ) -> bool:
        """INSERT ... SELECT guarded by the day's count.

        Only atomic per reporter together with ``_serialize_reporter``.
        """
        todays_reports = (
            select(func.count(DealReport.id))
            .where(
                DealReport.reported_by == reporter_id,
                DealReport.created_at >= utc_day_start(now),
            )
            .scalar_subquery()
        )
        row = select(
            literal(uuid.uuid4(), Uuid()),
            literal(deal_id, Uuid()),
            literal(reporter_id, Uuid()),
            literal(reason, String()),
            literal(details, Text()),
            literal(now, DateTime(timezone=True)),
        ).where(todays_reports < self.daily_limit)

        stmt = insert(DealReport.__table__).from_select(
            ["id", "deal_id", "reported_by", "reason", "details", "created_at"],
            row,
        )
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(stmt)
        except IntegrityError:
            raise ConflictError(ALREADY_REPORTED)
        return result.rowcount > 0

    async def count_reports(self, deal_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(DealReport.id)).where(DealReport.deal_id == deal_id)
        )
        return result.scalar() or 0
