"""Deal CRUD and moderation service.

Status transitions:

    pending  -> approved | rejected     (moderator)
    archived / rejected -> approved     (admin restore)
    any      -> removed                 (admin delete, irreversible)

Expiry is only a read-time filter on the public feed; nothing moves an
expired deal to another state.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Tuple

import structlog
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from localdeals.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from localdeals.core.sanitize import sanitize_search_query, sanitize_string, sanitize_text, sanitize_url
from localdeals.models.deal import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    Deal,
)
from localdeals.models.report import DealReport
from localdeals.models.user import User
from localdeals.models.vote import Vote
from localdeals.services.auth_service import AuthenticatedUser, parse_uuid
from localdeals.services.storage_service import ObjectStorage

logger = structlog.get_logger(__name__)

MIN_EXPIRY_DAYS = 1
MAX_EXPIRY_DAYS = 30
MAX_PAGE_SIZE = 100
ANONYMOUS_POSTER = "Anonymous"


def parse_deal_id(value: Optional[str]) -> uuid.UUID:
    if not value:
        raise ValidationError("Deal ID is required")
    deal_id = parse_uuid(value.strip())
    if deal_id is None:
        raise ValidationError("Invalid deal ID")
    return deal_id


def parse_expiry_days(value: Any) -> int:
    """Accept an int or an integer string in [1, 30]."""
    if isinstance(value, bool):
        raise ValidationError("Expiry days must be between 1 and 30")
    try:
        days = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("Expiry days must be between 1 and 30")
    if days < MIN_EXPIRY_DAYS or days > MAX_EXPIRY_DAYS:
        raise ValidationError("Expiry days must be between 1 and 30")
    return days


def parse_price(value: Any, field: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        price = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid {field}")
    if not price.is_finite() or price < 0:
        raise ValidationError(f"Invalid {field}")
    return price.quantize(Decimal("0.01"))


def normalize_category(value: Optional[str]) -> str:
    """Unknown categories fall back to 'other'."""
    if not value:
        return DEFAULT_CATEGORY
    cleaned = value.strip().lower()
    return cleaned if cleaned in CATEGORIES else DEFAULT_CATEGORY


class DealService:
    """Service for listing, submitting and moderating deals."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="deal_service")

    async def get_deals(
        self,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        category: Optional[str] = None,
        is_archived: bool = False,
        now: Optional[datetime] = None,
    ) -> Tuple[List[Deal], int]:
        """Get a page of the feed, newest first.

        The live feed (``is_archived=False``) only contains approved deals
        that have not expired yet.

        Returns:
            Tuple of (deals list, total count)
        """
        if page < 1:
            raise ValidationError("Invalid page: must be at least 1")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"Invalid limit: must be between 1 and {MAX_PAGE_SIZE}")

        now = now or datetime.now(timezone.utc)
        conditions = [Deal.is_archived == is_archived]
        if not is_archived:
            conditions.append(Deal.status == STATUS_APPROVED)
            conditions.append(Deal.expires_at > now)

        if category:
            conditions.append(Deal.category == category.strip().lower())

        term = sanitize_search_query(search)
        if term:
            pattern = f"%{term}%"
            conditions.append(or_(Deal.title.ilike(pattern), Deal.description.ilike(pattern)))

        offset = (page - 1) * limit
        query = (
            select(Deal)
            .where(*conditions)
            .order_by(Deal.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        count_query = select(func.count(Deal.id)).where(*conditions)

        result = await self.db.execute(query)
        deals = list(result.scalars().all())
        total = (await self.db.execute(count_query)).scalar() or 0

        self.logger.info(
            "deals_fetched",
            count=len(deals),
            total=total,
            page=page,
            archived=is_archived,
        )
        return deals, total

    async def get_user_deals(
        self,
        user_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Deal], int]:
        """All of a user's submissions regardless of status, newest first."""
        if page < 1:
            raise ValidationError("Invalid page: must be at least 1")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"Invalid limit: must be between 1 and {MAX_PAGE_SIZE}")

        condition = Deal.submitted_by_user_id == user_id
        query = (
            select(Deal)
            .where(condition)
            .order_by(Deal.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        deals = list((await self.db.execute(query)).scalars().all())
        total = (await self.db.execute(select(func.count(Deal.id)).where(condition))).scalar() or 0
        return deals, total

    async def get_deal_by_id(self, deal_id: uuid.UUID) -> Optional[Deal]:
        result = await self.db.execute(select(Deal).where(Deal.id == deal_id))
        return result.scalar_one_or_none()

    async def _require_deal(self, deal_id: uuid.UUID) -> Deal:
        deal = await self.get_deal_by_id(deal_id)
        if deal is None:
            raise NotFoundError("Deal")
        return deal

    async def get_visible_deal(
        self,
        deal_id: uuid.UUID,
        viewer: Optional[AuthenticatedUser],
    ) -> Deal:
        """Fetch a deal the viewer is allowed to see.

        Approved, unarchived deals are public. Anything else is only shown
        to its submitter and to moderators/admins.
        """
        deal = await self._require_deal(deal_id)
        if deal.is_public:
            return deal

        if viewer is not None and (viewer.is_moderator or viewer.id == deal.submitted_by_user_id):
            return deal

        raise ForbiddenError("Forbidden - you do not have access to this deal")

    async def submit_deal(
        self,
        submitter_id: uuid.UUID,
        title: Optional[str],
        image_url: Optional[str],
        category: Optional[str],
        expiry_days: Any,
        description: Optional[str] = None,
        link: Optional[str] = None,
        location: Optional[str] = None,
        promo_code: Optional[str] = None,
        original_price: Any = None,
        discounted_price: Any = None,
    ) -> Tuple[Deal, bool]:
        """Create a deal and decide its initial status.

        Moderators, admins and users flagged ``auto_approve`` go straight to
        approved; everyone else lands in the pending queue.

        Returns:
            Tuple of (deal, auto_approved)
        """
        clean_title = sanitize_string(title)
        if not clean_title or not image_url or not category or expiry_days in (None, ""):
            raise ValidationError("Missing required fields")

        clean_image = sanitize_url(image_url)
        if clean_image is None:
            raise ValidationError("Invalid imageUrl: must be an http(s) URL")

        clean_link = None
        if link and link.strip():
            clean_link = sanitize_url(link)
            if clean_link is None:
                raise ValidationError("Invalid link: must be an http(s) URL")
        clean_location = sanitize_string(location)
        if not clean_link and not clean_location:
            raise ValidationError("Must provide either link or location")

        days = parse_expiry_days(expiry_days)
        orig = parse_price(original_price, "originalPrice")
        disc = parse_price(discounted_price, "discountedPrice")

        result = await self.db.execute(select(User).where(User.id == submitter_id))
        submitter = result.scalar_one_or_none()
        if submitter is None:
            raise NotFoundError("User")

        auto_approved = bool(submitter.auto_approve) or submitter.is_moderator
        now = datetime.now(timezone.utc)

        deal = Deal(
            title=clean_title,
            description=sanitize_text(description),
            image_url=clean_image,
            link=clean_link,
            location=clean_location,
            category=normalize_category(category),
            promo_code=sanitize_string(promo_code),
            original_price=orig,
            discounted_price=disc,
            hot_count=0,
            cold_count=0,
            submitted_by_user_id=submitter.id,
            posted_by=submitter.username or ANONYMOUS_POSTER,
            status=STATUS_APPROVED if auto_approved else STATUS_PENDING,
            requires_review=not auto_approved,
            is_archived=False,
            expires_at=now + timedelta(days=days),
        )
        if auto_approved:
            deal.approved_at = now
            deal.approved_by = submitter.id

        self.db.add(deal)
        await self.db.flush()

        self.logger.info(
            "deal_submitted",
            deal_id=str(deal.id),
            submitter=str(submitter.id),
            status=deal.status,
            category=deal.category,
        )
        return deal, auto_approved

    async def approve_deal(self, deal_id: uuid.UUID, moderator: AuthenticatedUser) -> Deal:
        deal = await self._require_deal(deal_id)
        deal.status = STATUS_APPROVED
        deal.approved_by = moderator.id
        deal.approved_at = datetime.now(timezone.utc)
        deal.requires_review = False
        await self.db.flush()
        self.logger.info("deal_approved", deal_id=str(deal_id), moderator=str(moderator.id))
        return deal

    async def reject_deal(
        self,
        deal_id: uuid.UUID,
        moderator: AuthenticatedUser,
        reason: Optional[str],
    ) -> Deal:
        clean_reason = sanitize_text(reason)
        if not clean_reason:
            raise ValidationError("Rejection reason is required and cannot be empty")

        deal = await self._require_deal(deal_id)
        deal.status = STATUS_REJECTED
        deal.deleted_by = moderator.id
        deal.deleted_at = datetime.now(timezone.utc)
        deal.deletion_reason = clean_reason
        deal.requires_review = False
        await self.db.flush()
        self.logger.info("deal_rejected", deal_id=str(deal_id), moderator=str(moderator.id))
        return deal

    async def restore_deal(self, deal_id: uuid.UUID, admin: AuthenticatedUser) -> Deal:
        deal = await self._require_deal(deal_id)
        deal.is_archived = False
        deal.status = STATUS_APPROVED
        deal.deleted_by = None
        deal.deleted_at = None
        deal.deletion_reason = None
        await self.db.flush()
        self.logger.info("deal_restored", deal_id=str(deal_id), admin=str(admin.id))
        return deal

    async def delete_deal(
        self,
        deal_id: uuid.UUID,
        admin: AuthenticatedUser,
        storage: Optional[ObjectStorage] = None,
    ) -> bool:
        """Permanently delete a deal and its votes/reports, commit, then remove its image.

        Returns whether the stored image was removed. Storage failures are
        logged and never fail the delete.
        """
        deal = await self._require_deal(deal_id)
        image_url = deal.image_url

        await self.db.execute(delete(Vote).where(Vote.deal_id == deal_id))
        await self.db.execute(delete(DealReport).where(DealReport.deal_id == deal_id))
        await self.db.delete(deal)
        # The row is gone for good before its image is touched
        await self.db.commit()
        self.logger.info("deal_deleted", deal_id=str(deal_id), admin=str(admin.id))

        if storage is None or not image_url:
            return False

        path = storage.path_from_url(image_url)
        if path is None:
            self.logger.info("deal_image_not_managed", deal_id=str(deal_id), url=image_url)
            return False

        try:
            await storage.remove(path)
        except Exception as e:
            self.logger.error(
                "deal_image_delete_failed",
                deal_id=str(deal_id),
                path=path,
                error=str(e),
                exc_info=True,
            )
            return False
        return True
