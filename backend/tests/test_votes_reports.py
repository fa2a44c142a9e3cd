"""Tests for voting and reporting."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import auth_headers, create_deal
from localdeals.core.exceptions import ConflictError, NotFoundError, RateLimitError, ValidationError
from localdeals.models import Deal, DealReport, User, Vote
from localdeals.services.report_service import ReportService, reporter_lock, utc_day_start
from localdeals.services.vote_service import VoteService

THIRTY_CHARS = "x" * 30


# ============================================================================
# TESTS: VOTE SERVICE
# ============================================================================

class TestVoteService:
    """Tests for VoteService."""

    async def test_hot_vote_increments(self, test_db: AsyncSession, regular_user: User):
        deal = await create_deal(test_db, regular_user)

        counts = await VoteService(test_db).vote(deal.id, "device-1", "hot")

        assert counts == {"hot_votes": 1, "cold_votes": 0}

    async def test_cold_vote_increments(self, test_db: AsyncSession, regular_user: User):
        deal = await create_deal(test_db, regular_user)
        service = VoteService(test_db)
        await service.vote(deal.id, "device-1", "hot")

        counts = await service.vote(deal.id, "device-2", "cold")

        assert counts == {"hot_votes": 1, "cold_votes": 1}

    async def test_second_vote_from_device_rejected(self, test_db: AsyncSession, regular_user: User):
        deal = await create_deal(test_db, regular_user)
        service = VoteService(test_db)
        await service.vote(deal.id, "device-1", "hot")

        with pytest.raises(ValidationError, match="You have already voted on this deal"):
            await service.vote(deal.id, "device-1", "cold")

        await test_db.refresh(deal)
        assert (deal.hot_count, deal.cold_count) == (1, 0)
        votes = (await test_db.execute(select(func.count(Vote.id)))).scalar()
        assert votes == 1

    async def test_invalid_vote_type(self, test_db: AsyncSession, regular_user: User):
        deal = await create_deal(test_db, regular_user)

        with pytest.raises(ValidationError, match="Invalid vote type"):
            await VoteService(test_db).vote(deal.id, "device-1", "lukewarm")

    async def test_vote_on_unknown_deal(self, test_db: AsyncSession):
        with pytest.raises(NotFoundError):
            await VoteService(test_db).vote(uuid4(), "device-1", "hot")


# ============================================================================
# TESTS: REPORT SERVICE
# ============================================================================

class TestReportService:
    """Tests for ReportService."""

    async def test_report_returns_count(self, test_db: AsyncSession, regular_user: User, other_user: User):
        deal = await create_deal(test_db, regular_user)
        service = ReportService(test_db)

        assert await service.report(deal.id, regular_user.id, "expired") == 1
        assert await service.report(deal.id, other_user.id, "inappropriate") == 2

    async def test_duplicate_report_is_conflict(self, test_db: AsyncSession, regular_user: User):
        deal = await create_deal(test_db, regular_user)
        service = ReportService(test_db)
        await service.report(deal.id, regular_user.id, "expired")

        with pytest.raises(ConflictError):
            await service.report(deal.id, regular_user.id, "inappropriate")

    async def test_invalid_reason(self, test_db: AsyncSession, regular_user: User):
        deal = await create_deal(test_db, regular_user)

        with pytest.raises(ValidationError, match="Invalid report reason"):
            await ReportService(test_db).report(deal.id, regular_user.id, "boring")

    @pytest.mark.parametrize("reason", ["spam", "misleading"])
    async def test_high_severity_needs_details(self, test_db: AsyncSession, regular_user: User, reason: str):
        deal = await create_deal(test_db, regular_user)
        service = ReportService(test_db)

        with pytest.raises(ValidationError, match="at least 30 characters"):
            await service.report(deal.id, regular_user.id, reason, "  " + "x" * 29 + "  ")

        assert await service.report(deal.id, regular_user.id, reason, THIRTY_CHARS) == 1

    async def test_unknown_deal(self, test_db: AsyncSession, regular_user: User):
        with pytest.raises(NotFoundError):
            await ReportService(test_db).report(uuid4(), regular_user.id, "expired")

    async def test_sixth_report_in_a_day_is_limited(self, test_db: AsyncSession, regular_user: User):
        deals = [await create_deal(test_db, regular_user, title=f"Deal {i}") for i in range(6)]
        service = ReportService(test_db, daily_limit=5)

        for deal in deals[:5]:
            await service.report(deal.id, regular_user.id, "expired")

        with pytest.raises(RateLimitError, match="You can only report 5 deals per day"):
            await service.report(deals[5].id, regular_user.id, "expired")

        assert await service.count_reports(deals[5].id) == 0

    async def test_yesterdays_reports_do_not_count(self, test_db: AsyncSession, regular_user: User):
        now = datetime.now(timezone.utc)
        yesterday = utc_day_start(now) - timedelta(hours=1)
        deals = [await create_deal(test_db, regular_user, title=f"Deal {i}") for i in range(6)]
        for deal in deals[:5]:
            test_db.add(
                DealReport(deal_id=deal.id, reported_by=regular_user.id, reason="expired", created_at=yesterday)
            )
        await test_db.commit()

        count = await ReportService(test_db).report(deals[5].id, regular_user.id, "expired", now=now)

        assert count == 1

    def test_reporter_lock_sql(self):
        reporter = uuid4()

        sql = str(reporter_lock(reporter).compile(dialect=postgresql.dialect()))

        assert "pg_advisory_xact_lock(hashtext(" in sql

    async def test_postgres_reports_take_reporter_lock(self):
        executed = []

        class PostgresSession:
            def get_bind(self):
                return SimpleNamespace(dialect=SimpleNamespace(name="postgresql"))

            async def execute(self, stmt):
                executed.append(stmt)

        await ReportService(PostgresSession())._serialize_reporter(uuid4())

        assert len(executed) == 1
        assert "pg_advisory_xact_lock" in str(executed[0].compile(dialect=postgresql.dialect()))

    def test_utc_day_start(self):
        moment = datetime(2026, 3, 4, 23, 30, tzinfo=timezone(timedelta(hours=-5)))

        assert utc_day_start(moment) == datetime(2026, 3, 5, tzinfo=timezone.utc)


# ============================================================================
# TESTS: VOTE / REPORT API
# ============================================================================

class TestVoteApi:
    async def test_cast_vote(self, client, test_db: AsyncSession, regular_user: User):
        deal = await create_deal(test_db, regular_user)

        resp = await client.post(
            "/api/cast-vote", json={"dealId": str(deal.id), "deviceId": "dev-1", "voteType": "hot"}
        )

        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "message": "Vote recorded successfully",
            "hotVotes": 1,
            "coldVotes": 0,
        }

    async def test_repeat_vote_leaves_counts(self, client, test_db: AsyncSession, regular_user: User):
        deal = await create_deal(test_db, regular_user)
        payload = {"dealId": str(deal.id), "deviceId": "dev-1", "voteType": "hot"}
        await client.post("/api/cast-vote", json=payload)

        resp = await client.post("/api/cast-vote", json={**payload, "voteType": "cold"})

        assert resp.status_code == 400
        assert resp.json()["message"] == "You have already voted on this deal"
        row = (await test_db.execute(select(Deal.hot_count, Deal.cold_count).where(Deal.id == deal.id))).one()
        assert tuple(row) == (1, 0)

    async def test_bad_vote_type(self, client, test_db: AsyncSession, regular_user: User):
        deal = await create_deal(test_db, regular_user)

        resp = await client.post(
            "/api/cast-vote", json={"dealId": str(deal.id), "deviceId": "dev-1", "voteType": "meh"}
        )

        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid vote type. Must be 'hot' or 'cold'"


class TestReportApi:
    async def test_report_with_session(self, client, test_db: AsyncSession, regular_user: User, other_user: User):
        deal = await create_deal(test_db, regular_user)

        resp = await client.post(
            "/api/report-deal",
            json={"dealId": str(deal.id), "userId": str(other_user.id), "reason": "expired"},
            headers=auth_headers(other_user),
        )

        assert resp.status_code == 200
        assert resp.json()["reportCount"] == 1

    async def test_spam_needs_thirty_chars(self, client, test_db: AsyncSession, regular_user: User, other_user: User):
        deal = await create_deal(test_db, regular_user)
        payload = {"dealId": str(deal.id), "userId": str(other_user.id), "reason": "spam", "details": "too short"}

        short = await client.post("/api/report-deal", json=payload)
        assert short.status_code == 400

        ok = await client.post("/api/report-deal", json={**payload, "details": THIRTY_CHARS})
        assert ok.status_code == 200

    async def test_duplicate_report_is_409(self, client, test_db: AsyncSession, regular_user: User, other_user: User):
        deal = await create_deal(test_db, regular_user)
        payload = {"dealId": str(deal.id), "userId": str(other_user.id), "reason": "expired"}
        await client.post("/api/report-deal", json=payload)

        resp = await client.post("/api/report-deal", json=payload)

        assert resp.status_code == 409

    async def test_sixth_report_is_429(self, client, test_db: AsyncSession, regular_user: User, other_user: User):
        deals = [await create_deal(test_db, regular_user, title=f"Deal {i}") for i in range(6)]
        for deal in deals[:5]:
            resp = await client.post(
                "/api/report-deal",
                json={"dealId": str(deal.id), "userId": str(other_user.id), "reason": "expired"},
            )
            assert resp.status_code == 200

        resp = await client.post(
            "/api/report-deal",
            json={"dealId": str(deals[5].id), "userId": str(other_user.id), "reason": "expired"},
        )

        assert resp.status_code == 429
        assert resp.json() == {"success": False, "message": "You can only report 5 deals per day"}
