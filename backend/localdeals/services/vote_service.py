"""Hot/cold voting, one vote per device per deal."""

import uuid
from typing import Dict

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from localdeals.core.exceptions import NotFoundError, ValidationError
from localdeals.models.deal import Deal
from localdeals.models.vote import VOTE_HOT, VOTE_TYPES, Vote

logger = structlog.get_logger(__name__)

ALREADY_VOTED = "You have already voted on this deal"


class VoteService:
    """Records votes and keeps the deal counters in step."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="vote_service")

    async def vote(
        self,
        deal_id: uuid.UUID,
        device_id: str,
        vote_type: str,
    ) -> Dict[str, int]:
        """Cast a vote and return the deal's new counts.

        A device gets exactly one vote per deal; repeats are rejected
        without touching the counters. The counter is bumped with a single
        UPDATE so concurrent voters never lose increments.

        Returns:
            dict with hot_votes and cold_votes
        """
        if vote_type not in VOTE_TYPES:
            raise ValidationError("Invalid vote type. Must be 'hot' or 'cold'")
        if not device_id or not device_id.strip():
            raise ValidationError("Device ID is required")
        device_id = device_id.strip()

        exists = await self.db.execute(select(Deal.id).where(Deal.id == deal_id))
        if exists.scalar_one_or_none() is None:
            raise NotFoundError("Deal")

        existing = await self.db.execute(
            select(Vote.id).where(Vote.deal_id == deal_id, Vote.device_id == device_id)
        )
        if existing.scalar_one_or_none() is not None:
            raise ValidationError(ALREADY_VOTED)

        try:
            async with self.db.begin_nested():
                self.db.add(Vote(deal_id=deal_id, device_id=device_id, vote_type=vote_type))
        except IntegrityError:
            # Lost the race against a concurrent vote from the same device
            raise ValidationError(ALREADY_VOTED)

        counter = Deal.hot_count if vote_type == VOTE_HOT else Deal.cold_count
        result = await self.db.execute(
            update(Deal)
            .where(Deal.id == deal_id)
            .values({counter: counter + 1})
            .returning(Deal.hot_count, Deal.cold_count)
        )
        hot, cold = result.one()

        self.logger.info("vote_recorded", deal_id=str(deal_id), vote_type=vote_type)
        return {"hot_votes": hot, "cold_votes": cold}
