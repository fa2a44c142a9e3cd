"""Voting and reporting endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from localdeals.config import settings
from localdeals.dependencies import get_current_identity, get_db
from localdeals.schemas.vote import ReportRequest, ReportResponse, VoteRequest, VoteResponse
from localdeals.services.auth_service import AuthenticatedUser
from localdeals.services.deal_service import parse_deal_id
from localdeals.services.report_service import ReportService
from localdeals.services.vote_service import VoteService

router = APIRouter()


@router.post("/cast-vote", response_model=VoteResponse)
async def cast_vote(body: VoteRequest, db: AsyncSession = Depends(get_db)):
    """Cast a hot or cold vote. One vote per device per deal, no account needed."""
    counts = await VoteService(db).vote(parse_deal_id(body.deal_id), body.device_id, body.vote_type)
    return VoteResponse(message="Vote recorded successfully", **counts)


@router.post("/report-deal", response_model=ReportResponse)
async def report_deal(
    body: ReportRequest,
    reporter: AuthenticatedUser = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Report a deal. One report per user per deal, capped per UTC day."""
    service = ReportService(db, daily_limit=settings.DAILY_REPORT_LIMIT)
    report_count = await service.report(
        parse_deal_id(body.deal_id),
        reporter.id,
        body.reason,
        body.details,
    )
    return ReportResponse(message="Report submitted successfully", report_count=report_count)
