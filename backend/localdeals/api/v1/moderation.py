"""Moderator and admin actions on deals."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from localdeals.dependencies import get_db, get_storage, require_admin, require_moderator
from localdeals.schemas.deal import DealResponse, ModerationRequest, ModerationResponse
from localdeals.services.auth_service import AuthenticatedUser
from localdeals.services.deal_service import DealService, parse_deal_id
from localdeals.services.storage_service import ObjectStorage

router = APIRouter()


@router.post("/approve-deal", response_model=ModerationResponse)
async def approve_deal(
    body: ModerationRequest,
    moderator: AuthenticatedUser = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
):
    deal = await DealService(db).approve_deal(parse_deal_id(body.deal_id), moderator)
    return ModerationResponse(message="Deal approved successfully", deal=DealResponse.model_validate(deal))


@router.post("/reject-deal", response_model=ModerationResponse)
async def reject_deal(
    body: ModerationRequest,
    moderator: AuthenticatedUser = Depends(require_moderator),
    db: AsyncSession = Depends(get_db),
):
    """Reject a deal. A non-empty reason is mandatory."""
    deal = await DealService(db).reject_deal(parse_deal_id(body.deal_id), moderator, body.reason)
    return ModerationResponse(message="Deal rejected successfully", deal=DealResponse.model_validate(deal))


@router.post("/restore-deal", response_model=ModerationResponse)
async def restore_deal(
    body: ModerationRequest,
    admin: AuthenticatedUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Bring an archived or rejected deal back to the live feed."""
    deal = await DealService(db).restore_deal(parse_deal_id(body.deal_id), admin)
    return ModerationResponse(message="Deal restored successfully", deal=DealResponse.model_validate(deal))


@router.post("/delete-deal", response_model=ModerationResponse)
async def delete_deal(
    body: ModerationRequest,
    admin: AuthenticatedUser = Depends(require_admin),
    storage: ObjectStorage = Depends(get_storage),
    db: AsyncSession = Depends(get_db),
):
    """Permanently delete a deal along with its votes, reports and image."""
    await DealService(db).delete_deal(parse_deal_id(body.deal_id), admin, storage)
    return ModerationResponse(message="Deal deleted permanently")
