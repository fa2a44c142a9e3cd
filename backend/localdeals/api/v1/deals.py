"""Deal feed, detail and submission endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from localdeals.core.exceptions import ForbiddenError, ValidationError
from localdeals.dependencies import (
    DEAL_SUBMIT_RULE,
    get_current_identity,
    get_db,
    get_optional_session_user,
    get_rate_limiter,
    get_session_user,
)
from localdeals.schemas.deal import (
    DealDetailResponse,
    DealListResponse,
    DealResponse,
    SubmitDealRequest,
    SubmitDealResponse,
)
from localdeals.services.auth_service import AuthenticatedUser, parse_uuid
from localdeals.services.deal_service import DealService, parse_deal_id
from localdeals.services.rate_limiter import RateLimiter

router = APIRouter()


def _page(deals, total: int, page: int, limit: int) -> DealListResponse:
    return DealListResponse(
        deals=[DealResponse.model_validate(d) for d in deals],
        total=total,
        page=page,
        limit=limit,
        has_more=(page - 1) * limit + limit < total,
    )


@router.get("/get-deals", response_model=DealListResponse)
async def get_deals(
    page: int = Query(1, description="Page number (1-indexed)"),
    limit: int = Query(20, description="Items per page"),
    search: Optional[str] = Query(None, description="Substring of title or description"),
    category: Optional[str] = Query(None, description="Filter by category"),
    is_archived: bool = Query(False, alias="isArchived"),
    db: AsyncSession = Depends(get_db),
):
    """List deals, newest first.

    With ``isArchived=false`` (default) only approved, unexpired deals are
    returned.
    """
    deals, total = await DealService(db).get_deals(
        page=page,
        limit=limit,
        search=search,
        category=category,
        is_archived=is_archived,
    )
    return _page(deals, total, page, limit)


@router.get("/get-deal", response_model=DealDetailResponse)
async def get_deal(
    deal_id: Optional[str] = Query(None, alias="dealId"),
    viewer: Optional[AuthenticatedUser] = Depends(get_optional_session_user),
    db: AsyncSession = Depends(get_db),
):
    """Single deal. Non-public deals need the submitter or a moderator."""
    deal = await DealService(db).get_visible_deal(parse_deal_id(deal_id), viewer)
    return DealDetailResponse(deal=DealResponse.model_validate(deal))


@router.post("/submit-deal", response_model=SubmitDealResponse)
async def submit_deal(
    body: SubmitDealRequest,
    identity: AuthenticatedUser = Depends(get_current_identity),
    limiter: RateLimiter = Depends(get_rate_limiter),
    db: AsyncSession = Depends(get_db),
):
    """Submit a deal. Trusted submitters skip the moderation queue."""
    await limiter.hit(DEAL_SUBMIT_RULE, str(identity.id))

    deal, auto_approved = await DealService(db).submit_deal(
        submitter_id=identity.id,
        title=body.title,
        image_url=body.image_url,
        category=body.category,
        expiry_days=body.expiry_days,
        description=body.description,
        link=body.link,
        location=body.location,
        promo_code=body.promo_code,
        original_price=body.original_price,
        discounted_price=body.discounted_price,
    )

    message = (
        "Deal submitted and published"
        if auto_approved
        else "Deal submitted successfully and is pending review"
    )
    return SubmitDealResponse(
        message=message,
        deal=DealResponse.model_validate(deal),
        auto_approved=auto_approved,
    )


@router.get("/get-user-deals", response_model=DealListResponse)
async def get_user_deals(
    user_id: Optional[str] = Query(None, alias="userId"),
    page: int = Query(1),
    limit: int = Query(20),
    identity: AuthenticatedUser = Depends(get_session_user),
    db: AsyncSession = Depends(get_db),
):
    """A user's own submissions in every status."""
    target = identity.id
    if user_id:
        target = parse_uuid(user_id.strip())
        if target is None:
            raise ValidationError("Invalid userId")
        if target != identity.id and not identity.is_moderator:
            raise ForbiddenError("Forbidden - you can only view your own deals")

    deals, total = await DealService(db).get_user_deals(target, page=page, limit=limit)
    return _page(deals, total, page, limit)
