"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from localdeals.api.v1 import auth, deals, health, moderation, uploads, votes
from localdeals.schemas import ErrorResponse

# Every failure uses the same {success: false, message} envelope
_error_responses = {
    status: {"model": ErrorResponse} for status in (400, 401, 403, 404, 409, 429, 500)
}

api_v1_router = APIRouter(responses=_error_responses)

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(auth.router, tags=["auth"])
api_v1_router.include_router(deals.router, tags=["deals"])
api_v1_router.include_router(moderation.router, tags=["moderation"])
api_v1_router.include_router(votes.router, tags=["votes"])
api_v1_router.include_router(uploads.router, tags=["uploads"])
