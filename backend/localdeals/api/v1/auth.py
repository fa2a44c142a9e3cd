"""Email-code login and account endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from localdeals.config import settings
from localdeals.core.exceptions import UnauthorizedError, ValidationError
from localdeals.core.security import create_access_token
from localdeals.dependencies import (
    LOGIN_RULE,
    get_client_ip,
    get_db,
    get_optional_session_user,
    get_rate_limiter,
    get_session_user,
    get_verification_service,
)
from localdeals.schemas.auth import (
    SendCodeRequest,
    SendCodeResponse,
    UserProfileResponse,
    UserResponse,
    UsernameRequest,
    UsernameResponse,
    UserStats,
    UserStatsResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from localdeals.services.auth_service import AuthenticatedUser, parse_uuid
from localdeals.services.rate_limiter import RateLimiter
from localdeals.services.user_service import UserService
from localdeals.services.verification_service import VerificationCodeService

router = APIRouter()


def _resolve_user_id(user_id: Optional[str], viewer: Optional[AuthenticatedUser]):
    """Explicit ``userId`` query parameter, falling back to the session user."""
    if user_id:
        parsed = parse_uuid(user_id.strip())
        if parsed is None:
            raise ValidationError("Invalid userId")
        return parsed
    if viewer is None:
        raise UnauthorizedError("No authentication provided")
    return viewer.id


@router.post("/send-verification-code", response_model=SendCodeResponse)
async def send_verification_code(
    body: SendCodeRequest,
    request: Request,
    verification: VerificationCodeService = Depends(get_verification_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Email a fresh 6-digit login code, replacing any earlier one."""
    await limiter.hit(LOGIN_RULE, get_client_ip(request))
    issued = await verification.send_code(body.email)

    return SendCodeResponse(
        message="Verification code sent to your email",
        dev_code=issued.code if settings.EXPOSE_DEV_CODE else None,
    )


@router.post("/verify-code-and-get-user", response_model=VerifyCodeResponse)
async def verify_code_and_get_user(
    body: VerifyCodeRequest,
    db: AsyncSession = Depends(get_db),
    verification: VerificationCodeService = Depends(get_verification_service),
):
    """Exchange a code for the user record and a session token.

    First login for an email creates the account.
    """
    if not body.device_id.strip():
        raise ValidationError("Missing required fields: deviceId")
    email = await verification.verify_code(body.email, body.code)

    user, is_new = await UserService(db).login_or_register(email, body.device_id.strip())
    token = create_access_token(user.email, user.id)

    return VerifyCodeResponse(
        message="Account created successfully" if is_new else "Login successful",
        user=UserResponse.model_validate(user),
        is_new_user=is_new,
        token=token,
    )


@router.post("/manage_username", response_model=UsernameResponse)
async def manage_username(
    body: UsernameRequest,
    identity: AuthenticatedUser = Depends(get_session_user),
    db: AsyncSession = Depends(get_db),
):
    """Register or change the caller's public username."""
    user = await UserService(db).set_username(identity.id, body.username)
    return UsernameResponse(message="Username registered successfully", username=user.username)


@router.get("/get-user-profile", response_model=UserProfileResponse)
async def get_user_profile(
    user_id: Optional[str] = Query(None, alias="userId"),
    viewer: Optional[AuthenticatedUser] = Depends(get_optional_session_user),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService(db).get_profile(_resolve_user_id(user_id, viewer))
    return UserProfileResponse(message="Profile loaded", user=UserResponse.model_validate(user))


@router.get("/get-user-stats", response_model=UserStatsResponse)
async def get_user_stats(
    user_id: Optional[str] = Query(None, alias="userId"),
    viewer: Optional[AuthenticatedUser] = Depends(get_optional_session_user),
    db: AsyncSession = Depends(get_db),
):
    """Submission counts by status for one user."""
    stats = await UserService(db).get_stats(_resolve_user_id(user_id, viewer))
    return UserStatsResponse(stats=UserStats(**stats))
