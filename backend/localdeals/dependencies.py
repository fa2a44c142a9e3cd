"""FastAPI dependency injection providers."""

from typing import Any, AsyncGenerator, Mapping, Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from localdeals.config import settings
from localdeals.db.session import async_session_factory
from localdeals.services.auth_service import (
    AuthContext,
    AuthenticatedUser,
    BearerTokenStrategy,
    IdentityResolver,
)
from localdeals.services.mailer import EmailSender, HttpEmailSender, LogEmailSender
from localdeals.services.rate_limiter import RateLimitRule, RateLimiter
from localdeals.services.storage_service import ObjectStorage, get_storage_service
from localdeals.services.ttl_store import InMemoryTTLStore, RedisTTLStore, TTLStore
from localdeals.services.verification_service import (
    CodeCheck,
    VerificationCodeService,
    build_code_check,
)

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

# Process-wide singletons, built from settings on first use
_ttl_store: Optional[TTLStore] = None
_mailer: Optional[EmailSender] = None
_code_check: Optional[CodeCheck] = None

LOGIN_RULE = RateLimitRule(
    name="login",
    max_requests=settings.LOGIN_RATE_LIMIT_MAX,
    window_seconds=settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS,
    message="Too many login attempts. Please try again later.",
)
DEAL_SUBMIT_RULE = RateLimitRule(
    name="deal_submit",
    max_requests=settings.DEAL_SUBMIT_LIMIT_MAX,
    window_seconds=settings.DEAL_SUBMIT_LIMIT_WINDOW_SECONDS,
    message="Deal submission limit reached. Please try again tomorrow.",
)
IMAGE_UPLOAD_RULE = RateLimitRule(
    name="image_upload",
    max_requests=settings.IMAGE_UPLOAD_LIMIT_MAX,
    window_seconds=settings.IMAGE_UPLOAD_LIMIT_WINDOW_SECONDS,
    message="Upload limit reached. Please try again later.",
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is automatically committed on success or rolled back on error.
    Always closed after the request completes.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_ttl_store() -> TTLStore:
    global _ttl_store

    if _ttl_store is None:
        if settings.CODE_STORE_BACKEND == "redis":
            _ttl_store = RedisTTLStore(settings.REDIS_URL)
        else:
            _ttl_store = InMemoryTTLStore()
        logger.info("ttl_store_initialized", backend=settings.CODE_STORE_BACKEND)
    return _ttl_store


def get_mailer() -> EmailSender:
    global _mailer

    if _mailer is None:
        if settings.EMAIL_API_KEY:
            _mailer = HttpEmailSender(
                api_url=settings.EMAIL_API_URL,
                api_key=settings.EMAIL_API_KEY,
                sender=settings.EMAIL_FROM,
            )
        else:
            _mailer = LogEmailSender(echo_code=settings.EXPOSE_DEV_CODE)
    return _mailer


def get_code_check() -> CodeCheck:
    global _code_check

    if _code_check is None:
        _code_check = build_code_check(settings.VERIFICATION_MODE)
        logger.info("verification_mode_selected", mode=settings.VERIFICATION_MODE)
    return _code_check


def get_verification_service(
    store: TTLStore = Depends(get_ttl_store),
    mailer: EmailSender = Depends(get_mailer),
    code_check: CodeCheck = Depends(get_code_check),
) -> VerificationCodeService:
    return VerificationCodeService(
        store=store,
        mailer=mailer,
        code_check=code_check,
        ttl_seconds=settings.VERIFICATION_CODE_TTL_SECONDS,
    )


def get_rate_limiter(store: TTLStore = Depends(get_ttl_store)) -> RateLimiter:
    return RateLimiter(store, enabled=not settings.DISABLE_RATE_LIMIT)


def get_storage() -> ObjectStorage:
    return get_storage_service()


def get_client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


async def get_auth_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthContext:
    """Collect the bearer token and, for JSON requests, the body."""
    body: Optional[Mapping[str, Any]] = None
    if "application/json" in request.headers.get("content-type", ""):
        try:
            parsed = await request.json()
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            body = parsed
    token = credentials.credentials.strip() if credentials else None
    return AuthContext(token=token or None, body=body)


def get_identity_resolver(db: AsyncSession = Depends(get_db)) -> IdentityResolver:
    return IdentityResolver(db)


async def get_current_identity(
    ctx: AuthContext = Depends(get_auth_context),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> AuthenticatedUser:
    """Any identity: session token first, then the legacy body id."""
    return await resolver.verify_authentication(ctx)


async def get_session_user(
    ctx: AuthContext = Depends(get_auth_context),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> AuthenticatedUser:
    """Only identities backed by a verified session token."""
    return await resolver.verify_authentication(ctx, require_token=True)


async def get_optional_session_user(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> Optional[AuthenticatedUser]:
    """Like get_session_user but returns None instead of failing."""
    resolver = IdentityResolver(db, strategies=[BearerTokenStrategy()])
    return await resolver.resolve_optional(ctx)


async def require_moderator(
    ctx: AuthContext = Depends(get_auth_context),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> AuthenticatedUser:
    return await resolver.verify_moderator(ctx)


async def require_admin(
    ctx: AuthContext = Depends(get_auth_context),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> AuthenticatedUser:
    return await resolver.verify_admin(ctx)


async def close_singletons() -> None:
    """Release network clients held by the singletons above."""
    global _ttl_store, _mailer, _code_check

    if isinstance(_ttl_store, RedisTTLStore):
        await _ttl_store.close()
    if isinstance(_mailer, HttpEmailSender):
        await _mailer.close()
    _ttl_store = None
    _mailer = None
    _code_check = None
