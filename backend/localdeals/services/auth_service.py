"""Request identity resolution and role gates.

Two strategies are tried in a fixed order:

1. Bearer token: a signed session JWT, resolved to a user row by email.
2. Legacy id: a raw UUID from the JSON body (``userId``, ``moderatorUserId``,
   ``adminUserId`` or ``deviceId``). Nothing is verified; unknown ids are
   accepted as anonymous ``user`` identities so device-keyed operations keep
   working for clients that predate token sessions.

The result records which strategy produced it, so callers can tell a
verified identity from a claimed one.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from localdeals.core.exceptions import AuthError
from localdeals.core.security import decode_access_token
from localdeals.models.user import ROLE_ADMIN, ROLE_MODERATOR, ROLE_USER, User

logger = structlog.get_logger(__name__)

AUTH_METHOD_TOKEN = "token"
AUTH_METHOD_LEGACY = "legacy"

LEGACY_ID_FIELDS = ("userId", "moderatorUserId", "adminUserId", "deviceId")


@dataclass(frozen=True)
class AuthenticatedUser:
    id: uuid.UUID
    email: str
    role: str
    username: Optional[str] = None
    auto_approve: bool = False
    auth_method: str = AUTH_METHOD_TOKEN

    @property
    def verified(self) -> bool:
        """True only when the identity came from a checked session token."""
        return self.auth_method == AUTH_METHOD_TOKEN

    @property
    def is_moderator(self) -> bool:
        return self.role in (ROLE_MODERATOR, ROLE_ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_user(cls, user: User, auth_method: str) -> "AuthenticatedUser":
        return cls(
            id=user.id,
            email=user.email,
            role=user.role,
            username=user.username,
            auto_approve=bool(user.auto_approve),
            auth_method=auth_method,
        )


@dataclass
class AuthContext:
    """What a strategy gets to look at."""

    token: Optional[str]
    body: Optional[Mapping[str, Any]]


def parse_uuid(value: Any) -> Optional[uuid.UUID]:
    """Return a UUID for a canonical 8-4-4-4-12 string, else None."""
    if not isinstance(value, str) or len(value) != 36:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


class IdentityStrategy(Protocol):
    async def resolve(self, db: AsyncSession, ctx: AuthContext) -> Optional[AuthenticatedUser]:
        """Return an identity, None if this strategy does not apply, or raise AuthError."""
        ...


class BearerTokenStrategy:
    async def resolve(self, db: AsyncSession, ctx: AuthContext) -> Optional[AuthenticatedUser]:
        if not ctx.token:
            return None

        email = decode_access_token(ctx.token)
        if not email:
            raise AuthError("Invalid or expired session", 401)

        result = await db.execute(select(User).where(User.email == email.lower()))
        user = result.scalar_one_or_none()
        if user is None:
            raise AuthError("User not found", 404)

        return AuthenticatedUser.from_user(user, AUTH_METHOD_TOKEN)


class LegacyIdStrategy:
    """Transitional body-supplied id. To be removed once all clients send tokens."""

    async def resolve(self, db: AsyncSession, ctx: AuthContext) -> Optional[AuthenticatedUser]:
        if not ctx.body:
            return None

        raw_id = next((ctx.body.get(f) for f in LEGACY_ID_FIELDS if ctx.body.get(f)), None)
        user_id = parse_uuid(raw_id)
        if user_id is None:
            return None

        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            return AuthenticatedUser(
                id=user_id,
                email="",
                role=ROLE_USER,
                auto_approve=False,
                auth_method=AUTH_METHOD_LEGACY,
            )
        return AuthenticatedUser.from_user(user, AUTH_METHOD_LEGACY)


class IdentityResolver:
    """Tries each strategy in order and exposes the three role gates."""

    def __init__(self, db: AsyncSession, strategies: Optional[list[IdentityStrategy]] = None):
        self.db = db
        self.strategies = strategies if strategies is not None else [
            BearerTokenStrategy(),
            LegacyIdStrategy(),
        ]

    async def resolve(self, ctx: AuthContext) -> Optional[AuthenticatedUser]:
        for strategy in self.strategies:
            identity = await strategy.resolve(self.db, ctx)
            if identity is not None:
                return identity
        return None

    async def verify_authentication(self, ctx: AuthContext, require_token: bool = False) -> AuthenticatedUser:
        """Any resolvable identity, or only token identities when ``require_token``."""
        identity = await self.resolve(ctx)
        if identity is None:
            raise AuthError("No authentication provided", 401)
        if require_token and not identity.verified:
            logger.warning("legacy_identity_rejected", user_id=str(identity.id))
            raise AuthError("Unauthorized - a valid session token is required", 401)
        return identity

    async def verify_moderator(self, ctx: AuthContext, require_token: bool = True) -> AuthenticatedUser:
        identity = await self.verify_authentication(ctx, require_token=require_token)
        if not identity.is_moderator:
            raise AuthError("Insufficient permissions - moderator access required", 403)
        return identity

    async def verify_admin(self, ctx: AuthContext, require_token: bool = True) -> AuthenticatedUser:
        identity = await self.verify_authentication(ctx, require_token=require_token)
        if not identity.is_admin:
            raise AuthError("Insufficient permissions - admin access required", 403)
        return identity

    async def resolve_optional(self, ctx: AuthContext) -> Optional[AuthenticatedUser]:
        """Best-effort identity for non-critical reads; never raises AuthError."""
        try:
            return await self.resolve(ctx)
        except AuthError:
            return None
