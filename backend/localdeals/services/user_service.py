"""User accounts: login/registration, usernames, profile and stats."""

import uuid
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

import structlog
from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from localdeals.core.exceptions import ConflictError, NotFoundError, ValidationError
from localdeals.core.sanitize import sanitize_username
from localdeals.models.deal import STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED, Deal
from localdeals.models.user import ROLE_USER, User

logger = structlog.get_logger(__name__)


class UserService:
    """Handles user creation, lookup and username registration."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="user_service")

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """Fetch user by ID."""
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def login_or_register(self, email: str, device_id: str) -> Tuple[User, bool]:
        """Return ``(user, is_new_user)`` for an email that just passed verification.

        Existing users get ``last_login_at`` refreshed and their device
        replaced (last login wins). New users start as plain ``user`` role
        without auto-approve.
        """
        if not device_id:
            raise ValidationError("Device ID is required")

        now = datetime.now(timezone.utc)
        user = await self.get_user_by_email(email)
        if user is not None:
            user.last_login_at = now
            user.device_id = device_id
            await self.db.flush()
            self.logger.info("user_logged_in", user_id=str(user.id))
            return user, False

        user = User(
            email=email.lower(),
            device_id=device_id,
            email_verified=True,
            role=ROLE_USER,
            auto_approve=False,
            last_login_at=now,
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            # Another request registered the same email first
            await self.db.rollback()
            existing = await self.get_user_by_email(email)
            if existing is None:
                raise
            return existing, False

        self.logger.info("user_registered", user_id=str(user.id))
        return user, True

    async def set_username(self, user_id: uuid.UUID, username: Optional[str]) -> User:
        """Register a username for the user.

        Raises:
            ValidationError: malformed or reserved username
            ConflictError: username already taken
            NotFoundError: unknown user
        """
        clean = sanitize_username(username)
        if clean is None:
            raise ValidationError(
                "Invalid username: must be 3-20 characters and contain only letters, "
                "numbers, underscores, and hyphens"
            )

        taken = await self.db.execute(
            select(User.id).where(User.username == clean, User.id != user_id)
        )
        if taken.scalar_one_or_none() is not None:
            raise ConflictError("Username is already taken")

        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User")

        user.username = clean
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Username is already taken")

        self.logger.info("username_registered", user_id=str(user_id), username=clean)
        return user

    async def get_profile(self, user_id: uuid.UUID) -> User:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User")
        return user

    async def get_stats(self, user_id: uuid.UUID) -> Dict[str, object]:
        """Submission counts by status plus membership date."""
        user = await self.get_profile(user_id)

        stmt = select(
            func.count(Deal.id),
            func.coalesce(func.sum(case((Deal.status == STATUS_APPROVED, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Deal.status == STATUS_REJECTED, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Deal.status == STATUS_PENDING, 1), else_=0)), 0),
        ).where(Deal.submitted_by_user_id == user_id)
        total, approved, rejected, pending = (await self.db.execute(stmt)).one()

        return {
            "total_deals": int(total or 0),
            "approved_deals": int(approved or 0),
            "rejected_deals": int(rejected or 0),
            "pending_deals": int(pending or 0),
            "member_since": user.created_at,
        }
