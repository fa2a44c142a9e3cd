"""User model: email-verified accounts with a moderation role."""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from localdeals.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from localdeals.models.deal import Deal

ROLE_USER = "user"
ROLE_MODERATOR = "moderator"
ROLE_ADMIN = "admin"


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Application user.

    Created on the first successful code verification for an email and
    never hard-deleted. ``device_id`` holds the device of the most recent
    login only.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(320), unique=True, nullable=False, index=True,
        comment="Lowercased email address (unique)"
    )
    username: Mapped[Optional[str]] = mapped_column(
        String(20), unique=True, nullable=True, index=True,
        comment="Display name, chosen after first login"
    )
    role: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ROLE_USER,
        comment="'user', 'moderator' or 'admin'"
    )
    auto_approve: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
        comment="Trusted submitter: deals skip moderation"
    )
    device_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True,
        comment="Device of the most recent login"
    )
    email_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
        comment="Last login timestamp"
    )

    deals: Mapped[List["Deal"]] = relationship(back_populates="submitter")

    @property
    def is_moderator(self) -> bool:
        return self.role in (ROLE_MODERATOR, ROLE_ADMIN)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
