"""Deal model: a time-limited promotion submitted by a user."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from localdeals.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from localdeals.models.report import DealReport
    from localdeals.models.user import User
    from localdeals.models.vote import Vote

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"

CATEGORIES = (
    "food_dining",
    "shopping_fashion",
    "entertainment",
    "home_services",
    "other",
)
DEFAULT_CATEGORY = "other"


class Deal(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A deal submitted by a user.

    Status moves pending -> approved/rejected through moderation. Expiry is
    never written back: expired deals keep their status and simply drop out
    of the public feed query.
    """

    __tablename__ = "deals"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    link: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    category: Mapped[str] = mapped_column(
        String(32), nullable=False, default=DEFAULT_CATEGORY, index=True
    )
    promo_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    original_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    discounted_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    # Engagement
    hot_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cold_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Authorship
    submitted_by_user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    posted_by: Mapped[str] = mapped_column(
        String(50), nullable=False, default="Anonymous",
        comment="Submitter display name at submission time"
    )

    # Moderation
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=STATUS_PENDING,
        comment="'pending', 'approved' or 'rejected'"
    )
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deletion_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_deals_feed", "is_archived", "status", "expires_at", "created_at"),
    )

    submitter: Mapped["User"] = relationship(back_populates="deals")
    votes: Mapped[List["Vote"]] = relationship(
        back_populates="deal", cascade="all, delete-orphan", passive_deletes=True
    )
    reports: Mapped[List["DealReport"]] = relationship(
        back_populates="deal", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def is_public(self) -> bool:
        return self.status == STATUS_APPROVED and not self.is_archived

    def __repr__(self) -> str:
        return f"<Deal(id={self.id}, title='{self.title[:50]}', status='{self.status}')>"
