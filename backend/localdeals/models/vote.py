"""Vote model: one hot/cold vote per device per deal."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from localdeals.models.base import Base, UUIDPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from localdeals.models.deal import Deal

VOTE_HOT = "hot"
VOTE_COLD = "cold"
VOTE_TYPES = (VOTE_HOT, VOTE_COLD)


class Vote(UUIDPrimaryKeyMixin, Base):
    """Append-only vote row keyed by the anonymous device id."""

    __tablename__ = "votes"

    deal_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("deals.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    device_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    vote_type: Mapped[str] = mapped_column(
        String(4), nullable=False,
        comment="'hot' or 'cold'"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("deal_id", "device_id", name="uq_vote_deal_device"),
    )

    deal: Mapped["Deal"] = relationship(back_populates="votes")

    def __repr__(self) -> str:
        return f"<Vote(deal={self.deal_id}, device={self.device_id}, type={self.vote_type})>"
