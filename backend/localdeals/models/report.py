"""DealReport model: user-filed abuse reports."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from localdeals.models.base import Base, UUIDPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from localdeals.models.deal import Deal

REPORT_REASONS = ("spam", "inappropriate", "expired", "misleading")
# Reasons that need a written explanation
HIGH_SEVERITY_REASONS = ("spam", "misleading")


class DealReport(UUIDPrimaryKeyMixin, Base):
    """Append-only report row, one per reporter per deal."""

    __tablename__ = "deal_reports"

    deal_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("deals.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    reported_by: Mapped[uuid.UUID] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(String(16), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("deal_id", "reported_by", name="uq_report_deal_reporter"),
        Index("idx_reports_reporter_created", "reported_by", "created_at"),
    )

    deal: Mapped["Deal"] = relationship(back_populates="reports")

    def __repr__(self) -> str:
        return f"<DealReport(deal={self.deal_id}, by={self.reported_by}, reason={self.reason})>"
