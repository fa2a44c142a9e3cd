"""SQLAlchemy models for LocalDeals.

All models are imported here so ``Base.metadata`` knows every table.
"""

from localdeals.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from localdeals.models.user import User
from localdeals.models.deal import Deal
from localdeals.models.vote import Vote
from localdeals.models.report import DealReport

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "User",
    "Deal",
    "Vote",
    "DealReport",
]
