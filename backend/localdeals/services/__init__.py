"""Services module for business logic and data operations.

Each service wraps one concern and takes the request's ``AsyncSession``
(or, for the code and rate-limit services, a TTL store).
"""

from localdeals.services.auth_service import AuthenticatedUser, IdentityResolver
from localdeals.services.deal_service import DealService
from localdeals.services.report_service import ReportService
from localdeals.services.user_service import UserService
from localdeals.services.verification_service import VerificationCodeService
from localdeals.services.vote_service import VoteService

__all__ = [
    "AuthenticatedUser",
    "IdentityResolver",
    "DealService",
    "ReportService",
    "UserService",
    "VerificationCodeService",
    "VoteService",
]
