"""Pydantic schemas for the LocalDeals API.

All request/response models are defined here for easy import.
"""

from localdeals.schemas.common import ApiResponse, CamelModel, ErrorResponse, PaginatedResponse
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
from localdeals.schemas.deal import (
    DealDetailResponse,
    DealListResponse,
    DealResponse,
    ModerationRequest,
    ModerationResponse,
    SubmitDealRequest,
    SubmitDealResponse,
)
from localdeals.schemas.vote import ReportRequest, ReportResponse, VoteRequest, VoteResponse
from localdeals.schemas.upload import Base64UploadRequest, UploadResponse
from localdeals.schemas.health import HealthCheckResponse

__all__ = [
    # Common
    "ApiResponse",
    "CamelModel",
    "ErrorResponse",
    "PaginatedResponse",
    # Auth
    "SendCodeRequest",
    "SendCodeResponse",
    "VerifyCodeRequest",
    "VerifyCodeResponse",
    "UserResponse",
    "UsernameRequest",
    "UsernameResponse",
    "UserProfileResponse",
    "UserStats",
    "UserStatsResponse",
    # Deal
    "DealResponse",
    "DealListResponse",
    "DealDetailResponse",
    "SubmitDealRequest",
    "SubmitDealResponse",
    "ModerationRequest",
    "ModerationResponse",
    # Vote / report
    "VoteRequest",
    "VoteResponse",
    "ReportRequest",
    "ReportResponse",
    # Upload
    "Base64UploadRequest",
    "UploadResponse",
    # Health
    "HealthCheckResponse",
]
