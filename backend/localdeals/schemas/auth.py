"""Auth Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from localdeals.schemas.common import ApiResponse, CamelModel


class SendCodeRequest(CamelModel):
    """Request a login code for an email address."""
    email: str = Field(max_length=320)


class SendCodeResponse(ApiResponse):
    dev_code: Optional[str] = None


class VerifyCodeRequest(CamelModel):
    """Exchange an emailed code for a session."""
    email: str = Field(max_length=320)
    code: str = Field(max_length=16)
    device_id: str = Field(max_length=64)


class UserResponse(CamelModel):
    """User info returned to its owner."""

    id: UUID
    email: str
    username: Optional[str] = None
    role: str
    auto_approve: bool
    created_at: datetime
    updated_at: datetime


class VerifyCodeResponse(ApiResponse):
    user: UserResponse
    is_new_user: bool
    token: str


class UsernameRequest(CamelModel):
    username: str = Field(max_length=64)


class UsernameResponse(ApiResponse):
    username: str


class UserProfileResponse(ApiResponse):
    user: UserResponse


class UserStats(CamelModel):
    total_deals: int = 0
    approved_deals: int = 0
    rejected_deals: int = 0
    pending_deals: int = 0
    member_since: datetime


class UserStatsResponse(CamelModel):
    stats: UserStats
