"""Vote and report schemas."""

from typing import Optional

from pydantic import Field

from localdeals.schemas.common import ApiResponse, CamelModel


class VoteRequest(CamelModel):
    """Request schema for voting on a deal."""

    deal_id: str = Field(max_length=64)
    device_id: str = Field(max_length=64)
    vote_type: str = Field(max_length=8)  # "hot" or "cold"


class VoteResponse(ApiResponse):
    hot_votes: int
    cold_votes: int


class ReportRequest(CamelModel):
    deal_id: str = Field(max_length=64)
    user_id: str = Field(max_length=64)
    reason: str = Field(max_length=32)
    details: Optional[str] = Field(None, max_length=1000)


class ReportResponse(ApiResponse):
    report_count: int
