"""Deal Pydantic schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from pydantic import AliasChoices, Field, field_serializer

from localdeals.schemas.common import ApiResponse, CamelModel, PaginatedResponse


class DealResponse(CamelModel):
    """Standard deal response schema."""

    id: UUID
    title: str
    description: Optional[str] = None
    image_url: str
    link: Optional[str] = None
    location: Optional[str] = None
    category: str
    promo_code: Optional[str] = None
    original_price: Optional[Decimal] = None
    discounted_price: Optional[Decimal] = None
    hot_count: int = Field(
        0, validation_alias=AliasChoices("hot_count", "hotVotes"), serialization_alias="hotVotes"
    )
    cold_count: int = Field(
        0, validation_alias=AliasChoices("cold_count", "coldVotes"), serialization_alias="coldVotes"
    )
    submitted_by_user_id: UUID = Field(
        validation_alias=AliasChoices("submitted_by_user_id", "userId"), serialization_alias="userId"
    )
    posted_by: str = Field(
        validation_alias=AliasChoices("posted_by", "username"), serialization_alias="username"
    )
    status: str
    is_archived: bool
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    @field_serializer("original_price", "discounted_price")
    def _price_as_string(self, value: Optional[Decimal]) -> Optional[str]:
        return None if value is None else str(value)


class DealListResponse(PaginatedResponse):
    deals: List[DealResponse] = []


class DealDetailResponse(CamelModel):
    deal: DealResponse


class SubmitDealRequest(CamelModel):
    """Deal submission form."""

    title: str = Field(max_length=200)
    image_url: str = Field(max_length=1000)
    category: str = Field(max_length=64)
    expiry_days: Union[int, str]
    user_id: str = Field(max_length=64)
    description: Optional[str] = Field(None, max_length=2000)
    link: Optional[str] = Field(None, max_length=2000)
    location: Optional[str] = Field(None, max_length=200)
    promo_code: Optional[str] = Field(None, max_length=50)
    original_price: Optional[Union[Decimal, str]] = None
    discounted_price: Optional[Union[Decimal, str]] = None


class SubmitDealResponse(ApiResponse):
    deal: DealResponse
    auto_approved: bool


class ModerationRequest(CamelModel):
    """Body of approve / reject / restore / delete."""

    deal_id: str = Field(max_length=64)
    reason: Optional[str] = Field(None, max_length=1000)


class ModerationResponse(ApiResponse):
    deal: Optional[DealResponse] = None
