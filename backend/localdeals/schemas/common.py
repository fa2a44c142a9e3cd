"""Common Pydantic schemas used across the API."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model speaking camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel):
    """Standard success envelope. Endpoint responses extend it with their payload."""

    success: bool = True
    message: str = "Operation successful"


class ErrorResponse(BaseModel):
    """Standard API error response."""

    success: bool = False
    message: str


class PaginatedResponse(CamelModel):
    """Pagination fields shared by list responses."""

    total: int = 0
    page: int = 1
    limit: int = 20
    has_more: bool = False
