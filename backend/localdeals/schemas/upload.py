"""Image upload schemas."""

from pydantic import Field

from localdeals.schemas.common import ApiResponse, CamelModel


class Base64UploadRequest(CamelModel):
    """JSON upload: a data URL plus the original filename."""

    image: str
    filename: str = Field(max_length=255)


class UploadResponse(ApiResponse):
    url: str
    path: str
