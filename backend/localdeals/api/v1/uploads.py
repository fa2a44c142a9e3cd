"""Deal image upload."""

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile

from localdeals.config import settings
from localdeals.core.exceptions import ValidationError
from localdeals.dependencies import IMAGE_UPLOAD_RULE, get_rate_limiter, get_session_user, get_storage
from localdeals.schemas.upload import Base64UploadRequest, UploadResponse
from localdeals.services.auth_service import AuthenticatedUser
from localdeals.services.rate_limiter import RateLimiter
from localdeals.services.storage_service import (
    ObjectStorage,
    decode_data_url,
    generate_object_path,
    validate_image,
)

router = APIRouter()


async def _read_upload(request: Request) -> tuple[bytes, str, str]:
    """Return ``(data, mime_type, filename)`` from a multipart or JSON body."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            raise ValidationError("Missing required fields: file")
        data = await upload.read()
        return data, upload.content_type or "", upload.filename or ""

    try:
        payload = Base64UploadRequest.model_validate(await request.json())
    except (ValueError, PydanticValidationError):
        raise ValidationError("Missing required fields: image, filename")
    data, mime_type = decode_data_url(payload.image)
    return data, mime_type, payload.filename


@router.post("/upload-image", response_model=UploadResponse)
async def upload_image(
    request: Request,
    identity: AuthenticatedUser = Depends(get_session_user),
    limiter: RateLimiter = Depends(get_rate_limiter),
    storage: ObjectStorage = Depends(get_storage),
):
    """Store a JPEG, PNG or WebP image and return its public URL."""
    await limiter.hit(IMAGE_UPLOAD_RULE, str(identity.id))

    data, mime_type, filename = await _read_upload(request)
    image = validate_image(data, mime_type, filename, settings.MAX_UPLOAD_BYTES)

    path = generate_object_path(image.extension)
    url = await storage.upload(path, image.data, image.mime_type)

    return UploadResponse(message="Image uploaded successfully", url=url, path=path)
