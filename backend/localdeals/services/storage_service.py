"""Deal image storage in an S3-compatible bucket (MinIO client).

Object paths follow ``images/<epoch-ms>-<random>.<ext>``.
"""

import asyncio
import base64
import binascii
import io
import re
import secrets
import string
import time
from dataclasses import dataclass
from threading import Lock
from typing import Optional, Protocol
from urllib.parse import urlparse

import structlog
import urllib3
from minio import Minio

from localdeals.config import settings
from localdeals.core.exceptions import ValidationError

logger = structlog.get_logger(__name__)

ALLOWED_MIME_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}
EXTENSION_FORMATS = {"jpg": "jpg", "jpeg": "jpg", "png": "png", "webp": "webp"}

# (offset, bytes) pairs every file of the format must carry
FILE_SIGNATURES = {
    "jpg": ((0, b"\xff\xd8\xff"),),
    "png": ((0, b"\x89PNG\r\n\x1a\n"),),
    "webp": ((0, b"RIFF"), (8, b"WEBP")),
}

_DATA_URL = re.compile(r"^data:([^;]+);base64,(.*)$", re.DOTALL)


@dataclass
class ValidatedImage:
    data: bytes
    mime_type: str
    extension: str


class ObjectStorage(Protocol):
    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store the object and return its public URL."""
        ...

    async def remove(self, path: str) -> None:
        ...

    def path_from_url(self, url: str) -> Optional[str]:
        ...


def generate_object_path(extension: str) -> str:
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(6))
    return f"images/{int(time.time() * 1000)}-{suffix}.{extension}"


def validate_image(data: bytes, mime_type: str, filename: str, max_bytes: int) -> ValidatedImage:
    """Check size, extension, declared MIME type and file signature.

    Raises:
        ValidationError: on any mismatch
    """
    if not data:
        raise ValidationError("Image file is required")
    if len(data) > max_bytes:
        raise ValidationError(f"Image exceeds the maximum size of {max_bytes // 1024} KB")

    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    file_format = EXTENSION_FORMATS.get(extension)
    if file_format is None:
        raise ValidationError("Invalid file extension. Allowed: jpg, jpeg, png, webp")

    normalized = ALLOWED_MIME_TYPES.get(mime_type.lower())
    if normalized is None:
        raise ValidationError("Invalid image type. Allowed: JPEG, PNG, WebP")
    if normalized != file_format:
        raise ValidationError("Invalid image: file extension does not match its type")

    if not all(data[offset:offset + len(sig)] == sig for offset, sig in FILE_SIGNATURES[normalized]):
        raise ValidationError("Invalid image content: file signature does not match its type")

    return ValidatedImage(data=data, mime_type=mime_type.lower(), extension=normalized)


def decode_data_url(image: str) -> tuple[bytes, str]:
    """Split a ``data:<mime>;base64,<payload>`` URL into bytes and MIME type."""
    match = _DATA_URL.match(image.strip())
    if not match:
        raise ValidationError("Invalid image data: expected a base64 data URL")
    mime_type, payload = match.groups()
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Invalid image data: malformed base64")
    return data, mime_type


class MinioStorage:
    """Bucket access through a lazily built, shared MinIO client."""

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        public_url: str,
        secure: bool = False,
    ):
        self.endpoint = endpoint
        self.access_key = access_key
        self.secret_key = secret_key
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")
        self.secure = secure
        self._client: Optional[Minio] = None
        self._lock = Lock()
        self.logger = logger.bind(service="storage")

    def _get_client(self) -> Minio:
        with self._lock:
            if self._client is None:
                http_client = urllib3.PoolManager(
                    timeout=urllib3.Timeout(connect=5, read=30),
                    retries=False,
                    maxsize=16,
                )
                self._client = Minio(
                    self.endpoint,
                    access_key=self.access_key,
                    secret_key=self.secret_key,
                    secure=self.secure,
                    http_client=http_client,
                )
            return self._client

    def public_url_for(self, path: str) -> str:
        return f"{self.public_url}/{self.bucket}/{path}"

    def path_from_url(self, url: str) -> Optional[str]:
        """Recover the ``images/...`` object path from a public URL, if it is ours."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return None
        match = re.search(rf"/{re.escape(self.bucket)}/(images/.+)$", parsed.path)
        return match.group(1) if match else None

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        client = self._get_client()
        await asyncio.to_thread(
            client.put_object,
            self.bucket,
            path,
            io.BytesIO(data),
            length=len(data),
            content_type=content_type,
            metadata={"Cache-Control": "max-age=3600"},
        )
        self.logger.info("image_uploaded", path=path, size=len(data))
        return self.public_url_for(path)

    async def remove(self, path: str) -> None:
        client = self._get_client()
        await asyncio.to_thread(client.remove_object, self.bucket, path)
        self.logger.info("image_removed", path=path)


_storage_instance: Optional[MinioStorage] = None


def get_storage_service() -> MinioStorage:
    """Get or create the process-wide storage client."""
    global _storage_instance

    if _storage_instance is None:
        _storage_instance = MinioStorage(
            endpoint=settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            bucket=settings.STORAGE_BUCKET,
            public_url=settings.STORAGE_PUBLIC_URL,
            secure=settings.MINIO_SECURE,
        )
    return _storage_instance
