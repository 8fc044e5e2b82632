"""
Image storage on Supabase Storage, spoken to over its REST API with httpx.

Routes receive the client through the :func:`get_storage` dependency.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from functools import lru_cache

import httpx
from starlette.datastructures import UploadFile

from catering.core.config import settings

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


class StorageError(Exception):
    """Raised when the object store rejects or fails a request."""


class ImageValidationError(ValueError):
    """Raised when an uploaded file is not an acceptable image."""


@dataclass(frozen=True)
class UploadResult:
    url: str
    key: str


def validate_image_file(content_type: str | None, size: int) -> None:
    """Reject anything but JPEG / PNG / WebP up to ``MAX_IMAGE_SIZE`` bytes."""
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise ImageValidationError("Invalid file type. Only JPEG, PNG, and WebP are allowed.")
    if size > settings.MAX_IMAGE_SIZE:
        max_mb = settings.MAX_IMAGE_SIZE // (1024 * 1024)
        raise ImageValidationError(f"File size too large. Maximum size is {max_mb}MB.")


def build_object_key(folder: str, filename: str | None, content_type: str | None) -> str:
    """``<folder>/<epoch-ms>-<random>.<ext>`` — unique per upload."""
    ext = ""
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
    if not ext:
        ext = _EXTENSIONS.get(content_type or "", "bin")
    stamp = int(time.time() * 1000)
    return f"{folder}/{stamp}-{secrets.token_hex(6)}.{ext}"


async def read_image(upload: UploadFile) -> bytes:
    """Validate an uploaded image and read it fully.

    Type and declared size are checked before any bytes are read.
    """
    validate_image_file(upload.content_type, upload.size or 0)
    data = await upload.read()
    validate_image_file(upload.content_type, len(data))
    return data


class SupabaseStorage:
    """Minimal client for one Supabase Storage bucket."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._bucket = bucket
        self._timeout = timeout
        self._transport = transport
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self._base_url}/storage/v1",
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    def public_url(self, key: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{self._bucket}/{key}"

    async def upload(self, data: bytes, key: str, content_type: str) -> UploadResult:
        try:
            async with self._client() as client:
                resp = await client.post(
                    f"/object/{self._bucket}/{key}",
                    content=data,
                    headers={"Content-Type": content_type, "x-upsert": "false"},
                )
        except httpx.HTTPError as exc:
            logger.error("Storage upload error for %s: %s", key, exc)
            raise StorageError(f"Upload failed: {exc}") from exc

        if resp.is_error:
            logger.error("Storage upload rejected for %s: %s %s", key, resp.status_code, resp.text)
            raise StorageError(f"Upload failed: HTTP {resp.status_code}")

        logger.info("Uploaded image %s (%d bytes)", key, len(data))
        return UploadResult(url=self.public_url(key), key=key)

    async def delete(self, key: str) -> None:
        try:
            async with self._client() as client:
                resp = await client.request(
                    "DELETE",
                    f"/object/{self._bucket}",
                    json={"prefixes": [key]},
                )
        except httpx.HTTPError as exc:
            logger.error("Storage delete error for %s: %s", key, exc)
            raise StorageError(f"Delete failed: {exc}") from exc

        if resp.is_error:
            logger.error("Storage delete rejected for %s: %s %s", key, resp.status_code, resp.text)
            raise StorageError(f"Delete failed: HTTP {resp.status_code}")

        logger.info("Deleted image %s", key)

    async def upload_image(self, upload: UploadFile, folder: str) -> UploadResult:
        """Validate, name and upload an image from a multipart field."""
        data = await read_image(upload)
        content_type = upload.content_type or "application/octet-stream"
        key = build_object_key(folder, upload.filename, content_type)
        return await self.upload(data, key, content_type)


@lru_cache
def get_storage() -> SupabaseStorage:
    """FastAPI dependency — the configured bucket client."""
    if not settings.storage_configured:
        logger.warning("Object storage is not configured; image uploads will fail")
    return SupabaseStorage(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY,
        settings.STORAGE_BUCKET,
        timeout=settings.STORAGE_TIMEOUT_SECONDS,
    )
