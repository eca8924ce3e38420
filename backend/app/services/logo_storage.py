# app/services/logo_storage.py
"""
Chapter logo uploads. Files land under MEDIA_ROOT as
``{chapter_id}/{variant}-{timestamp_ms}.{ext}`` and are served from
MEDIA_BASE_URL.
"""
from __future__ import annotations

import logging
import os
import time
import uuid
from dataclasses import dataclass
from typing import Optional

import aiofiles
import aiofiles.os

from app.core.config import settings

logger = logging.getLogger(__name__)

LOGO_VARIANTS = ("primary", "secondary")

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/svg+xml": "svg",
}
DEFAULT_EXTENSION = "png"


class LogoValidationError(ValueError):
    """Upload rejected before anything touched the disk."""


@dataclass(frozen=True)
class StoredLogo:
    path: str
    url: str
    variant: str


def extension_for(content_type: Optional[str]) -> str:
    return ALLOWED_CONTENT_TYPES.get((content_type or "").lower(), DEFAULT_EXTENSION)


def validate_logo(content_type: Optional[str], size: int, max_bytes: Optional[int] = None) -> None:
    limit = max_bytes if max_bytes is not None else settings.LOGO_MAX_BYTES
    if (content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
        raise LogoValidationError("Invalid file type. Only JPEG, PNG, GIF, and SVG images are allowed.")
    if size <= 0:
        raise LogoValidationError("Uploaded file is empty")
    if size > limit:
        raise LogoValidationError(f"File size must be less than {limit // (1024 * 1024)}MB")


def logo_object_path(chapter_id: uuid.UUID, variant: str, content_type: Optional[str], now_ms: Optional[int] = None) -> str:
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{chapter_id}/{variant}-{ts}.{extension_for(content_type)}"


async def save_logo(
    chapter_id: uuid.UUID,
    variant: str,
    content_type: Optional[str],
    data: bytes,
    *,
    media_root: Optional[str] = None,
    base_url: Optional[str] = None,
) -> StoredLogo:
    if variant not in LOGO_VARIANTS:
        raise LogoValidationError('Variant must be "primary" or "secondary"')
    validate_logo(content_type, len(data))

    root = media_root or settings.MEDIA_ROOT
    rel_path = logo_object_path(chapter_id, variant, content_type)
    abs_path = os.path.join(root, rel_path)

    await aiofiles.os.makedirs(os.path.dirname(abs_path), exist_ok=True)
    async with aiofiles.open(abs_path, "wb") as f:
        await f.write(data)

    url = f"{(base_url or settings.MEDIA_BASE_URL).rstrip('/')}/{rel_path}"
    logger.info("Logo stored at %s (%d bytes)", rel_path, len(data), extra={"chapter_id": chapter_id})
    return StoredLogo(path=rel_path, url=url, variant=variant)
