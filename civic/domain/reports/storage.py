"""Image storage collaborator: persists uploads and hands back a public URL."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Protocol

import ulid

from civic.domain.reports.errors import StorageError, ValidationError

ALLOWED_MIME_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}
REPORTS_PREFIX = "reports"
_OWNER_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class ImageStorage(Protocol):
    async def store(self, owner_id: str, payload: bytes, content_type: str) -> str:
        ...


def build_image_key(owner_id: str, content_type: str) -> str:
    return f"{REPORTS_PREFIX}/{owner_id}/{ulid.new()}{ALLOWED_MIME_TYPES[content_type.lower()]}"


def _write(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload)


class LocalImageStorage(ImageStorage):
    """Writes images below ``root`` and serves them from ``base_url``."""

    def __init__(self, root: Path, base_url: str, *, max_bytes: int = 5 * 1024 * 1024) -> None:
        self._root = root
        self._base_url = base_url.rstrip("/")
        self._max_bytes = max_bytes

    async def store(self, owner_id: str, payload: bytes, content_type: str) -> str:
        if not _OWNER_ID.match(owner_id):
            raise ValidationError("owner_id_invalid")
        if not content_type or content_type.lower() not in ALLOWED_MIME_TYPES:
            raise ValidationError("image_type_invalid")
        if not payload:
            raise ValidationError("image_empty")
        if len(payload) > self._max_bytes:
            raise ValidationError("image_too_large")
        key = build_image_key(owner_id, content_type)
        try:
            await asyncio.to_thread(_write, self._root / key, payload)
        except OSError as exc:
            raise StorageError("image_write_failed") from exc
        return f"{self._base_url}/{key}"
