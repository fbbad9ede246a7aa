"""
Blob storage for liquidation receipts.

Workflows only handle metadata and keys; bytes go through a ``BlobStore``.
``LocalBlobStore`` keeps them on disk under ``settings.BLOB_STORAGE_DIR``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from starlette.concurrency import run_in_threadpool

from hrflow.core.config import settings
from hrflow.core.exceptions import NotFound, StoreUnavailable, ValidationError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_file_name(name: str) -> str:
    """Reduce a client-supplied file name to a single safe path segment."""
    name = Path(name or "").name
    cleaned = _UNSAFE_CHARS.sub("_", name).strip("._")
    return cleaned[:120] or "receipt"


class BlobStore(Protocol):
    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None: ...

    async def get(self, key: str) -> bytes: ...

    async def delete(self, key: str) -> None: ...


class LocalBlobStore:
    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root or settings.BLOB_STORAGE_DIR).resolve()

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValidationError(f"Invalid blob key {key!r}")
        return path

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> None:
        path = self._path(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await run_in_threadpool(_write)
        except OSError as exc:
            logger.error("Blob write failed for %s: %s", key, exc, exc_info=True)
            raise StoreUnavailable("Attachment storage unavailable") from exc
        logger.info("Stored blob %s (%d bytes)", key, len(data))

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return await run_in_threadpool(path.read_bytes)
        except FileNotFoundError:
            raise NotFound(f"Attachment {key} not found") from None
        except OSError as exc:
            logger.error("Blob read failed for %s: %s", key, exc, exc_info=True)
            raise StoreUnavailable("Attachment storage unavailable") from exc

    async def delete(self, key: str) -> None:
        """Remove *key*; deleting a missing blob is not an error."""
        path = self._path(key)
        try:
            await run_in_threadpool(path.unlink, missing_ok=True)
        except OSError as exc:
            logger.error("Blob delete failed for %s: %s", key, exc, exc_info=True)
            raise StoreUnavailable("Attachment storage unavailable") from exc
        logger.info("Deleted blob %s", key)
