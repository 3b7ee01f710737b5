"""
Object storage for supporting documents.

upload() must finish before any ledger write that references the returned URL; a failed
upload raises PersistenceError and nothing is written.
"""
from __future__ import annotations

import asyncio
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Protocol

from config import settings
from services.errors import PersistenceError

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    async def upload(self, path: str, data: bytes) -> str:
        """Store data at path and return its public URL."""
        ...


class LocalObjectStorage:
    """Filesystem-backed storage served from a static URL prefix."""

    def __init__(self, base_dir: str | Path, public_url: str) -> None:
        self.base_dir = Path(base_dir)
        self.public_url = public_url.rstrip("/")

    async def upload(self, path: str, data: bytes) -> str:
        target = (self.base_dir / path).resolve()
        if self.base_dir.resolve() not in target.parents:
            raise PersistenceError(f"Refusing to write outside storage root: {path}")
        try:
            await asyncio.to_thread(_write_file, target, data)
        except OSError as e:
            logger.error("Upload to %s failed: %s", path, e)
            raise PersistenceError(f"Upload failed for {Path(path).name}", details={"error": str(e)}) from e
        logger.info("Stored %d bytes at %s", len(data), path)
        return f"{self.public_url}/{path}"


def _write_file(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


def build_upload_path(prefix: str, key: str, filename: str) -> str:
    """e.g. edit_requests/1718000000000_idFront_a1b2c3_scan.png"""
    safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", Path(filename).name) or "file"
    return f"{prefix}/{int(time.time() * 1000)}_{key}_{uuid.uuid4().hex[:6]}_{safe_name}"


def get_storage() -> ObjectStorage:
    return LocalObjectStorage(settings.storage_dir, settings.storage_public_url)
