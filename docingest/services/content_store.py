"""
Content storage for uploaded files.

Files live under the configured upload directory with a unique name so uploads
never overwrite each other. File IO is blocking, so it runs in a thread to keep
the event loop free.
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Protocol

from docingest.errors import StorageError

logger = logging.getLogger(__name__)


class ContentStore(Protocol):
    async def write(self, data: bytes, file_name: str) -> str:
        """Store data and return an opaque content reference."""
        ...

    async def read(self, content_ref: str) -> bytes:
        ...

    async def delete(self, content_ref: str) -> None:
        """Release stored content. A reference that no longer exists counts as released."""
        ...


class LocalContentStore:
    def __init__(self, upload_dir: str | Path) -> None:
        self.upload_dir = Path(upload_dir)

    def _path(self, content_ref: str) -> Path:
        path = Path(content_ref)
        if path.parent.resolve() != self.upload_dir.resolve():
            raise StorageError("Content reference is outside the upload directory", details={"ref": content_ref})
        return path

    async def write(self, data: bytes, file_name: str) -> str:
        path = self.upload_dir / f"{uuid.uuid4().hex}{Path(file_name).suffix.lower()}"
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            raise StorageError(f"Could not store upload: {e}", operation="write") from e
        logger.info("Stored %d bytes at %s", len(data), path)
        return str(path)

    def _write(self, path: Path, data: bytes) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def read(self, content_ref: str) -> bytes:
        path = self._path(content_ref)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise StorageError("Stored content not found", operation="read", details={"ref": content_ref}) from e
        except OSError as e:
            raise StorageError(f"Could not read content: {e}", operation="read") from e

    async def delete(self, content_ref: str) -> None:
        path = self._path(content_ref)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(f"Could not remove content: {e}", operation="delete") from e
        logger.info("Removed content %s", content_ref)
