"""
Local Filesystem Storage Backend

Stores objects on the local filesystem. Used in development; files are
served back by the /api/uploads file server, which re-checks
organization membership on every request.

Directory Structure:
-------------------
{base_path}/
└── documents/
    └── {organization_id}/
        └── {timestamp}-{sanitized_filename}
"""

import hashlib
import logging
import aiofiles
import aiofiles.os
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional

from app.storage.base import (
    StorageBackend,
    StoredFile,
    StorageError,
    FileNotFoundError as StorageFileNotFoundError,
)

logger = logging.getLogger(__name__)


class LocalStorage(StorageBackend):
    """
    Local filesystem storage implementation.

    Uses aiofiles so reads and writes don't block the event loop.

    Attributes:
        base_path: Root directory for all objects
        public_url: Base URL of the app, used to build /api/uploads links
    """

    def __init__(self, base_path: str, public_url: str = "http://localhost:8000"):
        self.base_path = Path(base_path)
        self.public_url = public_url.rstrip("/")

        self.base_path.mkdir(parents=True, exist_ok=True)

        logger.info(f"LocalStorage initialized at: {self.base_path.absolute()}")

    def resolve_path(self, relative_path: str) -> Path:
        """
        Convert a storage key to an absolute path under base_path.

        Raises:
            StorageError: If the key would escape base_path
        """
        resolved = (self.base_path / relative_path).resolve()

        try:
            resolved.relative_to(self.base_path.resolve())
        except ValueError:
            logger.warning(f"Path traversal attempt detected: {relative_path}")
            raise StorageError(f"Invalid path: {relative_path}")

        return resolved

    async def save(
        self,
        file_content: bytes,
        destination_path: str,
        content_type: Optional[str] = None
    ) -> StoredFile:
        try:
            full_path = self.resolve_path(destination_path)
            full_path.parent.mkdir(parents=True, exist_ok=True)

            async with aiofiles.open(full_path, 'wb') as f:
                await f.write(file_content)

            checksum = hashlib.md5(file_content).hexdigest()
            logger.info(
                f"File saved: {destination_path} "
                f"({len(file_content)} bytes, checksum: {checksum[:8]}...)"
            )

            return StoredFile(
                path=destination_path,
                size=len(file_content),
                content_type=content_type or "application/octet-stream",
                stored_at=datetime.now(timezone.utc),
                checksum=checksum
            )

        except OSError as e:
            logger.error(f"Failed to save file {destination_path}: {e}")
            raise StorageError(f"Failed to save file: {e}")

    async def get(self, path: str) -> bytes:
        full_path = self.resolve_path(path)

        if not full_path.is_file():
            logger.warning(f"File not found: {path}")
            raise StorageFileNotFoundError(f"File not found: {path}")

        try:
            async with aiofiles.open(full_path, 'rb') as f:
                content = await f.read()

            logger.debug(f"File read: {path} ({len(content)} bytes)")
            return content

        except OSError as e:
            logger.error(f"Failed to read file {path}: {e}")
            raise StorageError(f"Failed to read file: {e}")

    async def delete(self, path: str) -> bool:
        full_path = self.resolve_path(path)

        if not full_path.exists():
            logger.debug(f"File already doesn't exist: {path}")
            return False

        try:
            await aiofiles.os.remove(full_path)
            logger.info(f"File deleted: {path}")
            return True

        except OSError as e:
            logger.error(f"Failed to delete file {path}: {e}")
            raise StorageError(f"Failed to delete file: {e}")

    async def exists(self, path: str) -> bool:
        try:
            return self.resolve_path(path).is_file()
        except StorageError:
            # Invalid path (traversal attempt) → doesn't exist
            return False

    async def get_download_url(
        self,
        path: str,
        expires_in: int,
        filename: Optional[str] = None
    ) -> str:
        """
        Local files have no signature; the URL points at the app's file
        server, which enforces membership itself. expires_in is ignored.
        """
        return f"{self.public_url}/api/uploads/{path}"
