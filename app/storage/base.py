"""
Storage Backend Abstract Base Class

Every backend (local disk for development, S3 for production) implements
the same interface so the document service and the indexing job never
care where the bytes live.

Keys are always relative, slash-separated paths such as:

    documents/{organization_id}/{timestamp}-{sanitized_filename}
"""
from abc import ABC, abstractmethod
from typing import Optional
from dataclasses import dataclass
from datetime import datetime

@dataclass
class StoredFile:
    """
    Metadata about a stored object.

    Attributes:
        path: The storage key the object was written to
        size: Object size in bytes
        content_type: MIME type of the object
        stored_at: When the object was stored
        checksum: Optional MD5 hex digest
    """
    path: str
    size: int
    content_type: str
    stored_at: datetime
    checksum: Optional[str] = None


class StorageError(Exception):
    """
    Base exception for storage operations.

    Callers that tolerate storage failures catch this:

        try:
            await storage.delete(key)
        except StorageError as e:
            logger.warning(...)
    """
    pass


class FileNotFoundError(StorageError):
    """Raised when a requested object doesn't exist."""
    pass


class StorageBackend(ABC):
    """
    Abstract base class for object storage backends.

    Concrete implementations: LocalStorage, S3Storage.
    """

    @abstractmethod
    async def save(
        self,
        file_content: bytes,
        destination_path: str,
        content_type: Optional[str] = None
    ) -> StoredFile:
        """
        Store bytes under a key, overwriting any existing object.

        Raises:
            StorageError: If the object cannot be written
        """
        pass

    @abstractmethod
    async def get(self, path: str) -> bytes:
        """
        Read an object's bytes.

        Raises:
            FileNotFoundError: If the object doesn't exist
            StorageError: If the object cannot be read
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete an object.

        Returns True if it was deleted, False if it didn't exist.
        Must not raise for a missing object so repeated deletes are safe.
        """
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether an object exists."""
        pass

    @abstractmethod
    async def get_download_url(
        self,
        path: str,
        expires_in: int,
        filename: Optional[str] = None
    ) -> str:
        """
        Mint a URL the browser can fetch the object from.

        Args:
            path: Storage key
            expires_in: Lifetime of the URL in seconds
            filename: Suggested download filename, if the backend can set it

        Returns:
            A signed URL (object storage) or an application URL that
            re-checks membership on every request (local development)
        """
        pass
