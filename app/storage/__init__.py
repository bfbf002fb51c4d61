"""
Storage Module

File storage abstraction using the Strategy Pattern. The active backend
is chosen by the STORAGE_BACKEND setting:

- "local": files under UPLOAD_DIR, served by /api/uploads (development)
- "s3":    S3 bucket with presigned download URLs (production)
"""

from app.storage.base import (
    StorageBackend,
    StoredFile,
    StorageError,
    FileNotFoundError,
)
from app.storage.local import LocalStorage
from app.core.config import settings

# Module-level storage instance, created on first access
_storage_instance: StorageBackend | None = None


def get_storage() -> StorageBackend:
    """
    Return the configured storage backend (singleton).

    Example:
        storage = get_storage()
        await storage.save(content, "documents/<org>/123-file.pdf")
    """
    global _storage_instance

    if _storage_instance is None:
        _storage_instance = _create_storage_backend()

    return _storage_instance


def _create_storage_backend() -> StorageBackend:
    backend = settings.STORAGE_BACKEND.lower()

    if backend == "local":
        return LocalStorage(base_path=settings.UPLOAD_DIR, public_url=settings.APP_URL)

    elif backend == "s3":
        from app.storage.s3 import S3Storage

        if not settings.S3_BUCKET:
            raise ValueError("S3_BUCKET must be set when STORAGE_BACKEND=s3")

        return S3Storage(
            bucket=settings.S3_BUCKET,
            region=settings.S3_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            endpoint_url=settings.S3_ENDPOINT_URL,
        )

    else:
        raise ValueError(
            f"Unknown storage backend: {backend}. "
            f"Valid options: local, s3"
        )


__all__ = [
    "get_storage",
    "StorageBackend",
    "StoredFile",
    "StorageError",
    "FileNotFoundError",
    "LocalStorage",
]
