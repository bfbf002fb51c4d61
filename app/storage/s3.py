"""
Amazon S3 Storage Backend

Production backend. boto3 is synchronous, so every call runs in a worker
thread via asyncio.to_thread to keep the event loop free.

Any S3-compatible service (R2, MinIO) works by setting S3_ENDPOINT_URL.
"""

import asyncio
import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.base import (
    StorageBackend,
    StoredFile,
    StorageError,
    FileNotFoundError as StorageFileNotFoundError,
)

logger = logging.getLogger(__name__)


def _is_not_found(error: ClientError) -> bool:
    code = error.response.get("Error", {}).get("Code", "")
    return code in ("404", "NoSuchKey", "NotFound")


class S3Storage(StorageBackend):
    """
    S3 storage implementation.

    Attributes:
        bucket: Bucket holding all objects
    """

    def __init__(
        self,
        bucket: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket

        if client is None:
            kwargs = {"region_name": region}
            if access_key_id:
                kwargs["aws_access_key_id"] = access_key_id
                kwargs["aws_secret_access_key"] = secret_access_key
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **kwargs)

        self._client = client
        logger.info(f"S3Storage initialized for bucket: {bucket}")

    async def save(
        self,
        file_content: bytes,
        destination_path: str,
        content_type: Optional[str] = None
    ) -> StoredFile:
        content_type = content_type or "application/octet-stream"
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=destination_path,
                Body=file_content,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to upload {destination_path} to S3: {e}")
            raise StorageError(f"Failed to save file: {e}")

        logger.info(f"Uploaded to S3: {destination_path} ({len(file_content)} bytes)")

        return StoredFile(
            path=destination_path,
            size=len(file_content),
            content_type=content_type,
            stored_at=datetime.now(timezone.utc),
            checksum=hashlib.md5(file_content).hexdigest()
        )

    async def get(self, path: str) -> bytes:
        try:
            response = await asyncio.to_thread(
                self._client.get_object,
                Bucket=self.bucket,
                Key=path,
            )
            return await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            if _is_not_found(e):
                raise StorageFileNotFoundError(f"File not found: {path}")
            logger.error(f"Failed to read {path} from S3: {e}")
            raise StorageError(f"Failed to read file: {e}")
        except BotoCoreError as e:
            logger.error(f"Failed to read {path} from S3: {e}")
            raise StorageError(f"Failed to read file: {e}")

    async def exists(self, path: str) -> bool:
        try:
            await asyncio.to_thread(
                self._client.head_object,
                Bucket=self.bucket,
                Key=path,
            )
            return True
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise StorageError(f"Failed to check file: {e}")

    async def delete(self, path: str) -> bool:
        if not await self.exists(path):
            logger.debug(f"Object already doesn't exist: {path}")
            return False

        try:
            await asyncio.to_thread(
                self._client.delete_object,
                Bucket=self.bucket,
                Key=path,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to delete {path} from S3: {e}")
            raise StorageError(f"Failed to delete file: {e}")

        logger.info(f"Deleted from S3: {path}")
        return True

    async def get_download_url(
        self,
        path: str,
        expires_in: int,
        filename: Optional[str] = None
    ) -> str:
        params = {"Bucket": self.bucket, "Key": path}
        if filename:
            params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'

        try:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params=params,
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to presign {path}: {e}")
            raise StorageError(f"Failed to create download URL: {e}")
