"""
Document Service

Business logic for organization documents: upload, listing, download
links and deletion. Remote indexing itself runs in the background job
(app.tasks.document_tasks).
"""

import asyncio
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import UploadFile

from app.ai.rag.file_search import FileSearchClient, get_file_search_client
from app.core.config import settings
from app.models.document import Document
from app.models.organization import OrgMembership
from app.repositories.document_repo import DocumentRepository
from app.repositories.organization_repo import OrganizationRepository
from app.schemas.document import (
    DocumentStatus,
    DocumentResponse,
    DocumentListResponse,
    DocumentUploadResponse,
    DocumentQueryParams,
    DownloadUrlResponse,
)
from app.storage import get_storage, StorageBackend, StorageError
from app.tasks.queue import enqueue_index_document
from app.utils.file_utils import (
    validate_file,
    build_document_key,
    organization_id_from_key,
)

logger = logging.getLogger(__name__)


class DocumentServiceError(Exception):
    """Base exception for document service errors."""
    pass


class DocumentNotFoundError(DocumentServiceError):
    """Raised when document is not found in the organization."""
    pass


class DocumentValidationError(DocumentServiceError):
    """Raised when file validation fails."""
    pass


class DocumentAccessError(DocumentServiceError):
    """Raised when the user is not allowed to touch the organization's documents."""
    pass


class DocumentService:
    """
    Service class for document operations.

    Args:
        db: Async database session
        storage: Object storage backend (defaults to the configured one)
        file_search: Remote index client, only needed for deletes; resolved
            lazily so uploads and downloads never build a Gemini client
    """

    def __init__(
        self,
        db: AsyncSession,
        storage: Optional[StorageBackend] = None,
        file_search: Optional[FileSearchClient] = None,
    ):
        self.db = db
        self.document_repo = DocumentRepository(db)
        self.organization_repo = OrganizationRepository(db)
        self.storage: StorageBackend = storage or get_storage()
        self._file_search = file_search

    @property
    def file_search(self) -> FileSearchClient:
        if self._file_search is None:
            self._file_search = get_file_search_client()
        return self._file_search

    # ============================================================
    # HELPER METHODS - Authorization
    # ============================================================

    async def _require_membership(
        self,
        organization_id: UUID,
        user_id: UUID
    ) -> OrgMembership:
        """
        Verify the user belongs to the organization.

        Always runs before any storage or remote call.
        """
        membership = await self.organization_repo.get_membership(organization_id, user_id)

        if membership is None:
            logger.warning(
                f"Unauthorized access attempt: user {user_id} "
                f"is not a member of organization {organization_id}"
            )
            raise DocumentAccessError("You are not a member of this organization")

        return membership

    async def _get_document(
        self,
        document_id: UUID,
        organization_id: UUID
    ) -> Document:
        document = await self.document_repo.get_in_organization(document_id, organization_id)
        if document is None:
            raise DocumentNotFoundError("Document not found")
        return document

    async def _enqueue_indexing(self, document_id: UUID) -> None:
        """
        Add document to the indexing queue.

        Tries ARQ first. If Redis is unavailable, falls back to an
        in-process asyncio task so the document still gets indexed on
        hosts without a separate worker.
        """
        try:
            await enqueue_index_document(document_id)
        except Exception as e:
            logger.warning(
                f"ARQ queue unavailable ({e}), "
                f"falling back to in-process indexing for {document_id}"
            )
            self._index_inline(document_id)

    def _index_inline(self, document_id: UUID) -> None:
        """Run document indexing as a background asyncio task."""
        from app.tasks.document_tasks import index_document

        async def _run():
            ctx = {"job_id": f"inline-index-{document_id}", "job_try": 1}
            try:
                await index_document(ctx, str(document_id))
            except Exception as exc:
                logger.error(f"Inline indexing failed for {document_id}: {exc}")

        asyncio.create_task(_run())

    # ============================================================
    # UPLOAD
    # ============================================================

    async def upload_document(
        self,
        file: UploadFile,
        organization_id: UUID,
        user_id: UUID
    ) -> DocumentUploadResponse:
        """
        Store an upload and schedule its indexing.

        The row is created `in_progress`; the indexing job moves it to
        `ready` or `error`.
        """
        await self._require_membership(organization_id, user_id)

        try:
            file_content = await file.read()
        except Exception as e:
            logger.error(f"Failed to read uploaded file: {e}")
            raise DocumentServiceError("Failed to read uploaded file")

        display_name = file.filename or "unnamed_file"

        validation_result = validate_file(file_content, file.content_type)
        if not validation_result.is_valid:
            logger.warning(
                f"File validation failed for '{display_name}': "
                f"{validation_result.error_message}"
            )
            raise DocumentValidationError(validation_result.error_message)

        storage_key, storage_filename = build_document_key(organization_id, display_name)

        try:
            await self.storage.save(
                file_content=file_content,
                destination_path=storage_key,
                content_type=validation_result.mime_type
            )
        except StorageError as e:
            logger.error(f"Storage failed: {e}")
            raise DocumentServiceError(f"Failed to save file: {e}")

        try:
            document = await self.document_repo.create(
                organization_id=organization_id,
                user_id=user_id,
                display_name=display_name,
                file_name=storage_filename,
                mime_type=validation_result.mime_type,
                size_bytes=validation_result.file_size,
                storage_url=storage_key,
                status=DocumentStatus.IN_PROGRESS.value,
            )
            logger.info(f"Document record created: {document.id} ({storage_key})")

        except Exception as e:
            logger.error(f"Database insert failed, rolling back storage: {e}")
            try:
                await self.storage.delete(storage_key)
            except Exception as cleanup_error:
                logger.error(f"Cleanup failed: {cleanup_error}")
            raise DocumentServiceError("Failed to save document record")

        await self._enqueue_indexing(document.id)

        return DocumentUploadResponse(document=DocumentResponse.model_validate(document))

    # ============================================================
    # READ OPERATIONS
    # ============================================================

    async def list_documents(
        self,
        organization_id: UUID,
        user_id: UUID,
        params: Optional[DocumentQueryParams] = None
    ) -> DocumentListResponse:
        """List an organization's documents with search and pagination."""
        await self._require_membership(organization_id, user_id)

        if params is None:
            params = DocumentQueryParams()

        documents = await self.document_repo.get_by_organization(
            organization_id=organization_id,
            search=params.search,
            skip=params.offset,
            limit=params.limit
        )
        total = await self.document_repo.count_by_organization(
            organization_id=organization_id,
            search=params.search
        )

        return DocumentListResponse(
            documents=[DocumentResponse.model_validate(doc) for doc in documents],
            total=total,
            limit=params.limit,
            offset=params.offset,
        )

    async def get_download_url(
        self,
        organization_id: UUID,
        document_id: UUID,
        user_id: UUID
    ) -> DownloadUrlResponse:
        """
        Mint a fresh time-limited URL for a stored document.

        Raises:
            DocumentAccessError: Not a member (checked first)
            DocumentNotFoundError: No such document in the organization,
                or it has no stored object
        """
        await self._require_membership(organization_id, user_id)
        document = await self._get_document(document_id, organization_id)

        if not document.storage_url:
            raise DocumentNotFoundError("Document file not found")

        expires_in = settings.SIGNED_URL_EXPIRE_SECONDS
        url = await self.storage.get_download_url(
            document.storage_url,
            expires_in,
            filename=document.display_name,
        )
        return DownloadUrlResponse(url=url, expires_in=expires_in)

    async def get_document_by_storage_key(
        self,
        storage_key: str,
        user_id: UUID
    ) -> Document:
        """
        Resolve a documents/{organization_id}/... key for the local file server.

        The key must name an organization the user belongs to and match a
        document row exactly.
        """
        organization_id = organization_id_from_key(storage_key)
        if organization_id is None:
            raise DocumentValidationError("Invalid file path")

        try:
            organization_uuid = UUID(organization_id)
        except ValueError:
            # Not an organization id, so there is no membership to find
            raise DocumentAccessError("You are not a member of this organization")

        await self._require_membership(organization_uuid, user_id)

        document = await self.document_repo.get_by_storage_url(storage_key, organization_uuid)
        if document is None:
            raise DocumentNotFoundError("File not found")

        return document

    # ============================================================
    # DELETE OPERATIONS
    # ============================================================

    async def delete_document(
        self,
        organization_id: UUID,
        document_id: UUID,
        user_id: UUID
    ) -> bool:
        """
        Delete a document.

        Allowed for the uploader and for organization owners/admins.
        Deletes from:
        1. Database (record)
        2. Storage (file)
        3. Remote index (document, then the store once it is empty)

        Only the database delete can fail the call; storage and remote
        cleanup errors are logged.
        """
        membership = await self._require_membership(organization_id, user_id)
        document = await self._get_document(document_id, organization_id)

        if document.user_id != user_id and not membership.can_manage_documents:
            logger.warning(
                f"User {user_id} tried to delete document {document_id} "
                f"uploaded by {document.user_id}"
            )
            raise DocumentAccessError("You can only delete your own documents")

        storage_key = document.storage_url
        resource_name = document.document_resource_name
        store_name = document.file_search_store_name
        was_indexed = document.status == DocumentStatus.READY.value and resource_name

        deleted = await self.document_repo.delete(document_id)
        if not deleted:
            return False

        if storage_key:
            try:
                await self.storage.delete(storage_key)
            except Exception as e:
                logger.warning(f"Failed to delete file {storage_key}: {e}")

        if was_indexed:
            await self._delete_remote_copy(resource_name, store_name)

        logger.info(f"Document deleted: {document_id} by user {user_id}")
        return True

    async def _delete_remote_copy(
        self,
        resource_name: str,
        store_name: Optional[str]
    ) -> None:
        try:
            await self.file_search.delete_document(resource_name)
        except Exception as e:
            logger.error(f"Failed to delete remote document {resource_name}: {e}")
            return

        if not store_name:
            return

        remaining = await self.document_repo.count_by_store(store_name)
        if remaining:
            return

        try:
            await self.file_search.delete_store(store_name)
            logger.info(f"Deleted empty File Search Store {store_name}")
        except Exception as e:
            logger.error(f"Failed to delete File Search Store {store_name}: {e}")
