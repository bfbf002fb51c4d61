"""
Document Indexing Tasks

Background job that pushes an uploaded document into the organization's
File Search Store and records where it landed.
"""

import asyncio
import logging
from typing import Any, Dict
from uuid import UUID

from app.ai.rag.file_search import FileSearchClient, get_file_search_client
from app.db.database import AsyncSessionLocal
from app.models.document import Document
from app.repositories.document_repo import DocumentRepository
from app.repositories.organization_repo import OrganizationRepository
from app.schemas.document import DocumentStatus
from app.storage import get_storage

logger = logging.getLogger(__name__)


class IndexingError(Exception):
    """Raised when a document cannot be indexed."""
    pass


def remote_display_name(document: Document) -> str:
    """
    Display name given to the remote copy.

    Citation mapping recovers the local document id from this prefix.
    """
    return f"{document.id}-{document.display_name}"


async def _resolve_store_name(
    document_repo: DocumentRepository,
    organization_repo: OrganizationRepository,
    file_search: FileSearchClient,
    organization_id: UUID
) -> str:
    """Reuse the organization's store, or create `{slug}-documents`."""
    store_name = await document_repo.get_store_name_for_organization(organization_id)
    if store_name:
        return store_name

    organization = await organization_repo.get_by_id(organization_id)
    if organization is None:
        raise IndexingError(f"Organization {organization_id} not found")

    store = await file_search.create_store(f"{organization.slug}-documents")
    return store.name


# ============================================================
# DOCUMENT INDEXING TASK
# ============================================================

async def index_document(
    ctx: Dict[str, Any],
    document_id: str
) -> Dict[str, Any]:
    """
    Index an uploaded document.

    in_progress → ready on success, in_progress → error on any failure.
    Documents that already left in_progress are skipped, so a re-delivered
    job does nothing. The stored bytes are kept when indexing fails.

    ctx may carry `session_factory`, `file_search` and `storage`; the
    worker startup hook sets `file_search`, the rest default to the
    application's.

    Returns:
        Dict with the indexing result
    """
    job_id = ctx.get('job_id', 'unknown')
    job_try = ctx.get('job_try', 1)

    logger.info(
        f"Indexing document {document_id} "
        f"(job: {job_id}, attempt: {job_try})"
    )

    try:
        doc_uuid = UUID(document_id)
    except ValueError:
        logger.error(f"Invalid document ID: {document_id}")
        return {"success": False, "error": "Invalid document ID"}

    session_factory = ctx.get("session_factory") or AsyncSessionLocal
    file_search: FileSearchClient = ctx.get("file_search") or get_file_search_client()
    storage = ctx.get("storage") or get_storage()

    async with session_factory() as session:
        document_repo = DocumentRepository(session)
        organization_repo = OrganizationRepository(session)

        document = await document_repo.get_by_id(doc_uuid)
        if document is None:
            logger.error(f"Document not found: {document_id}")
            return {"success": False, "error": "Document not found"}

        if document.status != DocumentStatus.IN_PROGRESS.value:
            logger.info(f"Document {document_id} is {document.status}, skipping")
            return {"success": True, "document_id": document_id, "skipped": True}

        try:
            if not document.storage_url:
                raise IndexingError("Document has no stored file")

            file_content = await storage.get(document.storage_url)
            logger.info(f"Document {document_id}: read {len(file_content)} bytes")

            store_name = await _resolve_store_name(
                document_repo,
                organization_repo,
                file_search,
                document.organization_id,
            )

            resource_name = await file_search.upload_document(
                store_name=store_name,
                content=file_content,
                display_name=remote_display_name(document),
                mime_type=document.mime_type,
                custom_metadata={"document_id": str(document.id)},
            )

            await document_repo.mark_ready(document, resource_name, store_name)
            logger.info(f"Document {document_id}: ready as {resource_name} in {store_name}")

            return {
                "success": True,
                "document_id": document_id,
                "document_resource_name": resource_name,
                "file_search_store_name": store_name,
            }

        except asyncio.CancelledError:
            # job timeout or worker shutdown; the row must not stay in_progress
            logger.warning(f"Document {document_id} indexing cancelled")
            await asyncio.shield(_mark_error(document_repo, doc_uuid))
            raise

        except Exception as e:
            logger.exception(f"Document {document_id} indexing failed: {e}")
            await _mark_error(document_repo, doc_uuid)
            return {"success": False, "document_id": document_id, "error": str(e)}


async def _mark_error(document_repo: DocumentRepository, document_id: UUID) -> None:
    """Mark document as error."""
    try:
        await document_repo.db.rollback()
        document = await document_repo.get_by_id(document_id)
        if document is not None:
            await document_repo.mark_error(document)
    except Exception as e:
        logger.error(f"Failed to mark document {document_id} as error: {e}")
