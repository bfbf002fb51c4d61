"""
RAG Service

Reconciles local Document rows with the remote File Search index and
manages per-organization generation settings.

Two granularities of sync check, used in different places:

- list_stores():          count-level. Compares each store's remote
                          active document count with the local count.
                          Cheap enough for the admin dashboard.
- get_store_documents():  identity-level. Full outer join of local rows
                          and remote documents on the remote resource
                          name. Used when drilling into one store.

The remote resource name (documentResourceName locally) is the only match
key. Display names are not unique and can change locally.

Nothing is locked while reconciling: a "synced" result can be stale as
soon as it is returned.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.rag.file_search import FileSearchClient, RemoteDocument
from app.models.document import Document
from app.models.organization import Organization
from app.repositories.document_repo import DocumentRepository
from app.repositories.rag_settings_repo import RagSettingsRepository
from app.schemas.document import DocumentStatus
from app.schemas.rag import (
    DeleteDocumentsResponse,
    DeleteStoreResponse,
    OrganizationRef,
    RagSettingsResponse,
    RagSettingsUpdate,
    StoreDocument,
    StoreSummary,
    SyncStatus,
)

logger = logging.getLogger(__name__)


class RagServiceError(Exception):
    """Base exception for RAG service errors."""
    pass


class BatchDeleteError(RagServiceError):
    """Every delete in a batch failed."""

    def __init__(self, message: str, result: "BatchDeleteResult"):
        super().__init__(message)
        self.result = result


# ============================================================
# BATCH RESULT TYPES
# ============================================================

@dataclass
class DeleteFailure:
    """One remote document that could not be deleted."""
    document_name: str
    error: str


@dataclass
class BatchDeleteResult:
    """
    Outcome of a best-effort batch delete.

    A batch is a failure only when nothing was deleted and at least one
    delete failed. Any success makes the whole batch a success, with the
    failures reported in the message.
    """
    deleted_count: int = 0
    failures: List[DeleteFailure] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def is_total_failure(self) -> bool:
        return bool(self.failures) and self.deleted_count == 0

    def message(self, noun: str = "document(s)") -> str:
        text = f"Deleted {self.deleted_count} {noun}"
        if self.failures:
            text += f" ({self.failed_count} failed)"
        return text


# ============================================================
# HELPERS
# ============================================================

def _organization_ref(organization: Optional[Organization]) -> Optional[OrganizationRef]:
    if organization is None:
        return None
    return OrganizationRef(id=organization.id, name=organization.name, slug=organization.slug)


def classify_local_document(
    document: Document,
    remote_names: set
) -> SyncStatus:
    """
    Sync status of a local row against the set of remote resource names.

    in_progress is always pending, whatever the remote side says.
    """
    if document.status == DocumentStatus.IN_PROGRESS.value:
        return SyncStatus.PENDING
    if document.document_resource_name and document.document_resource_name in remote_names:
        return SyncStatus.SYNCED
    return SyncStatus.ORPHANED


def find_dangling_documents(
    remote_documents: List[RemoteDocument],
    local_documents: List[Document]
) -> List[RemoteDocument]:
    """Remote documents that no local row references."""
    referenced = {
        doc.document_resource_name
        for doc in local_documents
        if doc.document_resource_name
    }
    return [remote for remote in remote_documents if remote.name not in referenced]


class RagService:
    """
    Service class for RAG reconciliation and settings.

    Args:
        db: Async database session
        file_search: Remote index client (injected)
    """

    def __init__(self, db: AsyncSession, file_search: FileSearchClient):
        self.db = db
        self.file_search = file_search
        self.document_repo = DocumentRepository(db)
        self.settings_repo = RagSettingsRepository(db)

    # ============================================================
    # STORES - Count-Level Check
    # ============================================================

    async def list_stores(self) -> List[StoreSummary]:
        """
        List remote stores that belong to organizations with local documents.

        A store belongs to the first organization whose slug appears in its
        display name. sync_status is 'synced' iff the remote active count
        equals the local count for that store name.
        """
        organizations = await self.document_repo.get_organizations_with_documents()
        if not organizations:
            return []

        remote_stores = await self.file_search.list_stores()
        local_counts = await self.document_repo.get_document_counts_by_store()

        summaries = []
        for store in remote_stores:
            display_name = store.display_name or ""
            organization = next(
                (org for org in organizations if org.slug and org.slug in display_name),
                None
            )
            if organization is None:
                continue

            local_count = local_counts.get(store.name, 0)
            sync_status = (
                SyncStatus.SYNCED
                if store.active_documents_count == local_count
                else SyncStatus.MISMATCH
            )

            summaries.append(StoreSummary(
                name=store.name,
                display_name=store.display_name,
                document_count=store.active_documents_count,
                local_count=local_count,
                sync_status=sync_status,
                organization=_organization_ref(organization),
            ))

        logger.info(f"Listed {len(summaries)} File Search Store(s) of {len(remote_stores)} remote")
        return summaries

    # ============================================================
    # STORE DOCUMENTS - Identity-Level Check
    # ============================================================

    async def get_store_documents(self, store_name: str) -> List[StoreDocument]:
        """
        Merge local rows and remote documents for one store.

        Local rows are classified synced / pending / orphaned. Every remote
        document no local row references is appended once as orphaned,
        with its resource name standing in for the local id.
        """
        remote_documents = await self.file_search.list_documents(store_name)
        local_rows = await self.document_repo.get_by_file_search_store(store_name)

        remote_by_name: Dict[str, RemoteDocument] = {doc.name: doc for doc in remote_documents}
        remote_names = set(remote_by_name)

        merged: List[StoreDocument] = []
        for document, organization in local_rows:
            merged.append(StoreDocument(
                id=str(document.id),
                display_name=document.display_name,
                document_resource_name=document.document_resource_name,
                status=document.status,
                sync_status=classify_local_document(document, remote_names),
                size_bytes=document.size_bytes,
                created_at=document.created_at,
                organization=_organization_ref(organization),
            ))

        dangling = find_dangling_documents(remote_documents, [doc for doc, _ in local_rows])
        for remote in dangling:
            merged.append(StoreDocument(
                id=remote.name,
                display_name=remote.display_name,
                document_resource_name=remote.name,
                status=None,
                sync_status=SyncStatus.ORPHANED,
                size_bytes=remote.size_bytes,
                created_at=remote.create_time,
                organization=None,
                remote_only=True,
            ))

        return merged

    # ============================================================
    # REPAIR OPERATIONS
    # ============================================================

    async def delete_store(self, store_name: str) -> DeleteStoreResponse:
        """Delete a remote store. Remote errors propagate to the caller."""
        await self.file_search.delete_store(store_name)
        return DeleteStoreResponse(success=True, message="File Search Store deleted successfully")

    async def _delete_remote_documents(
        self,
        documents: List[RemoteDocument]
    ) -> BatchDeleteResult:
        """Delete each document, recording failures and carrying on."""
        result = BatchDeleteResult()

        for remote in documents:
            try:
                await self.file_search.delete_document(remote.name)
                result.deleted_count += 1
            except Exception as e:
                logger.warning(f"Failed to delete remote document {remote.name}: {e}")
                result.failures.append(DeleteFailure(document_name=remote.name, error=str(e)))

        return result

    def _to_response(
        self,
        result: BatchDeleteResult,
        noun: str,
        failure_prefix: str
    ) -> DeleteDocumentsResponse:
        if result.is_total_failure:
            details = "; ".join(f"{f.document_name}: {f.error}" for f in result.failures)
            raise BatchDeleteError(f"{failure_prefix}: {details}", result)

        return DeleteDocumentsResponse(
            deleted_count=result.deleted_count,
            failed_count=result.failed_count,
            message=result.message(noun),
        )

    async def delete_all_documents(self, store_name: str) -> DeleteDocumentsResponse:
        """
        Delete every remote document in a store, best effort.

        Raises:
            BatchDeleteError: Only if every delete failed
        """
        remote_documents = await self.file_search.list_documents(store_name)
        result = await self._delete_remote_documents(remote_documents)

        logger.info(
            f"Store {store_name}: deleted {result.deleted_count} document(s), "
            f"{result.failed_count} failed"
        )
        return self._to_response(result, "document(s)", "Failed to delete documents")

    async def delete_dangling_documents(self, store_name: str) -> DeleteDocumentsResponse:
        """
        Delete remote documents no local row references, best effort.

        Raises:
            BatchDeleteError: Only if every delete failed
        """
        remote_documents = await self.file_search.list_documents(store_name)
        local_rows = await self.document_repo.get_by_file_search_store(store_name)

        dangling = find_dangling_documents(remote_documents, [doc for doc, _ in local_rows])
        result = await self._delete_remote_documents(dangling)

        logger.info(
            f"Store {store_name}: deleted {result.deleted_count} dangling document(s), "
            f"{result.failed_count} failed"
        )
        return self._to_response(result, "dangling document(s)", "Failed to delete dangling documents")

    # ============================================================
    # SETTINGS
    # ============================================================

    async def get_rag_settings(self, organization_id: UUID) -> RagSettingsResponse:
        """Organization overrides, or all-null defaults if none were saved."""
        instance = await self.settings_repo.get_by_organization(organization_id)
        if instance is None:
            return RagSettingsResponse(organization_id=organization_id)
        return RagSettingsResponse.model_validate(instance)

    async def update_rag_settings(
        self,
        organization_id: UUID,
        update: RagSettingsUpdate
    ) -> RagSettingsResponse:
        """Upsert only the fields present in the request body."""
        values = update.model_dump(exclude_unset=True)
        instance = await self.settings_repo.upsert(organization_id, values)

        logger.info(f"RAG settings updated for organization {organization_id}: {sorted(values)}")
        return RagSettingsResponse.model_validate(instance)
