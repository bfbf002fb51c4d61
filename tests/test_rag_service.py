"""
RagService tests

Reconciliation of local documents against the (faked) remote index.
"""

from unittest.mock import AsyncMock

import pytest

from app.ai.rag.file_search import RemoteDocument, RemoteStore
from app.schemas.document import DocumentStatus
from app.schemas.rag import RagSettingsUpdate, SyncStatus
from app.services.rag_service import (
    BatchDeleteError,
    BatchDeleteResult,
    DeleteFailure,
    RagService,
)

STORE = "fileSearchStores/acme-1"


def _remote(name: str) -> RemoteDocument:
    return RemoteDocument(name=f"{STORE}/documents/{name}", display_name=f"{name}.pdf")


@pytest.fixture
def service(db_session, file_search):
    return RagService(db_session, file_search)


class TestBatchDeleteResult:

    def test_empty_batch_is_not_a_failure(self):
        result = BatchDeleteResult()

        assert not result.is_total_failure
        assert result.message() == "Deleted 0 document(s)"

    def test_partial_failure_is_success(self):
        result = BatchDeleteResult(deleted_count=2, failures=[DeleteFailure("d3", "boom")])

        assert not result.is_total_failure
        assert result.message() == "Deleted 2 document(s) (1 failed)"

    def test_total_failure(self):
        result = BatchDeleteResult(failures=[DeleteFailure("d1", "boom")])

        assert result.is_total_failure
        assert result.failed_count == 1


class TestGetStoreDocuments:

    async def test_classifies_every_document(
        self, service, file_search, organization, user, make_document
    ):
        synced = await make_document(
            organization, user, display_name="synced.pdf",
            document_resource_name=f"{STORE}/documents/r1", file_search_store_name=STORE,
        )
        pending = await make_document(
            organization, user, display_name="pending.pdf",
            status=DocumentStatus.IN_PROGRESS.value,
            document_resource_name=f"{STORE}/documents/r1-old", file_search_store_name=STORE,
        )
        orphaned = await make_document(
            organization, user, display_name="orphaned.pdf",
            document_resource_name=f"{STORE}/documents/r2", file_search_store_name=STORE,
        )
        file_search.list_documents.return_value = [_remote("r1"), _remote("r1-old"), _remote("r3")]

        documents = await service.get_store_documents(STORE)

        by_id = {document.id: document for document in documents}
        assert by_id[str(synced.id)].sync_status == SyncStatus.SYNCED
        assert by_id[str(pending.id)].sync_status == SyncStatus.PENDING
        assert by_id[str(orphaned.id)].sync_status == SyncStatus.ORPHANED
        assert by_id[str(synced.id)].organization.slug == "acme"

    async def test_remote_only_documents_listed_once(
        self, service, file_search, organization, user, make_document
    ):
        await make_document(
            organization, user,
            document_resource_name=f"{STORE}/documents/r1", file_search_store_name=STORE,
        )
        file_search.list_documents.return_value = [_remote("r1"), _remote("r3")]

        documents = await service.get_store_documents(STORE)

        remote_only = [document for document in documents if document.remote_only]
        assert len(documents) == 2
        assert len(remote_only) == 1
        assert remote_only[0].id == f"{STORE}/documents/r3"
        assert remote_only[0].sync_status == SyncStatus.ORPHANED
        assert remote_only[0].organization is None
        assert remote_only[0].status is None

    async def test_empty_store(self, service, file_search):
        file_search.list_documents.return_value = []

        assert await service.get_store_documents(STORE) == []


class TestListStores:

    async def test_no_organizations_skips_remote_call(self, service, file_search):
        assert await service.list_stores() == []
        file_search.list_stores.assert_not_awaited()

    async def test_count_level_sync_and_slug_matching(
        self, service, file_search, organization, user, make_document
    ):
        for index in range(2):
            await make_document(
                organization, user, display_name=f"doc-{index}.pdf",
                document_resource_name=f"{STORE}/documents/r{index}", file_search_store_name=STORE,
            )
        file_search.list_stores.return_value = [
            RemoteStore(name=STORE, display_name="acme-documents", active_documents_count=2),
            RemoteStore(name="fileSearchStores/acme-old", display_name="acme-old", active_documents_count=1),
            RemoteStore(name="fileSearchStores/globex-1", display_name="globex-documents", active_documents_count=4),
        ]

        stores = await service.list_stores()

        by_name = {store.name: store for store in stores}
        assert set(by_name) == {STORE, "fileSearchStores/acme-old"}
        assert by_name[STORE].sync_status == SyncStatus.SYNCED
        assert by_name[STORE].local_count == 2
        assert by_name["fileSearchStores/acme-old"].sync_status == SyncStatus.MISMATCH
        assert by_name["fileSearchStores/acme-old"].local_count == 0
        assert by_name[STORE].organization.id == organization.id


class TestDeleteAllDocuments:

    async def test_partial_failure_reports_counts(self, service, file_search):
        file_search.list_documents.return_value = [_remote("d1"), _remote("d2"), _remote("d3")]
        file_search.delete_document.side_effect = [None, RuntimeError("busy"), None]

        response = await service.delete_all_documents(STORE)

        assert response.deleted_count == 2
        assert response.failed_count == 1
        assert response.message == "Deleted 2 document(s) (1 failed)"
        assert file_search.delete_document.await_count == 3

    async def test_total_failure_raises(self, service, file_search):
        file_search.list_documents.return_value = [_remote("d1"), _remote("d2")]
        file_search.delete_document.side_effect = RuntimeError("forbidden")

        with pytest.raises(BatchDeleteError, match="^Failed to delete documents: ") as exc_info:
            await service.delete_all_documents(STORE)

        assert exc_info.value.result.failed_count == 2

    async def test_empty_store_is_success(self, service, file_search):
        file_search.list_documents.return_value = []

        response = await service.delete_all_documents(STORE)

        assert response.deleted_count == 0
        assert response.message == "Deleted 0 document(s)"

    async def test_delete_store_propagates(self, service, file_search):
        file_search.delete_store.side_effect = RuntimeError("not found")

        with pytest.raises(RuntimeError):
            await service.delete_store(STORE)


class TestDeleteDanglingDocuments:

    async def test_only_unreferenced_documents_deleted(
        self, service, file_search, organization, user, make_document
    ):
        await make_document(
            organization, user,
            document_resource_name=f"{STORE}/documents/r1", file_search_store_name=STORE,
        )
        file_search.list_documents.return_value = [_remote("r1"), _remote("r3")]
        file_search.delete_document = AsyncMock()

        response = await service.delete_dangling_documents(STORE)

        file_search.delete_document.assert_awaited_once_with(f"{STORE}/documents/r3")
        assert response.message == "Deleted 1 dangling document(s)"

    async def test_total_failure_raises(self, service, file_search):
        file_search.list_documents.return_value = [_remote("r3")]
        file_search.delete_document.side_effect = RuntimeError("boom")

        with pytest.raises(BatchDeleteError, match="^Failed to delete dangling documents: "):
            await service.delete_dangling_documents(STORE)


class TestRagSettings:

    async def test_defaults_without_row(self, service, organization):
        response = await service.get_rag_settings(organization.id)

        assert response.organization_id == organization.id
        assert response.temperature is None
        assert response.system_prompt is None

    async def test_update_only_touches_sent_fields(self, service, organization):
        await service.update_rag_settings(organization.id, RagSettingsUpdate(temperature=0.2))
        response = await service.update_rag_settings(organization.id, RagSettingsUpdate(top_k=20))

        assert response.temperature == 0.2
        assert response.top_k == 20

    async def test_explicit_null_clears(self, service, organization):
        await service.update_rag_settings(organization.id, RagSettingsUpdate(system_prompt="Be brief."))
        response = await service.update_rag_settings(
            organization.id, RagSettingsUpdate.model_validate({"system_prompt": None})
        )

        assert response.system_prompt is None
