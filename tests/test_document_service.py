"""
DocumentService tests

Upload, download links, storage-key lookup and deletion, against a real
(SQLite) database, local storage and a fake remote index.
"""

import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from app.schemas.document import DocumentQueryParams, DocumentStatus
from app.services.document_service import (
    DocumentAccessError,
    DocumentNotFoundError,
    DocumentService,
    DocumentValidationError,
)
from app.storage import StorageBackend

STORE = "fileSearchStores/acme-1"


def _upload(content: bytes, filename: str, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture
def service(db_session, storage, file_search):
    return DocumentService(db_session, storage=storage, file_search=file_search)


class TestUploadDocument:

    async def test_stores_file_and_schedules_indexing(self, service, storage, organization, user):
        with patch(
            "app.services.document_service.enqueue_index_document",
            new_callable=AsyncMock,
        ) as enqueue:
            response = await service.upload_document(
                _upload(b"quarterly numbers", "Q3 report (final).txt", "text/plain"),
                organization.id,
                user.id,
            )

        document = response.document
        assert document.status == DocumentStatus.IN_PROGRESS
        assert document.display_name == "Q3 report (final).txt"
        assert document.mime_type == "text/plain"
        assert document.size_bytes == len(b"quarterly numbers")
        enqueue.assert_awaited_once_with(document.id)

        stored = await service.document_repo.get_by_id(document.id)
        assert stored.storage_url.startswith(f"documents/{organization.id}/")
        assert stored.storage_url.endswith("-Q3_report__final_.txt")
        assert await storage.get(stored.storage_url) == b"quarterly numbers"

    async def test_non_member_rejected_before_storage(self, db_session, file_search, make_user, organization):
        outsider = await make_user("outsider@example.com")
        storage = MagicMock(spec=StorageBackend)
        service = DocumentService(db_session, storage=storage, file_search=file_search)

        with pytest.raises(DocumentAccessError):
            await service.upload_document(_upload(b"x", "a.txt", "text/plain"), organization.id, outsider.id)

        storage.save.assert_not_awaited()

    async def test_unsupported_type_rejected(self, service, organization, user):
        with pytest.raises(DocumentValidationError, match="not supported"):
            await service.upload_document(
                _upload(b"MZ\x90\x00\x03\x00\x00\x00", "setup.exe", "application/octet-stream"),
                organization.id,
                user.id,
            )

    async def test_falls_back_to_inline_indexing_without_redis(self, service, organization, user):
        with patch(
            "app.services.document_service.enqueue_index_document",
            new_callable=AsyncMock,
            side_effect=ConnectionError("redis down"),
        ), patch.object(DocumentService, "_index_inline") as index_inline:
            response = await service.upload_document(
                _upload(b"hello", "a.txt", "text/plain"), organization.id, user.id
            )

        index_inline.assert_called_once_with(response.document.id)


class TestListDocuments:

    async def test_search_and_pagination(self, service, organization, user, make_document):
        await make_document(organization, user, display_name="Budget 2024.xlsx")
        await make_document(organization, user, display_name="budget 2025.xlsx")
        await make_document(organization, user, display_name="Roadmap.pdf")

        response = await service.list_documents(
            organization.id, user.id, DocumentQueryParams(search="BUDGET", limit=1)
        )

        assert response.total == 2
        assert len(response.documents) == 1
        assert response.has_more

    async def test_other_organizations_hidden(
        self, service, organization, user, make_organization, make_document
    ):
        globex = await make_organization("globex")
        await make_document(globex, None, display_name="secret.pdf")

        response = await service.list_documents(organization.id, user.id)

        assert response.total == 0


class TestGetDownloadUrl:

    async def test_membership_checked_before_storage(
        self, db_session, file_search, make_user, organization, make_document
    ):
        document = await make_document(organization)
        outsider = await make_user("outsider@example.com")
        storage = MagicMock(spec=StorageBackend)
        service = DocumentService(db_session, storage=storage, file_search=file_search)

        with pytest.raises(DocumentAccessError):
            await service.get_download_url(organization.id, document.id, outsider.id)

        storage.get_download_url.assert_not_awaited()

    async def test_document_in_other_organization_not_found(
        self, service, organization, user, make_organization, make_document
    ):
        globex = await make_organization("globex")
        document = await make_document(globex)

        with pytest.raises(DocumentNotFoundError):
            await service.get_download_url(organization.id, document.id, user.id)

    async def test_document_without_stored_file(self, service, organization, user, make_document):
        document = await make_document(organization, user, storage_url=None)

        with pytest.raises(DocumentNotFoundError):
            await service.get_download_url(organization.id, document.id, user.id)

    async def test_fresh_url(self, service, organization, user, make_document):
        document = await make_document(organization, user)

        response = await service.get_download_url(organization.id, document.id, user.id)

        assert response.url == f"http://testserver/api/uploads/{document.storage_url}"
        assert response.expires_in == 3600


class TestGetDocumentByStorageKey:

    async def test_invalid_layout(self, service, user):
        with pytest.raises(DocumentValidationError, match="Invalid file path"):
            await service.get_document_by_storage_key("avatars/x.png", user.id)

    async def test_organization_not_a_uuid(self, service, user):
        with pytest.raises(DocumentAccessError):
            await service.get_document_by_storage_key("documents/acme/1-a.pdf", user.id)

    async def test_unknown_key(self, service, organization, user):
        with pytest.raises(DocumentNotFoundError, match="File not found"):
            await service.get_document_by_storage_key(f"documents/{organization.id}/1-missing.pdf", user.id)

    async def test_matching_document(self, service, organization, user, make_document):
        document = await make_document(organization, user)

        found = await service.get_document_by_storage_key(document.storage_url, user.id)

        assert found.id == document.id


class TestDeleteDocument:

    async def _indexed(self, make_document, organization, uploader, name="d1"):
        return await make_document(
            organization, uploader,
            display_name=f"{name}.pdf",
            document_resource_name=f"{STORE}/documents/{name}",
            file_search_store_name=STORE,
        )

    async def test_uploader_deletes_everything(
        self, service, storage, file_search, organization, user, make_document
    ):
        document = await self._indexed(make_document, organization, user)
        await storage.save(b"pdf bytes", document.storage_url)

        assert await service.delete_document(organization.id, document.id, user.id)

        assert await service.document_repo.get_by_id(document.id) is None
        assert not await storage.exists(document.storage_url)
        file_search.delete_document.assert_awaited_once_with(f"{STORE}/documents/d1")
        file_search.delete_store.assert_awaited_once_with(STORE)

    async def test_store_kept_while_documents_remain(
        self, service, file_search, organization, user, make_document
    ):
        document = await self._indexed(make_document, organization, user, "d1")
        await self._indexed(make_document, organization, user, "d2")

        await service.delete_document(organization.id, document.id, user.id)

        file_search.delete_document.assert_awaited_once()
        file_search.delete_store.assert_not_awaited()

    async def test_other_member_cannot_delete(
        self, service, organization, user, make_user, add_member, make_document
    ):
        colleague = await make_user("colleague@example.com")
        await add_member(organization, colleague, role="member")
        document = await make_document(organization, user)

        with pytest.raises(DocumentAccessError):
            await service.delete_document(organization.id, document.id, colleague.id)

    async def test_organization_admin_can_delete(
        self, service, organization, user, make_user, add_member, make_document
    ):
        manager = await make_user("manager@example.com")
        await add_member(organization, manager, role="admin")
        document = await make_document(organization, user)

        assert await service.delete_document(organization.id, document.id, manager.id)

    async def test_remote_failure_does_not_fail_delete(
        self, service, file_search, organization, user, make_document
    ):
        document = await self._indexed(make_document, organization, user)
        file_search.delete_document.side_effect = RuntimeError("remote down")

        assert await service.delete_document(organization.id, document.id, user.id)

        assert await service.document_repo.get_by_id(document.id) is None
        file_search.delete_store.assert_not_awaited()

    async def test_not_indexed_skips_remote(
        self, service, file_search, organization, user, make_document
    ):
        document = await make_document(organization, user, status=DocumentStatus.ERROR.value)

        assert await service.delete_document(organization.id, document.id, user.id)

        file_search.delete_document.assert_not_awaited()
