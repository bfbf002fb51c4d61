"""
FileSearchClient tests

The google-genai client is replaced by a MagicMock whose aio surface
returns plain namespaces and async pagers.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.ai.rag.file_search import (
    FileSearchClient,
    IndexingTimeoutError,
    RemoteIndexError,
)


async def _pager(items):
    for item in items:
        yield item


@pytest.fixture
def genai_client():
    return MagicMock()


@pytest.fixture
def client(genai_client):
    return FileSearchClient(client=genai_client, poll_interval=0, poll_timeout=5)


class TestStores:

    async def test_list_stores_parses_counts(self, client, genai_client):
        genai_client.aio.file_search_stores.list = AsyncMock(return_value=_pager([
            SimpleNamespace(name="fileSearchStores/a", display_name="acme-documents", active_documents_count="3"),
            SimpleNamespace(name="fileSearchStores/b", display_name=None, active_documents_count=None),
        ]))

        stores = await client.list_stores()

        assert [store.name for store in stores] == ["fileSearchStores/a", "fileSearchStores/b"]
        assert stores[0].active_documents_count == 3
        assert stores[1].active_documents_count == 0

    async def test_list_stores_wraps_errors(self, client, genai_client):
        genai_client.aio.file_search_stores.list = AsyncMock(side_effect=RuntimeError("quota"))

        with pytest.raises(RemoteIndexError, match="Failed to fetch File Search Stores") as exc_info:
            await client.list_stores()

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    async def test_create_store(self, client, genai_client):
        genai_client.aio.file_search_stores.create = AsyncMock(return_value=SimpleNamespace(
            name="fileSearchStores/acme-1", display_name="acme-documents", active_documents_count=0,
        ))

        store = await client.create_store("acme-documents")

        assert store.name == "fileSearchStores/acme-1"
        genai_client.aio.file_search_stores.create.assert_awaited_once_with(
            config={"display_name": "acme-documents"}
        )

    async def test_delete_store_forces_and_propagates(self, client, genai_client):
        genai_client.aio.file_search_stores.delete = AsyncMock(side_effect=RuntimeError("gone"))

        with pytest.raises(RuntimeError):
            await client.delete_store("fileSearchStores/a")

        genai_client.aio.file_search_stores.delete.assert_awaited_once_with(
            name="fileSearchStores/a", config={"force": True}
        )


class TestDocuments:

    async def test_list_documents(self, client, genai_client):
        genai_client.aio.file_search_stores.documents.list = AsyncMock(return_value=_pager([
            SimpleNamespace(
                name="fileSearchStores/a/documents/d1",
                display_name="x-report.pdf",
                size_bytes="2048",
                create_time=None,
                state=SimpleNamespace(value="STATE_ACTIVE"),
            ),
        ]))

        documents = await client.list_documents("fileSearchStores/a")

        assert documents[0].name == "fileSearchStores/a/documents/d1"
        assert documents[0].size_bytes == 2048
        assert documents[0].state == "STATE_ACTIVE"
        genai_client.aio.file_search_stores.documents.list.assert_awaited_once_with(
            parent="fileSearchStores/a"
        )

    async def test_list_documents_wraps_errors(self, client, genai_client):
        genai_client.aio.file_search_stores.documents.list = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RemoteIndexError, match="fileSearchStores/a"):
            await client.list_documents("fileSearchStores/a")


class TestUpload:

    async def test_upload_polls_until_done(self, client, genai_client):
        pending = SimpleNamespace(name="operations/1", done=False)
        finished = SimpleNamespace(
            name="operations/1",
            done=True,
            error=None,
            response=SimpleNamespace(document_name="fileSearchStores/a/documents/d1"),
        )
        genai_client.aio.file_search_stores.upload_to_file_search_store = AsyncMock(return_value=pending)
        genai_client.aio.operations.get = AsyncMock(side_effect=[pending, finished])

        name = await client.upload_document(
            "fileSearchStores/a",
            b"hello",
            "doc-id-notes.txt",
            "text/plain",
            custom_metadata={"document_id": "doc-id"},
        )

        assert name == "fileSearchStores/a/documents/d1"
        assert genai_client.aio.operations.get.await_count == 2

        kwargs = genai_client.aio.file_search_stores.upload_to_file_search_store.await_args.kwargs
        assert kwargs["file_search_store_name"] == "fileSearchStores/a"
        assert kwargs["config"]["display_name"] == "doc-id-notes.txt"
        assert kwargs["config"]["custom_metadata"] == [{"key": "document_id", "string_value": "doc-id"}]

    async def test_operation_error(self, client, genai_client):
        genai_client.aio.file_search_stores.upload_to_file_search_store = AsyncMock(
            return_value=SimpleNamespace(done=True, error={"message": "unsupported"}, response=None)
        )

        with pytest.raises(RemoteIndexError, match="Indexing failed"):
            await client.upload_document("fileSearchStores/a", b"x", "n", "text/plain")

    async def test_upload_call_fails(self, client, genai_client):
        genai_client.aio.file_search_stores.upload_to_file_search_store = AsyncMock(
            side_effect=RuntimeError("network")
        )

        with pytest.raises(RemoteIndexError, match="Failed to upload"):
            await client.upload_document("fileSearchStores/a", b"x", "n", "text/plain")

    async def test_poll_timeout(self, genai_client):
        client = FileSearchClient(client=genai_client, poll_interval=0, poll_timeout=0)
        genai_client.aio.file_search_stores.upload_to_file_search_store = AsyncMock(
            return_value=SimpleNamespace(name="operations/slow", done=False)
        )

        with pytest.raises(IndexingTimeoutError, match="operations/slow"):
            await client.upload_document("fileSearchStores/a", b"x", "n", "text/plain")
