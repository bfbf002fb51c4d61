"""
Gemini File Search Client

Thin async wrapper over the hosted File Search API (google-genai):

    Store       fileSearchStores/{id}              one per organization
    Document    fileSearchStores/{id}/documents/x  one per indexed upload

Uploads are long-running operations. upload_document() starts one and
polls it every RAG_POLL_INTERVAL_SECONDS until it reports done.

The client is constructed once and passed to the services that need it
(RagService, the indexing job) instead of being looked up globally, so
tests hand in a fake and credentials can be swapped by building a new one.
"""

import asyncio
import io
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from google import genai

from app.core.config import settings

logger = logging.getLogger(__name__)


# ============================================================
# ERRORS
# ============================================================

class RemoteIndexError(Exception):
    """A call to the File Search API failed. The original error is __cause__."""
    pass


class IndexingTimeoutError(RemoteIndexError):
    """An upload operation did not finish within RAG_POLL_TIMEOUT_SECONDS."""
    pass


# ============================================================
# REMOTE ENTITIES
# ============================================================

@dataclass
class RemoteStore:
    name: str
    display_name: Optional[str]
    active_documents_count: int


@dataclass
class RemoteDocument:
    name: str
    display_name: Optional[str] = None
    size_bytes: Optional[int] = None
    create_time: Optional[datetime] = None
    state: Optional[str] = None


def _parse_count(value: Any) -> int:
    """The API reports counts as int64, which may arrive as a string."""
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _to_remote_store(store: Any) -> RemoteStore:
    return RemoteStore(
        name=store.name,
        display_name=getattr(store, "display_name", None),
        active_documents_count=_parse_count(getattr(store, "active_documents_count", 0)),
    )


def _to_remote_document(document: Any) -> RemoteDocument:
    state = getattr(document, "state", None)
    return RemoteDocument(
        name=document.name,
        display_name=getattr(document, "display_name", None),
        size_bytes=_parse_count(getattr(document, "size_bytes", None)) or None,
        create_time=getattr(document, "create_time", None),
        state=getattr(state, "value", state),
    )


# ============================================================
# CLIENT
# ============================================================

class FileSearchClient:
    """
    Async File Search operations.

    Args:
        client: A google-genai Client (only its .aio surface is used)
        poll_interval: Seconds between operation status checks
        poll_timeout: Give up after this many seconds; None waits forever
    """

    def __init__(
        self,
        client: genai.Client,
        poll_interval: float = 2.0,
        poll_timeout: Optional[float] = None,
    ):
        self._client = client
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout

    @property
    def aio(self):
        return self._client.aio

    # ------------------------------------------------------------
    # Stores
    # ------------------------------------------------------------

    async def create_store(self, display_name: str) -> RemoteStore:
        """Create a new store. Returns it with its generated resource name."""
        try:
            store = await self.aio.file_search_stores.create(
                config={"display_name": display_name}
            )
        except Exception as e:
            raise RemoteIndexError(f"Failed to create File Search Store '{display_name}': {e}") from e

        logger.info(f"Created File Search Store {store.name} ({display_name})")
        return _to_remote_store(store)

    async def list_stores(self) -> List[RemoteStore]:
        """List every store visible to the API key."""
        try:
            pager = await self.aio.file_search_stores.list()
            return [_to_remote_store(store) async for store in pager]
        except Exception as e:
            raise RemoteIndexError(f"Failed to fetch File Search Stores: {e}") from e

    async def delete_store(self, store_name: str) -> None:
        """Delete a store and every document in it."""
        await self.aio.file_search_stores.delete(
            name=store_name,
            config={"force": True},
        )
        logger.info(f"Deleted File Search Store {store_name}")

    # ------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------

    async def list_documents(self, store_name: str) -> List[RemoteDocument]:
        """List every document in a store."""
        try:
            pager = await self.aio.file_search_stores.documents.list(parent=store_name)
            return [_to_remote_document(doc) async for doc in pager]
        except Exception as e:
            raise RemoteIndexError(
                f"Failed to fetch documents for File Search Store {store_name}: {e}"
            ) from e

    async def delete_document(self, document_name: str) -> None:
        """Delete a single remote document, including its chunks."""
        await self.aio.file_search_stores.documents.delete(
            name=document_name,
            config={"force": True},
        )
        logger.info(f"Deleted remote document {document_name}")

    async def upload_document(
        self,
        store_name: str,
        content: bytes,
        display_name: str,
        mime_type: str,
        custom_metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Upload bytes into a store and wait until they are indexed.

        Returns:
            The remote document resource name

        Raises:
            RemoteIndexError: The upload or the operation failed
            IndexingTimeoutError: The operation did not finish in time
        """
        config: Dict[str, Any] = {
            "display_name": display_name,
            "mime_type": mime_type,
        }
        if custom_metadata:
            config["custom_metadata"] = [
                {"key": key, "string_value": value}
                for key, value in custom_metadata.items()
            ]

        try:
            operation = await self.aio.file_search_stores.upload_to_file_search_store(
                file_search_store_name=store_name,
                file=io.BytesIO(content),
                config=config,
            )
        except Exception as e:
            raise RemoteIndexError(f"Failed to upload '{display_name}' to {store_name}: {e}") from e

        operation = await self.wait_for_operation(operation)

        if getattr(operation, "error", None):
            raise RemoteIndexError(f"Indexing failed for '{display_name}': {operation.error}")

        response = getattr(operation, "response", None)
        document_name = getattr(response, "document_name", None)
        if not document_name:
            raise RemoteIndexError(f"Indexing finished without a document name for '{display_name}'")

        return document_name

    async def wait_for_operation(self, operation: Any) -> Any:
        """
        Poll a long-running operation at a fixed interval until done.

        No backoff. Raises IndexingTimeoutError once poll_timeout elapses.
        """
        started = time.monotonic()

        while not operation.done:
            if self.poll_timeout is not None and time.monotonic() - started >= self.poll_timeout:
                raise IndexingTimeoutError(
                    f"Operation {getattr(operation, 'name', '?')} not done after {self.poll_timeout}s"
                )

            await asyncio.sleep(self.poll_interval)
            operation = await self.aio.operations.get(operation)

        return operation


# ============================================================
# DEFAULT INSTANCE (application wiring only)
# ============================================================

_file_search_client: Optional[FileSearchClient] = None


def get_file_search_client() -> FileSearchClient:
    """
    Build the FileSearchClient from settings on first use.

    Used as a FastAPI dependency and by the worker startup hook; services
    receive the instance through their constructors.
    """
    global _file_search_client

    if _file_search_client is None:
        from app.ai.llm.gemini_client import get_client

        _file_search_client = FileSearchClient(
            client=get_client(),
            poll_interval=settings.RAG_POLL_INTERVAL_SECONDS,
            poll_timeout=settings.RAG_POLL_TIMEOUT_SECONDS,
        )

    return _file_search_client
