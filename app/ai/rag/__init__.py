"""
RAG (Retrieval-Augmented Generation) Module

Retrieval runs inside Gemini's hosted File Search. This package holds the
client for managing stores/documents and the citation mapping used when
answers come back.

INDEXING:
    from app.ai.rag import get_file_search_client

    client = get_file_search_client()
    name = await client.upload_document(store, content, display_name, mime_type)

CITATIONS:
    from app.ai.rag import build_message_sources

    sources = build_message_sources(grounding_metadata, organization_id)
"""

from app.ai.rag.file_search import (
    FileSearchClient,
    RemoteStore,
    RemoteDocument,
    RemoteIndexError,
    IndexingTimeoutError,
    get_file_search_client,
)
from app.ai.rag.citations import (
    extract_document_id_from_filename,
    extract_relevant_sources,
    build_message_sources,
)

__all__ = [
    "FileSearchClient",
    "RemoteStore",
    "RemoteDocument",
    "RemoteIndexError",
    "IndexingTimeoutError",
    "get_file_search_client",
    "extract_document_id_from_filename",
    "extract_relevant_sources",
    "build_message_sources",
]
