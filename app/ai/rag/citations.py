"""
Citation Mapping

Turns Gemini grounding metadata into the `sources` list attached to
assistant messages.

Remote documents are uploaded with the display name
`{documentId}-{originalDisplayName}`. The grounding chunk title is that
display name, so the local document id can be recovered from its UUID
prefix:

    "550e8400-e29b-41d4-a716-446655440000-Q3 report.pdf"
      -> documentId "550e8400-e29b-41d4-a716-446655440000"
      -> title      "Q3 report.pdf"
"""

import re
from typing import Any, Dict, List, Optional

DOCUMENT_ID_PATTERN = re.compile(
    r"^([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})-",
    re.IGNORECASE,
)


def extract_document_id_from_filename(filename: str) -> Optional[str]:
    """
    Return the UUID prefix of a `{documentId}-{name}` filename, or None.

    Example:
        extract_document_id_from_filename("550e8400-e29b-41d4-a716-446655440000-document.pdf")
        # "550e8400-e29b-41d4-a716-446655440000"
        extract_document_id_from_filename("report.pdf")
        # None
    """
    match = DOCUMENT_ID_PATTERN.match(filename or "")
    return match.group(1) if match else None


def _get(obj: Any, *names: str) -> Any:
    """Read a field from an SDK object or a plain dict (snake or camel case)."""
    for name in names:
        if isinstance(obj, dict):
            if obj.get(name) is not None:
                return obj[name]
        elif getattr(obj, name, None) is not None:
            return getattr(obj, name)
    return None


def extract_relevant_sources(grounding_metadata: Any) -> List[Dict[str, str]]:
    """
    Collect the documents a response actually cited.

    Only chunks referenced by a grounding support are kept; if the model
    returned chunks but no supports, every chunk is kept. Results are
    deduplicated by title (first position wins, last value wins, like a
    dict) and entries without a title are dropped.

    Returns:
        [{"title": ..., "file_search_store_name": ...}, ...]
    """
    if grounding_metadata is None:
        return []

    chunks = _get(grounding_metadata, "grounding_chunks", "groundingChunks") or []
    if not chunks:
        return []

    supports = _get(grounding_metadata, "grounding_supports", "groundingSupports") or []
    cited_indices = set()
    for support in supports:
        cited_indices.update(_get(support, "grounding_chunk_indices", "groundingChunkIndices") or [])

    if cited_indices:
        relevant_chunks = [chunk for index, chunk in enumerate(chunks) if index in cited_indices]
    else:
        relevant_chunks = list(chunks)

    unique_sources: Dict[Optional[str], Dict[str, str]] = {}
    for chunk in relevant_chunks:
        context = _get(chunk, "retrieved_context", "retrievedContext")
        title = _get(context, "title") if context is not None else None
        store = _get(context, "file_search_store", "fileSearchStore") if context is not None else None
        unique_sources[title] = {
            "title": title or "",
            "file_search_store_name": store or "",
        }

    return [source for source in unique_sources.values() if source["title"]]


def build_message_sources(
    grounding_metadata: Any,
    organization_id: str,
) -> List[Dict[str, str]]:
    """
    Map cited sources to {documentId, title, url} entries for the client.

    Sources whose title has no document id prefix are skipped. The url is
    the download endpoint, which re-checks membership before redirecting.
    """
    sources = []
    for source in extract_relevant_sources(grounding_metadata):
        document_id = extract_document_id_from_filename(source["title"])
        if not document_id:
            continue

        sources.append({
            "documentId": document_id,
            "title": source["title"].replace(f"{document_id}-", "", 1),
            "url": f"/api/documents/{organization_id}/{document_id}",
        })

    return sources
