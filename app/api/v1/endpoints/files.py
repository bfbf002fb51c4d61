"""
File Endpoints

Browser-facing links to stored documents. Mounted under /api (not the
versioned prefix) because citation URLs embedded in chat messages point
here.

    GET /api/documents/{organization_id}/{document_id}   302 to a fresh signed URL
    GET /api/uploads/{path}                              local development file server
"""

import logging
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, status
from fastapi.responses import FileResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.core.config import settings
from app.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from app.db.database import get_db
from app.models.user import User
from app.services.document_service import (
    DocumentService,
    DocumentAccessError,
    DocumentNotFoundError,
    DocumentValidationError,
)
from app.storage import LocalStorage, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Files"])


def get_document_service(db: AsyncSession = Depends(get_db)) -> DocumentService:
    return DocumentService(db)


def content_disposition(display_name: str) -> str:
    """
    attachment header carrying the document's display name.

    Names that don't fit in a latin-1 header get an RFC 5987 filename*.
    """
    filename = display_name.replace('"', "'")
    try:
        filename.encode("latin-1")
        return f'attachment; filename="{filename}"'
    except UnicodeEncodeError:
        fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
        return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


# ============================================================
# DOWNLOAD REDIRECT
# ============================================================

@router.get(
    "/documents/{organization_id}/{document_id}",
    status_code=status.HTTP_302_FOUND,
    summary="Download a document",
    description="""
    Redirect to a time-limited (1 hour) URL for the stored file.

    Membership is checked before storage is touched.
    """,
    responses={
        302: {"description": "Redirect to the signed URL"},
        401: {"description": "Not authenticated"},
        403: {"description": "Not a member of the organization"},
        404: {"description": "Document or stored file not found"},
    }
)
async def download_document(
    organization_id: UUID,
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service)
):
    try:
        result = await service.get_download_url(organization_id, document_id, current_user.id)
    except DocumentAccessError as e:
        raise ForbiddenError(str(e))
    except DocumentNotFoundError as e:
        raise NotFoundError(str(e))

    return RedirectResponse(url=result.url, status_code=status.HTTP_302_FOUND)


# ============================================================
# LOCAL FILE SERVER (development)
# ============================================================

@router.get(
    "/uploads/{file_path:path}",
    summary="Serve a locally stored document",
    responses={
        400: {"description": "Invalid file path"},
        401: {"description": "Not authenticated"},
        403: {"description": "Not a member of the organization"},
        404: {"description": "Document not found"},
    }
)
async def serve_upload(
    file_path: str,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service)
):
    """
    Stream a file from UPLOAD_DIR after the same checks as the download
    endpoint. Only available with the local storage backend.
    """
    if ".." in file_path or file_path.startswith("/"):
        logger.warning(f"Rejected upload path from user {current_user.id}: {file_path}")
        raise BadRequestError("Invalid file path")

    try:
        document = await service.get_document_by_storage_key(file_path, current_user.id)
    except DocumentValidationError as e:
        raise BadRequestError(str(e))
    except DocumentAccessError:
        raise ForbiddenError("You do not have access to this organization")
    except DocumentNotFoundError:
        raise NotFoundError("Document not found")

    storage = service.storage
    if not isinstance(storage, LocalStorage):
        raise NotFoundError("File not found")

    try:
        full_path = storage.resolve_path(file_path)
    except StorageError:
        raise BadRequestError("Invalid file path")

    if not full_path.is_file():
        logger.error(f"Stored file missing for document {document.id}: {file_path}")
        raise NotFoundError("File not found")

    return FileResponse(
        full_path,
        media_type=document.mime_type,
        headers={
            "Content-Disposition": content_disposition(document.display_name),
            "Cache-Control": f"private, max-age={settings.DOWNLOAD_CACHE_MAX_AGE_SECONDS}",
        },
    )
