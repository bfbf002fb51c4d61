"""
Document Endpoints

HTTP API for organization documents (upload, listing, download link,
deletion).
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    status,
    Query,
    UploadFile,
    File,
)
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db
from app.api.deps import get_current_user
from app.core.exceptions import (
    BadRequestError,
    ForbiddenError,
    InternalServerError,
    NotFoundError,
)
from app.models.user import User
from app.schemas.document import (
    DocumentListResponse,
    DocumentUploadResponse,
    DocumentQueryParams,
    DownloadUrlResponse,
)
from app.services.document_service import (
    DocumentService,
    DocumentAccessError,
    DocumentNotFoundError,
    DocumentValidationError,
    DocumentServiceError,
)

logger = logging.getLogger(__name__)

# ============================================================
# Router Setup
# ============================================================

router = APIRouter(tags=["Documents"])


def get_document_service(db: AsyncSession = Depends(get_db)) -> DocumentService:
    """
    Dependency that provides DocumentService instance.

    A new service per request, bound to the request's database session.
    """
    return DocumentService(db)


# ============================================================
# UPLOAD ENDPOINT
# ============================================================

@router.post(
    "",
    response_model=DocumentUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document",
    description="""
    Upload a document to an organization.

    The file is stored immediately and indexed in the background; the
    returned document is `in_progress` until indexing finishes.
    """,
    responses={
        400: {
            "description": "Invalid file (unsupported type, empty, too large)",
            "content": {
                "application/json": {
                    "example": {"error": "File type 'application/x-msdownload' is not supported", "code": "BAD_REQUEST"}
                }
            },
        },
        401: {"description": "Not authenticated"},
        403: {"description": "Not a member of the organization"},
    },
)
async def upload_document(
    organization_id: UUID,
    file: UploadFile = File(
        ...,
        description="Document file to upload"
    ),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    try:
        return await service.upload_document(
            file=file,
            organization_id=organization_id,
            user_id=current_user.id
        )
    except DocumentAccessError as e:
        raise ForbiddenError(str(e))
    except DocumentValidationError as e:
        raise BadRequestError(str(e))
    except DocumentServiceError as e:
        logger.error(f"Document upload failed: {e}")
        raise InternalServerError("Failed to upload document")


# ============================================================
# LIST ENDPOINT
# ============================================================

@router.get(
    "",
    response_model=DocumentListResponse,
    summary="List organization documents",
    responses={
        401: {"description": "Not authenticated"},
        403: {"description": "Not a member of the organization"},
    },
)
async def list_documents(
    organization_id: UUID,
    search: Optional[str] = Query(
        None,
        max_length=255,
        description="Case-insensitive match on display name"
    ),
    limit: int = Query(
        20,
        ge=1,
        le=100,
        description="Maximum documents to return"
    ),
    offset: int = Query(
        0,
        ge=0,
        description="Number of documents to skip"
    ),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    params = DocumentQueryParams(search=search, limit=limit, offset=offset)

    try:
        return await service.list_documents(organization_id, current_user.id, params)
    except DocumentAccessError as e:
        raise ForbiddenError(str(e))


# ============================================================
# DOWNLOAD URL ENDPOINT
# ============================================================

@router.get(
    "/{document_id}/download-url",
    response_model=DownloadUrlResponse,
    summary="Get a signed download URL",
    responses={
        401: {"description": "Not authenticated"},
        403: {"description": "Not a member of the organization"},
        404: {"description": "Document not found"},
    },
)
async def get_download_url(
    organization_id: UUID,
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    try:
        return await service.get_download_url(organization_id, document_id, current_user.id)
    except DocumentAccessError as e:
        raise ForbiddenError(str(e))
    except DocumentNotFoundError as e:
        raise NotFoundError(str(e))


# ============================================================
# DELETE ENDPOINT
# ============================================================

@router.delete(
    "/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a document",
    description="""
    Delete a document, its stored file and its indexed copy.

    Allowed for the uploader and for organization owners and admins.
    """,
    responses={
        401: {"description": "Not authenticated"},
        403: {"description": "Not allowed to delete this document"},
        404: {"description": "Document not found"},
    },
)
async def delete_document(
    organization_id: UUID,
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    try:
        deleted = await service.delete_document(organization_id, document_id, current_user.id)
    except DocumentAccessError as e:
        raise ForbiddenError(str(e))
    except DocumentNotFoundError as e:
        raise NotFoundError(str(e))

    if not deleted:
        raise NotFoundError("Document not found")

    return None
