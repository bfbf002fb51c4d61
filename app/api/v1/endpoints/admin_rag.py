"""
RAG Admin Endpoints

Back-office view of the remote File Search index against local document
rows, with repair operations, plus per-organization generation settings.
Every route requires a platform admin.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.rag.file_search import FileSearchClient, RemoteIndexError
from app.api.deps import get_file_search, require_admin
from app.core.exceptions import InternalServerError, NotFoundError
from app.db.database import get_db
from app.models.user import User
from app.repositories.organization_repo import OrganizationRepository
from app.schemas.rag import (
    DeleteDocumentsResponse,
    DeleteStoreResponse,
    RagSettingsResponse,
    RagSettingsUpdate,
    StoreDocumentsResponse,
    StoreListResponse,
)
from app.services.rag_service import BatchDeleteError, RagService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin - RAG"])


def get_rag_service(
    db: AsyncSession = Depends(get_db),
    file_search: FileSearchClient = Depends(get_file_search),
) -> RagService:
    return RagService(db, file_search)


# ============================================================
# STORES
# ============================================================

@router.get(
    "/stores",
    response_model=StoreListResponse,
    summary="List File Search Stores with a count-level sync check",
)
async def list_stores(
    admin: User = Depends(require_admin),
    service: RagService = Depends(get_rag_service),
):
    try:
        stores = await service.list_stores()
    except RemoteIndexError as e:
        logger.error(f"Listing stores failed: {e}")
        raise InternalServerError(str(e))

    return StoreListResponse(stores=stores)


@router.get(
    "/stores/documents",
    response_model=StoreDocumentsResponse,
    summary="Compare one store's remote documents with local rows",
)
async def get_store_documents(
    store_name: str = Query(..., description="Remote store resource name, e.g. fileSearchStores/abc"),
    admin: User = Depends(require_admin),
    service: RagService = Depends(get_rag_service),
):
    try:
        documents = await service.get_store_documents(store_name)
    except RemoteIndexError as e:
        logger.error(f"Listing documents of {store_name} failed: {e}")
        raise InternalServerError(str(e))

    return StoreDocumentsResponse(store_name=store_name, documents=documents)


@router.delete(
    "/stores",
    response_model=DeleteStoreResponse,
    summary="Delete a File Search Store and everything in it",
)
async def delete_store(
    store_name: str = Query(...),
    admin: User = Depends(require_admin),
    service: RagService = Depends(get_rag_service),
):
    try:
        return await service.delete_store(store_name)
    except Exception as e:
        logger.exception(f"Admin {admin.id} failed to delete store {store_name}: {e}")
        raise InternalServerError(f"Failed to delete File Search Store: {e}")


@router.post(
    "/stores/documents/delete-all",
    response_model=DeleteDocumentsResponse,
    summary="Delete every remote document in a store (best effort)",
)
async def delete_all_documents(
    store_name: str = Query(...),
    admin: User = Depends(require_admin),
    service: RagService = Depends(get_rag_service),
):
    try:
        return await service.delete_all_documents(store_name)
    except (BatchDeleteError, RemoteIndexError) as e:
        logger.error(f"Delete-all on {store_name} failed: {e}")
        raise InternalServerError(str(e))


@router.post(
    "/stores/documents/delete-dangling",
    response_model=DeleteDocumentsResponse,
    summary="Delete remote documents with no local row (best effort)",
)
async def delete_dangling_documents(
    store_name: str = Query(...),
    admin: User = Depends(require_admin),
    service: RagService = Depends(get_rag_service),
):
    try:
        return await service.delete_dangling_documents(store_name)
    except (BatchDeleteError, RemoteIndexError) as e:
        logger.error(f"Delete-dangling on {store_name} failed: {e}")
        raise InternalServerError(str(e))


# ============================================================
# SETTINGS
# ============================================================

async def _require_organization(db: AsyncSession, organization_id: UUID) -> None:
    if await OrganizationRepository(db).get_by_id(organization_id) is None:
        raise NotFoundError("Organization not found")


@router.get(
    "/settings/{organization_id}",
    response_model=RagSettingsResponse,
    summary="Get an organization's generation settings",
)
async def get_rag_settings(
    organization_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _require_organization(db, organization_id)
    return await RagService(db, file_search=None).get_rag_settings(organization_id)


@router.put(
    "/settings/{organization_id}",
    response_model=RagSettingsResponse,
    summary="Update an organization's generation settings",
)
async def update_rag_settings(
    organization_id: UUID,
    data: RagSettingsUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _require_organization(db, organization_id)
    return await RagService(db, file_search=None).update_rag_settings(organization_id, data)
