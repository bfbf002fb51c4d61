"""
Document Repository

Data access layer for Document model.
"""

from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.base import BaseRepository
from app.models.document import Document
from app.models.organization import Organization
from app.schemas.document import DocumentStatus


class DocumentRepository(BaseRepository[Document]):
    """
    Repository for Document model.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Document, db)

    # ============================================================
    # QUERY METHODS - Reading Data
    # ============================================================

    def _organization_filter(self, organization_id: UUID, search: Optional[str]):
        stmt = select(self.model).where(self.model.organization_id == organization_id)

        if search:
            stmt = stmt.where(
                self.model.display_name.icontains(search, autoescape=True)
            )

        return stmt

    async def get_by_organization(
        self,
        organization_id: UUID,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> List[Document]:
        """
        List an organization's documents, newest first.

        `search` is a case-insensitive substring match on display name.
        """
        stmt = self._organization_filter(organization_id, search)
        stmt = stmt.order_by(self.model.created_at.desc()).offset(skip).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_by_organization(
        self,
        organization_id: UUID,
        search: Optional[str] = None
    ) -> int:
        """Total for get_by_organization with the same filter."""
        subquery = self._organization_filter(organization_id, search).subquery()
        result = await self.db.execute(select(func.count()).select_from(subquery))
        return result.scalar() or 0

    async def get_in_organization(
        self,
        document_id: UUID,
        organization_id: UUID
    ) -> Optional[Document]:
        """
        Get a document only if it belongs to the organization.

        A document in another organization is reported as missing.
        """
        stmt = select(self.model).where(
            self.model.id == document_id,
            self.model.organization_id == organization_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_storage_url(
        self,
        storage_url: str,
        organization_id: UUID
    ) -> Optional[Document]:
        """Find the organization's document stored under a storage key."""
        stmt = select(self.model).where(
            self.model.storage_url == storage_url,
            self.model.organization_id == organization_id,
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_store_name_for_organization(
        self,
        organization_id: UUID
    ) -> Optional[str]:
        """
        Return the File Search Store already used by the organization.

        Each organization has at most one active store; any indexed
        document carries its name.
        """
        stmt = (
            select(self.model.file_search_store_name)
            .where(
                self.model.organization_id == organization_id,
                self.model.file_search_store_name.is_not(None),
            )
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    # ============================================================
    # STORE-LEVEL QUERIES - For Reconciliation
    # ============================================================

    async def get_by_file_search_store(
        self,
        store_name: str
    ) -> List[Tuple[Document, Optional[Organization]]]:
        """
        All local documents pointing at a store, with their organization.

        Left join, so a document whose organization vanished still shows up.
        """
        stmt = (
            select(self.model, Organization)
            .outerjoin(Organization, Organization.id == self.model.organization_id)
            .where(self.model.file_search_store_name == store_name)
            .order_by(self.model.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def get_organizations_with_documents(self) -> List[Organization]:
        """Organizations having at least one document assigned to a store."""
        stmt = (
            select(Organization)
            .where(
                Organization.id.in_(
                    select(self.model.organization_id)
                    .where(self.model.file_search_store_name.is_not(None))
                    .distinct()
                )
            )
            .order_by(Organization.name)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_document_counts_by_store(self) -> Dict[str, int]:
        """
        Local document count per store name.

        Example:
            {"fileSearchStores/acme-123": 5, "fileSearchStores/globex-456": 2}
        """
        stmt = (
            select(
                self.model.file_search_store_name,
                func.count(self.model.id)
            )
            .where(self.model.file_search_store_name.is_not(None))
            .group_by(self.model.file_search_store_name)
        )
        result = await self.db.execute(stmt)
        return {row[0]: row[1] for row in result.all()}

    async def count_by_store(self, store_name: str) -> int:
        stmt = select(func.count(self.model.id)).where(
            self.model.file_search_store_name == store_name
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    # ============================================================
    # STATUS UPDATE METHODS - For Background Indexing
    # ============================================================

    async def mark_ready(
        self,
        document: Document,
        document_resource_name: str,
        file_search_store_name: str
    ) -> Document:
        """in_progress → ready, recording where the remote copy lives."""
        document.status = DocumentStatus.READY.value
        document.document_resource_name = document_resource_name
        document.file_search_store_name = file_search_store_name

        await self.db.commit()
        await self.db.refresh(document)
        return document

    async def mark_error(self, document: Document) -> Document:
        """in_progress → error."""
        document.status = DocumentStatus.ERROR.value

        await self.db.commit()
        await self.db.refresh(document)
        return document
