"""
RAG Settings Repository
"""

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.base import BaseRepository
from app.models.rag_settings import RagSettings


class RagSettingsRepository(BaseRepository[RagSettings]):

    def __init__(self, db: AsyncSession):
        super().__init__(RagSettings, db)

    async def get_by_organization(self, organization_id: UUID) -> Optional[RagSettings]:
        result = await self.db.execute(
            select(RagSettings).where(RagSettings.organization_id == organization_id)
        )
        return result.scalar_one_or_none()

    async def upsert(self, organization_id: UUID, values: Dict[str, Any]) -> RagSettings:
        """Create the organization's row or update the given fields on it."""
        instance = await self.get_by_organization(organization_id)

        if instance is None:
            instance = RagSettings(organization_id=organization_id, **values)
            self.db.add(instance)
        else:
            for key, value in values.items():
                setattr(instance, key, value)

        await self.db.commit()
        await self.db.refresh(instance)
        return instance
