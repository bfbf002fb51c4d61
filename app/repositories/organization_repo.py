"""
Organization Repository

Organizations and memberships. Membership is the access boundary for
every document and chat operation.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.base import BaseRepository
from app.models.organization import Organization, OrgMembership


class OrganizationRepository(BaseRepository[Organization]):

    def __init__(self, db: AsyncSession):
        super().__init__(Organization, db)

    async def get_membership(
        self,
        organization_id: UUID,
        user_id: UUID
    ) -> Optional[OrgMembership]:
        """Return the user's membership in the organization, or None."""
        stmt = select(OrgMembership).where(
            OrgMembership.organization_id == organization_id,
            OrgMembership.user_id == user_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
