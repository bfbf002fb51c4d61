"""
LLM Log Repository
"""

from typing import List, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.base import BaseRepository
from app.models.llm_log import LlmLog
from app.schemas.llm_log import LlmLogQueryParams


class LlmLogRepository(BaseRepository[LlmLog]):

    def __init__(self, db: AsyncSession):
        super().__init__(LlmLog, db)

    def _filtered(self, params: LlmLogQueryParams):
        stmt = select(LlmLog)

        if params.organization_id is not None:
            stmt = stmt.where(LlmLog.organization_id == params.organization_id)
        if params.user_id is not None:
            stmt = stmt.where(LlmLog.user_id == params.user_id)
        if params.chat_session_id is not None:
            stmt = stmt.where(LlmLog.chat_session_id == params.chat_session_id)
        if params.endpoint:
            stmt = stmt.where(LlmLog.endpoint == params.endpoint)
        if params.model:
            stmt = stmt.where(LlmLog.model == params.model)
        if params.created_after is not None:
            stmt = stmt.where(LlmLog.created_at >= params.created_after)
        if params.created_before is not None:
            stmt = stmt.where(LlmLog.created_at <= params.created_before)

        return stmt

    async def search(self, params: LlmLogQueryParams) -> Tuple[List[LlmLog], int]:
        """Return one page of matching logs (newest first) and the total count."""
        stmt = self._filtered(params)

        total_result = await self.db.execute(
            select(func.count()).select_from(stmt.subquery())
        )
        total = total_result.scalar() or 0

        page = stmt.order_by(LlmLog.created_at.desc()).offset(params.offset).limit(params.limit)
        result = await self.db.execute(page)
        return list(result.scalars().all()), total
