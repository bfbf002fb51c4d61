"""
LLM Log Service

Usage and audit trail for generations: one row per completed call.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.llm_log import LlmLog
from app.repositories.llm_log_repo import LlmLogRepository
from app.schemas.llm_log import (
    LlmLogCreate,
    LlmLogListResponse,
    LlmLogQueryParams,
    LlmLogResponse,
)

logger = logging.getLogger(__name__)


class LlmLogNotFoundError(Exception):
    """Raised when a log entry is not found."""
    pass


class LlmLogService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.log_repo = LlmLogRepository(db)

    async def create_log(self, data: LlmLogCreate) -> LlmLog:
        log = await self.log_repo.create(**data.model_dump())
        logger.debug(
            f"LLM log {log.id}: {data.endpoint}/{data.model} "
            f"{data.tokens_used} tokens in {data.response_time_ms} ms"
        )
        return log

    async def get_log(self, log_id: UUID) -> LlmLogResponse:
        log = await self.log_repo.get_by_id(log_id)
        if log is None:
            raise LlmLogNotFoundError("LLM log not found")
        return LlmLogResponse.model_validate(log)

    async def list_logs(
        self,
        params: Optional[LlmLogQueryParams] = None
    ) -> LlmLogListResponse:
        """List logs newest first, filtered by the given params."""
        if params is None:
            params = LlmLogQueryParams()

        logs, total = await self.log_repo.search(params)
        return LlmLogListResponse(
            logs=[LlmLogResponse.model_validate(log) for log in logs],
            total=total,
            limit=params.limit,
            offset=params.offset,
        )
