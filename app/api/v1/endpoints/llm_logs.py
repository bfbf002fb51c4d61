"""
LLM Log Endpoints (admin)
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_admin
from app.core.exceptions import NotFoundError
from app.db.database import get_db
from app.models.user import User
from app.schemas.llm_log import LlmLogListResponse, LlmLogQueryParams, LlmLogResponse
from app.services.llm_log_service import LlmLogNotFoundError, LlmLogService

router = APIRouter(tags=["Admin - LLM Logs"])


def get_llm_log_service(db: AsyncSession = Depends(get_db)) -> LlmLogService:
    return LlmLogService(db)


@router.get(
    "",
    response_model=LlmLogListResponse,
    summary="Browse LLM call logs",
)
async def list_llm_logs(
    organization_id: Optional[UUID] = Query(None),
    user_id: Optional[UUID] = Query(None),
    chat_session_id: Optional[UUID] = Query(None),
    endpoint: Optional[str] = Query(None),
    model: Optional[str] = Query(None),
    created_after: Optional[datetime] = Query(None),
    created_before: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    service: LlmLogService = Depends(get_llm_log_service),
):
    params = LlmLogQueryParams(
        organization_id=organization_id,
        user_id=user_id,
        chat_session_id=chat_session_id,
        endpoint=endpoint,
        model=model,
        created_after=created_after,
        created_before=created_before,
        limit=limit,
        offset=offset,
    )
    return await service.list_logs(params)


@router.get(
    "/{log_id}",
    response_model=LlmLogResponse,
    summary="Get one LLM call log",
)
async def get_llm_log(
    log_id: UUID,
    admin: User = Depends(require_admin),
    service: LlmLogService = Depends(get_llm_log_service),
):
    try:
        return await service.get_log(log_id)
    except LlmLogNotFoundError as e:
        raise NotFoundError(str(e))
