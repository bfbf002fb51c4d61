"""
LLM Log Schemas
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class LlmLogCreate(BaseModel):
    """Fields written after a generation finishes."""
    endpoint: str = Field(..., description="Which feature made the call, e.g. 'chat'")
    model: str
    system_prompt: Optional[str] = None
    user_prompt: Optional[str] = None
    response: Optional[str] = None
    tokens_used: Optional[int] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    reasoning_tokens: Optional[int] = None
    cached_input_tokens: Optional[int] = None
    response_time_ms: Optional[int] = None
    finish_reason: Optional[str] = None
    generation_config: Optional[Dict[str, Any]] = None
    user_id: Optional[UUID] = None
    organization_id: Optional[UUID] = None
    chat_session_id: Optional[UUID] = None


class LlmLogResponse(LlmLogCreate):
    id: UUID
    created_at: datetime

    class Config:
        from_attributes = True


class LlmLogListResponse(BaseModel):
    logs: List[LlmLogResponse]
    total: int = Field(..., ge=0)
    limit: int
    offset: int


class LlmLogQueryParams(BaseModel):
    """
    Filters for the admin log browser.

    GET /admin/llm-logs?organization_id=...&model=gemini-2.5-flash&limit=50
    """
    organization_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    chat_session_id: Optional[UUID] = None
    endpoint: Optional[str] = None
    model: Optional[str] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)
