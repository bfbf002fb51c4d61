import uuid

from sqlalchemy import Column, String, Integer, ForeignKey, DateTime, Uuid, JSON, Text, func
from app.db.database import Base


class LlmLog(Base):
    """One row per completed generation (usage and audit trail)."""
    __tablename__ = "llm_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    endpoint = Column(String(50), nullable=False, index=True)  # chat
    model = Column(String(100), nullable=False, index=True)
    system_prompt = Column(Text, nullable=True)
    user_prompt = Column(Text, nullable=True)  # JSON-encoded parts of the last user message
    response = Column(Text, nullable=True)  # JSON-encoded parts of the assistant reply
    tokens_used = Column(Integer, nullable=True)
    prompt_tokens = Column(Integer, nullable=True)
    completion_tokens = Column(Integer, nullable=True)
    reasoning_tokens = Column(Integer, nullable=True)
    cached_input_tokens = Column(Integer, nullable=True)
    response_time_ms = Column(Integer, nullable=True)
    finish_reason = Column(String(50), nullable=True)
    generation_config = Column(JSON, nullable=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True)
    chat_session_id = Column(Uuid(as_uuid=True), ForeignKey("chat_sessions.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
