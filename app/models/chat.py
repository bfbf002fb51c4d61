import enum
import uuid

from sqlalchemy import Column, String, ForeignKey, DateTime, Uuid, JSON, func
from app.db.database import Base
from .base import BaseModel


class ChatRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatSession(BaseModel):
    __tablename__ = "chat_sessions"

    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=True)


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    chat_session_id = Column(Uuid(as_uuid=True), ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    client_message_id = Column(String(100), nullable=True)  # UIMessage id from the client
    role = Column(String(20), nullable=False)  # user, assistant, system
    parts = Column(JSON, nullable=False)
    message_metadata = Column("metadata", JSON, nullable=True)  # {"sources": [...]} for assistant replies
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
