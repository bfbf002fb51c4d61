from app.repositories.base import BaseRepository
from app.repositories.user_repo import UserRepository
from app.repositories.organization_repo import OrganizationRepository
from app.repositories.document_repo import DocumentRepository
from app.repositories.chat_repo import ChatSessionRepository, ChatMessageRepository
from app.repositories.llm_log_repo import LlmLogRepository
from app.repositories.rag_settings_repo import RagSettingsRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "OrganizationRepository",
    "DocumentRepository",
    "ChatSessionRepository",
    "ChatMessageRepository",
    "LlmLogRepository",
    "RagSettingsRepository",
]
