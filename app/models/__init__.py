
from app.models.base import Base
from app.models.user import User
from app.models.organization import Organization, OrgMembership, MembershipRole
from app.models.document import Document
from app.models.chat import ChatSession, ChatMessage, ChatRole
from app.models.llm_log import LlmLog
from app.models.rag_settings import RagSettings

__all__ = [
    "Base",
    "User",
    "Organization",
    "OrgMembership",
    "MembershipRole",
    "Document",
    "ChatSession",
    "ChatMessage",
    "ChatRole",
    "LlmLog",
    "RagSettings",
]
