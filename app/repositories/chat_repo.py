"""
Chat Repository

Chat sessions and their persisted UI messages.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.base import BaseRepository
from app.models.chat import ChatSession, ChatMessage


class ChatSessionRepository(BaseRepository[ChatSession]):

    def __init__(self, db: AsyncSession):
        super().__init__(ChatSession, db)

    async def get_for_user(
        self,
        session_id: UUID,
        user_id: UUID
    ) -> Optional[ChatSession]:
        """Get a chat session only if the user owns it."""
        stmt = select(ChatSession).where(
            ChatSession.id == session_id,
            ChatSession.user_id == user_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def touch(self, session_id: UUID) -> None:
        """Bump updated_at so the session sorts as recently active."""
        await self.db.execute(
            update(ChatSession)
            .where(ChatSession.id == session_id)
            .values(updated_at=datetime.now(timezone.utc))
        )
        await self.db.commit()


class ChatMessageRepository(BaseRepository[ChatMessage]):

    def __init__(self, db: AsyncSession):
        super().__init__(ChatMessage, db)

    async def count_by_session(self, session_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(ChatMessage.id)).where(ChatMessage.chat_session_id == session_id)
        )
        return result.scalar() or 0

    async def create_many(
        self,
        session_id: UUID,
        messages: List[Dict[str, Any]]
    ) -> List[ChatMessage]:
        """
        Insert several messages in one commit.

        Each dict has role, parts and optionally id and metadata
        (the client's UI message shape).
        """
        instances = [
            ChatMessage(
                chat_session_id=session_id,
                client_message_id=message.get("id"),
                role=message["role"],
                parts=message.get("parts") or [],
                message_metadata=message.get("metadata"),
            )
            for message in messages
        ]
        self.db.add_all(instances)
        await self.db.commit()
        return instances
