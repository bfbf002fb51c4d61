"""
Chat Service

Orchestrates a RAG chat turn:
1. Load the chat session and check organization membership
2. Resolve the organization's File Search Store (required)
3. Stream Gemini's answer with the File Search tool bound to that store
4. Attach cited sources to the assistant message at finish-step
5. Persist the new messages, touch the session and write an LLM log

Step 5 runs after the stream has been delivered. Its failures are reported
to Sentry and never surface to the user.

Stream chunks follow the UI message stream protocol the web client reads:

    {"type": "start", "messageId": "..."}
    {"type": "start-step"}
    {"type": "text-start", "id": "..."}
    {"type": "text-delta", "id": "...", "delta": "Hel"}
    {"type": "text-end", "id": "..."}
    {"type": "finish-step"}
    {"type": "message-metadata", "messageMetadata": {"sources": [...]}}
    {"type": "finish", "finishReason": "stop"}
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Dict, List, Optional
from uuid import UUID

from google import genai
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.llm.gemini_client import (
    build_chat_config,
    build_generation_params,
    chat_completion_stream,
    format_messages_for_gemini,
    get_client,
)
from app.ai.rag.citations import build_message_sources
from app.core.config import settings
from app.core.monitoring import capture_exception
from app.repositories.chat_repo import ChatMessageRepository, ChatSessionRepository
from app.repositories.document_repo import DocumentRepository
from app.repositories.organization_repo import OrganizationRepository
from app.repositories.rag_settings_repo import RagSettingsRepository
from app.schemas.chat import UIMessage
from app.schemas.llm_log import LlmLogCreate
from app.services.llm_log_service import LlmLogService

logger = logging.getLogger(__name__)

CHAT_ENDPOINT = "chat"

# Gemini finish reasons as the web client names them
FINISH_REASONS = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content-filter",
    "RECITATION": "content-filter",
    "BLOCKLIST": "content-filter",
    "PROHIBITED_CONTENT": "content-filter",
    "SPII": "content-filter",
    "MALFORMED_FUNCTION_CALL": "error",
}


class ChatServiceError(Exception):
    """Base exception for chat service errors."""
    pass


class ChatSessionNotFoundError(ChatServiceError):
    """Chat session not found or not owned by the user."""
    pass


class ChatAccessError(ChatServiceError):
    """User is not a member of the session's organization."""
    pass


class NoIndexedDocumentsError(ChatServiceError):
    """The organization has no File Search Store yet."""
    pass


# ============================================================
# TURN STATE
# ============================================================

@dataclass
class ChatTurn:
    """Everything resolved before streaming starts."""
    session_id: UUID
    organization_id: UUID
    user_id: UUID
    store_name: str
    existing_message_count: int
    system_prompt: Optional[str] = None
    generation_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StreamResult:
    """What the stream produced, for persistence and logging."""
    text: str = ""
    finish_reason: Optional[str] = None
    usage: Any = None
    grounding_metadata: Any = None
    sources: List[Dict[str, str]] = field(default_factory=list)
    response_time_ms: int = 0


def map_finish_reason(reason: Any) -> Optional[str]:
    if reason is None:
        return None
    name = getattr(reason, "name", None) or str(reason)
    return FINISH_REASONS.get(name, "other")


def _usage_value(usage: Any, name: str) -> Optional[int]:
    return getattr(usage, name, None) if usage is not None else None


class ChatService:
    """
    Service for RAG chat.

    Args:
        db: Async database session
        client: Gemini client (defaults to the configured one, built lazily)
    """

    def __init__(self, db: AsyncSession, client: Optional[genai.Client] = None):
        self.db = db
        self._client = client
        self.session_repo = ChatSessionRepository(db)
        self.message_repo = ChatMessageRepository(db)
        self.document_repo = DocumentRepository(db)
        self.organization_repo = OrganizationRepository(db)
        self.settings_repo = RagSettingsRepository(db)

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = get_client()
        return self._client

    # ============================================================
    # PREPARE - Runs Before Any Byte Is Streamed
    # ============================================================

    async def prepare_turn(self, session_id: UUID, user_id: UUID) -> ChatTurn:
        """
        Resolve session, membership, store and generation settings.

        Raises:
            ChatSessionNotFoundError: Session missing or owned by someone else
            ChatAccessError: User left the session's organization
            NoIndexedDocumentsError: Nothing indexed for the organization yet
        """
        session = await self.session_repo.get_for_user(session_id, user_id)
        if session is None:
            raise ChatSessionNotFoundError("Chat session not found")

        membership = await self.organization_repo.get_membership(session.organization_id, user_id)
        if membership is None:
            raise ChatAccessError("You are not a member of this organization")

        store_name = await self.document_repo.get_store_name_for_organization(session.organization_id)
        if not store_name:
            raise NoIndexedDocumentsError(
                "No documents available. Please upload documents before chatting with the assistant."
            )

        existing_message_count = await self.message_repo.count_by_session(session.id)
        rag_settings = await self.settings_repo.get_by_organization(session.organization_id)

        return ChatTurn(
            session_id=session.id,
            organization_id=session.organization_id,
            user_id=user_id,
            store_name=store_name,
            existing_message_count=existing_message_count,
            system_prompt=rag_settings.system_prompt if rag_settings else None,
            generation_params=build_generation_params(rag_settings),
        )

    # ============================================================
    # STREAM
    # ============================================================

    async def stream_turn(
        self,
        turn: ChatTurn,
        messages: List[UIMessage]
    ) -> AsyncGenerator[Dict[str, Any], None]:
        """
        Stream one assistant reply as UI message stream chunks.

        Persistence runs once the last chunk has been produced.
        """
        message_id = uuid.uuid4().hex
        text_id = uuid.uuid4().hex
        result = StreamResult()
        started = time.monotonic()

        config = build_chat_config(turn.store_name, turn.generation_params, turn.system_prompt)
        contents = format_messages_for_gemini(messages)

        yield {"type": "start", "messageId": message_id}
        yield {"type": "start-step"}

        text_started = False
        try:
            async for chunk in chat_completion_stream(self.client, contents, config):
                delta = chunk.text
                if delta:
                    if not text_started:
                        text_started = True
                        yield {"type": "text-start", "id": text_id}
                    result.text += delta
                    yield {"type": "text-delta", "id": text_id, "delta": delta}

                if chunk.usage_metadata is not None:
                    result.usage = chunk.usage_metadata

                for candidate in chunk.candidates or []:
                    if candidate.grounding_metadata is not None:
                        result.grounding_metadata = candidate.grounding_metadata
                    if candidate.finish_reason is not None:
                        result.finish_reason = map_finish_reason(candidate.finish_reason)

        except Exception as e:
            logger.error(f"Chat stream failed for session {turn.session_id}: {e}")
            capture_exception(
                e,
                tags={"component": "chat", "operation": "stream"},
                context={"chat": {"chat_session_id": str(turn.session_id)}},
            )
            yield {"type": "error", "errorText": "An error occurred while generating the response"}
            return

        if text_started:
            yield {"type": "text-end", "id": text_id}

        yield {"type": "finish-step"}

        result.sources = build_message_sources(result.grounding_metadata, str(turn.organization_id))
        if result.sources:
            yield {"type": "message-metadata", "messageMetadata": {"sources": result.sources}}

        yield {"type": "finish", "finishReason": result.finish_reason or "stop"}

        result.response_time_ms = int((time.monotonic() - started) * 1000)
        assistant_message = {
            "id": message_id,
            "role": "assistant",
            "parts": [{"type": "text", "text": result.text}] if result.text else [],
            "metadata": {"sources": result.sources} if result.sources else None,
        }
        await self.persist_turn(turn, messages, assistant_message, result)

    # ============================================================
    # PERSIST - Never Fails The Request
    # ============================================================

    async def persist_turn(
        self,
        turn: ChatTurn,
        messages: List[UIMessage],
        assistant_message: Dict[str, Any],
        result: StreamResult
    ) -> bool:
        """
        Save new messages, touch the session and write the LLM log.

        Only messages beyond the count already stored are inserted, since
        the client resends the whole conversation (including optimistic
        local messages) on every turn.

        Returns False, after reporting to Sentry, if anything failed.
        """
        updated_messages = [message.model_dump() for message in messages] + [assistant_message]

        try:
            new_messages = updated_messages[turn.existing_message_count:]
            if new_messages:
                await self.message_repo.create_many(turn.session_id, new_messages)

            await self.session_repo.touch(turn.session_id)

            await LlmLogService(self.db).create_log(
                self._build_log(turn, updated_messages, result)
            )

            logger.info(
                f"Chat turn saved for session {turn.session_id}: "
                f"{len(new_messages)} new message(s), {len(result.sources)} source(s)"
            )
            return True

        except Exception as e:
            await self.db.rollback()
            capture_exception(
                e,
                tags={
                    "component": "chat",
                    "operation": "save_messages",
                    "chat_session_id": str(turn.session_id),
                    "user_id": str(turn.user_id),
                    "organization_id": str(turn.organization_id),
                },
                context={
                    "chat": {
                        "chat_session_id": str(turn.session_id),
                        "message_count": len(updated_messages),
                        "finish_reason": result.finish_reason,
                    }
                },
            )
            return False

    def _build_log(
        self,
        turn: ChatTurn,
        updated_messages: List[Dict[str, Any]],
        result: StreamResult
    ) -> LlmLogCreate:
        last_user = next((m for m in reversed(updated_messages) if m["role"] == "user"), None)
        last_assistant = next((m for m in reversed(updated_messages) if m["role"] == "assistant"), None)
        usage = result.usage

        return LlmLogCreate(
            endpoint=CHAT_ENDPOINT,
            model=settings.GEMINI_MODEL,
            system_prompt=turn.system_prompt,
            user_prompt=json.dumps(last_user["parts"]) if last_user else None,
            response=json.dumps(last_assistant["parts"]) if last_assistant else None,
            tokens_used=_usage_value(usage, "total_token_count"),
            prompt_tokens=_usage_value(usage, "prompt_token_count"),
            completion_tokens=_usage_value(usage, "candidates_token_count"),
            reasoning_tokens=_usage_value(usage, "thoughts_token_count"),
            cached_input_tokens=_usage_value(usage, "cached_content_token_count"),
            response_time_ms=result.response_time_ms,
            finish_reason=result.finish_reason,
            generation_config=turn.generation_params or None,
            user_id=turn.user_id,
            organization_id=turn.organization_id,
            chat_session_id=turn.session_id,
        )
