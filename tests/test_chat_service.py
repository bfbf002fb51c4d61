"""
ChatService tests

Turn preparation, the UI message stream and post-stream persistence.
Gemini is replaced by a MagicMock whose generate_content_stream yields
plain namespaces.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import select

from app.models import ChatMessage, ChatSession, LlmLog, RagSettings
from app.schemas.chat import UIMessage
from app.services.chat_service import (
    ChatAccessError,
    ChatService,
    ChatSessionNotFoundError,
    ChatTurn,
    NoIndexedDocumentsError,
    StreamResult,
    map_finish_reason,
)

STORE = "fileSearchStores/acme-1"


async def _stream(chunks):
    for chunk in chunks:
        yield chunk


def _chunk(text=None, usage=None, candidates=None):
    return SimpleNamespace(text=text, usage_metadata=usage, candidates=candidates or [])


def _user_message(message_id: str, text: str) -> UIMessage:
    return UIMessage(id=message_id, role="user", parts=[{"type": "text", "text": text}])


@pytest.fixture
async def chat_session(db_session, organization, user):
    session = ChatSession(organization_id=organization.id, user_id=user.id, title="Q3 questions")
    db_session.add(session)
    await db_session.commit()
    await db_session.refresh(session)
    return session


@pytest.fixture
async def indexed_document(make_document, organization, user):
    return await make_document(
        organization, user,
        document_resource_name=f"{STORE}/documents/d1",
        file_search_store_name=STORE,
    )


@pytest.fixture
def turn(chat_session, organization, user):
    return ChatTurn(
        session_id=chat_session.id,
        organization_id=organization.id,
        user_id=user.id,
        store_name=STORE,
        existing_message_count=0,
    )


@pytest.fixture
def gemini():
    return MagicMock()


async def _messages(db_session, session_id):
    result = await db_session.execute(
        select(ChatMessage).where(ChatMessage.chat_session_id == session_id)
    )
    return list(result.scalars().all())


async def _logs(db_session):
    result = await db_session.execute(select(LlmLog))
    return list(result.scalars().all())


class TestMapFinishReason:

    def test_known_reasons(self):
        assert map_finish_reason("STOP") == "stop"
        assert map_finish_reason("MAX_TOKENS") == "length"
        assert map_finish_reason(SimpleNamespace(name="SAFETY")) == "content-filter"

    def test_unknown_reason(self):
        assert map_finish_reason("LANGUAGE") == "other"

    def test_missing_reason(self):
        assert map_finish_reason(None) is None


class TestPrepareTurn:

    async def test_resolves_store_and_settings(
        self, db_session, chat_session, indexed_document, organization, user
    ):
        db_session.add(RagSettings(organization_id=organization.id, temperature=0.2, system_prompt="Cite sources."))
        await db_session.commit()

        turn = await ChatService(db_session).prepare_turn(chat_session.id, user.id)

        assert turn.store_name == STORE
        assert turn.existing_message_count == 0
        assert turn.system_prompt == "Cite sources."
        assert turn.generation_params == {"temperature": 0.2}

    async def test_session_of_another_user(self, db_session, chat_session, make_user):
        stranger = await make_user("stranger@example.com")

        with pytest.raises(ChatSessionNotFoundError):
            await ChatService(db_session).prepare_turn(chat_session.id, stranger.id)

    async def test_user_left_organization(self, db_session, make_organization, user):
        other = await make_organization("globex")
        session = ChatSession(organization_id=other.id, user_id=user.id)
        db_session.add(session)
        await db_session.commit()

        with pytest.raises(ChatAccessError):
            await ChatService(db_session).prepare_turn(session.id, user.id)

    async def test_no_indexed_documents(self, db_session, chat_session, user):
        with pytest.raises(NoIndexedDocumentsError, match="No documents available"):
            await ChatService(db_session).prepare_turn(chat_session.id, user.id)


class TestStreamTurn:

    async def test_chunk_sequence_sources_and_persistence(
        self, db_session, gemini, turn, indexed_document, organization
    ):
        usage = SimpleNamespace(
            total_token_count=42,
            prompt_token_count=30,
            candidates_token_count=12,
            thoughts_token_count=None,
            cached_content_token_count=None,
        )
        grounding = {
            "grounding_chunks": [
                {"retrieved_context": {"title": f"{indexed_document.id}-Q3 report.pdf", "file_search_store": STORE}},
            ],
            "grounding_supports": [{"grounding_chunk_indices": [0]}],
        }
        gemini.aio.models.generate_content_stream = AsyncMock(return_value=_stream([
            _chunk(text="Revenue "),
            _chunk(text="grew.", usage=usage, candidates=[
                SimpleNamespace(grounding_metadata=grounding, finish_reason=SimpleNamespace(name="STOP")),
            ]),
        ]))

        service = ChatService(db_session, client=gemini)
        chunks = [chunk async for chunk in service.stream_turn(turn, [_user_message("m1", "How was Q3?")])]

        assert [chunk["type"] for chunk in chunks] == [
            "start", "start-step", "text-start", "text-delta", "text-delta",
            "text-end", "finish-step", "message-metadata", "finish",
        ]
        assert chunks[-1]["finishReason"] == "stop"
        assert chunks[-2]["messageMetadata"]["sources"] == [{
            "documentId": str(indexed_document.id),
            "title": "Q3 report.pdf",
            "url": f"/api/documents/{organization.id}/{indexed_document.id}",
        }]

        messages = await _messages(db_session, turn.session_id)
        assert sorted(message.role for message in messages) == ["assistant", "user"]
        assistant = next(message for message in messages if message.role == "assistant")
        assert assistant.parts == [{"type": "text", "text": "Revenue grew."}]
        assert assistant.message_metadata["sources"][0]["title"] == "Q3 report.pdf"

        logs = await _logs(db_session)
        assert len(logs) == 1
        assert logs[0].endpoint == "chat"
        assert logs[0].tokens_used == 42
        assert logs[0].completion_tokens == 12
        assert logs[0].finish_reason == "stop"
        assert json.loads(logs[0].user_prompt) == [{"type": "text", "text": "How was Q3?"}]

    async def test_no_metadata_chunk_without_citations(self, db_session, gemini, turn):
        gemini.aio.models.generate_content_stream = AsyncMock(return_value=_stream([
            _chunk(text="I could not find that."),
        ]))

        service = ChatService(db_session, client=gemini)
        chunks = [chunk async for chunk in service.stream_turn(turn, [_user_message("m1", "?")])]

        types = [chunk["type"] for chunk in chunks]
        assert "message-metadata" not in types
        assert types[-1] == "finish"

    async def test_stream_failure_emits_error_chunk(self, db_session, gemini, turn):
        gemini.aio.models.generate_content_stream = AsyncMock(side_effect=RuntimeError("503"))

        service = ChatService(db_session, client=gemini)
        with patch("app.services.chat_service.capture_exception") as capture:
            chunks = [chunk async for chunk in service.stream_turn(turn, [_user_message("m1", "hi")])]

        assert [chunk["type"] for chunk in chunks] == ["start", "start-step", "error"]
        assert capture.call_args.kwargs["tags"]["operation"] == "stream"
        assert await _messages(db_session, turn.session_id) == []


class TestPersistTurn:

    async def test_only_new_messages_saved(self, db_session, turn):
        service = ChatService(db_session, client=MagicMock())
        await service.message_repo.create_many(turn.session_id, [
            {"id": "m1", "role": "user", "parts": [{"type": "text", "text": "first"}]},
            {"id": "a1", "role": "assistant", "parts": [{"type": "text", "text": "reply"}]},
        ])
        turn.existing_message_count = 2

        history = [
            _user_message("m1", "first"),
            UIMessage(id="a1", role="assistant", parts=[{"type": "text", "text": "reply"}]),
            _user_message("m2", "second"),
        ]
        assistant = {"id": "a2", "role": "assistant", "parts": [{"type": "text", "text": "ok"}], "metadata": None}

        saved = await service.persist_turn(turn, history, assistant, StreamResult(text="ok", finish_reason="stop"))

        assert saved is True
        messages = await _messages(db_session, turn.session_id)
        assert len(messages) == 4
        assert {message.client_message_id for message in messages} == {"m1", "a1", "m2", "a2"}

    async def test_failure_reported_not_raised(self, db_session, turn):
        service = ChatService(db_session, client=MagicMock())
        service.message_repo.create_many = AsyncMock(side_effect=RuntimeError("db gone"))

        with patch("app.services.chat_service.capture_exception") as capture:
            saved = await service.persist_turn(
                turn,
                [_user_message("m1", "hi")],
                {"id": "a1", "role": "assistant", "parts": [], "metadata": None},
                StreamResult(),
            )

        assert saved is False
        capture.assert_called_once()
        tags = capture.call_args.kwargs["tags"]
        assert tags["component"] == "chat"
        assert tags["operation"] == "save_messages"
        assert tags["chat_session_id"] == str(turn.session_id)
        assert "chat" in capture.call_args.kwargs["context"]
        assert await _logs(db_session) == []
