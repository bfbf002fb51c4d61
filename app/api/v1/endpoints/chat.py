"""
Chat Endpoint

POST /api/chat streams a RAG answer as server-sent events in the UI
message stream format (one JSON chunk per `data:` line, then [DONE]).
"""

import json
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sse_starlette.sse import EventSourceResponse

from app.api.deps import get_current_user
from app.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from app.db.database import get_db, get_session_factory
from app.models.user import User
from app.schemas.chat import ChatRequest
from app.services.chat_service import (
    ChatAccessError,
    ChatService,
    ChatSessionNotFoundError,
    NoIndexedDocumentsError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])

UI_MESSAGE_STREAM_HEADERS = {
    "x-vercel-ai-ui-message-stream": "v1",
    "Cache-Control": "no-cache",
}


@router.post(
    "/chat",
    summary="Chat with the organization's documents (streaming)",
    description="""
    Stream an answer grounded in the organization's indexed documents.

    Cited documents are attached as `sources` message metadata
    (`{documentId, title, url}`) right after the `finish-step` chunk.
    """,
    responses={
        200: {
            "description": "SSE stream of UI message chunks",
            "content": {"text/event-stream": {}}
        },
        400: {"description": "Invalid body or no indexed documents yet"},
        401: {"description": "Not authenticated"},
        403: {"description": "Not a member of the session's organization"},
        404: {"description": "Chat session not found"},
    }
)
async def chat(
    data: ChatRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    # NOTE: streaming uses its own session; the request session closes before the stream ends
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    try:
        turn = await ChatService(db).prepare_turn(data.id, current_user.id)
    except ChatSessionNotFoundError as e:
        raise NotFoundError(str(e))
    except ChatAccessError as e:
        raise ForbiddenError(str(e))
    except NoIndexedDocumentsError as e:
        raise BadRequestError(str(e))

    messages = data.messages

    async def event_generator():
        async with session_factory() as stream_db:
            service = ChatService(stream_db)
            async for chunk in service.stream_turn(turn, messages):
                yield {"data": json.dumps(chunk)}

        yield {"data": "[DONE]"}

    logger.info(f"Chat stream started for session {turn.session_id}")
    return EventSourceResponse(event_generator(), headers=UI_MESSAGE_STREAM_HEADERS)
