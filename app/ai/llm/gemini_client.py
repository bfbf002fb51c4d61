"""
Google Gemini LLM Client (google-genai SDK)

Client construction, message formatting and the generation config used by
the chat endpoint. Retrieval happens server-side: the request binds a
File Search tool to the organization's store and Gemini returns grounding
metadata describing which chunks it used.
"""

import logging
from typing import Any, AsyncGenerator, Dict, List, Optional

from google import genai
from google.genai import types

from app.core.config import settings
from app.schemas.chat import UIMessage

logger = logging.getLogger(__name__)


# ============================================================
# CLIENT INITIALIZATION
# ============================================================

_client: Optional[genai.Client] = None


def get_client() -> genai.Client:
    """Get or create the Gemini client."""
    global _client

    if _client is None:
        if not settings.GEMINI_API_KEY:
            raise ValueError(
                "GEMINI_API_KEY not set. "
                "Get your key at https://aistudio.google.com/apikey"
            )

        _client = genai.Client(api_key=settings.GEMINI_API_KEY)
        logger.info(f"Gemini client initialized (model: {settings.GEMINI_MODEL})")

    return _client


# ============================================================
# MESSAGE FORMATTING
# ============================================================

def format_messages_for_gemini(messages: List[UIMessage]) -> List[types.Content]:
    """
    Convert client UI messages to Gemini contents.

    Only text parts are forwarded. System messages are sent through the
    system instruction instead, so they are skipped here.
    """
    contents = []

    for msg in messages:
        if msg.role == "system":
            continue

        text = msg.text()
        if not text:
            continue

        role = "model" if msg.role == "assistant" else "user"
        contents.append(
            types.Content(
                role=role,
                parts=[types.Part(text=text)]
            )
        )

    return contents


def build_generation_params(rag_settings: Any = None) -> Dict[str, Any]:
    """
    Collect the generation overrides that are actually set.

    Unset (None) values are left out so the provider default applies.
    The result is also what gets written to the usage log.
    """
    params: Dict[str, Any] = {}

    if rag_settings is not None:
        for field, key in (
            ("max_output_tokens", "max_output_tokens"),
            ("temperature", "temperature"),
            ("top_p", "top_p"),
            ("top_k", "top_k"),
        ):
            value = getattr(rag_settings, field, None)
            if value is not None:
                params[key] = value

    if "temperature" not in params and settings.LLM_TEMPERATURE is not None:
        params["temperature"] = settings.LLM_TEMPERATURE

    return params


def build_chat_config(
    store_name: str,
    generation_params: Dict[str, Any],
    system_prompt: Optional[str] = None,
) -> types.GenerateContentConfig:
    """Generation config with a single File Search tool bound to one store."""
    return types.GenerateContentConfig(
        tools=[
            types.Tool(
                file_search=types.FileSearch(
                    file_search_store_names=[store_name]
                )
            )
        ],
        system_instruction=system_prompt or None,
        **generation_params,
    )


# ============================================================
# STREAMING
# ============================================================

async def chat_completion_stream(
    client: genai.Client,
    contents: List[types.Content],
    config: types.GenerateContentConfig,
    model: Optional[str] = None,
) -> AsyncGenerator[types.GenerateContentResponse, None]:
    """
    Stream raw response chunks from Gemini.

    Callers read chunk.text for deltas; the last chunks carry
    usage_metadata and the candidate's grounding_metadata.
    """
    stream = await client.aio.models.generate_content_stream(
        model=model or settings.GEMINI_MODEL,
        contents=contents,
        config=config,
    )

    async for chunk in stream:
        yield chunk
