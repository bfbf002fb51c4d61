"""
LLM Module

Language model integration (Google Gemini via google-genai).
"""

from app.ai.llm.gemini_client import (
    get_client,
    format_messages_for_gemini,
    build_generation_params,
    build_chat_config,
    chat_completion_stream,
)

__all__ = [
    "get_client",
    "format_messages_for_gemini",
    "build_generation_params",
    "build_chat_config",
    "chat_completion_stream",
]
