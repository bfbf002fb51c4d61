"""
Chat Schemas

The request body mirrors the client's UI message shape:

    {
        "id": "<chat session uuid>",
        "messages": [
            {"id": "m1", "role": "user", "parts": [{"type": "text", "text": "Hi"}]}
        ]
    }
"""

from typing import Any, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class MessageSource(BaseModel):
    """A cited document attached to an assistant message."""
    documentId: str
    title: str
    url: str


class UIMessage(BaseModel):
    id: str = Field(..., description="Client-generated message id")
    role: Literal["user", "assistant", "system"]
    parts: List[Any] = Field(default_factory=list, description="Message parts; text parts carry {'type': 'text', 'text': ...}")
    metadata: Optional[Any] = None

    def text(self) -> str:
        """Concatenate all text parts."""
        chunks = []
        for part in self.parts:
            if isinstance(part, dict) and part.get("type") == "text":
                chunks.append(part.get("text") or "")
        return "".join(chunks)


class ChatRequest(BaseModel):
    messages: List[UIMessage] = Field(..., min_length=1)
    id: UUID = Field(..., description="Chat session id")
