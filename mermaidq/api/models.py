"""Request/response models for the diagram API"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from mermaidq.config import API_MAX_HISTORY_ITEMS, API_MAX_PROMPT_CHARS
from mermaidq.conversation.models import ChatMessage, MessageKind, utc_now
from mermaidq.utils.ids import generate_message_id


class HistoryMessage(BaseModel):
    """A prior chat message sent along as context. Ids and timestamps are optional."""

    content: str
    role: Literal["user", "assistant"]
    id: str | None = None
    timestamp: datetime | None = None
    kind: MessageKind = MessageKind.TEXT
    diagram_code: str | None = None

    def to_chat_message(self) -> ChatMessage:
        return ChatMessage(
            id=self.id or generate_message_id(),
            content=self.content,
            role=self.role,
            timestamp=self.timestamp or utc_now(),
            kind=self.kind,
            diagram_code=self.diagram_code,
        )


class _PromptRequest(BaseModel):
    prompt: str = Field(..., max_length=API_MAX_PROMPT_CHARS)
    history: list[HistoryMessage] = Field(default_factory=list, max_length=API_MAX_HISTORY_ITEMS)

    def chat_history(self) -> list[ChatMessage]:
        return [m.to_chat_message() for m in self.history]


class IdentifyRequest(_PromptRequest):
    pass


class GenerateDiagramRequest(_PromptRequest):
    pass


class TypedPromptRequest(_PromptRequest):
    """Improve / generate requests that already know the diagram kind."""

    diagram_type: str = Field(..., max_length=64)


class IdentifyResponse(BaseModel):
    type: str
    message: str
    confidence: str | None = None


class ImproveResponse(BaseModel):
    improved_prompt: str


class CodeResponse(BaseModel):
    code: str


class GenerationMetadataResponse(BaseModel):
    processing_time_ms: int
    confidence: str
    conversation_type: str | None = None


class GenerationResponse(BaseModel):
    code: str
    type: str
    metadata: GenerationMetadataResponse
