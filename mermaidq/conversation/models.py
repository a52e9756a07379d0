"""
Chat domain models.

ChatMessage and ConversationMetadata are what the storage layer persists;
pydantic handles the ISO-string <-> datetime round trip on the way to and
from JSON.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mermaidq.diagrams.types import Confidence


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    # Naive timestamps from older payloads are taken as UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class ConversationType(str, Enum):
    """The four conversation states; detection rules are the only transitions."""

    NEW_SESSION = "new_session"
    CONTINUATION = "continuation"
    RESUMED = "resumed"
    TOPIC_SWITCH = "topic_switch"


class MessageKind(str, Enum):
    TEXT = "text"
    DIAGRAM = "diagram"


class ChatMessage(BaseModel):
    """One chat turn entry.

    Frozen: the only sanctioned change is the single in-place replacement of
    the assistant placeholder once the pipeline settles (see ChatSession).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    role: Literal["user", "assistant"]
    timestamp: datetime = Field(default_factory=utc_now)
    kind: MessageKind = MessageKind.TEXT
    diagram_code: str | None = None
    is_generating: bool = False

    @field_validator("timestamp")
    @classmethod
    def timestamp_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)


class ConversationMetadata(BaseModel):
    """Per-session bookkeeping owned by the tracker. Replaced, never mutated."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    start_time: datetime
    last_activity: datetime
    message_count: int = Field(default=0, ge=0)
    conversation_type: ConversationType = ConversationType.NEW_SESSION
    topics: tuple[str, ...] = ()

    @field_validator("start_time", "last_activity")
    @classmethod
    def times_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)


@dataclass(frozen=True)
class ConversationDetection:
    """Tracker output for one turn."""

    type: ConversationType
    confidence: Confidence
    reason: str
    metadata: ConversationMetadata
