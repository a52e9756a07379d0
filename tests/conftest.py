"""
Pytest configuration for mermaidq tests

Provides a fake completion client (no network calls), message builders and
telemetry isolation shared across all test files.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from mermaidq.conversation.models import ChatMessage, MessageKind
from mermaidq.diagrams.pipeline import DiagramPipeline
from mermaidq.observability.telemetry import reset_telemetry


class FakeCompletionClient:
    """
    Stand-in for OpenAICompatibleClient.

    Replies are consumed in order; an exception instance in the queue is
    raised instead of returned. Every prompt is recorded.
    """

    def __init__(self, *replies: str | BaseException, provider: str = "fake") -> None:
        self.provider = provider
        self.replies: list[str | BaseException] = list(replies)
        self.prompts: list[str] = []

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.replies:
            raise AssertionError("FakeCompletionClient called more times than expected")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _reset_telemetry():
    """Counters are module-global; isolate them per test."""
    reset_telemetry()
    yield
    reset_telemetry()


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_message() -> Callable[..., ChatMessage]:
    """Build a ChatMessage with sequential ids and a timestamp relative to FIXED_NOW."""
    counter = {"n": 0}

    def _make(
        content: str,
        role: str = "user",
        minutes_ago: float = 0,
        diagram_code: str | None = None,
    ) -> ChatMessage:
        counter["n"] += 1
        return ChatMessage(
            id=f"msg_{counter['n']}",
            content=content,
            role=role,
            timestamp=FIXED_NOW - timedelta(minutes=minutes_ago),
            kind=MessageKind.DIAGRAM if diagram_code else MessageKind.TEXT,
            diagram_code=diagram_code,
        )

    return _make


@pytest.fixture
def fake_client() -> type[FakeCompletionClient]:
    """The fake client class; call it with the replies for one test."""
    return FakeCompletionClient


@pytest.fixture
def identify_reply() -> Callable[..., str]:
    """Render a classifier JSON answer."""

    def _reply(diagram_type: str, confidence: str | None = None) -> str:
        confidence_part = f', "confidence": "{confidence}"' if confidence else ""
        return (
            f'{{"type": "{diagram_type}", "message": "The prompt describes a {diagram_type}."'
            f"{confidence_part}}}"
        )

    return _reply


@pytest.fixture
def build_pipeline() -> Callable[[FakeCompletionClient, FakeCompletionClient], DiagramPipeline]:
    """Pipeline over a fast (classifier + enhancer) fake and a generation fake."""
    return DiagramPipeline.from_clients
