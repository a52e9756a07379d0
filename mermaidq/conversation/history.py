"""Conversation history formatting shared by the classifier, enhancer and generator."""

from __future__ import annotations

from collections.abc import Sequence

from mermaidq.config import DIAGRAM_CODE_PREVIEW_CHARS, MAX_HISTORY_MESSAGES
from mermaidq.conversation.models import ChatMessage


def get_recent_messages(
    messages: Sequence[ChatMessage], max_messages: int = MAX_HISTORY_MESSAGES
) -> list[ChatMessage]:
    if max_messages <= 0:
        return []
    return list(messages[-max_messages:])


def _format_message(message: ChatMessage) -> str:
    role = "Human" if message.role == "user" else "Assistant"
    content = message.content
    if message.diagram_code:
        preview = message.diagram_code[:DIAGRAM_CODE_PREVIEW_CHARS]
        content = f"{content}\n[Generated diagram code: {preview}...]"
    return f"{role}: {content}"


def format_conversation_history(messages: Sequence[ChatMessage] | None) -> str:
    """
    Render history as a bounded text block for model prompts.

    Takes at most the last MAX_HISTORY_MESSAGES entries, truncates embedded
    diagram code, and wraps the block in fixed headers. Empty history renders
    as an empty string.
    """
    if not messages:
        return ""

    formatted = "\n\n".join(_format_message(m) for m in get_recent_messages(messages))
    return f"\nConversation History:\n{formatted}\n\nCurrent Request:\n"
