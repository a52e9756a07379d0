"""
Chat session - one conversation's transcript, metadata and turn handling.

A turn appends a user message and an assistant placeholder, runs the diagram
pipeline, then settles the placeholder exactly once (diagram on success,
error text on failure). Persistence is left to the caller through the
TurnOutcome's pending save.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from mermaidq.config import MAX_HISTORY_MESSAGES
from mermaidq.conversation.history import get_recent_messages
from mermaidq.conversation.models import (
    ChatMessage,
    ConversationDetection,
    ConversationMetadata,
    ConversationType,
    MessageKind,
    utc_now,
)
from mermaidq.conversation.tracker import ConversationTracker
from mermaidq.diagrams.errors import DiagramError
from mermaidq.diagrams.pipeline import DiagramPipeline
from mermaidq.diagrams.types import GenerationResult
from mermaidq.llm.client import CompletionError
from mermaidq.observability.logging import get_logger
from mermaidq.observability.telemetry import counter, log_event
from mermaidq.storage.chat_store import ChatStorage
from mermaidq.utils.ids import generate_message_id
from mermaidq.utils.validators import validate_prompt

logger = get_logger(__name__)

UNKNOWN_ERROR_MESSAGE = (
    "Unknown error. Please try rephrasing your request or check if your description is clear."
)

_LOADING_MESSAGES: dict[ConversationType, str] = {
    ConversationType.NEW_SESSION: (
        "Welcome! I'll help you create that diagram. Let me generate the Mermaid code for you..."
    ),
    ConversationType.CONTINUATION: (
        "I'll help you create that diagram. Let me generate the Mermaid code for you..."
    ),
    ConversationType.RESUMED: (
        "Welcome back! I'll help you create that diagram. "
        "Let me generate the Mermaid code for you..."
    ),
    ConversationType.TOPIC_SWITCH: (
        "I see we're exploring a new type of diagram. Let me generate the Mermaid code for you..."
    ),
}
_DEFAULT_LOADING_MESSAGE = (
    "I'll help you create that diagram. Let me generate the Mermaid code for you..."
)

_SUCCESS_MESSAGES: dict[ConversationType, str] = {
    ConversationType.NEW_SESSION: (
        "I've generated your first Mermaid diagram! "
        "You can copy the code or use it directly in the editor."
    ),
    ConversationType.CONTINUATION: (
        "I've generated a Mermaid diagram based on your description and our conversation "
        "context. You can copy the code or use it directly in the editor."
    ),
    ConversationType.RESUMED: (
        "I've generated a Mermaid diagram considering our previous conversation. "
        "You can copy the code or use it directly in the editor."
    ),
    ConversationType.TOPIC_SWITCH: (
        "I've generated a Mermaid diagram for this new topic. "
        "You can copy the code or use it directly in the editor."
    ),
}
_DEFAULT_SUCCESS_MESSAGE = (
    "I've generated a Mermaid diagram based on your description. "
    "You can copy the code or use it directly in the editor."
)


def loading_message(conversation_type: ConversationType | str) -> str:
    try:
        return _LOADING_MESSAGES[ConversationType(conversation_type)]
    except (KeyError, ValueError):
        return _DEFAULT_LOADING_MESSAGE


def success_message(conversation_type: ConversationType | str) -> str:
    try:
        return _SUCCESS_MESSAGES[ConversationType(conversation_type)]
    except (KeyError, ValueError):
        return _DEFAULT_SUCCESS_MESSAGE


class SessionBusyError(RuntimeError):
    """Raised when a turn is sent while the session's previous turn is still running."""

    pass


@dataclass(frozen=True)
class PendingSave:
    """Snapshot of session state to persist after a turn."""

    messages: tuple[ChatMessage, ...]
    metadata: ConversationMetadata | None

    def apply(self, storage: ChatStorage) -> None:
        """
        Write the snapshot.

        Raises:
            StorageError: the backend rejected a write
        """
        if self.messages:
            storage.save_chat_history(self.messages)
        if self.metadata is not None:
            storage.save_conversation_metadata(self.metadata)


@dataclass
class TurnOutcome:
    """Result of one send_message call."""

    user_message: ChatMessage
    assistant_message: ChatMessage
    detection: ConversationDetection
    pending_save: PendingSave
    result: GenerationResult | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


@dataclass
class ChatSession:
    """
    Transcript + metadata for a single conversation.

    Only one turn may be in flight at a time; overlapping sends raise
    SessionBusyError instead of interleaving placeholders.
    """

    pipeline: DiagramPipeline
    tracker: ConversationTracker = field(default_factory=ConversationTracker)
    messages: list[ChatMessage] = field(default_factory=list)
    metadata: ConversationMetadata | None = None
    id_factory: Callable[[], str] = generate_message_id
    _turn_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    @property
    def is_busy(self) -> bool:
        return self._turn_lock.locked()

    def load(self, storage: ChatStorage) -> ConversationDetection:
        """
        Rehydrate transcript and metadata from storage and classify the session.

        Returns:
            The detection, so the caller can decide whether to greet
            (see should_show_contextual_greeting)
        """
        self.messages = storage.load_chat_history()
        stored_metadata = storage.load_conversation_metadata()
        detection = self.tracker.detect(self.messages, stored_metadata)
        self.metadata = detection.metadata
        logger.info(
            "Loaded chat session: %d messages, type=%s",
            len(self.messages),
            detection.type.value,
        )
        return detection

    def clear(self, storage: ChatStorage | None = None) -> None:
        """
        Empty the transcript and metadata, and the stored keys if a storage is given.

        Raises:
            StorageError: stored keys could not be removed
        """
        self.messages = []
        self.metadata = None
        if storage is not None:
            storage.clear_chat_data()
        counter("chat.cleared")

    def snapshot(self) -> PendingSave:
        return PendingSave(messages=tuple(self.messages), metadata=self.metadata)

    def send_message(self, text: str) -> TurnOutcome:
        """
        Run one chat turn.

        Raises:
            PromptValidationError: blank text (nothing is appended)
            SessionBusyError: another turn of this session is running

        Pipeline failures do not raise; they settle the placeholder as a text
        message carrying the error and are reported on TurnOutcome.error.
        """
        validate_prompt(text)
        if not self._turn_lock.acquire(blocking=False):
            counter("chat.busy_rejected")
            raise SessionBusyError("A diagram is already being generated for this session")
        try:
            return self._run_turn(text)
        finally:
            self._turn_lock.release()

    def _run_turn(self, text: str) -> TurnOutcome:
        prior_messages = list(self.messages)
        detection = self.tracker.detect(prior_messages, self.metadata)

        current_type = self.metadata.conversation_type if self.metadata else None
        if detection.type is not current_type:
            self.metadata = detection.metadata
            log_event("chat.conversation_type_changed", conversation_type=detection.type.value)

        user_message = ChatMessage(id=self.id_factory(), content=text, role="user")
        placeholder = ChatMessage(
            id=self.id_factory(),
            content=loading_message(detection.type),
            role="assistant",
            kind=MessageKind.DIAGRAM,
            is_generating=True,
        )
        self.messages.extend([user_message, placeholder])

        history = get_recent_messages(prior_messages, MAX_HISTORY_MESSAGES)
        result: GenerationResult | None = None
        error: str | None = None
        try:
            result = self.pipeline.run(text, history)
        except (DiagramError, CompletionError) as e:
            error = str(e) or UNKNOWN_ERROR_MESSAGE
            counter("chat.turn_failed")
            logger.warning("Chat turn failed: %s", e)
        except Exception:
            # Unexpected failures still have to settle the placeholder
            error = UNKNOWN_ERROR_MESSAGE
            counter("chat.turn_failed")
            logger.exception("Unexpected error during chat turn")

        if result is not None:
            settled = placeholder.model_copy(
                update={
                    "content": success_message(detection.type),
                    "diagram_code": result.code,
                    "is_generating": False,
                }
            )
            self.metadata = detection.metadata.model_copy(
                update={"message_count": len(prior_messages) + 2, "last_activity": utc_now()}
            )
            counter("chat.turn_succeeded")
        else:
            settled = placeholder.model_copy(
                update={
                    "content": error or UNKNOWN_ERROR_MESSAGE,
                    "is_generating": False,
                    "kind": MessageKind.TEXT,
                }
            )

        self._replace_message(settled)

        return TurnOutcome(
            user_message=user_message,
            assistant_message=settled,
            detection=detection,
            pending_save=self.snapshot(),
            result=result,
            error=error,
        )

    def _replace_message(self, updated: ChatMessage) -> None:
        for index, message in enumerate(self.messages):
            if message.id == updated.id:
                self.messages[index] = updated
                return
        raise LookupError(f"Message {updated.id} is not in this session")
