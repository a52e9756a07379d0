"""
Chat persistence: message history and conversation metadata.

Saves are observable (StorageError); loads never fail the caller and fall
back to an empty history / no metadata with a warning.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import TypeAdapter, ValidationError

from mermaidq.config import STORAGE_KEY_CHAT_HISTORY, STORAGE_KEY_CONVERSATION_METADATA
from mermaidq.conversation.models import ChatMessage, ConversationMetadata
from mermaidq.observability.logging import get_logger
from mermaidq.observability.telemetry import counter, log_event
from mermaidq.storage import KeyValueStore

logger = get_logger(__name__)

_MESSAGES = TypeAdapter(list[ChatMessage])


class StorageError(RuntimeError):
    """Raised when chat state could not be written or cleared."""

    pass


class ChatStorage:
    """Reads and writes chat state under two fixed keys."""

    def __init__(
        self,
        store: KeyValueStore,
        history_key: str = STORAGE_KEY_CHAT_HISTORY,
        metadata_key: str = STORAGE_KEY_CONVERSATION_METADATA,
    ) -> None:
        self.store = store
        self.history_key = history_key
        self.metadata_key = metadata_key

    def save_chat_history(self, messages: Sequence[ChatMessage]) -> None:
        """
        Raises:
            StorageError: the backend rejected the write
        """
        try:
            payload = _MESSAGES.dump_json(list(messages)).decode("utf-8")
            self.store.set(self.history_key, payload)
        except (OSError, ValueError, TypeError) as exc:
            counter("storage.save_error")
            logger.error("Failed to save chat history: %s", exc)
            raise StorageError(f"Failed to save chat history: {exc}") from exc
        log_event("storage.history_saved", message_count=len(messages))

    def load_chat_history(self) -> list[ChatMessage]:
        try:
            saved = self.store.get(self.history_key)
            if not saved:
                return []
            return _MESSAGES.validate_json(saved)
        except (OSError, ValueError, ValidationError) as exc:
            counter("storage.load_error")
            logger.warning("Failed to load chat history: %s", exc)
            return []

    def save_conversation_metadata(self, metadata: ConversationMetadata) -> None:
        """
        Raises:
            StorageError: the backend rejected the write
        """
        try:
            self.store.set(self.metadata_key, metadata.model_dump_json())
        except (OSError, ValueError, TypeError) as exc:
            counter("storage.save_error")
            logger.error("Failed to save conversation metadata: %s", exc)
            raise StorageError(f"Failed to save conversation metadata: {exc}") from exc

    def load_conversation_metadata(self) -> ConversationMetadata | None:
        try:
            saved = self.store.get(self.metadata_key)
            if not saved:
                return None
            return ConversationMetadata.model_validate_json(saved)
        except (OSError, ValueError, ValidationError) as exc:
            counter("storage.load_error")
            logger.warning("Failed to load conversation metadata: %s", exc)
            return None

    def clear_chat_data(self) -> None:
        """
        Raises:
            StorageError: a key could not be removed
        """
        try:
            self.store.delete(self.history_key)
            self.store.delete(self.metadata_key)
        except (OSError, ValueError) as exc:
            counter("storage.clear_error")
            logger.error("Failed to clear chat data: %s", exc)
            raise StorageError(f"Failed to clear chat data: {exc}") from exc
        log_event("storage.cleared")
