"""
Conversation Context Tracker - classifies each chat turn against prior state.

Pure function of (history, prior metadata, now): never calls a model, never
fails. Rules are evaluated in order and the first match wins:

1. Empty history                     -> new_session
2. History but no metadata (reload)  -> resumed / continuation by idle gap
3. Idle gap beyond the timeout       -> resumed
4. Keyword or phrase topic change    -> topic_switch
5. Otherwise                         -> continuation

The gap comparison is strict: a gap exactly equal to the timeout still counts
as an active conversation.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from mermaidq.config import MAX_TRACKED_TOPICS, SESSION_TIMEOUT_SECONDS, TOPIC_SWITCH_WINDOW
from mermaidq.conversation.models import (
    ChatMessage,
    ConversationDetection,
    ConversationMetadata,
    ConversationType,
    MessageKind,
    ensure_aware,
    utc_now,
)
from mermaidq.diagrams.types import Confidence
from mermaidq.observability.logging import get_logger
from mermaidq.observability.telemetry import counter
from mermaidq.utils.ids import generate_session_id

logger = get_logger(__name__)

GENERAL_TOPIC_SWITCH = "general_topic_switch"

# Topic -> keywords. Order matters: the first untracked topic with a hit wins.
TOPIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "flowchart": ("flowchart", "flow", "process", "workflow", "steps"),
    "sequence": ("sequence", "interaction", "timeline", "communication"),
    "class": ("class", "object", "inheritance", "relationship"),
    "er": ("database", "entity", "table", "relation"),
    "state": ("state", "status", "transition", "lifecycle"),
    "gantt": ("gantt", "timeline", "schedule", "project", "milestone"),
}

TOPIC_CHANGE_INDICATORS: tuple[str, ...] = (
    "now let's",
    "switch to",
    "instead",
    "different",
    "new",
    "another",
    "change topic",
    "move on",
    "next",
)

# First match wins
_CODE_TOPIC_MARKERS: tuple[tuple[str, str], ...] = (
    ("sequencediagram", "sequence"),
    ("classdiagram", "class"),
    ("erdiagram", "er"),
    ("statediagram", "state"),
    ("gantt", "gantt"),
    ("graph", "flowchart"),
    ("flowchart", "flowchart"),
)

_MIN_KEYWORD_TOKEN_LENGTH = 3


@dataclass(frozen=True)
class TopicSwitch:
    """Result of topic-switch detection over the recent window."""

    topic: str
    confidence: Confidence


def _round_minutes(seconds: float) -> int:
    # Half-up, not banker's rounding
    return int(seconds / 60 + 0.5)


def add_topic(topics: Iterable[str], topic: str, limit: int = MAX_TRACKED_TOPICS) -> tuple[str, ...]:
    """Insert into an ordered set; re-inserting moves to the end. Keeps the last `limit`."""
    ordered = [t for t in topics if t != topic]
    ordered.append(topic)
    return tuple(ordered[-limit:]) if limit > 0 else ()


def topic_from_code(code: str) -> str | None:
    lowered = code.lower()
    for marker, topic in _CODE_TOPIC_MARKERS:
        if marker in lowered:
            return topic
    return None


def extract_topics(messages: Sequence[ChatMessage]) -> tuple[str, ...]:
    """Topics of every diagram message, in first-seen order."""
    topics: tuple[str, ...] = ()
    for message in messages:
        if message.kind is not MessageKind.DIAGRAM or not message.diagram_code:
            continue
        topic = topic_from_code(message.diagram_code)
        if topic and topic not in topics:
            topics = add_topic(topics, topic)
    return topics


def _keyword_tokens(messages: Sequence[ChatMessage]) -> list[str]:
    return [
        word
        for message in messages
        for word in message.content.lower().split()
        if len(word) > _MIN_KEYWORD_TOKEN_LENGTH
    ]


def detect_topic_switch(
    recent_messages: Sequence[ChatMessage], current_topics: Sequence[str]
) -> TopicSwitch | None:
    """
    Look for a topic change in the user turns of the recent window.

    Keyword hits on an untracked diagram kind win with high confidence; a
    generic change-of-subject phrase gives a medium-confidence general switch.
    """
    user_messages = [m for m in recent_messages if m.role == "user"]
    if not user_messages:
        return None

    tokens = _keyword_tokens(user_messages)
    for topic, keywords in TOPIC_KEYWORDS.items():
        hit = any(keyword in token for keyword in keywords for token in tokens)
        if hit and topic not in current_topics:
            return TopicSwitch(topic=topic, confidence=Confidence.HIGH)

    for message in user_messages:
        lowered = message.content.lower()
        if any(indicator in lowered for indicator in TOPIC_CHANGE_INDICATORS):
            return TopicSwitch(topic=GENERAL_TOPIC_SWITCH, confidence=Confidence.MEDIUM)

    return None


def status_message(conversation_type: ConversationType | str, reason: str) -> str:
    """User-facing banner text for a detected conversation type."""
    value = getattr(conversation_type, "value", conversation_type)
    if value == ConversationType.NEW_SESSION.value:
        return "Starting a new conversation"
    if value == ConversationType.CONTINUATION.value:
        return "Continuing our conversation"
    if value == ConversationType.RESUMED.value:
        return f"Welcome back! {reason}"
    if value == ConversationType.TOPIC_SWITCH.value:
        return f"I notice we're switching topics. {reason}"
    return "Ready to help with your diagrams"


def should_show_contextual_greeting(conversation_type: ConversationType | str) -> bool:
    value = getattr(conversation_type, "value", conversation_type)
    return value in (ConversationType.RESUMED.value, ConversationType.TOPIC_SWITCH.value)


class ConversationTracker:
    """
    Derives conversation type and metadata for the next turn.

    `clock` and `session_id_factory` are injectable so tests can pin time and
    ids; `now` passed to detect() overrides the clock for a single call.
    """

    def __init__(
        self,
        timeout_seconds: float = SESSION_TIMEOUT_SECONDS,
        topic_window: int = TOPIC_SWITCH_WINDOW,
        clock: Callable[[], datetime] = utc_now,
        session_id_factory: Callable[[], str] = generate_session_id,
    ):
        self.timeout_seconds = timeout_seconds
        self.topic_window = topic_window
        self._clock = clock
        self._session_id_factory = session_id_factory

    def detect(
        self,
        history: Sequence[ChatMessage],
        prior_metadata: ConversationMetadata | None = None,
        now: datetime | None = None,
    ) -> ConversationDetection:
        now = ensure_aware(now or self._clock())
        detection = self._detect(history, prior_metadata, now)
        counter(f"tracker.{detection.type.value}")
        logger.debug(
            "conversation detected: type=%s confidence=%s reason=%s",
            detection.type.value,
            detection.confidence.value,
            detection.reason,
        )
        return detection

    def transition(
        self,
        metadata: ConversationMetadata | None,
        history: Sequence[ChatMessage],
        now: datetime | None = None,
    ) -> ConversationMetadata:
        """(state, event) -> state: the metadata after observing `history` at `now`."""
        return self.detect(history, metadata, now).metadata

    def new_session_metadata(self, now: datetime) -> ConversationMetadata:
        return ConversationMetadata(
            session_id=self._session_id_factory(),
            start_time=now,
            last_activity=now,
            message_count=0,
            conversation_type=ConversationType.NEW_SESSION,
            topics=(),
        )

    def _detect(
        self,
        history: Sequence[ChatMessage],
        prior: ConversationMetadata | None,
        now: datetime,
    ) -> ConversationDetection:
        if not history:
            return ConversationDetection(
                type=ConversationType.NEW_SESSION,
                confidence=Confidence.HIGH,
                reason="No previous messages found",
                metadata=self.new_session_metadata(now),
            )

        if prior is None:
            gap = (now - history[-1].timestamp).total_seconds()
            if gap > self.timeout_seconds:
                return ConversationDetection(
                    type=ConversationType.RESUMED,
                    confidence=Confidence.HIGH,
                    reason=f"Resumed after {_round_minutes(gap)} minutes",
                    metadata=self._rebuild_metadata(history, now, ConversationType.RESUMED),
                )
            return ConversationDetection(
                type=ConversationType.CONTINUATION,
                confidence=Confidence.MEDIUM,
                reason="Continuing recent conversation",
                metadata=self._rebuild_metadata(history, now, ConversationType.CONTINUATION),
            )

        gap = (now - prior.last_activity).total_seconds()
        if gap > self.timeout_seconds:
            return ConversationDetection(
                type=ConversationType.RESUMED,
                confidence=Confidence.HIGH,
                reason=f"Session resumed after {_round_minutes(gap)} minutes",
                metadata=prior.model_copy(
                    update={
                        "last_activity": now,
                        "conversation_type": ConversationType.RESUMED,
                    }
                ),
            )

        recent = list(history[-self.topic_window :]) if self.topic_window > 0 else []
        switch = detect_topic_switch(recent, prior.topics)
        if switch is not None:
            # message_count is left as-is here; the chat session refreshes it after the turn
            return ConversationDetection(
                type=ConversationType.TOPIC_SWITCH,
                confidence=switch.confidence,
                reason=f"Topic switched to: {switch.topic}",
                metadata=prior.model_copy(
                    update={
                        "last_activity": now,
                        "conversation_type": ConversationType.TOPIC_SWITCH,
                        "topics": add_topic(prior.topics, switch.topic),
                    }
                ),
            )

        return ConversationDetection(
            type=ConversationType.CONTINUATION,
            confidence=Confidence.HIGH,
            reason="Active conversation continuation",
            metadata=prior.model_copy(
                update={
                    "last_activity": now,
                    "message_count": len(history),
                    "conversation_type": ConversationType.CONTINUATION,
                }
            ),
        )

    def _rebuild_metadata(
        self,
        history: Sequence[ChatMessage],
        now: datetime,
        conversation_type: ConversationType,
    ) -> ConversationMetadata:
        return ConversationMetadata(
            session_id=self._session_id_factory(),
            start_time=history[0].timestamp,
            last_activity=now,
            message_count=len(history),
            conversation_type=conversation_type,
            topics=extract_topics(history),
        )
