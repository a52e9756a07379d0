"""Unit tests for ConversationTracker conversation-type detection."""

from __future__ import annotations

from datetime import timedelta

import pytest

from mermaidq.conversation.models import ConversationMetadata, ConversationType
from mermaidq.conversation.tracker import (
    GENERAL_TOPIC_SWITCH,
    ConversationTracker,
    add_topic,
    extract_topics,
    should_show_contextual_greeting,
    status_message,
    topic_from_code,
)
from mermaidq.diagrams.types import Confidence

TIMEOUT = timedelta(minutes=30)


@pytest.fixture
def tracker():
    ids = iter(f"session_{i}" for i in range(100))
    return ConversationTracker(session_id_factory=lambda: next(ids))


@pytest.fixture
def metadata(now):
    def _make(last_activity_ago=timedelta(0), topics=(), message_count=2):
        return ConversationMetadata(
            session_id="session_existing",
            start_time=now - timedelta(hours=1),
            last_activity=now - last_activity_ago,
            message_count=message_count,
            conversation_type=ConversationType.CONTINUATION,
            topics=tuple(topics),
        )

    return _make


class TestNewSession:
    """Rule 1: empty history."""

    def test_empty_history(self, tracker, now):
        detection = tracker.detect([], None, now)

        assert detection.type is ConversationType.NEW_SESSION
        assert detection.confidence is Confidence.HIGH
        assert detection.reason == "No previous messages found"
        assert detection.metadata.session_id == "session_0"
        assert detection.metadata.message_count == 0
        assert detection.metadata.topics == ()
        assert detection.metadata.start_time == now

    def test_empty_history_ignores_prior_metadata(self, tracker, metadata, now):
        detection = tracker.detect([], metadata(), now)
        assert detection.type is ConversationType.NEW_SESSION
        assert detection.metadata.session_id != "session_existing"


class TestReloadWithoutMetadata:
    """Rule 2: history present but no metadata."""

    def test_recent_history_is_continuation(self, tracker, make_message, now):
        history = [make_message("Show the login flow", minutes_ago=5)]
        detection = tracker.detect(history, None, now)

        assert detection.type is ConversationType.CONTINUATION
        assert detection.confidence is Confidence.MEDIUM
        assert detection.reason == "Continuing recent conversation"
        assert detection.metadata.message_count == 1
        assert detection.metadata.start_time == history[0].timestamp
        assert detection.metadata.last_activity == now

    def test_old_history_is_resumed(self, tracker, make_message, now):
        history = [
            make_message("Show the login flow", minutes_ago=50),
            make_message(
                "Done", role="assistant", minutes_ago=45, diagram_code="graph TD\nA-->B"
            ),
        ]
        detection = tracker.detect(history, None, now)

        assert detection.type is ConversationType.RESUMED
        assert detection.confidence is Confidence.HIGH
        assert detection.reason == "Resumed after 45 minutes"
        assert detection.metadata.topics == ("flowchart",)
        assert detection.metadata.message_count == 2

    def test_gap_equal_to_timeout_is_not_resumed(self, tracker, make_message, now):
        history = [make_message("hello", minutes_ago=30)]
        assert tracker.detect(history, None, now).type is ConversationType.CONTINUATION


class TestTimeoutBoundary:
    """Rule 3: idle gap against prior metadata."""

    @pytest.mark.parametrize(
        "gap, expected",
        [
            (TIMEOUT - timedelta(seconds=1), ConversationType.CONTINUATION),
            (TIMEOUT, ConversationType.CONTINUATION),
            (TIMEOUT + timedelta(seconds=1), ConversationType.RESUMED),
        ],
    )
    def test_boundary(self, tracker, make_message, metadata, now, gap, expected):
        history = [make_message("add a step")]
        detection = tracker.detect(history, metadata(last_activity_ago=gap), now)
        assert detection.type is expected

    def test_resumed_carries_metadata_forward(self, tracker, make_message, metadata, now):
        prior = metadata(last_activity_ago=timedelta(minutes=90), topics=("flowchart",))
        detection = tracker.detect([make_message("add a step")], prior, now)

        assert detection.reason == "Session resumed after 90 minutes"
        assert detection.metadata.session_id == "session_existing"
        assert detection.metadata.topics == ("flowchart",)
        assert detection.metadata.last_activity == now
        assert detection.metadata.conversation_type is ConversationType.RESUMED


class TestTopicSwitch:
    """Rule 4: keyword and phrase topic detection."""

    def test_untracked_kind_switches(self, tracker, make_message, metadata, now):
        history = [make_message("Draw the signup workflow")]
        detection = tracker.detect(history, metadata(topics=()), now)

        assert detection.type is ConversationType.TOPIC_SWITCH
        assert detection.confidence is Confidence.HIGH
        assert detection.reason == "Topic switched to: flowchart"
        assert detection.metadata.topics == ("flowchart",)

    def test_tracked_kind_is_continuation(self, tracker, make_message, metadata, now):
        history = [make_message("Draw the signup workflow")]
        detection = tracker.detect(history, metadata(topics=("flowchart",)), now)

        assert detection.type is ConversationType.CONTINUATION
        assert detection.confidence is Confidence.HIGH
        assert detection.metadata.message_count == 1

    def test_flowchart_word_switches_once(self, tracker, make_message, metadata, now):
        """Naming a kind switches topic the first time, then reads as continuation."""
        history = [make_message("Draw a flowchart of the checkout")]

        first = tracker.detect(history, metadata(topics=()), now)
        assert first.type is ConversationType.TOPIC_SWITCH
        assert first.reason == "Topic switched to: flowchart"

        second = tracker.detect(history, first.metadata, now)
        assert second.type is ConversationType.CONTINUATION
        assert second.metadata.topics == ("flowchart",)

    def test_short_tokens_do_not_match(self, tracker, make_message, metadata, now):
        """Tokens of three characters or fewer are ignored."""
        history = [make_message("ok add one box")]
        assert tracker.detect(history, metadata(), now).type is ConversationType.CONTINUATION

    def test_keyword_contained_in_token(self, tracker, make_message, metadata, now):
        history = [make_message("model the databases please")]
        detection = tracker.detect(history, metadata(topics=("flowchart",)), now)
        assert detection.reason == "Topic switched to: er"

    def test_only_user_turns_count(self, tracker, make_message, metadata, now):
        history = [make_message("Here is your workflow", role="assistant")]
        assert tracker.detect(history, metadata(), now).type is ConversationType.CONTINUATION

    def test_only_last_three_turns_count(self, tracker, make_message, metadata, now):
        history = [
            make_message("Draw the signup workflow"),
            make_message("ok", role="assistant"),
            make_message("sure"),
            make_message("ok", role="assistant"),
        ]
        assert tracker.detect(history, metadata(), now).type is ConversationType.CONTINUATION

    def test_generic_phrase_switch(self, tracker, make_message, metadata, now):
        history = [make_message("let us move on")]
        detection = tracker.detect(history, metadata(), now)

        assert detection.type is ConversationType.TOPIC_SWITCH
        assert detection.confidence is Confidence.MEDIUM
        assert detection.reason == f"Topic switched to: {GENERAL_TOPIC_SWITCH}"

    def test_topic_switch_keeps_message_count(self, tracker, make_message, metadata, now):
        history = [make_message("Draw the signup workflow")]
        detection = tracker.detect(history, metadata(message_count=7), now)
        assert detection.metadata.message_count == 7

    def test_repeated_prompt_after_switch_continues(self, tracker, make_message, metadata, now):
        history = [make_message("Draw the signup workflow")]
        first = tracker.detect(history, metadata(), now)
        second = tracker.detect(history, first.metadata, now + timedelta(minutes=1))
        assert second.type is ConversationType.CONTINUATION


class TestTopics:
    """Tests for topic helpers."""

    def test_add_topic_moves_to_end_and_bounds(self):
        topics = ("a", "b", "c", "d", "e")
        assert add_topic(topics, "b") == ("a", "c", "d", "e", "b")
        assert add_topic(topics, "f") == ("b", "c", "d", "e", "f")

    @pytest.mark.parametrize(
        "code, topic",
        [
            ("sequenceDiagram\nA->>B: hi", "sequence"),
            ("classDiagram\nA <|-- B", "class"),
            ("erDiagram\nA ||--o{ B : has", "er"),
            ("stateDiagram-v2\n[*] --> A", "state"),
            ("gantt\ntitle Plan", "gantt"),
            ("graph TD\nA-->B", "flowchart"),
            ("flowchart LR\nA-->B", "flowchart"),
            ("pie\n\"a\" : 1", None),
        ],
    )
    def test_topic_from_code(self, code, topic):
        assert topic_from_code(code) == topic

    def test_extract_topics_from_diagram_messages_only(self, make_message):
        history = [
            make_message("graph please"),
            make_message("ok", role="assistant", diagram_code="sequenceDiagram\nA->>B: x"),
            make_message("ok", role="assistant", diagram_code="graph TD\nA-->B"),
            make_message("ok", role="assistant", diagram_code="sequenceDiagram\nB->>A: y"),
        ]
        assert extract_topics(history) == ("sequence", "flowchart")


class TestStatusHelpers:
    """Tests for status_message, should_show_contextual_greeting and transition."""

    def test_status_messages(self):
        assert status_message(ConversationType.NEW_SESSION, "x") == "Starting a new conversation"
        assert status_message(ConversationType.CONTINUATION, "x") == "Continuing our conversation"
        assert status_message("resumed", "Resumed after 45 minutes") == (
            "Welcome back! Resumed after 45 minutes"
        )
        assert status_message(ConversationType.TOPIC_SWITCH, "Topic switched to: er") == (
            "I notice we're switching topics. Topic switched to: er"
        )
        assert status_message("unknown", "x") == "Ready to help with your diagrams"

    def test_greeting_only_for_resumed_and_topic_switch(self):
        assert should_show_contextual_greeting(ConversationType.RESUMED)
        assert should_show_contextual_greeting("topic_switch")
        assert not should_show_contextual_greeting(ConversationType.CONTINUATION)
        assert not should_show_contextual_greeting(ConversationType.NEW_SESSION)

    def test_transition_returns_next_metadata(self, tracker, make_message, metadata, now):
        prior = metadata(last_activity_ago=timedelta(hours=2))
        updated = tracker.transition(prior, [make_message("hi")], now)
        assert updated.conversation_type is ConversationType.RESUMED
        assert updated.last_activity == now
