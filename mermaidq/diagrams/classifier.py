"""
Type Classifier - decides which diagram kind (if any) a prompt asks for.

Stage 1 of the diagram pipeline. One completion call on the fast provider;
the answer is a small JSON object. Unparseable or off-list answers are not
errors: they degrade to a not_diagram result so the pipeline can reject the
request with a readable message.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, StrictStr, ValidationError

from mermaidq.conversation.history import format_conversation_history
from mermaidq.conversation.models import ChatMessage
from mermaidq.diagrams.types import (
    DIAGRAM_TYPES,
    Confidence,
    IdentificationResult,
    coerce_diagram_type,
)
from mermaidq.llm.client import CompletionClient
from mermaidq.llm.prompts import get_identify_prompt
from mermaidq.observability.logging import get_logger
from mermaidq.observability.telemetry import counter, log_event
from mermaidq.utils.validators import validate_prompt

logger = get_logger(__name__)

# Greedy: first "{" through last "}"
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

CONTEXTUAL_INSTRUCTION = (
    "You are analyzing a user's request in the context of an ongoing conversation "
    "about diagram creation. Consider the conversation history to better understand "
    "what type of diagram the user is requesting."
)
STANDALONE_INSTRUCTION = (
    "You are an expert AI assistant specialized in identifying Mermaid.js diagram "
    "types from natural language prompts."
)


class IdentificationSchema(BaseModel):
    """Schema for the classifier's JSON answer."""

    type: StrictStr = Field(min_length=1, description="Diagram type or not_diagram")
    message: StrictStr = Field(description="One-line explanation")
    confidence: Any = None


@dataclass(frozen=True)
class ParseOutcome:
    """Explicit success/failure result of decoding the classifier answer."""

    payload: IdentificationSchema | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.payload is not None

    @classmethod
    def success(cls, payload: IdentificationSchema) -> ParseOutcome:
        return cls(payload=payload)

    @classmethod
    def failure(cls, error: str) -> ParseOutcome:
        return cls(error=error)


def extract_json_candidate(response_text: str) -> str:
    """Greedy `{...}` span of the trimmed text, or the whole trimmed text."""
    trimmed = response_text.strip()
    match = _JSON_OBJECT.search(trimmed)
    return match.group(0) if match else trimmed


def parse_identification(response_text: str) -> ParseOutcome:
    candidate = extract_json_candidate(response_text)
    try:
        data = json.loads(candidate)
    except (json.JSONDecodeError, RecursionError) as e:
        return ParseOutcome.failure(f"invalid json: {e}")

    if not isinstance(data, dict):
        return ParseOutcome.failure(f"expected object, got {type(data).__name__}")

    try:
        return ParseOutcome.success(IdentificationSchema.model_validate(data))
    except ValidationError as e:
        return ParseOutcome.failure(f"invalid structure: {e.error_count()} error(s)")


def _coerce_confidence(value: Any) -> Confidence | None:
    if not isinstance(value, str):
        return None
    try:
        return Confidence(value.strip().lower())
    except ValueError:
        return None


def interpret_identification(response_text: str) -> IdentificationResult:
    """
    Map raw classifier text to an IdentificationResult. Never raises.

    Returns:
        - invalid-format sentinel when the answer cannot be decoded
        - unrecognized-type sentinel when the type is outside the closed set
        - otherwise the lower-cased type, the model's message and any
          high/medium/low confidence
    """
    outcome = parse_identification(response_text)
    if outcome.payload is None:
        counter("classifier.parse_degraded")
        logger.warning("Failed to parse identification response: %s", outcome.error)
        return IdentificationResult.invalid_format()

    payload = outcome.payload
    diagram_type = coerce_diagram_type(payload.type.lower())
    if diagram_type is None:
        counter("classifier.unrecognized_type")
        logger.warning("Classifier returned unrecognized type: %s", payload.type)
        return IdentificationResult.unrecognized(payload.type)

    return IdentificationResult(
        type=diagram_type,
        message=payload.message,
        confidence=_coerce_confidence(payload.confidence),
    )


class DiagramTypeClassifier:
    """
    LLM-based classifier mapping a prompt to one of the supported diagram kinds.

    Completion errors are not caught here; they reach the caller unchanged.
    """

    def __init__(self, client: CompletionClient):
        self.client = client

    def identify(
        self, prompt: str, history: Sequence[ChatMessage] | None = None
    ) -> IdentificationResult:
        """
        Classify a prompt.

        Args:
            prompt: User request (must be non-blank)
            history: Prior chat messages used as context

        Returns:
            IdentificationResult (not_diagram on unparseable answers)

        Raises:
            PromptValidationError: blank prompt, before any provider call
            CompletionError: provider failure, propagated as-is

        Side Effects:
            - Exactly one completion call
            - Increments classifier.* telemetry counters
        """
        validate_prompt(prompt)
        model_prompt = self.build_prompt(prompt, history)

        response_text = self.client.complete(model_prompt)
        result = interpret_identification(response_text)

        counter("classifier.success")
        log_event(
            "classifier.result",
            diagram_type=result.type.value,
            confidence=result.confidence.value if result.confidence else None,
            provider=self.client.provider,
            with_history=bool(history),
        )
        return result

    def build_prompt(self, prompt: str, history: Sequence[ChatMessage] | None = None) -> str:
        return get_identify_prompt(
            contextual_instruction=CONTEXTUAL_INSTRUCTION if history else STANDALONE_INSTRUCTION,
            diagram_types=", ".join(t.value for t in DIAGRAM_TYPES),
            history_context=format_conversation_history(history),
            prompt=prompt.strip(),
        )
