"""
Prompt Enhancer - rewrites a diagram request into an explicit, structured one.

Stage 2 of the diagram pipeline. Runs on the fast provider.
"""

from __future__ import annotations

from collections.abc import Sequence

from mermaidq.conversation.history import format_conversation_history
from mermaidq.conversation.models import ChatMessage
from mermaidq.diagrams.errors import EmptyResultError, EnhancementError
from mermaidq.diagrams.types import DiagramType
from mermaidq.llm.client import CompletionClient, CompletionError
from mermaidq.llm.prompts import get_improve_prompt
from mermaidq.observability.logging import get_logger
from mermaidq.observability.telemetry import counter, log_event
from mermaidq.utils.validators import validate_prompt, validate_target_type

logger = get_logger(__name__)

ENHANCE_FAILED_MESSAGE = "Failed to improve prompt"
EMPTY_ENHANCEMENT_MESSAGE = "The improved prompt came back empty"

CONTEXTUAL_INSTRUCTION = (
    "Consider the conversation history when improving this prompt. If this appears to "
    "be a modification or extension of a previously discussed diagram, incorporate "
    "relevant context from the conversation."
)


class PromptEnhancer:
    def __init__(self, client: CompletionClient):
        self.client = client

    def improve(
        self,
        prompt: str,
        diagram_type: str | DiagramType,
        history: Sequence[ChatMessage] | None = None,
    ) -> str:
        """
        Rewrite a prompt for the given diagram kind.

        Returns:
            The trimmed rewrite

        Raises:
            PromptValidationError: blank prompt, unknown type or not_diagram
            EnhancementError: provider failure (original error on `.cause`)
            EmptyResultError: provider returned only whitespace
        """
        validate_prompt(prompt)
        target = validate_target_type(diagram_type)

        model_prompt = get_improve_prompt(
            contextual_instruction=CONTEXTUAL_INSTRUCTION if history else "",
            history_context=format_conversation_history(history),
            diagram_type=target.value,
            prompt=prompt,
        )

        try:
            improved = self.client.complete(model_prompt)
        except CompletionError as e:
            counter("enhancer.error")
            logger.error("Error improving prompt: %s", e)
            log_event("enhancer.error", error_kind=e.kind, provider=e.provider)
            raise EnhancementError(ENHANCE_FAILED_MESSAGE, cause=e) from e

        improved = improved.strip()
        if not improved:
            counter("enhancer.empty_result")
            raise EmptyResultError("enhancer", EMPTY_ENHANCEMENT_MESSAGE)

        counter("enhancer.success")
        logger.info(
            "Improved prompt for %s (%d -> %d chars)", target.value, len(prompt), len(improved)
        )
        return improved
