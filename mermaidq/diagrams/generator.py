"""
Diagram Generator - produces Mermaid markup for an (improved) prompt.

Stage 3 of the diagram pipeline. Runs on the generation provider and hands
the raw completion to the normalizer before returning it.
"""

from __future__ import annotations

from collections.abc import Sequence

from mermaidq.conversation.history import format_conversation_history
from mermaidq.conversation.models import ChatMessage
from mermaidq.diagrams.errors import EmptyResultError, GenerationError
from mermaidq.diagrams.normalizer import clean_diagram_code, has_valid_directive, strip_code_fences
from mermaidq.diagrams.types import DiagramType, default_directive
from mermaidq.llm.client import CompletionClient, CompletionError
from mermaidq.llm.prompts import get_generate_prompt
from mermaidq.observability.logging import get_logger
from mermaidq.observability.telemetry import counter, log_event
from mermaidq.utils.validators import validate_prompt

logger = get_logger(__name__)

GENERATE_FAILED_MESSAGE = "Failed to generate diagram"
EMPTY_DIAGRAM_MESSAGE = "The generated diagram was empty"

CONTEXTUAL_INSTRUCTION = (
    "Use the conversation history to understand the context. If this is a modification "
    "of a previously generated diagram, build upon or modify the previous diagram "
    "structure appropriately."
)


class DiagramGenerator:
    """
    Generates normalized Mermaid code.

    The diagram type is not validated against the closed set: unknown kinds
    still generate and get the flowchart directive if the output lacks one.
    """

    def __init__(self, client: CompletionClient):
        self.client = client

    def generate(
        self,
        prompt: str,
        diagram_type: str | DiagramType,
        history: Sequence[ChatMessage] | None = None,
    ) -> str:
        """
        Generate Mermaid code.

        Returns:
            Fence-free code starting with a Mermaid directive

        Raises:
            PromptValidationError: blank prompt
            GenerationError: provider failure (original error on `.cause`)
            EmptyResultError: nothing left after fence stripping
        """
        validate_prompt(prompt)
        type_name = diagram_type.value if isinstance(diagram_type, DiagramType) else str(diagram_type)

        model_prompt = get_generate_prompt(
            contextual_instruction=CONTEXTUAL_INSTRUCTION if history else "",
            diagram_type=type_name,
            directive=default_directive(type_name),
            history_context=format_conversation_history(history),
            prompt=prompt,
        )

        try:
            raw_code = self.client.complete(model_prompt)
        except CompletionError as e:
            counter("generator.error")
            logger.error("Error generating diagram: %s", e)
            log_event("generator.error", error_kind=e.kind, provider=e.provider)
            raise GenerationError(GENERATE_FAILED_MESSAGE, cause=e) from e

        stripped = strip_code_fences(raw_code)
        if not stripped:
            counter("generator.empty_result")
            raise EmptyResultError("generator", EMPTY_DIAGRAM_MESSAGE)
        if not has_valid_directive(stripped):
            counter("generator.directive_added")
            logger.info("Generated code had no directive; prepending one for %s", type_name)

        code = clean_diagram_code(raw_code, type_name)
        counter("generator.success")
        log_event("generator.result", diagram_type=type_name, code_length=len(code))
        return code
