"""
Input validation utilities.

Every pipeline stage validates its prompt here before building a model
prompt, so an empty request never reaches a provider.
"""

from __future__ import annotations

from typing import Any

from mermaidq.diagrams.errors import PromptValidationError
from mermaidq.diagrams.types import DiagramType, coerce_diagram_type

PROMPT_REQUIRED_MESSAGE = "Prompt must be a non-empty string"


def validate_prompt(prompt: Any) -> str:
    """
    Validate a user prompt.

    Returns:
        The prompt unchanged (callers decide whether to trim)

    Raises:
        PromptValidationError: If prompt is not a string or is blank
    """
    if not is_valid_prompt(prompt):
        raise PromptValidationError(PROMPT_REQUIRED_MESSAGE)
    return prompt


def is_valid_prompt(prompt: Any) -> bool:
    return isinstance(prompt, str) and bool(prompt.strip())


def validate_target_type(diagram_type: str | DiagramType) -> DiagramType:
    """
    Validate a diagram type handed to the enhancer.

    Raises:
        PromptValidationError: not_diagram or a value outside the closed set
    """
    if not is_valid_diagram_type(diagram_type):
        raise PromptValidationError(f"Unsupported diagram type: {diagram_type}")
    coerced = coerce_diagram_type(diagram_type)
    if coerced is DiagramType.NOT_DIAGRAM:
        raise PromptValidationError("Cannot build a diagram for a not_diagram classification")
    return coerced


def is_valid_diagram_type(value: Any) -> bool:
    """True for any member of the closed set, sentinel included."""
    return isinstance(value, str) and coerce_diagram_type(value) is not None
