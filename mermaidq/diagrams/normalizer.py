"""
Code Normalizer - turns raw generator output into renderable Mermaid.

Only two things are guaranteed: no markdown fencing, and a leading directive.
The markup itself is never parsed or validated.
"""

from __future__ import annotations

import re

from mermaidq.diagrams.types import all_directive_tokens, default_directive

_LEADING_MERMAID_FENCE = re.compile(r"^```mermaid\s*")
_LEADING_FENCE = re.compile(r"^```\s*")
_TRAILING_FENCE = re.compile(r"\s*```$")

_DIRECTIVE_TOKENS = tuple(token.lower() for token in all_directive_tokens())


def strip_code_fences(code: str) -> str:
    """Remove a leading ```mermaid or bare ``` fence and a trailing ``` fence.

    Each fence is removed independently: a missing closer does not stop the
    opener from being stripped and vice versa.
    """
    cleaned = code.strip()
    cleaned = _LEADING_MERMAID_FENCE.sub("", cleaned, count=1)
    cleaned = _LEADING_FENCE.sub("", cleaned, count=1)
    cleaned = _TRAILING_FENCE.sub("", cleaned, count=1)
    return cleaned


def has_valid_directive(code: str) -> bool:
    """Case-insensitive prefix match against every kind's directive tokens.

    Deliberately not limited to the requested kind: output that already starts
    with any known directive is left alone rather than double-prefixed.
    """
    return code.lower().startswith(_DIRECTIVE_TOKENS)


def add_directive(code: str, diagram_type: str) -> str:
    return f"{default_directive(diagram_type)}\n{code}"


def clean_diagram_code(code: str, diagram_type: str) -> str:
    """
    Normalize generator output.

    Args:
        code: Raw completion text
        diagram_type: Requested kind (unknown kinds fall back to the flowchart directive)

    Returns:
        Fence-free code starting with a directive. Idempotent.
    """
    cleaned = strip_code_fences(code)
    if not has_valid_directive(cleaned):
        cleaned = add_directive(cleaned, diagram_type)
    return cleaned
