"""
Error taxonomy for the diagram pipeline.

Provider failures live in mermaidq.llm.client (CompletionError and friends).
The errors here are the ones a stage raises on its own account. All of them
carry a message that is safe to show to the end user verbatim.
"""

from __future__ import annotations


class DiagramError(Exception):
    """Base exception for diagram pipeline errors."""

    pass


class PromptValidationError(DiagramError, ValueError):
    """Empty/whitespace prompt or unusable diagram type. Raised before any network call."""

    pass


class NotDiagramRejection(DiagramError):
    """The classifier decided no diagram was requested; carries its message."""

    pass


class StageError(DiagramError):
    """A stage's completion call failed.

    The message is the stage's generic text; the provider error that caused it
    is kept on `cause` (and `__cause__`) so callers can decide how much to show.
    """

    stage = "stage"

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause

    @property
    def detail(self) -> str:
        """Message plus the underlying cause, for logs and verbose clients."""
        if self.cause is None:
            return str(self)
        return f"{self}: {self.cause}"


class EnhancementError(StageError):
    stage = "enhancer"


class GenerationError(StageError):
    stage = "generator"


class EmptyResultError(StageError):
    """The enhancer or generator call succeeded but produced only whitespace."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(message)
        self.stage = stage
