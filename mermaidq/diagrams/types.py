"""
Module: types
Purpose: Shared domain types for the diagram pipeline.
Dependencies: none (leaf module)

Stable import boundary: the classifier, enhancer, generator, normalizer,
pipeline and API all import from here, so it must not import any of them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DiagramType(str, Enum):
    """Closed set of diagram kinds plus the not_diagram sentinel.

    Extends str so JSON serialization produces raw strings (e.g. "flowchart").
    """

    FLOWCHART = "flowchart"
    SEQUENCE_DIAGRAM = "sequence_diagram"
    CLASS_DIAGRAM = "class_diagram"
    ER_DIAGRAM = "er_diagram"
    STATE_DIAGRAM = "state_diagram"
    GANTT_CHART = "gantt_chart"
    NOT_DIAGRAM = "not_diagram"


# Classification targets, in prompt order (sentinel excluded)
DIAGRAM_TYPES: tuple[DiagramType, ...] = tuple(
    t for t in DiagramType if t is not DiagramType.NOT_DIAGRAM
)


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ---------------------------------------------------------------------------
# Directive table
# ---------------------------------------------------------------------------

# Valid leading tokens per diagram kind. pie/journey/gitgraph are never
# classification targets but a renderer accepts them, so they count as
# "already has a directive".
MERMAID_DIRECTIVES: dict[str, tuple[str, ...]] = {
    DiagramType.FLOWCHART.value: ("graph", "flowchart"),
    DiagramType.SEQUENCE_DIAGRAM.value: ("sequenceDiagram",),
    DiagramType.CLASS_DIAGRAM.value: ("classDiagram",),
    DiagramType.ER_DIAGRAM.value: ("erDiagram",),
    DiagramType.STATE_DIAGRAM.value: ("stateDiagram", "stateDiagram-v2"),
    DiagramType.GANTT_CHART.value: ("gantt",),
    "pie": ("pie",),
    "journey": ("journey",),
    "gitgraph": ("gitgraph",),
}

DEFAULT_DIRECTIVES: dict[str, str] = {
    DiagramType.FLOWCHART.value: "graph TD",
    DiagramType.SEQUENCE_DIAGRAM.value: "sequenceDiagram",
    DiagramType.CLASS_DIAGRAM.value: "classDiagram",
    DiagramType.ER_DIAGRAM.value: "erDiagram",
    DiagramType.STATE_DIAGRAM.value: "stateDiagram-v2",
    DiagramType.GANTT_CHART.value: "gantt",
}

FALLBACK_DIRECTIVE = DEFAULT_DIRECTIVES[DiagramType.FLOWCHART.value]


def all_directive_tokens() -> tuple[str, ...]:
    """Union of every kind's directive tokens."""
    return tuple(token for tokens in MERMAID_DIRECTIVES.values() for token in tokens)


def default_directive(diagram_type: str) -> str:
    return DEFAULT_DIRECTIVES.get(str(_value(diagram_type)), FALLBACK_DIRECTIVE)


def _value(diagram_type: str | DiagramType) -> str:
    return diagram_type.value if isinstance(diagram_type, DiagramType) else diagram_type


def coerce_diagram_type(value: str | DiagramType) -> DiagramType | None:
    """Lower-case and map to the closed set (sentinel included), or None."""
    if isinstance(value, DiagramType):
        return value
    try:
        return DiagramType(str(value).lower())
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Stage results
# ---------------------------------------------------------------------------

INVALID_FORMAT_MESSAGE = (
    "Could not interpret the prompt as a diagram request due to invalid response format."
)


@dataclass
class IdentificationResult:
    """Classifier output. Never persisted on its own."""

    type: DiagramType
    message: str
    confidence: Confidence | None = None

    @property
    def is_diagram(self) -> bool:
        return self.type is not DiagramType.NOT_DIAGRAM

    @classmethod
    def invalid_format(cls) -> IdentificationResult:
        """Sentinel for classifier output that could not be parsed."""
        return cls(type=DiagramType.NOT_DIAGRAM, message=INVALID_FORMAT_MESSAGE)

    @classmethod
    def unrecognized(cls, raw_type: str) -> IdentificationResult:
        """Sentinel for a parsed type outside the closed set."""
        return cls(
            type=DiagramType.NOT_DIAGRAM,
            message=f"Unrecognized diagram type: {raw_type}",
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "message": self.message}
        if self.confidence is not None:
            data["confidence"] = self.confidence.value
        return data


@dataclass
class GenerationMetadata:
    processing_time_ms: int
    confidence: Confidence = Confidence.MEDIUM
    conversation_type: str | None = None


@dataclass
class GenerationResult:
    """Final pipeline output handed back to the caller for persistence/rendering."""

    code: str
    type: DiagramType
    metadata: GenerationMetadata = field(
        default_factory=lambda: GenerationMetadata(processing_time_ms=0)
    )

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "processing_time_ms": self.metadata.processing_time_ms,
            "confidence": self.metadata.confidence.value,
        }
        if self.metadata.conversation_type is not None:
            metadata["conversation_type"] = self.metadata.conversation_type
        return {"code": self.code, "type": self.type.value, "metadata": metadata}
