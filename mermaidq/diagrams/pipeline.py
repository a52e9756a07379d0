"""
Diagram Pipeline - main orchestrator for the 3-stage generation flow.

Coordinates:
1. DiagramTypeClassifier (Stage 1) - which diagram kind, if any
2. PromptEnhancer (Stage 2) - rewrite the request for that kind
3. DiagramGenerator (Stage 3) - produce normalized Mermaid code

Stages run strictly in sequence; the first failure ends the run. No retries.

Entry point: DiagramPipeline.run()
"""

from __future__ import annotations

import time
from collections.abc import Sequence

from mermaidq.config import classifier_provider_config, generator_provider_config
from mermaidq.conversation.models import ChatMessage, ConversationMetadata
from mermaidq.conversation.tracker import ConversationTracker
from mermaidq.diagrams.classifier import DiagramTypeClassifier
from mermaidq.diagrams.enhancer import PromptEnhancer
from mermaidq.diagrams.errors import NotDiagramRejection
from mermaidq.diagrams.generator import DiagramGenerator
from mermaidq.diagrams.types import (
    Confidence,
    GenerationMetadata,
    GenerationResult,
    IdentificationResult,
)
from mermaidq.llm.client import CompletionClient, OpenAICompatibleClient
from mermaidq.observability.logging import get_logger
from mermaidq.observability.telemetry import counter, log_event, time_block
from mermaidq.utils.validators import validate_prompt

logger = get_logger(__name__)


class DiagramPipeline:
    """
    Prompt -> Mermaid code.

    Holds the three stage objects; they are stateless, so one pipeline can be
    shared across requests and sessions.
    """

    def __init__(
        self,
        classifier: DiagramTypeClassifier,
        enhancer: PromptEnhancer,
        generator: DiagramGenerator,
        tracker: ConversationTracker | None = None,
    ):
        self.classifier = classifier
        self.enhancer = enhancer
        self.generator = generator
        self.tracker = tracker or ConversationTracker()

    @classmethod
    def from_clients(
        cls, fast_client: CompletionClient, generation_client: CompletionClient
    ) -> DiagramPipeline:
        """Classifier and enhancer share the fast client; the generator gets its own."""
        return cls(
            classifier=DiagramTypeClassifier(fast_client),
            enhancer=PromptEnhancer(fast_client),
            generator=DiagramGenerator(generation_client),
        )

    @classmethod
    def from_config(cls) -> DiagramPipeline:
        """Build from environment configuration. Credentials are checked on first call."""
        return cls.from_clients(
            OpenAICompatibleClient(classifier_provider_config()),
            OpenAICompatibleClient(generator_provider_config()),
        )

    def identify(
        self, prompt: str, history: Sequence[ChatMessage] | None = None
    ) -> IdentificationResult:
        return self.classifier.identify(prompt, history)

    def improve(
        self, prompt: str, diagram_type: str, history: Sequence[ChatMessage] | None = None
    ) -> str:
        return self.enhancer.improve(prompt, diagram_type, history)

    def generate(
        self, prompt: str, diagram_type: str, history: Sequence[ChatMessage] | None = None
    ) -> str:
        return self.generator.generate(prompt, diagram_type, history)

    def run(
        self,
        prompt: str,
        history: Sequence[ChatMessage] | None = None,
        metadata: ConversationMetadata | None = None,
    ) -> GenerationResult:
        """
        Run classify -> improve -> generate.

        Args:
            prompt: User request
            history: Prior chat messages (read-only during the run)
            metadata: Current conversation metadata; when given, the detected
                conversation type is attached to the result metadata

        Returns:
            GenerationResult with normalized code and timing

        Raises:
            PromptValidationError: blank prompt, before any provider call
            NotDiagramRejection: classifier said not_diagram (carries its message)
            CompletionError: classifier provider failure, unchanged
            EnhancementError / GenerationError / EmptyResultError: later stage failures

        Side Effects:
            - Three completion calls on success, fewer on early exit
            - Records pipeline.run latency and pipeline.* counters
        """
        validate_prompt(prompt)
        started = time.perf_counter()

        conversation_type: str | None = None
        if metadata is not None:
            detection = self.tracker.detect(history or [], metadata)
            conversation_type = detection.type.value

        with time_block("pipeline.run"):
            identification = self.classifier.identify(prompt, history)

            if not identification.is_diagram:
                counter("pipeline.rejected_not_diagram")
                log_event("pipeline.rejected", reason=identification.message)
                raise NotDiagramRejection(identification.message)

            improved_prompt = self.enhancer.improve(prompt, identification.type, history)
            code = self.generator.generate(improved_prompt, identification.type, history)

        processing_time_ms = int((time.perf_counter() - started) * 1000)
        counter("pipeline.success")
        logger.info(
            "Generated %s diagram in %dms", identification.type.value, processing_time_ms
        )

        return GenerationResult(
            code=code,
            type=identification.type,
            metadata=GenerationMetadata(
                processing_time_ms=processing_time_ms,
                confidence=identification.confidence or Confidence.MEDIUM,
                conversation_type=conversation_type,
            ),
        )
