"""Unit tests for PromptEnhancer and DiagramGenerator."""

from __future__ import annotations

import pytest

from mermaidq.diagrams.enhancer import PromptEnhancer
from mermaidq.diagrams.errors import (
    EmptyResultError,
    EnhancementError,
    GenerationError,
    PromptValidationError,
)
from mermaidq.diagrams.generator import DiagramGenerator
from mermaidq.llm.client import CredentialError, UpstreamCallError, UpstreamEmptyError
from mermaidq.observability.telemetry import get_counter


class TestPromptEnhancer:
    """Tests for PromptEnhancer.improve."""

    def test_returns_trimmed_rewrite(self, fake_client):
        client = fake_client("  Create a flowchart with login, validation and redirect steps.\n")
        improved = PromptEnhancer(client).improve("login flow", "flowchart")

        assert improved == "Create a flowchart with login, validation and redirect steps."
        assert "Diagram Type: flowchart" in client.prompts[0]
        assert 'Original Prompt: "login flow"' in client.prompts[0]

    def test_rejects_not_diagram(self, fake_client):
        client = fake_client()
        with pytest.raises(PromptValidationError):
            PromptEnhancer(client).improve("hello", "not_diagram")
        assert client.call_count == 0

    def test_rejects_unknown_type(self, fake_client):
        with pytest.raises(PromptValidationError, match="Unsupported diagram type"):
            PromptEnhancer(fake_client()).improve("hello", "mind_map")

    def test_rejects_blank_prompt(self, fake_client):
        with pytest.raises(PromptValidationError):
            PromptEnhancer(fake_client()).improve("  ", "flowchart")

    def test_provider_failure_wrapped_with_cause(self, fake_client):
        """Should show the generic message but keep the provider error."""
        cause = UpstreamCallError("groq", TimeoutError("read timed out"))
        with pytest.raises(EnhancementError) as exc_info:
            PromptEnhancer(fake_client(cause)).improve("login flow", "flowchart")

        assert str(exc_info.value) == "Failed to improve prompt"
        assert exc_info.value.cause is cause
        assert exc_info.value.__cause__ is cause
        assert "read timed out" in exc_info.value.detail
        assert get_counter("enhancer.error") == 1

    def test_missing_credentials_wrapped(self, fake_client):
        with pytest.raises(EnhancementError) as exc_info:
            PromptEnhancer(fake_client(CredentialError("groq"))).improve("x", "flowchart")
        assert isinstance(exc_info.value.cause, CredentialError)

    def test_whitespace_result_is_empty_error(self, fake_client):
        with pytest.raises(EmptyResultError) as exc_info:
            PromptEnhancer(fake_client("   \n")).improve("login flow", "flowchart")
        assert exc_info.value.stage == "enhancer"

    def test_history_instruction_only_with_history(self, fake_client, make_message):
        client = fake_client("better", "better")
        enhancer = PromptEnhancer(client)
        enhancer.improve("login flow", "flowchart")
        enhancer.improve("add a logout step", "flowchart", [make_message("login flow")])

        assert "Consider the conversation history" not in client.prompts[0]
        assert "Consider the conversation history" in client.prompts[1]


class TestDiagramGenerator:
    """Tests for DiagramGenerator.generate."""

    def test_fenced_output_normalized(self, fake_client):
        client = fake_client("```mermaid\ngraph TD\nA-->B\n```")
        code = DiagramGenerator(client).generate("login flow", "flowchart")
        assert code == "graph TD\nA-->B"

    def test_missing_directive_added(self, fake_client):
        code = DiagramGenerator(fake_client("Alice->>Bob: hi")).generate(
            "greeting", "sequence_diagram"
        )
        assert code == "sequenceDiagram\nAlice->>Bob: hi"
        assert get_counter("generator.directive_added") == 1

    def test_unknown_type_uses_flowchart_directive(self, fake_client):
        code = DiagramGenerator(fake_client("A-->B")).generate("x", "mind_map")
        assert code == "graph TD\nA-->B"

    def test_prompt_names_directive(self, fake_client):
        client = fake_client("stateDiagram-v2\n[*] --> Open")
        DiagramGenerator(client).generate("order lifecycle", "state_diagram")
        assert "(stateDiagram-v2)" in client.prompts[0]
        assert 'Description: "order lifecycle"' in client.prompts[0]

    def test_provider_failure_wrapped_with_cause(self, fake_client):
        cause = UpstreamEmptyError("deepseek")
        with pytest.raises(GenerationError) as exc_info:
            DiagramGenerator(fake_client(cause)).generate("x", "flowchart")

        assert str(exc_info.value) == "Failed to generate diagram"
        assert exc_info.value.cause is cause
        assert exc_info.value.stage == "generator"

    def test_fences_only_is_empty_error(self, fake_client):
        with pytest.raises(EmptyResultError) as exc_info:
            DiagramGenerator(fake_client("```mermaid\n```")).generate("x", "flowchart")
        assert exc_info.value.stage == "generator"

    def test_blank_prompt_rejected(self, fake_client):
        client = fake_client()
        with pytest.raises(PromptValidationError):
            DiagramGenerator(client).generate("", "flowchart")
        assert client.call_count == 0
