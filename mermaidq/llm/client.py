"""
Completion client for OpenAI-compatible chat endpoints.

Both providers (the fast classifier on Groq and the generator on DeepSeek)
speak the OpenAI chat-completions protocol, so one client class covers them;
the provider is just a ProviderConfig.

Contract:
- complete(prompt) -> raw text
- CredentialError when the provider key is unset (raised on first use)
- UpstreamEmptyError when the call succeeds but carries no text
- UpstreamCallError when the call itself raises
- no retries: one failed call is one failed pipeline stage
"""

from __future__ import annotations

import hashlib
from typing import Any, Protocol, runtime_checkable

from openai import OpenAI

from mermaidq.config import ProviderConfig
from mermaidq.observability.logging import get_logger
from mermaidq.observability.telemetry import counter, log_event

logger = get_logger(__name__)

_DISPLAY_NAMES = {
    "groq": "Groq",
    "deepseek": "DeepSeek",
}

_CREDENTIAL_ENV = {
    "groq": "GROQ_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
}


def provider_display_name(provider: str) -> str:
    return _DISPLAY_NAMES.get(provider, provider.title())


class CompletionError(RuntimeError):
    """Base class for provider failures. `kind` is the tag callers switch on."""

    kind = "upstream_error"

    def __init__(self, message: str, provider: str) -> None:
        super().__init__(message)
        self.provider = provider


class CredentialError(CompletionError):
    """Raised when a provider's credential is not configured."""

    kind = "missing_credentials"

    def __init__(self, provider: str) -> None:
        env_name = _CREDENTIAL_ENV.get(provider, f"{provider.upper()}_API_KEY")
        super().__init__(
            f"{provider_display_name(provider)} API key is not configured. "
            f"Please set {env_name} in your environment variables.",
            provider,
        )


class UpstreamEmptyError(CompletionError):
    """Raised when the provider answered but returned no usable text."""

    kind = "empty_response"

    def __init__(self, provider: str) -> None:
        super().__init__(
            f"No response received from {provider_display_name(provider)} API", provider
        )


class UpstreamCallError(CompletionError):
    """Raised when the provider call raised. The original exception is kept on `cause`."""

    kind = "upstream_error"

    def __init__(self, provider: str, cause: BaseException) -> None:
        detail = str(cause) or type(cause).__name__
        super().__init__(f"{provider_display_name(provider)} API error: {detail}", provider)
        self.cause = cause


@runtime_checkable
class CompletionClient(Protocol):
    """Anything that turns one prompt into one completion."""

    provider: str

    def complete(self, prompt: str) -> str: ...


def _redact_prompt(prompt: str) -> str:
    """Redact prompt text for safe logging."""
    preview = prompt[:50] if len(prompt) > 50 else prompt
    full_hash = hashlib.sha256(prompt.encode()).hexdigest()[:12]
    return f"{preview}... (hash:{full_hash})"


class OpenAICompatibleClient:
    """Single-shot chat completion against an OpenAI-compatible endpoint."""

    def __init__(self, config: ProviderConfig, client: Any | None = None) -> None:
        """
        Args:
            config: Provider parameter set (model, temperature, limits, endpoint, key)
            client: Optional pre-built SDK client (tests); built lazily otherwise
        """
        self.config = config
        self.provider = config.name
        self._client = client

    def _get_client(self) -> Any:
        """Lazy-build the SDK client; the credential is checked here, not at startup."""
        if self._client is None:
            if not self.config.has_credentials:
                counter("llm.missing_credentials")
                raise CredentialError(self.provider)
            self._client = OpenAI(api_key=self.config.api_key, base_url=self.config.base_url)
            logger.info(
                "Initialized %s client: model=%s, base_url=%s",
                provider_display_name(self.provider),
                self.config.model,
                self.config.base_url,
            )
        return self._client

    def complete(self, prompt: str) -> str:
        """
        Send one user prompt and return the raw completion text.

        Raises:
            CredentialError: provider key unset
            UpstreamCallError: the SDK call raised
            UpstreamEmptyError: the call returned no text

        Side Effects:
            - One outbound HTTP call to the provider
            - Increments llm.* telemetry counters
        """
        client = self._get_client()

        log_event(
            "llm.call_start",
            provider=self.provider,
            model=self.config.model,
            prompt_preview=_redact_prompt(prompt),
        )

        try:
            completion = client.chat.completions.create(
                messages=[{"role": "user", "content": prompt}],
                model=self.config.model,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except Exception as exc:
            counter("llm.call_error")
            logger.error("%s API error: %s", provider_display_name(self.provider), exc)
            log_event("llm.call_error", provider=self.provider, error=str(exc))
            raise UpstreamCallError(self.provider, exc) from exc

        choices = getattr(completion, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            counter("llm.empty_response")
            logger.warning("%s returned empty content", provider_display_name(self.provider))
            raise UpstreamEmptyError(self.provider)

        counter("llm.call_success")
        logger.debug(
            "%s response length: %d characters", provider_display_name(self.provider), len(content)
        )
        return content
