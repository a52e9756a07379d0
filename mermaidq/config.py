"""Centralized configuration for the mermaidq backend.

Typed constants for the chat tracker, storage keys and API, plus the two
completion-provider parameter sets. Environment variable overrides use safe
defaults so the app starts without extra env configuration; missing provider
credentials only fail when that provider is first called.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from mermaidq.infrastructure.env import ensure_env_loaded, get_optional_env

ensure_env_loaded()

# --- App ---
APP_VERSION: str = "1.0.0"
ENV: str = os.getenv("MERMAIDQ_ENV", "development")

# --- Chat / conversation tracking ---
MAX_HISTORY_MESSAGES: int = 20
SESSION_TIMEOUT_SECONDS: float = 30 * 60
TOPIC_SWITCH_WINDOW: int = 3
MAX_TRACKED_TOPICS: int = 5
DIAGRAM_CODE_PREVIEW_CHARS: int = 100

# --- Storage ---
STORAGE_KEY_CHAT_HISTORY: str = "mermaid-chat-history"
STORAGE_KEY_CONVERSATION_METADATA: str = "mermaid-conversation-metadata"
STORAGE_PATH: str = os.getenv("MERMAIDQ_STORAGE_PATH", "mermaidq_chat.json")

# --- API ---
API_MAX_PROMPT_CHARS: int = 4000
API_MAX_HISTORY_ITEMS: int = 100
API_HOST: str = os.getenv("MERMAIDQ_API_HOST", "127.0.0.1")
API_PORT: int = int(os.getenv("MERMAIDQ_API_PORT", "8000"))
# Comma-separated extra CORS origins (the web editor in production)
ALLOWED_ORIGINS_ENV: str = os.getenv("MERMAIDQ_ALLOWED_ORIGINS", "")

# --- Completion providers ---
CLASSIFIER_PROVIDER: str = "groq"
GENERATOR_PROVIDER: str = "deepseek"


@dataclass(frozen=True)
class ProviderConfig:
    """One completion provider's parameter set.

    Provider identity is configuration only; every provider goes through the
    same client contract.
    """

    name: str
    model: str
    temperature: float
    max_tokens: int
    base_url: str
    api_key: str | None = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)


def classifier_provider_config() -> ProviderConfig:
    """Fast classification / rewrite provider (Groq, OpenAI-compatible endpoint)."""
    return ProviderConfig(
        name=CLASSIFIER_PROVIDER,
        model=get_optional_env("MERMAIDQ_CLASSIFIER_MODEL", "llama-3.1-8b-instant"),
        temperature=float(get_optional_env("MERMAIDQ_CLASSIFIER_TEMPERATURE", "0.3")),
        max_tokens=int(get_optional_env("MERMAIDQ_CLASSIFIER_MAX_TOKENS", "2000")),
        base_url=get_optional_env(
            "MERMAIDQ_CLASSIFIER_BASE_URL", "https://api.groq.com/openai/v1"
        ),
        api_key=get_optional_env("GROQ_API_KEY") or None,
    )


def generator_provider_config() -> ProviderConfig:
    """Diagram generation provider (DeepSeek, OpenAI-compatible endpoint)."""
    return ProviderConfig(
        name=GENERATOR_PROVIDER,
        model=get_optional_env("MERMAIDQ_GENERATOR_MODEL", "deepseek-chat"),
        temperature=float(get_optional_env("MERMAIDQ_GENERATOR_TEMPERATURE", "0.3")),
        max_tokens=int(get_optional_env("MERMAIDQ_GENERATOR_MAX_TOKENS", "2000")),
        base_url=get_optional_env("MERMAIDQ_GENERATOR_BASE_URL", "https://api.deepseek.com"),
        api_key=get_optional_env("DEEPSEEK_API_KEY") or None,
    )


def is_production() -> bool:
    """Check if running in production"""
    return ENV == "production"
