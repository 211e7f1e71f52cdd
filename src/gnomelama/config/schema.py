"""Configuration schema dataclasses for gnomelama.

Defines the structure of configuration at all levels (system, user).
All fields are optional to support partial configs that merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_OLLAMA_HOST = "http://localhost:11434"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


@dataclass
class LLMConfig:
    """Model selection and generation options."""

    default_model: str | None = None  # Last selected model (e.g., "llama3.2:1b")
    default_provider: str | None = None  # Provider of default_model (e.g., "ollama")
    temperature: float = 0.7
    num_ctx: int = 4096  # Context window for the local provider
    system_prompt: str | None = None  # Prepended for hosted providers


@dataclass
class OllamaConfig:
    """Local Ollama server endpoints.

    ``api_endpoint`` and ``models_endpoint`` override the URLs derived
    from ``host`` when set.
    """

    host: str = DEFAULT_OLLAMA_HOST
    api_endpoint: str | None = None
    models_endpoint: str | None = None

    @property
    def generate_url(self) -> str:
        return self.api_endpoint or f"{self.host.rstrip('/')}/api/generate"

    @property
    def tags_url(self) -> str:
        return self.models_endpoint or f"{self.host.rstrip('/')}/api/tags"


@dataclass
class HostedProviderConfig:
    """Hosted API settings. ``api_key`` falls back to the provider's secret."""

    base_url: str
    api_key: str | None = None


@dataclass
class StreamConfig:
    """Streaming behavior shared by all providers."""

    word_buffering: bool = True  # Only emit complete words until the stream ends
    idle_timeout: float = 60.0  # Seconds without data before giving up on a stream
    connect_timeout: float = 10.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object.

    Aggregates all configuration sections. All fields use default factories
    to ensure partial configs work correctly with deep merging.
    """

    llm: LLMConfig = field(default_factory=LLMConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    openai: HostedProviderConfig = field(
        default_factory=lambda: HostedProviderConfig(base_url=DEFAULT_OPENAI_BASE_URL)
    )
    gemini: HostedProviderConfig = field(
        default_factory=lambda: HostedProviderConfig(base_url=DEFAULT_GEMINI_BASE_URL)
    )
    stream: StreamConfig = field(default_factory=StreamConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Extension point for future config sections
    extra: dict[str, Any] = field(default_factory=dict)
