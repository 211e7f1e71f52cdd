"""LLM provider definitions and adapter construction.

Loads static provider metadata from providers.yaml and builds the
configured adapters.
"""

from __future__ import annotations

import importlib.resources
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import yaml

from gnomelama.core.llm.provider import ProviderKind

if TYPE_CHECKING:
    import httpx

    from gnomelama.config.schema import Config
    from gnomelama.core.llm.provider import ProviderAdapter


@dataclass
class ProviderConfig:
    """Static metadata for a provider."""

    name: str
    label: str
    kind: ProviderKind
    order: int
    env_var: str | None = None
    model_prefix: str = ""
    default_model: str | None = None


@lru_cache(maxsize=1)
def _load_providers_yaml() -> dict[str, Any]:
    """Load providers.yaml from package resources."""
    files = importlib.resources.files("gnomelama.core.llm")
    yaml_path = files.joinpath("providers.yaml")
    with importlib.resources.as_file(yaml_path) as path:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)


def _build_provider_configs() -> dict[str, ProviderConfig]:
    """Build ProviderConfig objects from YAML data, in listing order."""
    data = _load_providers_yaml()
    configs = [
        ProviderConfig(
            name=name,
            label=entry.get("label", name),
            kind=ProviderKind(entry.get("kind", "hosted")),
            order=int(entry.get("order", 99)),
            env_var=entry.get("env_var"),
            model_prefix=entry.get("model_prefix", ""),
            default_model=entry.get("default_model"),
        )
        for name, entry in data.get("providers", {}).items()
    ]
    configs.sort(key=lambda c: c.order)
    return {c.name: c for c in configs}


PROVIDER_CONFIGS: dict[str, ProviderConfig] = _build_provider_configs()
PROVIDER_ORDER: list[str] = list(PROVIDER_CONFIGS)
DEFAULT_MODEL: str = PROVIDER_CONFIGS["ollama"].default_model or "llama3.2:1b"


def get_provider_config(name: str) -> ProviderConfig:
    """Look up a provider by key. Raises KeyError if unknown."""
    return PROVIDER_CONFIGS[name]


def create_providers(
    config: Config,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[ProviderAdapter]:
    """Build one adapter per known provider, in listing order.

    Args:
        config: Loaded configuration
        transport: Optional httpx transport shared by all adapters (tests)
    """
    from gnomelama.core.llm.gemini_provider import GeminiProvider
    from gnomelama.core.llm.ollama_provider import OllamaProvider
    from gnomelama.core.llm.openai_provider import OpenAIProvider

    factories = {
        "ollama": OllamaProvider,
        "openai": OpenAIProvider,
        "gemini": GeminiProvider,
    }
    return [
        factories[name].from_config(config, transport=transport)
        for name in PROVIDER_ORDER
        if name in factories
    ]
