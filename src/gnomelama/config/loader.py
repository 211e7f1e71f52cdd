"""Configuration file loading, caching, and persistence.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reload support
- Conversion from dict to typed Config dataclass
- Writing the selected model back to the user config file
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from gnomelama.config.merge import merge_configs
from gnomelama.config.paths import get_config_paths, get_user_config_path
from gnomelama.config.schema import (
    DEFAULT_GEMINI_BASE_URL,
    DEFAULT_OLLAMA_HOST,
    DEFAULT_OPENAI_BASE_URL,
    Config,
    HostedProviderConfig,
    LLMConfig,
    LoggingConfig,
    OllamaConfig,
    StreamConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("gnomelama.config")

_cached_config: Config | None = None

_reload_callbacks: list[Callable[[Config], None]] = []

_KNOWN_KEYS = {"llm", "ollama", "openai", "gemini", "stream", "logging"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    Note: API keys are NOT loaded here - use fetch_secret() for secrets.
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("GNOMELAMA_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    ollama_host = os.environ.get("OLLAMA_HOST")
    if ollama_host:
        if "://" not in ollama_host:
            ollama_host = f"http://{ollama_host}"
        overrides.setdefault("ollama", {})["host"] = ollama_host

    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def _hosted(data: dict[str, Any], default_base_url: str) -> HostedProviderConfig:
    return HostedProviderConfig(
        base_url=data.get("base_url") or default_base_url,
        api_key=data.get("api_key"),
    )


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass."""
    llm_data = _section(data, "llm")
    llm = LLMConfig(
        default_model=llm_data.get("default_model"),
        default_provider=llm_data.get("default_provider"),
        temperature=float(llm_data.get("temperature", 0.7)),
        num_ctx=int(llm_data.get("num_ctx", 4096)),
        system_prompt=llm_data.get("system_prompt"),
    )

    ollama_data = _section(data, "ollama")
    ollama = OllamaConfig(
        host=ollama_data.get("host") or DEFAULT_OLLAMA_HOST,
        api_endpoint=ollama_data.get("api_endpoint"),
        models_endpoint=ollama_data.get("models_endpoint"),
    )

    stream_data = _section(data, "stream")
    stream = StreamConfig(
        word_buffering=bool(stream_data.get("word_buffering", True)),
        idle_timeout=float(stream_data.get("idle_timeout", 60.0)),
        connect_timeout=float(stream_data.get("connect_timeout", 10.0)),
    )

    log_data = _section(data, "logging")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_KEYS}

    return Config(
        llm=llm,
        ollama=ollama,
        openai=_hosted(_section(data, "openai"), DEFAULT_OPENAI_BASE_URL),
        gemini=_hosted(_section(data, "gemini"), DEFAULT_GEMINI_BASE_URL),
        stream=stream,
        logging=logging_config,
        extra=extra,
    )


def load_config(reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. User config (~/.config/gnomelama/config.yaml or %APPDATA%)
    3. System config (/etc/gnomelama/ or %PROGRAMDATA%)

    Args:
        reload: Force reload even if cached.

    Returns:
        Merged Config object.
    """
    global _cached_config

    if _cached_config is not None and not reload:
        return _cached_config

    configs: list[dict[str, Any]] = []

    for path in get_config_paths():
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    _cached_config = dict_to_config(merge_configs(*configs))
    return _cached_config


def get_config() -> Config:
    """Get the cached global config, loading it if needed."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config. Useful for testing or forcing a reload."""
    global _cached_config
    _cached_config = None


def reload_config() -> Config:
    """Reload config from files and notify callbacks."""
    config = load_config(reload=True)

    for callback in _reload_callbacks:
        try:
            callback(config)
        except Exception as e:
            _log.warning("Config reload callback error: %s", e)

    return config


def on_config_reload(callback: Callable[[Config], None]) -> Callable[[], None]:
    """Register a callback to be called when config is reloaded.

    Returns:
        A function to unregister the callback.
    """
    _reload_callbacks.append(callback)

    def unregister() -> None:
        if callback in _reload_callbacks:
            _reload_callbacks.remove(callback)

    return unregister


def persist_model_choice(model: str, provider: str, path: Path | None = None) -> Path:
    """Save the selected model as the default in the user config file.

    Other keys in the file are preserved. The cached config, if loaded,
    is updated in place so later get_config() calls see the choice.

    Args:
        model: Model name (e.g., "llama3.2:1b", "gpt-4o").
        provider: Provider key for the model (e.g., "ollama").
        path: Config file to write. Defaults to the user config path.

    Returns:
        The path that was written.

    Raises:
        OSError: If the file cannot be written.
    """
    config_path = path or get_user_config_path()
    if config_path is None:
        raise OSError("No user config location available")

    data = load_yaml_file(config_path)
    llm_section = data.setdefault("llm", {})
    if not isinstance(llm_section, dict):
        llm_section = data["llm"] = {}
    llm_section["default_model"] = model
    llm_section["default_provider"] = provider

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    if _cached_config is not None:
        _cached_config.llm.default_model = model
        _cached_config.llm.default_provider = provider

    _log.debug("Model choice written to %s: %s (%s)", config_path, model, provider)
    return config_path
