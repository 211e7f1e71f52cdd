"""Configuration management for gnomelama.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/gnomelama/ or %PROGRAMDATA%)
- User-level config (~/.config/gnomelama/ or %APPDATA%)
- Environment variable overrides (highest priority)

Example usage:
    from gnomelama.config import load_config, get_config

    config = load_config()
    print(config.llm.temperature)
    print(config.ollama.generate_url)
"""

from gnomelama.config.loader import (
    get_config,
    load_config,
    on_config_reload,
    persist_model_choice,
    reload_config,
    reset_config,
)
from gnomelama.config.paths import (
    get_config_paths,
    get_system_config_path,
    get_user_config_path,
)
from gnomelama.config.schema import (
    Config,
    HostedProviderConfig,
    LLMConfig,
    LoggingConfig,
    OllamaConfig,
    StreamConfig,
)
from gnomelama.config.secrets import (
    clear_secret_cache,
    fetch_secret,
)

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    "on_config_reload",
    "persist_model_choice",
    # Schema types
    "LLMConfig",
    "OllamaConfig",
    "HostedProviderConfig",
    "StreamConfig",
    "LoggingConfig",
    # Secret management
    "fetch_secret",
    "clear_secret_cache",
    # Path utilities
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
]
