"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from gnomelama.config import clear_secret_cache, reset_config

# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)

_ENV_VARS = (
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "OLLAMA_HOST",
    "GNOMELAMA_LOG",
)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from real config files, secrets and API keys."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    reset_config()
    clear_secret_cache()
    yield
    reset_config()
    clear_secret_cache()
