"""Shared behavior for hosted (API key) providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from gnomelama.config.schema import DEFAULT_SYSTEM_PROMPT, HostedProviderConfig, StreamConfig
from gnomelama.config.secrets import fetch_secret
from gnomelama.core.llm.errors import MissingAPIKeyError
from gnomelama.core.llm.provider import (
    ConversationMessage,
    DataCallback,
    ModelCatalog,
    ProviderKind,
    Role,
)
from gnomelama.core.llm.providers import get_provider_config
from gnomelama.core.llm.stream import LineDecoder
from gnomelama.core.llm.transport import StreamHandle, open_stream
from gnomelama.logging import get_logger

if TYPE_CHECKING:
    from gnomelama.config.schema import Config

log = get_logger("hosted")


def replayable_history(context: Any) -> list[ConversationMessage]:
    """History turns worth replaying: non-blank text only."""
    if not isinstance(context, list):
        return []
    return [
        m
        for m in context
        if isinstance(m, ConversationMessage) and isinstance(m.text, str) and m.text.strip()
    ]


def build_chat_messages(
    message_text: str,
    history: list[ConversationMessage],
    system_prompt: str,
) -> list[dict[str, str]]:
    """Role-tagged message list for chat-completion style APIs.

    The system prompt leads unless the history already carries one.
    """
    messages: list[dict[str, str]] = []
    if not any(m.role is Role.SYSTEM for m in history):
        messages.append({"role": Role.SYSTEM.value, "content": system_prompt})
    messages.extend({"role": m.role.value, "content": m.text} for m in history)
    messages.append({"role": Role.USER.value, "content": message_text})
    return messages


class HostedProvider(ABC):
    """Base class for providers reached over the internet with an API key.

    Subclasses set ``provider_name`` and implement ``models_url``,
    ``auth_headers``, ``parse_models``, ``build_request`` and ``decoder``.
    """

    provider_name: ClassVar[str]

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None = None,
        temperature: float = 0.7,
        system_prompt: str | None = None,
        stream: StreamConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        meta = get_provider_config(self.provider_name)
        self._label = meta.label
        self._env_var = meta.env_var or f"{self.provider_name.upper()}_API_KEY"
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._temperature = temperature
        self._system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
        self._stream = stream or StreamConfig()
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> HostedProvider:
        section: HostedProviderConfig = getattr(config, cls.provider_name)
        return cls(
            base_url=section.base_url,
            api_key=section.api_key,
            temperature=config.llm.temperature,
            system_prompt=config.llm.system_prompt,
            stream=config.stream,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return self.provider_name

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.HOSTED

    @property
    def label(self) -> str:
        return self._label

    @property
    def base_url(self) -> str:
        return self._base_url

    def api_key(self) -> str | None:
        """Configured key, else the provider's secret."""
        return self._api_key or fetch_secret(self._env_var)

    def require_api_key(self) -> str:
        key = self.api_key()
        if not key:
            log.error("%s API key missing (%s)", self._label, self._env_var)
            raise MissingAPIKeyError(self._label, self._env_var)
        return key

    def failure_message(self, detail: str) -> str:
        return (
            f"Error communicating with {self._label}: {detail}. "
            "Please check your API key and network connection."
        )

    # Subclass hooks

    @property
    @abstractmethod
    def models_url(self) -> str:
        """Endpoint listing the models this key can use."""

    @abstractmethod
    def auth_headers(self, api_key: str) -> dict[str, str]:
        """Request headers carrying the API key."""

    @abstractmethod
    def parse_models(self, data: Any) -> list[str]:
        """Filtered chat model names from the model list response."""

    @abstractmethod
    def build_request(
        self,
        message_text: str,
        model_name: str,
        history: list[ConversationMessage],
    ) -> tuple[str, dict[str, Any]]:
        """Streaming URL and JSON body for one turn."""

    @abstractmethod
    def decoder(self) -> LineDecoder:
        """Fresh line decoder for one response."""

    # ProviderAdapter

    async def send_message(
        self,
        message_text: str,
        model_name: str,
        context: Any = None,
        on_data: DataCallback | None = None,
    ) -> StreamHandle:
        """Stream a reply. ``context`` is the conversation so far.

        Raises:
            MissingAPIKeyError: No key is configured. No request is made.
        """
        api_key = self.require_api_key()
        history = replayable_history(context)
        url, payload = self.build_request(message_text, model_name, history)
        log.debug("%s request: model=%s history=%d", self._label, model_name, len(history))

        return await open_stream(
            label=self._label,
            url=url,
            payload=payload,
            headers=self.auth_headers(api_key),
            decoder=self.decoder(),
            failure_message=self.failure_message,
            on_data=on_data,
            word_buffering=self._stream.word_buffering,
            idle_timeout=self._stream.idle_timeout,
            connect_timeout=self._stream.connect_timeout,
            transport=self._transport,
        )

    async def fetch_model_names(self) -> ModelCatalog:
        api_key = self.api_key()
        if not api_key:
            return ModelCatalog(error=f"No {self._label} API key configured")

        timeout = httpx.Timeout(self._stream.idle_timeout, connect=self._stream.connect_timeout)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.get(self.models_url, headers=self.auth_headers(api_key))
        except httpx.RequestError as e:
            log.warning("Could not fetch %s models: %s", self._label, e)
            return ModelCatalog(error=f"Could not reach {self._label}: {e}")

        if not response.is_success:
            log.warning("%s model list returned HTTP %d", self._label, response.status_code)
            return ModelCatalog(
                error=f"{self._label} model list failed with HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError:
            log.warning("%s model list was not JSON", self._label)
            return ModelCatalog(error=f"Unexpected response from {self._label} model list")

        models = self.parse_models(data)
        log.debug("%s models: %s", self._label, models)
        if not models:
            return ModelCatalog(error=f"No {self._label} chat models available")
        return ModelCatalog(models=models)
