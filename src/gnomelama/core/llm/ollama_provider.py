"""Local Ollama provider.

Talks to the Ollama HTTP API:
- ``POST /api/generate`` streams NDJSON with ``response`` text and a
  final ``context`` token that continues the conversation.
- ``GET /api/tags`` lists installed models.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from gnomelama.config.schema import DEFAULT_OLLAMA_HOST, StreamConfig
from gnomelama.core.llm.model_filters import remove_duplicate_models, sort_models
from gnomelama.core.llm.provider import DataCallback, ModelCatalog, ProviderKind
from gnomelama.core.llm.stream import NDJSONDecoder
from gnomelama.core.llm.transport import StreamHandle, open_stream
from gnomelama.logging import get_logger

if TYPE_CHECKING:
    from gnomelama.config.schema import Config

log = get_logger("ollama")

OLLAMA_FAILURE_MESSAGE = (
    "Error communicating with Ollama. Please check if Ollama is installed and running."
)


class OllamaProvider:
    """Stateful local provider; continuity comes from Ollama's context token.

    Usage:
        provider = OllamaProvider()
        handle = await provider.send_message("Hi", "llama3.2:1b", on_data=print)
        response = await handle.result
        # pass response.context to the next send_message call
    """

    def __init__(
        self,
        *,
        host: str = DEFAULT_OLLAMA_HOST,
        generate_url: str | None = None,
        tags_url: str | None = None,
        temperature: float = 0.7,
        num_ctx: int = 4096,
        stream: StreamConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._host = host.rstrip("/")
        self._generate_url = generate_url or f"{self._host}/api/generate"
        self._tags_url = tags_url or f"{self._host}/api/tags"
        self._temperature = temperature
        self._num_ctx = num_ctx
        self._stream = stream or StreamConfig()
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> OllamaProvider:
        return cls(
            host=config.ollama.host,
            generate_url=config.ollama.generate_url,
            tags_url=config.ollama.tags_url,
            temperature=config.llm.temperature,
            num_ctx=config.llm.num_ctx,
            stream=config.stream,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.LOCAL

    @property
    def host(self) -> str:
        return self._host

    def build_payload(self, message_text: str, model_name: str, context: Any = None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model_name,
            "prompt": message_text,
            "stream": True,
            "options": {"num_ctx": self._num_ctx, "temperature": self._temperature},
        }
        # Only a non-empty token continues a conversation
        if context:
            payload["context"] = context
        return payload

    async def send_message(
        self,
        message_text: str,
        model_name: str,
        context: Any = None,
        on_data: DataCallback | None = None,
    ) -> StreamHandle:
        payload = self.build_payload(message_text, model_name, context)
        log.debug("Ollama request: model=%s continued=%s", model_name, "context" in payload)

        return await open_stream(
            label="Ollama",
            url=self._generate_url,
            payload=payload,
            decoder=NDJSONDecoder(),
            failure_message=lambda _detail: OLLAMA_FAILURE_MESSAGE,
            on_data=on_data,
            word_buffering=self._stream.word_buffering,
            idle_timeout=self._stream.idle_timeout,
            connect_timeout=self._stream.connect_timeout,
            transport=self._transport,
        )

    async def fetch_model_names(self) -> ModelCatalog:
        """List installed models. Unreachable servers give an error, not an exception."""
        timeout = httpx.Timeout(self._stream.idle_timeout, connect=self._stream.connect_timeout)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.get(self._tags_url)
        except httpx.RequestError as e:
            log.warning("Could not reach Ollama at %s: %s", self._host, e)
            return ModelCatalog(error=f"Could not reach Ollama at {self._host}. Is it running?")

        if not response.is_success:
            log.warning("Ollama model list returned HTTP %d", response.status_code)
            return ModelCatalog(
                error=f"Ollama model list failed with HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError:
            log.warning("Ollama model list was not JSON")
            return ModelCatalog(error="Unexpected response from Ollama model list")

        entries = data.get("models") if isinstance(data, dict) else None
        names = [
            m["name"]
            for m in entries or []
            if isinstance(m, dict) and isinstance(m.get("name"), str)
        ]
        models = sort_models(remove_duplicate_models(names))
        log.debug("Ollama models: %s", models)
        if not models:
            return ModelCatalog(error="No Ollama models installed. Try 'ollama pull llama3.2:1b'.")
        return ModelCatalog(models=models)
