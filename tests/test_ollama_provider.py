"""Tests for the local Ollama provider and the streaming transport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from gnomelama.config.schema import Config, StreamConfig
from gnomelama.core.llm.errors import PARSE_ERROR_MESSAGE, ProviderConnectionError, StreamDecodeError
from gnomelama.core.llm.ollama_provider import OLLAMA_FAILURE_MESSAGE, OllamaProvider
from gnomelama.core.llm.provider import ProviderAdapter, ProviderKind
from tests.utils import RecordingTransport, ndjson, stalled_stream, timing_out_stream, unbuffered


def _provider(handler, stream: StreamConfig | None = None) -> tuple[OllamaProvider, RecordingTransport]:
    transport = RecordingTransport(handler)
    return OllamaProvider(stream=stream or unbuffered(), transport=transport), transport


class TestOllamaRequest:
    """Tests for the generate request payload."""

    def test_is_provider_adapter(self):
        provider = OllamaProvider()
        assert isinstance(provider, ProviderAdapter)
        assert provider.name == "ollama"
        assert provider.kind is ProviderKind.LOCAL

    def test_payload_without_context(self):
        payload = OllamaProvider(temperature=0.3, num_ctx=2048).build_payload("Hi", "llama3.2:1b")
        assert payload == {
            "model": "llama3.2:1b",
            "prompt": "Hi",
            "stream": True,
            "options": {"num_ctx": 2048, "temperature": 0.3},
        }

    def test_payload_with_context(self):
        payload = OllamaProvider().build_payload("Hi", "llama3.2:1b", [1, 2, 3])
        assert payload["context"] == [1, 2, 3]

    def test_empty_context_not_sent(self):
        assert "context" not in OllamaProvider().build_payload("Hi", "m", [])
        assert "context" not in OllamaProvider().build_payload("Hi", "m", None)

    def test_from_config(self):
        config = Config()
        config.ollama.host = "http://gpu-box:11434"
        config.llm.temperature = 0.2
        provider = OllamaProvider.from_config(config)
        assert provider.host == "http://gpu-box:11434"
        assert provider.build_payload("x", "m")["options"]["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_posts_to_generate_endpoint(self):
        provider, transport = _provider(lambda r: httpx.Response(200, content=ndjson({"response": "ok"})))
        handle = await provider.send_message("Hi", "llama3.2:1b", context=[7])
        await handle.result

        request = transport.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "http://localhost:11434/api/generate"
        assert json.loads(request.content)["context"] == [7]


class TestOllamaStreaming:
    """Tests for streaming replies."""

    @pytest.mark.asyncio
    async def test_chunks_in_order_and_context_returned(self):
        body = ndjson(
            {"response": "Hello", "done": False},
            {"response": " there", "done": False},
            {"response": "", "done": True, "context": [4, 5, 6]},
        )
        provider, _ = _provider(lambda r: httpx.Response(200, content=body))
        received: list[str] = []

        handle = await provider.send_message("Hi", "m", on_data=received.append)
        response = await handle.result

        assert received == ["Hello", " there"]
        assert response.text == "Hello there"
        assert response.context == [4, 5, 6]
        assert not response.cancelled

    @pytest.mark.asyncio
    async def test_async_callback(self):
        provider, _ = _provider(lambda r: httpx.Response(200, content=ndjson({"response": "a"}, {"response": "b"})))
        received: list[str] = []

        async def on_data(text: str) -> None:
            await asyncio.sleep(0)
            received.append(text)

        handle = await provider.send_message("Hi", "m", on_data=on_data)
        await handle.result
        assert received == ["a", "b"]

    @pytest.mark.asyncio
    async def test_word_buffering_delivers_whole_words(self):
        body = ndjson({"response": "Hel"}, {"response": "lo wor"}, {"response": "ld"})
        provider, _ = _provider(lambda r: httpx.Response(200, content=body), StreamConfig())
        received: list[str] = []

        handle = await provider.send_message("Hi", "m", on_data=received.append)
        response = await handle.result

        assert received == ["Hello ", "world"]
        assert response.text == "Hello world"

    @pytest.mark.asyncio
    async def test_malformed_line_is_fatal(self):
        body = b'{"response": "Hi"}\nnot json at all\n{"response": " ignored"}\n'
        provider, _ = _provider(lambda r: httpx.Response(200, content=body))
        received: list[str] = []

        handle = await provider.send_message("Hi", "m", on_data=received.append)
        with pytest.raises(StreamDecodeError) as exc_info:
            await handle.result

        assert received == ["Hi", PARSE_ERROR_MESSAGE]
        assert exc_info.value.reported is True

    @pytest.mark.asyncio
    async def test_malformed_line_flushes_held_word_first(self):
        body = b'{"response": "Hello wor"}\n{broken\n'
        provider, _ = _provider(lambda r: httpx.Response(200, content=body), StreamConfig())
        received: list[str] = []

        handle = await provider.send_message("Hi", "m", on_data=received.append)
        with pytest.raises(StreamDecodeError):
            await handle.result

        assert received == ["Hello ", "wor", PARSE_ERROR_MESSAGE]

    @pytest.mark.asyncio
    async def test_dropped_connection_flushes_held_word(self):
        async def body():
            yield ndjson({"response": "Hello wor"})
            raise httpx.ReadError("connection reset")

        provider, _ = _provider(lambda r: httpx.Response(200, content=body()), StreamConfig())
        received: list[str] = []

        handle = await provider.send_message("Hi", "m", on_data=received.append)
        with pytest.raises(ProviderConnectionError):
            await handle.result

        assert received == ["Hello ", "wor"]

    @pytest.mark.asyncio
    async def test_cancel_resolves_with_partial_text(self):
        gate = asyncio.Event()
        first_chunk = asyncio.Event()
        body = stalled_stream([ndjson({"response": "Partial"})], gate, [ndjson({"response": " more"})])
        provider, _ = _provider(lambda r: httpx.Response(200, content=body))

        def on_data(text: str) -> None:
            first_chunk.set()

        handle = await provider.send_message("Hi", "m", on_data=on_data)
        await asyncio.wait_for(first_chunk.wait(), timeout=2)

        assert handle.cancel() == "Partial"
        response = await asyncio.wait_for(handle.result, timeout=2)

        assert response.cancelled is True
        assert response.text == "Partial"

    @pytest.mark.asyncio
    async def test_cancel_after_completion_is_noop(self):
        provider, _ = _provider(lambda r: httpx.Response(200, content=ndjson({"response": "done"})))
        handle = await provider.send_message("Hi", "m")
        response = await handle.result

        assert handle.cancel() == "done"
        assert response.cancelled is False

    @pytest.mark.asyncio
    async def test_idle_timeout_keeps_partial(self):
        body = timing_out_stream([ndjson({"response": "slow"})])
        provider, _ = _provider(lambda r: httpx.Response(200, content=body))

        handle = await provider.send_message("Hi", "m")
        response = await handle.result

        assert response.timed_out is True
        assert response.text == "slow"


class TestOllamaFailures:
    """Tests for transport failures."""

    @pytest.mark.asyncio
    async def test_connection_refused_rejects_result(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        provider, _ = _provider(refuse)
        handle = await provider.send_message("Hi", "m")

        with pytest.raises(ProviderConnectionError) as exc_info:
            await handle.result
        assert exc_info.value.user_message == OLLAMA_FAILURE_MESSAGE

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        provider, _ = _provider(lambda r: httpx.Response(404, json={"error": "model 'x' not found"}))
        handle = await provider.send_message("Hi", "x")

        with pytest.raises(ProviderConnectionError) as exc_info:
            await handle.result
        assert exc_info.value.status_code == 404
        assert "model 'x' not found" in str(exc_info.value)


class TestOllamaModels:
    """Tests for listing installed models."""

    @pytest.mark.asyncio
    async def test_names_sorted_and_deduplicated(self):
        data = {"models": [{"name": "mistral:7b"}, {"name": "llama3.2:1b"}, {"name": "mistral:7b"}]}
        provider, transport = _provider(lambda r: httpx.Response(200, json=data))

        catalog = await provider.fetch_model_names()

        assert catalog.models == ["llama3.2:1b", "mistral:7b"]
        assert catalog.error is None
        assert str(transport.requests[0].url) == "http://localhost:11434/api/tags"

    @pytest.mark.asyncio
    async def test_unreachable_gives_error_not_exception(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        provider, _ = _provider(refuse)
        catalog = await provider.fetch_model_names()

        assert catalog.models == []
        assert "Could not reach Ollama" in catalog.error

    @pytest.mark.asyncio
    async def test_http_error(self):
        provider, _ = _provider(lambda r: httpx.Response(500, text="boom"))
        catalog = await provider.fetch_model_names()
        assert catalog.models == []
        assert "500" in catalog.error

    @pytest.mark.asyncio
    async def test_no_models_installed(self):
        provider, _ = _provider(lambda r: httpx.Response(200, json={"models": []}))
        catalog = await provider.fetch_model_names()
        assert catalog.models == []
        assert catalog.error is not None
