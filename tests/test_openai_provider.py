"""Tests for the OpenAI provider."""

from __future__ import annotations

import json

import httpx
import pytest

from gnomelama.config.schema import Config
from gnomelama.core.llm.errors import MissingAPIKeyError, ProviderConnectionError
from gnomelama.core.llm.hosted import HostedProvider, build_chat_messages, replayable_history
from gnomelama.core.llm.openai_provider import OpenAIProvider
from gnomelama.core.llm.provider import ConversationMessage, ProviderKind, Role
from tests.utils import RecordingTransport, failing_transport, openai_delta, sse, unbuffered

BASE_URL = "https://api.openai.com/v1"


def _provider(handler, api_key: str | None = "sk-test") -> tuple[OpenAIProvider, RecordingTransport]:
    transport = RecordingTransport(handler)
    provider = OpenAIProvider(base_url=BASE_URL, api_key=api_key, stream=unbuffered(), transport=transport)
    return provider, transport


class TestChatMessages:
    """Tests for building the role-tagged message list."""

    def test_system_prompt_first(self):
        messages = build_chat_messages("Hi", [], "Be brief.")
        assert messages == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hi"},
        ]

    def test_history_replayed_in_order(self):
        history = [
            ConversationMessage("one", Role.USER),
            ConversationMessage("uno", Role.ASSISTANT),
        ]
        messages = build_chat_messages("two", history, "sys")
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert [m["content"] for m in messages] == ["sys", "one", "uno", "two"]

    def test_existing_system_turn_not_duplicated(self):
        history = [ConversationMessage("custom", Role.SYSTEM)]
        messages = build_chat_messages("Hi", history, "default")
        assert [m["content"] for m in messages] == ["custom", "Hi"]

    def test_blank_turns_skipped(self):
        history = [
            ConversationMessage("", Role.ASSISTANT),
            ConversationMessage("   ", Role.USER),
            ConversationMessage("kept", Role.USER),
        ]
        assert [m.text for m in replayable_history(history)] == ["kept"]

    def test_non_list_context_ignored(self):
        assert replayable_history(None) == []
        assert replayable_history([1, 2, 3]) == []


class TestHostedBase:
    """Tests for the hosted provider base class."""

    def test_base_is_abstract(self):
        with pytest.raises(TypeError):
            HostedProvider(base_url=BASE_URL)

    def test_subclass_must_implement_hooks(self):
        class Incomplete(HostedProvider):
            provider_name = "openai"

            def auth_headers(self, api_key: str) -> dict[str, str]:
                return {}

        with pytest.raises(TypeError, match="build_request"):
            Incomplete(base_url=BASE_URL)


class TestOpenAISend:
    """Tests for streaming chat completions."""

    def test_kind(self):
        assert OpenAIProvider(base_url=BASE_URL).kind is ProviderKind.HOSTED

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_network(self):
        transport = failing_transport()
        provider = OpenAIProvider(base_url=BASE_URL, transport=transport)

        with pytest.raises(MissingAPIKeyError) as exc_info:
            await provider.send_message("Hi", "gpt-4o")

        assert exc_info.value.user_message == "OpenAI API key not configured. Please add it in settings."
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        provider, transport = _provider(lambda r: httpx.Response(200, content=sse(openai_delta("x"))), api_key=None)

        handle = await provider.send_message("Hi", "gpt-4o")
        await handle.result

        assert transport.requests[0].headers["Authorization"] == "Bearer sk-env"

    @pytest.mark.asyncio
    async def test_request_shape(self):
        provider, transport = _provider(lambda r: httpx.Response(200, content=sse(openai_delta("ok"))))
        history = [ConversationMessage("earlier", Role.USER), ConversationMessage("reply", Role.ASSISTANT)]

        handle = await provider.send_message("now", "gpt-4o", history)
        await handle.result

        request = transport.requests[0]
        assert str(request.url) == f"{BASE_URL}/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        assert payload["model"] == "gpt-4o"
        assert payload["stream"] is True
        assert payload["temperature"] == 0.7
        assert payload["messages"][0] == {"role": "system", "content": "You are a helpful assistant."}
        assert payload["messages"][1:] == [
            {"role": "user", "content": "earlier"},
            {"role": "assistant", "content": "reply"},
            {"role": "user", "content": "now"},
        ]

    @pytest.mark.asyncio
    async def test_streams_until_done(self):
        body = sse(openai_delta("Hello"), openai_delta(" world")) + b"data: " + json.dumps(openai_delta("!")).encode() + b"\n\n"
        provider, _ = _provider(lambda r: httpx.Response(200, content=body))
        received: list[str] = []

        handle = await provider.send_message("Hi", "gpt-4o", on_data=received.append)
        response = await handle.result

        assert received == ["Hello", " world"]
        assert response.text == "Hello world"
        assert response.context is None

    @pytest.mark.asyncio
    async def test_error_event(self):
        body = sse({"error": {"message": "Rate limit reached"}})
        provider, _ = _provider(lambda r: httpx.Response(200, content=body))
        received: list[str] = []

        handle = await provider.send_message("Hi", "gpt-4o", on_data=received.append)
        response = await handle.result

        assert received == ["Error: Rate limit reached"]
        assert response.errors == ["Error: Rate limit reached"]
        assert response.text == ""

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        error = {"error": {"message": "Incorrect API key provided"}}
        provider, _ = _provider(lambda r: httpx.Response(401, json=error))

        handle = await provider.send_message("Hi", "gpt-4o")
        with pytest.raises(ProviderConnectionError) as exc_info:
            await handle.result

        assert exc_info.value.status_code == 401
        assert "Incorrect API key provided" in exc_info.value.user_message
        assert "check your API key" in exc_info.value.user_message


class TestOpenAIModels:
    """Tests for the filtered model catalog."""

    @pytest.mark.asyncio
    async def test_filters_catalog(self):
        data = {
            "data": [
                {"id": "gpt-4"},
                {"id": "gpt-4-preview"},
                {"id": "gpt-4-preview-2024-01-25"},
                {"id": "gpt-4-instruct"},
                {"id": "dall-e-3"},
                {"id": "gpt-4o"},
            ]
        }
        provider, transport = _provider(lambda r: httpx.Response(200, json=data))

        catalog = await provider.fetch_model_names()

        assert catalog.models == ["gpt-4", "gpt-4o"]
        assert str(transport.requests[0].url) == f"{BASE_URL}/models"
        assert transport.requests[0].headers["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_no_key_reports_error_without_network(self):
        transport = failing_transport()
        provider = OpenAIProvider(base_url=BASE_URL, transport=transport)

        catalog = await provider.fetch_model_names()

        assert catalog.models == []
        assert catalog.error == "No OpenAI API key configured"
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Name or service not known", request=request)

        provider, _ = _provider(refuse)
        catalog = await provider.fetch_model_names()
        assert catalog.models == []
        assert "Could not reach OpenAI" in catalog.error

    def test_from_config(self):
        config = Config()
        config.openai.api_key = "sk-config"
        config.openai.base_url = "https://proxy.example/v1/"
        provider = OpenAIProvider.from_config(config)
        assert provider.api_key() == "sk-config"
        assert provider.models_url == "https://proxy.example/v1/models"
