"""OpenAI chat completions provider."""

from __future__ import annotations

from typing import Any, ClassVar

from gnomelama.core.llm.hosted import HostedProvider, build_chat_messages
from gnomelama.core.llm.model_filters import filter_openai_models
from gnomelama.core.llm.provider import ConversationMessage
from gnomelama.core.llm.stream import LineDecoder, SSEDecoder, openai_delta_text


class OpenAIProvider(HostedProvider):
    """Streams from ``{base_url}/chat/completions`` using SSE.

    Usage:
        provider = OpenAIProvider(base_url="https://api.openai.com/v1")
        handle = await provider.send_message("Hi", "gpt-4o", history, on_data=print)
        response = await handle.result
    """

    provider_name: ClassVar[str] = "openai"

    @property
    def models_url(self) -> str:
        return f"{self.base_url}/models"

    def auth_headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    def parse_models(self, data: Any) -> list[str]:
        entries = data.get("data") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            return []
        ids = [e["id"] for e in entries if isinstance(e, dict) and isinstance(e.get("id"), str)]
        return filter_openai_models(ids)

    def build_request(
        self,
        message_text: str,
        model_name: str,
        history: list[ConversationMessage],
    ) -> tuple[str, dict[str, Any]]:
        payload = {
            "model": model_name,
            "messages": build_chat_messages(message_text, history, self._system_prompt),
            "stream": True,
            "temperature": self._temperature,
        }
        return f"{self.base_url}/chat/completions", payload

    def decoder(self) -> LineDecoder:
        return SSEDecoder(openai_delta_text)
