"""Google Gemini provider (generativelanguage API)."""

from __future__ import annotations

from typing import Any, ClassVar

from gnomelama.core.llm.hosted import HostedProvider
from gnomelama.core.llm.model_filters import GEMINI_PREFIX, filter_gemini_models
from gnomelama.core.llm.provider import ConversationMessage, Role
from gnomelama.core.llm.stream import LineDecoder, SSEDecoder, gemini_candidate_text


def to_gemini_contents(
    message_text: str,
    history: list[ConversationMessage],
) -> list[dict[str, Any]]:
    """Gemini has only ``user`` and ``model`` roles; system turns are dropped."""
    contents = [
        {"role": "model" if m.role is Role.ASSISTANT else "user", "parts": [{"text": m.text}]}
        for m in history
        if m.role is not Role.SYSTEM
    ]
    contents.append({"role": "user", "parts": [{"text": message_text}]})
    return contents


class GeminiProvider(HostedProvider):
    """Streams from ``models/{model}:streamGenerateContent`` using SSE.

    Model names carry a ``gemini:`` prefix so they route here; the prefix
    is stripped before the request is made.
    """

    provider_name: ClassVar[str] = "gemini"

    @property
    def models_url(self) -> str:
        return f"{self.base_url}/models"

    def auth_headers(self, api_key: str) -> dict[str, str]:
        return {"x-goog-api-key": api_key}

    def parse_models(self, data: Any) -> list[str]:
        entries = data.get("models") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            return []
        names = [
            e["name"] if isinstance(e, dict) else e
            for e in entries
            if isinstance(e, str) or (isinstance(e, dict) and isinstance(e.get("name"), str))
        ]
        return filter_gemini_models(names)

    def build_request(
        self,
        message_text: str,
        model_name: str,
        history: list[ConversationMessage],
    ) -> tuple[str, dict[str, Any]]:
        model = model_name.removeprefix(GEMINI_PREFIX)
        payload = {
            "contents": to_gemini_contents(message_text, history),
            "generationConfig": {"temperature": self._temperature},
        }
        return f"{self.base_url}/models/{model}:streamGenerateContent?alt=sse", payload

    def decoder(self) -> LineDecoder:
        return SSEDecoder(gemini_candidate_text)
