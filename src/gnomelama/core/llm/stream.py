"""Line decoders for streamed chat responses.

Two wire formats are understood:

- NDJSON (Ollama): every non-blank line is a complete JSON object carrying
  ``response`` text and, usually on the last line, a ``context`` token.
  There is no terminator; the stream ends when the transport runs dry.
- SSE (OpenAI, Gemini): only ``data:`` lines matter. ``data: [DONE]`` ends
  the stream and is never parsed. ``{"error": {"message": ...}}`` payloads
  become error chunks.

A line that is not valid JSON raises StreamDecodeError, which ends the
request with PARSE_ERROR_MESSAGE.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from typing import Any, Protocol

from gnomelama.core.llm.errors import PARSE_ERROR_MESSAGE, StreamDecodeError
from gnomelama.core.llm.provider import StreamChunk
from gnomelama.logging import get_logger

log = get_logger("stream")

__all__ = [
    "PARSE_ERROR_MESSAGE",
    "LineDecoder",
    "NDJSONDecoder",
    "SSEDecoder",
    "WordBuffer",
    "gemini_candidate_text",
    "openai_delta_text",
]

SSE_DATA_PREFIX = "data:"
SSE_DONE_MARKER = "[DONE]"

_WHITESPACE_SPLIT = re.compile(r"(\s+)")

# Pulls incremental text out of one parsed SSE payload
TextExtractor = Callable[[dict[str, Any]], str]


class LineDecoder(Protocol):
    """Turns one transport line into at most one chunk."""

    @property
    def done(self) -> bool:
        """True once the decoder has seen an end-of-stream marker."""
        ...

    def decode_line(self, line: str) -> StreamChunk | None:
        ...


def _parse_object(line: str, payload: str) -> dict[str, Any]:
    try:
        data = json.loads(payload)
    except ValueError as e:
        log.warning("Failed to parse stream line: %s", e)
        raise StreamDecodeError(line, str(e)) from e
    if not isinstance(data, dict):
        log.warning("Stream line is not a JSON object: %r", line[:200])
        raise StreamDecodeError(line, "expected a JSON object")
    return data


def _error_text(error: Any) -> str:
    if isinstance(error, dict):
        message = error.get("message") or json.dumps(error)
    else:
        message = str(error)
    return f"Error: {message}"


class NDJSONDecoder:
    """Decoder for Ollama's newline-delimited JSON stream."""

    @property
    def done(self) -> bool:
        return False

    def decode_line(self, line: str) -> StreamChunk | None:
        if not line.strip():
            return None

        data = _parse_object(line, line)

        if data.get("error"):
            text = _error_text(data["error"])
            log.warning("Ollama reported an error: %s", text)
            return StreamChunk(text=text, is_error=True)

        text = data.get("response")
        if not isinstance(text, str):
            text = ""
        context = data.get("context")

        if not text and context is None:
            return None
        return StreamChunk(text=text, context=context)


def openai_delta_text(data: dict[str, Any]) -> str:
    """Extract ``choices[0].delta.content`` from an OpenAI chunk."""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    delta = choices[0].get("delta") if isinstance(choices[0], dict) else None
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


def gemini_candidate_text(data: dict[str, Any]) -> str:
    """Join ``candidates[0].content.parts[*].text`` from a Gemini chunk."""
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ""
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts") or []
    return "".join(
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    )


class SSEDecoder:
    """Decoder for ``text/event-stream`` responses.

    Args:
        extractor: Provider-specific function returning the text of a payload.
    """

    def __init__(self, extractor: TextExtractor = openai_delta_text) -> None:
        self._extractor = extractor
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def decode_line(self, line: str) -> StreamChunk | None:
        if self._done:
            return None
        if not line.startswith(SSE_DATA_PREFIX):
            # blank separators, ":" comments, event:/id:/retry: fields
            return None

        payload = line[len(SSE_DATA_PREFIX):].strip()
        if payload == SSE_DONE_MARKER:
            self._done = True
            return None
        if not payload:
            return None

        data = _parse_object(line, payload)

        if data.get("error"):
            text = _error_text(data["error"])
            log.error("Provider stream error: %s", text)
            return StreamChunk(text=text, is_error=True)

        text = self._extractor(data)
        return StreamChunk(text=text) if text else None


class WordBuffer:
    """Holds back a trailing partial word until it is known to be complete.

    ``push`` returns everything up to and including the last whitespace
    run; ``flush`` returns whatever is left. With ``enabled=False`` text
    passes straight through.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def push(self, text: str) -> str:
        if not self.enabled:
            return text
        pieces = _WHITESPACE_SPLIT.split(self._pending + text)
        self._pending = pieces[-1]
        return "".join(pieces[:-1])

    def flush(self) -> str:
        remainder, self._pending = self._pending, ""
        return remainder
