"""Shared test utilities for gnomelama tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Any

import httpx

from gnomelama.config.schema import StreamConfig
from gnomelama.core.llm.provider import ModelCatalog, ProviderKind
from gnomelama.terminal.result import CommandResult


def ndjson(*objects: dict[str, Any]) -> bytes:
    """Encode objects as an NDJSON body."""
    return b"".join(json.dumps(o).encode() + b"\n" for o in objects)


def sse(*payloads: dict[str, Any] | str, done: bool = True) -> bytes:
    """Encode payloads as SSE ``data:`` events, optionally ending with [DONE]."""
    events = [p if isinstance(p, str) else json.dumps(p) for p in payloads]
    if done:
        events.append("[DONE]")
    return "".join(f"data: {e}\n\n" for e in events).encode()


def openai_delta(text: str) -> dict[str, Any]:
    return {"choices": [{"delta": {"content": text}}]}


def gemini_chunk(text: str) -> dict[str, Any]:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def unbuffered() -> StreamConfig:
    """Stream settings that deliver every increment immediately."""
    return StreamConfig(word_buffering=False, idle_timeout=5.0, connect_timeout=1.0)


async def stalled_stream(
    first: Sequence[bytes],
    gate: asyncio.Event,
    rest: Sequence[bytes] = (),
) -> AsyncIterator[bytes]:
    """Yield ``first``, then block until ``gate`` is set, then yield ``rest``."""
    for chunk in first:
        yield chunk
    await gate.wait()
    for chunk in rest:
        yield chunk


async def timing_out_stream(first: Sequence[bytes]) -> AsyncIterator[bytes]:
    """Yield ``first``, then fail the way an idle read timeout does."""
    for chunk in first:
        yield chunk
    raise httpx.ReadTimeout("timed out waiting for data")


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], Any]) -> None:
        self.requests: list[httpx.Request] = []

        async def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            result = handler(request)
            if asyncio.iscoroutine(result):
                result = await result
            return result

        super().__init__(record)

    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.content]


def failing_transport() -> RecordingTransport:
    """Transport that fails the test if any request is made."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request to {request.url}")

    return RecordingTransport(handler)


class FakeProvider:
    """Minimal ProviderAdapter returning a fixed catalog."""

    def __init__(
        self,
        name: str,
        kind: ProviderKind = ProviderKind.HOSTED,
        models: list[str] | None = None,
        error: str | None = None,
        raises: Exception | None = None,
    ) -> None:
        self._name = name
        self._kind = kind
        self._models = models or []
        self._error = error
        self._raises = raises
        self.fetch_calls = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> ProviderKind:
        return self._kind

    async def send_message(self, message_text, model_name, context=None, on_data=None):
        raise NotImplementedError

    async def fetch_model_names(self) -> ModelCatalog:
        self.fetch_calls += 1
        if self._raises is not None:
            raise self._raises
        return ModelCatalog(models=list(self._models), error=self._error)


class FakeExecutor:
    """TerminalExecutor double that replays canned results by command order.

    ``results`` maps a call index to a CommandResult; unlisted calls fail
    with exit code 127.
    """

    def __init__(self, results: dict[int, CommandResult] | None = None) -> None:
        self.results = results or {}
        self.calls: list[tuple[str, list[str]]] = []

    async def execute(
        self,
        command: str,
        args: list[str] | None = None,
        timeout: float | None = 30.0,
    ) -> CommandResult:
        index = len(self.calls)
        self.calls.append((command, list(args or [])))
        full = " ".join([command, *(args or [])])
        if index in self.results:
            result = self.results[index]
            result.command = full
            return result
        return CommandResult(
            command=full,
            exit_code=127,
            stdout="",
            stderr=f"Command not found: {command}",
            status="error",
        )


def ok(stdout: str, stderr: str = "") -> CommandResult:
    return CommandResult(command="", exit_code=0, stdout=stdout, stderr=stderr)


def failed(stderr: str, exit_code: int = 1) -> CommandResult:
    return CommandResult(command="", exit_code=exit_code, stdout="", stderr=stderr, status="error")
