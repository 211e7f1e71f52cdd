"""Streaming HTTP transport shared by all provider adapters.

Each request gets its own ``httpx.AsyncClient`` and a reader task. The
reader feeds response lines through a LineDecoder and delivers text to the
caller's callback strictly in arrival order.

Stopping a stream is never an error: ``StreamHandle.cancel()`` and the
idle-read timeout both resolve ``result`` with the partial text.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

import httpx

from gnomelama.core.llm.errors import (
    PARSE_ERROR_MESSAGE,
    ProviderConnectionError,
    StreamDecodeError,
)
from gnomelama.core.llm.provider import ContextToken, DataCallback, ProviderResponse
from gnomelama.core.llm.stream import LineDecoder, WordBuffer
from gnomelama.logging import VERBOSE, get_logger

log = get_logger("transport")

# Builds the user-facing text for a transport failure from a short detail string
FailureMessage = Callable[[str], str]


async def deliver(on_data: DataCallback | None, text: str) -> None:
    """Invoke a sync or async data callback with one increment."""
    if on_data is None or not text:
        return
    result = on_data(text)
    if inspect.isawaitable(result):
        await result


def _error_detail(response: httpx.Response) -> str:
    """Best-effort error text from a non-2xx response body."""
    try:
        data = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:200] if text else response.reason_phrase
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.reason_phrase


class StreamSession:
    """State of one in-flight streaming request.

    Holds the accumulated text, the last continuation token, and the
    cancellation and timeout flags. Owned by a StreamHandle.
    """

    def __init__(
        self,
        *,
        label: str,
        decoder: LineDecoder,
        on_data: DataCallback | None,
        word_buffering: bool,
    ) -> None:
        self.label = label
        self.decoder = decoder
        self.on_data = on_data
        self.buffer = WordBuffer(enabled=word_buffering)
        self.parts: list[str] = []
        self.errors: list[str] = []
        self.context: ContextToken | None = None
        self.cancelled = False
        self.timed_out = False
        self.lines_read = 0

    @property
    def text(self) -> str:
        return "".join(self.parts)

    async def emit(self, text: str) -> None:
        self.parts.append(text)
        await deliver(self.on_data, self.buffer.push(text))

    async def flush(self) -> None:
        await deliver(self.on_data, self.buffer.flush())

    def response(self) -> ProviderResponse:
        return ProviderResponse(
            text=self.text,
            context=self.context,
            cancelled=self.cancelled,
            timed_out=self.timed_out,
            errors=list(self.errors),
        )


class StreamHandle:
    """Caller's handle on a streaming request.

    Attributes:
        result: Task resolving to a ProviderResponse. Rejects only with a
            ProviderError; cancellation resolves with the partial text.
    """

    def __init__(self, session: StreamSession, reader: asyncio.Task[None]) -> None:
        self._session = session
        self._reader = reader
        self.result: asyncio.Task[ProviderResponse] = asyncio.create_task(self._settle())

    @property
    def partial_text(self) -> str:
        return self._session.text

    @property
    def cancelled(self) -> bool:
        return self._session.cancelled

    def done(self) -> bool:
        return self.result.done()

    def cancel(self) -> str:
        """Stop reading and return the text received so far.

        Safe to call more than once, and after completion (no-op then).
        """
        if not self._reader.done() and not self._session.cancelled:
            log.debug("Cancelling %s stream after %d lines", self._session.label, self._session.lines_read)
            self._session.cancelled = True
            self._reader.cancel()
        return self._session.text

    async def _settle(self) -> ProviderResponse:
        try:
            await self._reader
        except asyncio.CancelledError:
            if not self._session.cancelled:
                raise
        if self._session.cancelled:
            await self._session.flush()
        return self._session.response()


async def _read(
    session: StreamSession,
    *,
    method: str,
    url: str,
    payload: dict[str, Any] | None,
    headers: dict[str, str] | None,
    timeout: httpx.Timeout,
    transport: httpx.AsyncBaseTransport | None,
    failure_message: FailureMessage,
) -> None:
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        try:
            async with client.stream(method, url, json=payload, headers=headers) as response:
                if not response.is_success:
                    await response.aread()
                    detail = _error_detail(response)
                    log.error("%s request failed: HTTP %d %s", session.label, response.status_code, detail)
                    raise ProviderConnectionError(
                        f"{session.label} returned HTTP {response.status_code}: {detail}",
                        user_message=failure_message(f"HTTP {response.status_code}: {detail}"),
                        status_code=response.status_code,
                    )

                async for line in response.aiter_lines():
                    if session.cancelled:
                        break
                    session.lines_read += 1
                    try:
                        chunk = session.decoder.decode_line(line)
                    except StreamDecodeError as e:
                        await session.flush()
                        await deliver(session.on_data, PARSE_ERROR_MESSAGE)
                        e.reported = True
                        raise
                    if chunk is not None:
                        if chunk.context is not None:
                            session.context = chunk.context
                        if chunk.is_error:
                            session.errors.append(chunk.text)
                            await session.flush()
                            await deliver(session.on_data, chunk.text)
                        elif chunk.text:
                            await session.emit(chunk.text)
                    if session.decoder.done:
                        break
        except httpx.ReadTimeout:
            log.warning("%s stream idle for %.0fs, keeping partial response", session.label, timeout.read or 0)
            session.timed_out = True
        except httpx.RequestError as e:
            log.error("%s request error: %s", session.label, e)
            await session.flush()
            raise ProviderConnectionError(
                f"{session.label} request failed: {e}",
                user_message=failure_message(str(e) or type(e).__name__),
            ) from e

    log.log(VERBOSE, "%s stream finished after %d lines", session.label, session.lines_read)
    await session.flush()


async def open_stream(
    *,
    label: str,
    url: str,
    payload: dict[str, Any] | None,
    decoder: LineDecoder,
    failure_message: FailureMessage,
    on_data: DataCallback | None = None,
    headers: dict[str, str] | None = None,
    method: str = "POST",
    word_buffering: bool = True,
    idle_timeout: float = 60.0,
    connect_timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> StreamHandle:
    """Start a streaming request in the background and return its handle.

    Args:
        label: Provider name for logs and error messages
        url: Endpoint to call
        payload: JSON request body
        decoder: Line decoder for the response wire format
        failure_message: Maps a transport failure detail to user-facing text
        on_data: Receives each text increment (sync or async)
        headers: Extra request headers (auth)
        method: HTTP method
        word_buffering: Hold back partial words until complete
        idle_timeout: Seconds without data before the stream is abandoned
        connect_timeout: Seconds allowed to establish the connection
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """
    session = StreamSession(
        label=label,
        decoder=decoder,
        on_data=on_data,
        word_buffering=word_buffering,
    )
    timeout = httpx.Timeout(idle_timeout, connect=connect_timeout)
    log.debug("%s %s %s", label, method, url)
    reader = asyncio.create_task(
        _read(
            session,
            method=method,
            url=url,
            payload=payload,
            headers=headers,
            timeout=timeout,
            transport=transport,
            failure_message=failure_message,
        )
    )
    return StreamHandle(session, reader)
