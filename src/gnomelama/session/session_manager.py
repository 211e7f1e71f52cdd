"""Chat session management.

SessionManager owns the conversation: history, the local continuation
token, the active model, and the single in-flight request. It is the one
place provider errors become display strings.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from gnomelama.config import get_config, persist_model_choice
from gnomelama.core.llm.errors import ProviderError
from gnomelama.core.llm.provider import (
    ConversationMessage,
    ContextToken,
    DataCallback,
    ModelDescriptor,
    ProviderAdapter,
    ProviderKind,
    ProviderResponse,
    Role,
)
from gnomelama.core.llm.providers import DEFAULT_MODEL, PROVIDER_CONFIGS, create_providers
from gnomelama.core.llm.registry import ModelListing, ModelRegistry
from gnomelama.core.llm.transport import StreamHandle, deliver
from gnomelama.logging import get_logger

if TYPE_CHECKING:
    import httpx

    from gnomelama.config.schema import Config

log = get_logger("session")


class SessionState(Enum):
    """Lifecycle of the current message."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class _ActiveRequest:
    """Bookkeeping for the request currently owned by the manager."""

    handle: StreamHandle | None = None
    cancel_requested: bool = False
    finished: asyncio.Event = field(default_factory=asyncio.Event)


def descriptor_for_name(name: str, provider: str | None = None) -> ModelDescriptor:
    """Build a descriptor for a model that is not in a fetched listing.

    Without an explicit provider, a name carrying a provider's model prefix
    (``gemini:``) routes to that provider and anything else to Ollama.
    """
    if provider not in PROVIDER_CONFIGS:
        provider = next(
            (c.name for c in PROVIDER_CONFIGS.values() if c.model_prefix and name.startswith(c.model_prefix)),
            "ollama",
        )
    return ModelDescriptor(name, PROVIDER_CONFIGS[provider].kind, provider)


class SessionManager:
    """One conversation with at most one request in flight.

    A new send cancels the previous request and waits for it to settle
    before the new user turn is recorded. Every send appends exactly one
    user turn and one assistant turn, whatever the outcome.

    Usage:
        manager = SessionManager.from_config()
        reply = await manager.send_message("Hello", on_data=print)
    """

    def __init__(
        self,
        registry: ModelRegistry,
        model: ModelDescriptor | None = None,
        *,
        persist_model: bool = True,
    ) -> None:
        """Initialize the session manager.

        Args:
            registry: Registry holding the provider adapters
            model: Initial model; defaults to the local default model
            persist_model: Write set_model() choices to the user config file
        """
        self._registry = registry
        self._model = model or descriptor_for_name(DEFAULT_MODEL, "ollama")
        self._persist_model = persist_model
        self._history: list[ConversationMessage] = []
        self._context_token: ContextToken | None = None
        self._last_error: str | None = None
        self._state = SessionState.IDLE
        self._last_outcome: SessionState | None = None
        self._active: _ActiveRequest | None = None

    @classmethod
    def from_config(
        cls,
        config: Config | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        persist_model: bool = True,
    ) -> SessionManager:
        """Build providers, registry and the initial model from config."""
        config = config or get_config()
        registry = ModelRegistry(create_providers(config, transport=transport))
        model = descriptor_for_name(
            config.llm.default_model or DEFAULT_MODEL,
            config.llm.default_provider,
        )
        return cls(registry, model, persist_model=persist_model)

    # Properties

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def last_outcome(self) -> SessionState | None:
        """COMPLETED, CANCELLED or FAILED for the most recent send."""
        return self._last_outcome

    @property
    def model(self) -> ModelDescriptor:
        return self._model

    @property
    def registry(self) -> ModelRegistry:
        return self._registry

    @property
    def context_token(self) -> ContextToken | None:
        return self._context_token

    @property
    def is_busy(self) -> bool:
        return self._active is not None

    # Conversation

    async def send_message(
        self,
        message: str,
        *,
        context: Any = None,
        on_data: DataCallback | None = None,
        display_message: str | None = None,
    ) -> str:
        """Send a user turn and stream the reply.

        Args:
            message: Text sent to the model
            context: Continuation token override for the local provider
            on_data: Receives each text increment, in order
            display_message: Text recorded in history instead of ``message``

        Returns:
            The assistant turn as recorded: the full reply, the partial
            reply if cancelled, or a friendly error message.
        """
        await self._cancel_active()

        request = _ActiveRequest()
        self._active = request
        self._last_error = None
        self._state = SessionState.SENDING
        self._history.append(ConversationMessage(display_message or message, Role.USER))
        model = self._model

        try:
            text, outcome = await self._run(request, model, message, context, on_data)
        except asyncio.CancelledError:
            # Caller cancelled; record the partial reply before propagating
            text = request.handle.cancel() if request.handle is not None else ""
            self._state = SessionState.CANCELLED
            self._record(text, SessionState.CANCELLED, model)
            raise
        else:
            self._record(text, outcome, model)
            return text
        finally:
            if self._active is request:
                self._active = None
                self._state = SessionState.IDLE
            request.finished.set()

    async def _run(
        self,
        request: _ActiveRequest,
        model: ModelDescriptor,
        message: str,
        context: Any,
        on_data: DataCallback | None,
    ) -> tuple[str, SessionState]:
        provider = self._registry.get_provider(model.provider)
        try:
            if provider is None:
                raise ProviderError(
                    f"No provider registered for {model.provider}",
                    user_message=f"Model {model.name} is not available.",
                )
            if request.cancel_requested:
                return "", SessionState.CANCELLED

            handle = await provider.send_message(
                message,
                model.name,
                self._provider_context(provider, context),
                on_data,
            )
            request.handle = handle
            self._state = SessionState.STREAMING
            if request.cancel_requested:
                handle.cancel()

            response = await handle.result
        except ProviderError as e:
            log.error("Request to %s failed: %s", model.name, e)
            self._state = SessionState.FAILED
            self._last_error = e.user_message
            if not e.reported:
                try:
                    await deliver(on_data, e.user_message)
                except Exception as callback_error:
                    log.error("Data callback failed: %s", callback_error)
            return e.user_message, SessionState.FAILED
        except Exception as e:
            log.error("Streaming from %s failed: %s", model.name, e)
            self._state = SessionState.FAILED
            self._last_error = f"Unexpected error: {str(e) or type(e).__name__}"
            return self._last_error, SessionState.FAILED

        return self._settle(provider, response)

    def _record(self, text: str, outcome: SessionState, model: ModelDescriptor) -> None:
        self._history.append(ConversationMessage(text, Role.ASSISTANT))
        self._last_outcome = outcome
        log.debug("Message %s (%d chars) via %s", outcome.value, len(text), model.name)

    def _provider_context(self, provider: ProviderAdapter, context: Any) -> Any:
        if provider.kind is ProviderKind.LOCAL:
            return context if context is not None else self._context_token
        # Hosted providers replay the conversation before the new turn
        return list(self._history[:-1])

    def _settle(self, provider: ProviderAdapter, response: ProviderResponse) -> tuple[str, SessionState]:
        if response.cancelled or response.timed_out:
            if response.timed_out:
                log.warning("Stream from %s timed out; keeping partial reply", provider.name)
            self._state = SessionState.CANCELLED
            return response.text, SessionState.CANCELLED

        if response.errors:
            self._last_error = response.errors[-1]
            if not response.text:
                # Error chunks were already delivered to the caller
                self._state = SessionState.FAILED
                return "\n".join(response.errors), SessionState.FAILED

        if provider.kind is ProviderKind.LOCAL and response.context is not None:
            self._context_token = response.context
        self._state = SessionState.COMPLETED
        return response.text, SessionState.COMPLETED

    def stop_message(self) -> str | None:
        """Cancel the in-flight request.

        Returns:
            Partial text received so far, or None when nothing is in flight.
        """
        request = self._active
        if request is None:
            return None
        request.cancel_requested = True
        if request.handle is None:
            return ""
        return request.handle.cancel()

    async def _cancel_active(self) -> None:
        while self._active is not None:
            request = self._active
            log.debug("Cancelling in-flight request")
            self.stop_message()
            await request.finished.wait()

    def get_conversation_history(self) -> list[ConversationMessage]:
        return list(self._history)

    def clear_conversation_history(self) -> None:
        """Forget history and the continuation token. Does not cancel."""
        self._history.clear()
        self._context_token = None
        log.debug("Conversation history cleared")

    def get_last_error(self) -> str | None:
        return self._last_error

    # Models

    async def fetch_model_names(self) -> ModelListing:
        return await self._registry.fetch_models()

    def set_model(self, model: ModelDescriptor | str) -> ModelDescriptor:
        """Select the model for subsequent sends and remember it.

        A name is resolved through the last fetched listing. Failing to
        write the config file is logged and otherwise ignored.
        """
        if isinstance(model, str):
            listing = self._registry.last_listing
            found = listing.find(model) if listing else None
            model = found or descriptor_for_name(model)

        self._model = model
        log.info("Model set to %s (%s)", model.name, model.provider)

        if self._persist_model:
            try:
                persist_model_choice(model.name, model.provider)
            except OSError as e:
                log.warning("Could not save model choice: %s", e)
        return model

    async def close(self) -> None:
        """Cancel any in-flight request and wait for it to settle."""
        await self._cancel_active()
        self._state = SessionState.IDLE
