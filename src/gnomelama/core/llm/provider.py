"""LLM provider protocol and base types."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, Union, runtime_checkable

if TYPE_CHECKING:
    from gnomelama.core.llm.transport import StreamHandle

# Opaque continuation token returned by stateful providers (Ollama: list of ints)
ContextToken = Any

# Receives each decoded text increment, in arrival order. May be sync or async.
DataCallback = Callable[[str], Union[None, Awaitable[None]]]


class Role(Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ProviderKind(Enum):
    """Where a model runs."""

    LOCAL = "local"
    HOSTED = "hosted"


@dataclass(frozen=True, slots=True)
class ConversationMessage:
    """A message in the conversation history.

    Attributes:
        text: The message text
        role: The role (user, assistant, system)
    """

    text: str
    role: Role


@dataclass(frozen=True, slots=True)
class ModelDescriptor:
    """A model name together with the provider that serves it.

    Attributes:
        name: Model name as shown to the user (e.g., "llama3.2:1b", "gemini:gemini-pro")
        provider_kind: LOCAL or HOSTED
        provider: Adapter key ("ollama", "openai", "gemini")
    """

    name: str
    provider_kind: ProviderKind
    provider: str


@dataclass(slots=True)
class StreamChunk:
    """One decoded increment from a streaming response."""

    text: str
    is_error: bool = False
    context: ContextToken | None = None


@dataclass(slots=True)
class ProviderResponse:
    """Final outcome of a streamed request.

    ``cancelled`` and ``timed_out`` responses carry the partial text
    accumulated before the stream was stopped.
    """

    text: str
    context: ContextToken | None = None
    cancelled: bool = False
    timed_out: bool = False
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ModelCatalog:
    """Model names reported by a single provider."""

    models: list[str] = field(default_factory=list)
    error: str | None = None


@runtime_checkable
class ProviderAdapter(Protocol):
    """Protocol for chat backends.

    Implementations: OllamaProvider (local), OpenAIProvider and
    GeminiProvider (hosted).
    """

    @property
    def name(self) -> str:
        """Adapter key used in ModelDescriptor.provider."""
        ...

    @property
    def kind(self) -> ProviderKind:
        ...

    async def send_message(
        self,
        message_text: str,
        model_name: str,
        context: Any = None,
        on_data: DataCallback | None = None,
    ) -> StreamHandle:
        """Start a streaming chat request.

        Args:
            message_text: The new user turn
            model_name: Model to use on this backend
            context: Continuation token (local) or prior history (hosted)
            on_data: Called once per decoded increment

        Returns:
            A StreamHandle whose ``result`` resolves to a ProviderResponse,
            and whose ``cancel()`` stops the stream gracefully.
        """
        ...

    async def fetch_model_names(self) -> ModelCatalog:
        """Return the models this backend offers. Never raises."""
        ...
