"""LLM provider abstraction."""

from gnomelama.core.llm.errors import (
    PARSE_ERROR_MESSAGE,
    MissingAPIKeyError,
    ProviderConnectionError,
    ProviderError,
    StreamDecodeError,
)
from gnomelama.core.llm.gemini_provider import GeminiProvider
from gnomelama.core.llm.ollama_provider import OllamaProvider
from gnomelama.core.llm.openai_provider import OpenAIProvider
from gnomelama.core.llm.provider import (
    ConversationMessage,
    ModelCatalog,
    ModelDescriptor,
    ProviderAdapter,
    ProviderKind,
    ProviderResponse,
    Role,
    StreamChunk,
)
from gnomelama.core.llm.providers import (
    DEFAULT_MODEL,
    PROVIDER_CONFIGS,
    ProviderConfig,
    create_providers,
)
from gnomelama.core.llm.registry import ModelListing, ModelRegistry, pick_default
from gnomelama.core.llm.transport import StreamHandle

__all__ = [
    # Provider protocol and implementations
    "ProviderAdapter",
    "OllamaProvider",
    "OpenAIProvider",
    "GeminiProvider",
    "create_providers",
    # Data model
    "ConversationMessage",
    "ModelCatalog",
    "ModelDescriptor",
    "ProviderKind",
    "ProviderResponse",
    "Role",
    "StreamChunk",
    "StreamHandle",
    # Registry
    "ModelListing",
    "ModelRegistry",
    "pick_default",
    # Errors
    "PARSE_ERROR_MESSAGE",
    "ProviderError",
    "MissingAPIKeyError",
    "ProviderConnectionError",
    "StreamDecodeError",
    # Constants
    "DEFAULT_MODEL",
    "PROVIDER_CONFIGS",
    "ProviderConfig",
]
