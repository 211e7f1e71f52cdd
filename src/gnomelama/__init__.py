"""gnomelama: streaming chat core for local Ollama and hosted LLM providers."""

__version__ = "0.1.0"

# Public API
from gnomelama.config import Config, get_config, load_config
from gnomelama.core.llm import (
    ConversationMessage,
    GeminiProvider,
    ModelDescriptor,
    ModelListing,
    ModelRegistry,
    OllamaProvider,
    OpenAIProvider,
    ProviderAdapter,
    ProviderError,
    ProviderKind,
    Role,
)
from gnomelama.documents import ExtractionError, convert_to_text, prepare_message
from gnomelama.session import SessionManager, SessionState

__all__ = [
    # Main entry points
    "SessionManager",
    "SessionState",
    # Config
    "Config",
    "load_config",
    "get_config",
    # Providers
    "ProviderAdapter",
    "OllamaProvider",
    "OpenAIProvider",
    "GeminiProvider",
    "ModelRegistry",
    "ModelListing",
    # Data model
    "ConversationMessage",
    "ModelDescriptor",
    "ProviderKind",
    "Role",
    # Errors
    "ProviderError",
    "ExtractionError",
    # Documents
    "convert_to_text",
    "prepare_message",
]
