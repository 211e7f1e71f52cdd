"""Core runtime modules."""

from gnomelama.core.llm import (
    ConversationMessage,
    ModelDescriptor,
    ModelRegistry,
    ProviderAdapter,
    ProviderKind,
    Role,
)

__all__ = [
    "ConversationMessage",
    "ModelDescriptor",
    "ModelRegistry",
    "ProviderAdapter",
    "ProviderKind",
    "Role",
]
