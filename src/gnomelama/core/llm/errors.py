"""Exceptions raised by provider adapters.

The session manager is the only place these are caught and turned into
display strings; adapters raise them and let them propagate.
"""

from __future__ import annotations

# Shown in place of the reply when a streamed line cannot be decoded
PARSE_ERROR_MESSAGE = "Error parsing response."


class ProviderError(Exception):
    """Base class for provider failures.

    Attributes:
        user_message: Friendly text suitable for the transcript.
        reported: True if user_message was already delivered as a chunk.
    """

    def __init__(self, message: str, *, user_message: str | None = None) -> None:
        super().__init__(message)
        self.user_message = user_message or message
        self.reported = False


class MissingAPIKeyError(ProviderError):
    """A hosted provider was used without an API key configured.

    Raised before any network call is attempted.
    """

    def __init__(self, provider_label: str, env_var: str) -> None:
        super().__init__(
            f"{provider_label} API key not configured ({env_var})",
            user_message=f"{provider_label} API key not configured. Please add it in settings.",
        )
        self.env_var = env_var


class ProviderConnectionError(ProviderError):
    """Transport failure: connection refused, DNS, timeout on connect, or non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        user_message: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, user_message=user_message)
        self.status_code = status_code


class StreamDecodeError(ProviderError):
    """A streamed line could not be parsed. Fatal for the current request."""

    def __init__(self, line: str, reason: str) -> None:
        super().__init__(f"Malformed stream line ({reason}): {line[:200]!r}", user_message=PARSE_ERROR_MESSAGE)
        self.line = line
