"""Abstract base class for provider clients.

Defines the single capability interface every provider backend implements
(send, stream, validate) together with the request types and the provider
exception hierarchy the resilience layer classifies.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .model_spec import LLMProviderType

VALID_ROLES = ("user", "assistant", "system")


class GeminiAuthMode(str, Enum):
    """Authentication modes for the Gemini backend."""

    API_KEY = "api-key"
    OAUTH = "oauth"


@dataclass
class AIMessage:
    """Single chat message.

    Attributes:
        role: One of 'user', 'assistant', 'system'.
        content: Message text.
    """

    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in VALID_ROLES:
            raise ValueError(f"Invalid message role: {self.role!r}")

    def to_dict(self) -> dict[str, str]:
        """Convert to the role/content dict most SDKs accept."""
        return {"role": self.role, "content": self.content}


@dataclass
class RequestOptions:
    """Per-request generation options.

    Attributes:
        max_tokens: Maximum tokens to generate in response.
        temperature: Sampling temperature (0.0-2.0).
        model: Optional model override for this request.
    """

    max_tokens: int = 2048
    temperature: float = 0.7
    model: str | None = None


@dataclass
class OAuthTokens:
    """Token bundle handed over by the OAuth collaborator.

    Attributes:
        access_token: Bearer token for API calls.
        expires_at: Expiry instant (timezone aware).
        refresh_token: Optional refresh token (refresh is not performed here).
        email: Account the tokens belong to.
    """

    access_token: str
    expires_at: datetime
    refresh_token: str | None = None
    email: str | None = None

    @classmethod
    def from_epoch_ms(cls, access_token: str, expires_at_ms: int, **kwargs: Any) -> OAuthTokens:
        """Build from a millisecond epoch expiry."""
        return cls(
            access_token=access_token,
            expires_at=datetime.fromtimestamp(expires_at_ms / 1000, tz=UTC),
            **kwargs,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the access token has expired."""
        return (now or datetime.now(UTC)) >= self.expires_at

    def hours_until_expiry(self, now: datetime | None = None) -> float:
        """Hours remaining before expiry (negative once expired)."""
        delta = self.expires_at - (now or datetime.now(UTC))
        return delta.total_seconds() / 3600


@dataclass
class ProviderConfig:
    """Credentials and model choice for one provider.

    Loaded once per session from external settings storage.

    Attributes:
        provider: Provider identifier.
        api_key: API key (unused in Gemini OAuth mode).
        model: Optional model override; provider default when None.
        auth_mode: Gemini authentication mode.
        oauth_tokens: Token bundle for Gemini OAuth mode.
    """

    provider: LLMProviderType
    api_key: str | None = None
    model: str | None = None
    auth_mode: GeminiAuthMode = GeminiAuthMode.API_KEY
    oauth_tokens: OAuthTokens | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def split_system_messages(
    messages: list[AIMessage], system_prompt: str | None
) -> tuple[str | None, list[AIMessage]]:
    """Separate system content from the conversational turns.

    System-role messages are appended to `system_prompt` in order, for
    providers that take the system instruction out of band.

    Returns:
        Tuple of (combined system text or None, user/assistant messages).
    """
    system_parts = [system_prompt] if system_prompt else []
    turns: list[AIMessage] = []
    for message in messages:
        if message.role == "system":
            system_parts.append(message.content)
        else:
            turns.append(message)
    return ("\n\n".join(system_parts) or None), turns


class ProviderClient(ABC):
    """Abstract interface for AI text-generation backends.

    Implementations wrap one vendor SDK (or REST endpoint) and convert its
    failures into the exceptions below; they never retry on their own.

    Example:
        >>> client = AnthropicBackend(api_key="sk-ant-...")
        >>> text = await client.send_message([AIMessage("user", "Hello")])
        >>> async for chunk in client.stream_message([AIMessage("user", "Hi")]):
        ...     print(chunk, end="")
    """

    @abstractmethod
    async def send_message(
        self,
        messages: list[AIMessage],
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
    ) -> str:
        """Send messages and return the complete reply text.

        Args:
            messages: Conversation so far, oldest first.
            system_prompt: Optional system instruction.
            options: Generation options.

        Returns:
            Reply text (may be empty).

        Raises:
            LLMError: If generation fails.
            RateLimitError: If the provider rate-limits the request.
            AuthenticationError: If credentials are rejected.
        """

    @abstractmethod
    def stream_message(
        self,
        messages: list[AIMessage],
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
    ) -> AsyncIterator[str]:
        """Stream reply text chunks as they arrive.

        Implemented as an async generator; stopping iteration abandons the
        stream without a server-side abort.

        Args:
            messages: Conversation so far, oldest first.
            system_prompt: Optional system instruction.
            options: Generation options.

        Yields:
            Non-empty text chunks.
        """

    async def validate_api_key(self) -> bool:
        """Check the configured credentials with a minimal request.

        Returns:
            True when the provider accepted the request.

        Raises:
            LLMError: When the request fails for any reason.
        """
        await self.send_message(
            [AIMessage("user", "Hello")], options=RequestOptions(max_tokens=10)
        )
        return True

    async def probe(self) -> float:
        """Run a lightweight liveness request.

        Returns:
            Round-trip time in milliseconds.
        """
        started = time.perf_counter()
        await self.send_message(
            [AIMessage("user", "ping")], options=RequestOptions(max_tokens=10)
        )
        return (time.perf_counter() - started) * 1000

    async def aclose(self) -> None:
        """Release underlying HTTP resources."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model identifier."""

    @property
    @abstractmethod
    def provider(self) -> LLMProviderType:
        """Get the provider identifier."""

    @property
    def name(self) -> str:
        """Get backend identifier for logging.

        Returns:
            String in format 'provider:model'.
        """
        return f"{self.provider.value}:{self.model_name}"

    @property
    def credential_expires_at(self) -> datetime | None:
        """Expiry of time-limited credentials, None for API keys."""
        return None


# =============================================================================
# Exceptions
# =============================================================================


class LLMError(Exception):
    """Base exception for provider errors."""


class RateLimitError(LLMError):
    """Raised when API rate limit is exceeded.

    Attributes:
        retry_after: Suggested wait time in seconds before retry.
    """

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class ContextLengthError(LLMError):
    """Raised when prompt exceeds the model's context window."""


class InvalidResponseError(LLMError):
    """Raised when response cannot be parsed as expected format."""


class AuthenticationError(LLMError):
    """Raised when API authentication fails (invalid, missing or expired)."""


class ProviderConnectionError(LLMError):
    """Raised when the provider cannot be reached."""


class ProviderTimeoutError(LLMError):
    """Raised when the provider does not answer in time."""


class ProviderAPIError(LLMError):
    """Raised for other HTTP-level rejections.

    Attributes:
        status_code: HTTP status returned by the provider, when known.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def retry_after_from(error: Exception) -> float | None:
    """Extract a retry-after hint (seconds) from an SDK or HTTP error."""
    value = getattr(error, "retry_after", None)
    if value is None:
        response = getattr(error, "response", None)
        headers = getattr(response, "headers", None)
        if headers is not None:
            value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def convert_status_error(message: str, status_code: int | None, error: Exception) -> LLMError:
    """Map an HTTP status to the provider exception hierarchy."""
    if status_code == 429:
        return RateLimitError(message, retry_after=retry_after_from(error))
    if status_code in (401, 403):
        return AuthenticationError(message)
    if status_code == 413:
        return ContextLengthError(message)
    if status_code in (408, 504):
        return ProviderTimeoutError(message)
    return ProviderAPIError(message, status_code=status_code)


def convert_by_message(error: Exception) -> LLMError:
    """Fallback mapping based on the error text."""
    error_str = str(error).lower()

    if "rate limit" in error_str or "rate_limit" in error_str:
        return RateLimitError(str(error), retry_after=retry_after_from(error))
    if "context length" in error_str or "too long" in error_str:
        return ContextLengthError(str(error))
    if "authentication" in error_str or "invalid api key" in error_str:
        return AuthenticationError(str(error))
    return LLMError(str(error))


__all__ = [
    "VALID_ROLES",
    "GeminiAuthMode",
    "AIMessage",
    "RequestOptions",
    "OAuthTokens",
    "ProviderConfig",
    "ProviderClient",
    "split_system_messages",
    # Exceptions
    "LLMError",
    "RateLimitError",
    "ContextLengthError",
    "InvalidResponseError",
    "AuthenticationError",
    "ProviderConnectionError",
    "ProviderTimeoutError",
    "ProviderAPIError",
    # Conversion helpers
    "retry_after_from",
    "convert_status_error",
    "convert_by_message",
]
