"""Anthropic Claude backend implementation.

Supports Claude 4.5 models via the async Anthropic Messages API.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from .base import (
    AIMessage,
    AuthenticationError,
    LLMError,
    ProviderClient,
    ProviderConnectionError,
    ProviderTimeoutError,
    RequestOptions,
    convert_by_message,
    convert_status_error,
    split_system_messages,
)
from .model_spec import LLMProviderType, resolve_model_name

logger = logging.getLogger(__name__)


class AnthropicBackend(ProviderClient):
    """Anthropic Claude backend.

    The system prompt travels in the dedicated `system` parameter; system-role
    messages in the history are folded into it.

    Example:
        >>> backend = AnthropicBackend(api_key="sk-ant-...")
        >>> reply = await backend.send_message([AIMessage("user", "Hello")])
    """

    def __init__(
        self,
        api_key: str | None,
        model: str | None = None,
        timeout: float = 60.0,
    ):
        """Initialize Anthropic backend.

        Args:
            api_key: Anthropic API key.
            model: Model name; provider default when None.
            timeout: SDK-level request timeout in seconds.

        Raises:
            AuthenticationError: If no API key available.
        """
        if not api_key:
            raise AuthenticationError("Anthropic API key required.")

        self._api_key = api_key
        self._model = resolve_model_name(LLMProviderType.CLAUDE, model)
        self._timeout = timeout
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize the async Anthropic client.

        Returns:
            AsyncAnthropic client instance.

        Raises:
            ImportError: If anthropic package not installed.
        """
        if self._client is None:
            try:
                import anthropic

                # Retries are owned by the caller, never the SDK
                self._client = anthropic.AsyncAnthropic(
                    api_key=self._api_key,
                    timeout=self._timeout,
                    max_retries=0,
                )
            except ImportError as e:
                raise ImportError(
                    "anthropic package required. Install with: pip install anthropic"
                ) from e
        return self._client

    @property
    def model_name(self) -> str:
        """Get the model identifier."""
        return self._model

    @property
    def provider(self) -> LLMProviderType:
        """Get the provider identifier."""
        return LLMProviderType.CLAUDE

    def _build_kwargs(
        self,
        messages: list[AIMessage],
        system_prompt: str | None,
        options: RequestOptions,
    ) -> dict[str, Any]:
        system, turns = split_system_messages(messages, system_prompt)
        kwargs: dict[str, Any] = {
            "model": options.model or self._model,
            "messages": [m.to_dict() for m in turns],
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        if system:
            kwargs["system"] = system
        return kwargs

    async def send_message(
        self,
        messages: list[AIMessage],
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
    ) -> str:
        """Send messages via the Messages API.

        Returns:
            Concatenated text blocks of the reply.
        """
        options = options or RequestOptions()
        client = self._get_client()
        kwargs = self._build_kwargs(messages, system_prompt, options)

        try:
            response = await client.messages.create(**kwargs)
        except Exception as e:
            self._handle_error(e)
            raise

        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

    async def stream_message(
        self,
        messages: list[AIMessage],
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
    ) -> AsyncIterator[str]:
        """Stream reply text deltas."""
        options = options or RequestOptions()
        client = self._get_client()
        kwargs = self._build_kwargs(messages, system_prompt, options)

        try:
            async with client.messages.stream(**kwargs) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except Exception as e:
            self._handle_error(e)
            raise

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    def _handle_error(self, error: Exception) -> None:
        """Convert Anthropic SDK errors to standard exceptions.

        Args:
            error: The caught exception.

        Raises:
            LLMError: Always; the subclass reflects the failure kind.
        """
        if isinstance(error, LLMError):
            raise error

        import anthropic

        if isinstance(error, anthropic.APITimeoutError):
            raise ProviderTimeoutError(str(error)) from error
        if isinstance(error, anthropic.APIConnectionError):
            raise ProviderConnectionError(str(error)) from error
        if isinstance(error, anthropic.APIStatusError):
            raise convert_status_error(str(error), error.status_code, error) from error
        raise convert_by_message(error) from error


__all__ = ["AnthropicBackend"]
