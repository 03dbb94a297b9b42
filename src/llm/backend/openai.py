"""OpenAI GPT backend implementation.

Supports GPT-5.x and other chat models via the async OpenAI API.
"""

import logging
import time
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
)
from .model_spec import LLMProviderType, resolve_model_name

logger = logging.getLogger(__name__)

# Reasoning model families only accept the default sampling temperature
_FIXED_TEMPERATURE_PREFIXES = ("gpt-5", "o1", "o3", "o4")


class OpenAIBackend(ProviderClient):
    """OpenAI GPT backend.

    The system prompt is prepended to the history as a `system` message.

    Example:
        >>> backend = OpenAIBackend(api_key="sk-...", model="gpt-5.1")
        >>> async for chunk in backend.stream_message([AIMessage("user", "Hi")]):
        ...     print(chunk, end="")
    """

    def __init__(
        self,
        api_key: str | None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
    ):
        """Initialize OpenAI backend.

        Args:
            api_key: OpenAI API key.
            model: Model name; provider default when None.
            base_url: Optional custom API endpoint.
            timeout: SDK-level request timeout in seconds.

        Raises:
            AuthenticationError: If no API key available.
        """
        if not api_key:
            raise AuthenticationError("OpenAI API key required.")

        self._api_key = api_key
        self._model = resolve_model_name(LLMProviderType.OPENAI, model)
        self._base_url = base_url
        self._timeout = timeout
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize the async OpenAI client.

        Returns:
            AsyncOpenAI client instance.

        Raises:
            ImportError: If openai package not installed.
        """
        if self._client is None:
            try:
                from openai import AsyncOpenAI

                self._client = AsyncOpenAI(
                    api_key=self._api_key,
                    base_url=self._base_url,
                    timeout=self._timeout,
                    max_retries=0,
                )
            except ImportError as e:
                raise ImportError(
                    "openai package required. Install with: pip install openai"
                ) from e
        return self._client

    @property
    def model_name(self) -> str:
        """Get the model identifier."""
        return self._model

    @property
    def provider(self) -> LLMProviderType:
        """Get the provider identifier."""
        return LLMProviderType.OPENAI

    def _build_kwargs(
        self,
        messages: list[AIMessage],
        system_prompt: str | None,
        options: RequestOptions,
    ) -> dict[str, Any]:
        model = options.model or self._model
        formatted = [m.to_dict() for m in messages]
        if system_prompt:
            formatted.insert(0, {"role": "system", "content": system_prompt})

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": formatted,
            "max_completion_tokens": options.max_tokens,
        }
        if not model.startswith(_FIXED_TEMPERATURE_PREFIXES):
            kwargs["temperature"] = options.temperature
        return kwargs

    async def send_message(
        self,
        messages: list[AIMessage],
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
    ) -> str:
        """Send messages via Chat Completions.

        Returns:
            Content of the first choice, empty when absent.
        """
        options = options or RequestOptions()
        client = self._get_client()
        kwargs = self._build_kwargs(messages, system_prompt, options)

        try:
            response = await client.chat.completions.create(**kwargs)
        except Exception as e:
            self._handle_error(e)
            raise

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def stream_message(
        self,
        messages: list[AIMessage],
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
    ) -> AsyncIterator[str]:
        """Stream content deltas of the first choice."""
        options = options or RequestOptions()
        client = self._get_client()
        kwargs = self._build_kwargs(messages, system_prompt, options)

        try:
            stream = await client.chat.completions.create(stream=True, **kwargs)
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except Exception as e:
            self._handle_error(e)
            raise

    async def probe(self) -> float:
        """Probe by listing models, which costs no tokens."""
        client = self._get_client()
        started = time.perf_counter()
        try:
            await client.models.list()
        except Exception as e:
            self._handle_error(e)
            raise
        return (time.perf_counter() - started) * 1000

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    def _handle_error(self, error: Exception) -> None:
        """Convert OpenAI SDK errors to standard exceptions.

        Args:
            error: The caught exception.

        Raises:
            LLMError: Always; the subclass reflects the failure kind.
        """
        if isinstance(error, LLMError):
            raise error

        import openai

        if isinstance(error, openai.APITimeoutError):
            raise ProviderTimeoutError(str(error)) from error
        if isinstance(error, openai.APIConnectionError):
            raise ProviderConnectionError(str(error)) from error
        if isinstance(error, openai.APIStatusError):
            raise convert_status_error(str(error), error.status_code, error) from error
        raise convert_by_message(error) from error


__all__ = ["OpenAIBackend"]
