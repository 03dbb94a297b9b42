"""Google Gemini backend implementation.

Two transports are supported:
- API-key mode uses the google-genai SDK (`genai.Client(...).aio`).
- OAuth mode calls the Generative Language REST endpoint with a bearer
  token via httpx. Token refresh belongs to the caller; an expired token
  fails fast with AuthenticationError.
"""

import logging
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

import httpx

from .base import (
    AIMessage,
    AuthenticationError,
    GeminiAuthMode,
    InvalidResponseError,
    LLMError,
    OAuthTokens,
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

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


def to_gemini_contents(messages: list[AIMessage]) -> list[dict[str, Any]]:
    """Convert chat turns to Gemini `contents` (assistant becomes 'model')."""
    return [
        {
            "role": "model" if m.role == "assistant" else "user",
            "parts": [{"text": m.content}],
        }
        for m in messages
    ]


class GeminiBackend(ProviderClient):
    """Google Gemini backend.

    Example:
        >>> backend = GeminiBackend(api_key="AIza...")
        >>> reply = await backend.send_message([AIMessage("user", "Hello")])

        >>> backend = GeminiBackend(
        ...     auth_mode=GeminiAuthMode.OAUTH, oauth_tokens=tokens
        ... )
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        auth_mode: GeminiAuthMode | str = GeminiAuthMode.API_KEY,
        oauth_tokens: OAuthTokens | None = None,
        timeout: float = 60.0,
    ):
        """Initialize Gemini backend.

        Args:
            api_key: Gemini API key (API-key mode).
            model: Model name; provider default when None.
            auth_mode: 'api-key' or 'oauth'.
            oauth_tokens: Token bundle (OAuth mode).
            timeout: Transport timeout in seconds.

        Raises:
            AuthenticationError: If the credentials for the mode are missing.
        """
        self._auth_mode = GeminiAuthMode(auth_mode)
        if self._auth_mode == GeminiAuthMode.OAUTH:
            if oauth_tokens is None:
                raise AuthenticationError("Gemini OAuth mode requires OAuth tokens.")
        elif not api_key:
            raise AuthenticationError("Gemini API key required.")

        self._api_key = api_key
        self._oauth_tokens = oauth_tokens
        self._model = resolve_model_name(LLMProviderType.GEMINI, model)
        self._timeout = timeout
        self._client: Any = None
        self._http: httpx.AsyncClient | None = None

    def _get_client(self) -> Any:
        """Lazily initialize the google-genai client.

        Raises:
            ImportError: If google-genai package not installed.
        """
        if self._client is None:
            try:
                from google import genai
                from google.genai import types

                self._client = genai.Client(
                    api_key=self._api_key,
                    http_options=types.HttpOptions(timeout=int(self._timeout * 1000)),
                )
            except ImportError as e:
                raise ImportError(
                    "google-genai package required. Install with: pip install google-genai"
                ) from e
        return self._client

    def _get_http(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout)
        return self._http

    @property
    def model_name(self) -> str:
        """Get the model identifier."""
        return self._model

    @property
    def provider(self) -> LLMProviderType:
        """Get the provider identifier."""
        return LLMProviderType.GEMINI

    @property
    def auth_mode(self) -> GeminiAuthMode:
        """Get the active authentication mode."""
        return self._auth_mode

    @property
    def credential_expires_at(self) -> datetime | None:
        """OAuth token expiry, None in API-key mode."""
        if self._auth_mode == GeminiAuthMode.OAUTH and self._oauth_tokens:
            return self._oauth_tokens.expires_at
        return None

    def _sdk_config(self, system: str | None, options: RequestOptions) -> Any:
        from google.genai import types

        return types.GenerateContentConfig(
            system_instruction=system,
            max_output_tokens=options.max_tokens,
            temperature=options.temperature,
        )

    async def send_message(
        self,
        messages: list[AIMessage],
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
    ) -> str:
        """Send messages via generateContent.

        Returns:
            Reply text, empty when the model returned no text parts.
        """
        options = options or RequestOptions()
        system, turns = split_system_messages(messages, system_prompt)
        model = options.model or self._model

        if self._auth_mode == GeminiAuthMode.OAUTH:
            return await self._send_oauth(model, turns, system, options)

        client = self._get_client()
        try:
            response = await client.aio.models.generate_content(
                model=model,
                contents=to_gemini_contents(turns),
                config=self._sdk_config(system, options),
            )
        except Exception as e:
            self._handle_error(e)
            raise
        return response.text or ""

    async def stream_message(
        self,
        messages: list[AIMessage],
        system_prompt: str | None = None,
        options: RequestOptions | None = None,
    ) -> AsyncIterator[str]:
        """Stream reply text.

        OAuth mode has no streaming transport and yields the complete reply
        as a single chunk.
        """
        options = options or RequestOptions()

        if self._auth_mode == GeminiAuthMode.OAUTH:
            text = await self.send_message(messages, system_prompt, options)
            if text:
                yield text
            return

        system, turns = split_system_messages(messages, system_prompt)
        client = self._get_client()
        try:
            stream = await client.aio.models.generate_content_stream(
                model=options.model or self._model,
                contents=to_gemini_contents(turns),
                config=self._sdk_config(system, options),
            )
            async for chunk in stream:
                if chunk.text:
                    yield chunk.text
        except Exception as e:
            self._handle_error(e)
            raise

    async def _send_oauth(
        self,
        model: str,
        turns: list[AIMessage],
        system: str | None,
        options: RequestOptions,
    ) -> str:
        tokens = self._oauth_tokens
        if tokens is None or tokens.is_expired():
            raise AuthenticationError(
                "Gemini OAuth token has expired. Please sign in again."
            )

        body: dict[str, Any] = {
            "contents": to_gemini_contents(turns),
            "generationConfig": {
                "maxOutputTokens": options.max_tokens,
                "temperature": options.temperature,
            },
        }
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}

        try:
            response = await self._get_http().post(
                f"{GEMINI_API_BASE}/models/{model}:generateContent",
                json=body,
                headers={"Authorization": f"Bearer {tokens.access_token}"},
            )
            response.raise_for_status()
            data = response.json()
        except Exception as e:
            self._handle_error(e)
            raise

        return extract_candidate_text(data)

    async def aclose(self) -> None:
        """Close the OAuth HTTP client and drop the SDK client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
        self._client = None

    def _handle_error(self, error: Exception) -> None:
        """Convert google-genai and httpx errors to standard exceptions.

        Args:
            error: The caught exception.

        Raises:
            LLMError: Always; the subclass reflects the failure kind.
        """
        if isinstance(error, LLMError):
            raise error
        if isinstance(error, httpx.TimeoutException):
            raise ProviderTimeoutError(str(error)) from error
        if isinstance(error, httpx.HTTPStatusError):
            raise convert_status_error(
                str(error), error.response.status_code, error
            ) from error
        if isinstance(error, httpx.TransportError):
            raise ProviderConnectionError(str(error)) from error
        if isinstance(error, ValueError):
            raise InvalidResponseError(f"Malformed Gemini response: {error}") from error

        from google.genai import errors as genai_errors

        if isinstance(error, genai_errors.APIError):
            raise convert_status_error(str(error), error.code, error) from error
        raise convert_by_message(error) from error


def extract_candidate_text(data: dict[str, Any]) -> str:
    """Join the text parts of the first candidate of a REST response."""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


__all__ = [
    "GEMINI_API_BASE",
    "GeminiBackend",
    "extract_candidate_text",
    "to_gemini_contents",
]
