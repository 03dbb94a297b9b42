"""Tests for provider client implementations."""

import json
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import httpx
import pytest

from .base import (
    AIMessage,
    AuthenticationError,
    GeminiAuthMode,
    OAuthTokens,
    ProviderAPIError,
    ProviderConfig,
    ProviderConnectionError,
    ProviderTimeoutError,
    RateLimitError,
    RequestOptions,
    convert_status_error,
    split_system_messages,
)
from .factory import create_from_config, create_provider_client
from .model_spec import (
    LLMCapability,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    get_llm_spec,
    get_provider_metadata,
    resolve_model_name,
)


def _response(status: int, headers: dict | None = None) -> httpx.Response:
    return httpx.Response(
        status,
        headers=headers or {},
        request=httpx.Request("POST", "https://api.example.test/v1"),
    )


class _AsyncCall:
    """Records kwargs and returns (or raises) a scripted result."""

    def __init__(self, result=None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.kwargs: dict = {}

    async def __call__(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.result


class TestLLMSpec:
    """Tests for LLMSpec dataclass."""

    @pytest.mark.unit
    def test_spec_capabilities(self):
        """Test capability checking."""
        spec = LLMSpec(
            name="test",
            provider=LLMProviderType.OPENAI,
            context_window=128000,
            max_output_tokens=4096,
            capabilities=frozenset({LLMCapability.JSON_MODE, LLMCapability.STREAMING}),
        )
        assert spec.supports(LLMCapability.STREAMING)
        assert not spec.supports(LLMCapability.VISION)


class TestLLMModel:
    """Tests for LLMModel enum registry."""

    @pytest.mark.unit
    def test_by_name_lookup(self):
        """Test looking up models by name."""
        assert LLMModel.by_name("gpt-5.1") == LLMModel.GPT_5_1
        assert LLMModel.by_name("gemini-2.5-flash") == LLMModel.GEMINI_2_5_FLASH
        assert LLMModel.by_name("nonexistent") is None

    @pytest.mark.unit
    def test_list_by_provider(self):
        """Every provider has at least one model."""
        for provider in LLMProviderType:
            models = LLMModel.list_by_provider(provider)
            assert models
            assert all(m.spec.provider == provider for m in models)

    @pytest.mark.unit
    def test_get_llm_spec_unknown(self):
        """Unknown model names raise ValueError."""
        with pytest.raises(ValueError, match="Unknown model"):
            get_llm_spec("nonexistent-model")

    @pytest.mark.unit
    def test_resolve_model_name(self):
        """Defaults apply only when no model is given."""
        assert resolve_model_name(LLMProviderType.CLAUDE, None) == (
            "claude-sonnet-4-5-20250929"
        )
        assert resolve_model_name(LLMProviderType.OPENAI, "gpt-custom") == "gpt-custom"

    @pytest.mark.unit
    def test_provider_metadata_key_format(self):
        """Key prefixes give a cheap format check."""
        meta = get_provider_metadata("claude")
        assert meta.looks_like_key("sk-ant-abc")
        assert not meta.looks_like_key("AIza123")
        assert not meta.looks_like_key(None)


class TestMessages:
    """Tests for message types and helpers."""

    @pytest.mark.unit
    def test_invalid_role_rejected(self):
        """Only user/assistant/system roles are valid."""
        with pytest.raises(ValueError):
            AIMessage("tool", "x")

    @pytest.mark.unit
    def test_request_defaults(self):
        """Default generation options."""
        options = RequestOptions()
        assert options.max_tokens == 2048
        assert options.temperature == 0.7
        assert options.model is None

    @pytest.mark.unit
    def test_split_system_messages(self):
        """System-role messages fold into the system prompt."""
        system, turns = split_system_messages(
            [AIMessage("system", "extra"), AIMessage("user", "hi")], "base"
        )
        assert system == "base\n\nextra"
        assert [t.role for t in turns] == ["user"]

    @pytest.mark.unit
    def test_split_without_system(self):
        """No system content yields None."""
        system, _ = split_system_messages([AIMessage("user", "hi")], None)
        assert system is None

    @pytest.mark.unit
    def test_oauth_tokens_expiry(self):
        """Token expiry helpers."""
        now = datetime(2025, 1, 1, tzinfo=UTC)
        tokens = OAuthTokens("t", expires_at=now + timedelta(hours=2))
        assert not tokens.is_expired(now)
        assert tokens.hours_until_expiry(now) == pytest.approx(2.0)
        assert tokens.is_expired(now + timedelta(hours=3))

    @pytest.mark.unit
    def test_oauth_tokens_from_epoch_ms(self):
        """Millisecond epochs convert to aware datetimes."""
        tokens = OAuthTokens.from_epoch_ms("t", 1_700_000_000_000, email="a@b.c")
        assert tokens.expires_at.tzinfo is not None
        assert tokens.email == "a@b.c"


class TestStatusConversion:
    """Tests for HTTP status mapping."""

    @pytest.mark.unit
    def test_rate_limit_reads_retry_after(self):
        """429 keeps the retry-after header."""
        error = httpx.HTTPStatusError(
            "429", request=httpx.Request("GET", "https://x"),
            response=_response(429, {"retry-after": "12"}),
        )
        converted = convert_status_error("slow down", 429, error)
        assert isinstance(converted, RateLimitError)
        assert converted.retry_after == 12.0

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "status,expected",
        [
            (401, AuthenticationError),
            (403, AuthenticationError),
            (504, ProviderTimeoutError),
            (500, ProviderAPIError),
        ],
    )
    def test_status_mapping(self, status, expected):
        """Statuses map to the provider exception hierarchy."""
        assert isinstance(convert_status_error("x", status, Exception()), expected)


class TestAnthropicBackend:
    """Tests for Anthropic backend."""

    @pytest.mark.unit
    def test_requires_api_key(self):
        """Test that backend requires API key."""
        from .anthropic import AnthropicBackend

        with pytest.raises(AuthenticationError, match="API key required"):
            AnthropicBackend(api_key=None)

    @pytest.mark.unit
    def test_creates_with_api_key(self):
        """Test backend creation with API key."""
        from .anthropic import AnthropicBackend

        backend = AnthropicBackend(api_key="test-key-12345")
        assert backend.provider == LLMProviderType.CLAUDE
        assert backend.model_name == "claude-sonnet-4-5-20250929"
        assert backend.name == "claude:claude-sonnet-4-5-20250929"
        assert backend.credential_expires_at is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_send_passes_system_separately(self):
        """System prompt goes in `system`, not in messages."""
        from .anthropic import AnthropicBackend

        backend = AnthropicBackend(api_key="test-key")
        create = _AsyncCall(
            SimpleNamespace(content=[SimpleNamespace(type="text", text="Hello!")])
        )
        backend._client = SimpleNamespace(messages=SimpleNamespace(create=create))

        reply = await backend.send_message(
            [AIMessage("user", "Hi")], "Be brief", RequestOptions(max_tokens=10)
        )

        assert reply == "Hello!"
        assert create.kwargs["system"] == "Be brief"
        assert create.kwargs["messages"] == [{"role": "user", "content": "Hi"}]
        assert create.kwargs["max_tokens"] == 10

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limit_converted(self):
        """SDK rate-limit errors become RateLimitError with retry_after."""
        import anthropic

        from .anthropic import AnthropicBackend

        backend = AnthropicBackend(api_key="test-key")
        error = anthropic.RateLimitError(
            "rate limited", response=_response(429, {"retry-after": "7"}), body=None
        )
        backend._client = SimpleNamespace(
            messages=SimpleNamespace(create=_AsyncCall(error=error))
        )

        with pytest.raises(RateLimitError) as exc_info:
            await backend.send_message([AIMessage("user", "Hi")])
        assert exc_info.value.retry_after == 7.0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_connection_error_converted(self):
        """SDK connection errors become ProviderConnectionError."""
        import anthropic

        from .anthropic import AnthropicBackend

        backend = AnthropicBackend(api_key="test-key")
        error = anthropic.APIConnectionError(request=httpx.Request("POST", "https://x"))
        backend._client = SimpleNamespace(
            messages=SimpleNamespace(create=_AsyncCall(error=error))
        )

        with pytest.raises(ProviderConnectionError):
            await backend.send_message([AIMessage("user", "Hi")])


class TestOpenAIBackend:
    """Tests for OpenAI backend."""

    @pytest.mark.unit
    def test_requires_api_key(self):
        """Test that backend requires API key."""
        from .openai import OpenAIBackend

        with pytest.raises(AuthenticationError, match="API key required"):
            OpenAIBackend(api_key="")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_system_prompt_prepended(self):
        """System prompt becomes the first message."""
        from .openai import OpenAIBackend

        backend = OpenAIBackend(api_key="test-key", model="gpt-4.1-mini")
        message = SimpleNamespace(content="Sure")
        create = _AsyncCall(SimpleNamespace(choices=[SimpleNamespace(message=message)]))
        backend._client = SimpleNamespace(
            chat=SimpleNamespace(completions=SimpleNamespace(create=create))
        )

        reply = await backend.send_message([AIMessage("user", "Hi")], "Sys")

        assert reply == "Sure"
        assert create.kwargs["messages"][0] == {"role": "system", "content": "Sys"}
        assert create.kwargs["max_completion_tokens"] == 2048
        assert create.kwargs["temperature"] == 0.7

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reasoning_models_omit_temperature(self):
        """GPT-5 family requests use the default temperature."""
        from .openai import OpenAIBackend

        backend = OpenAIBackend(api_key="test-key")
        create = _AsyncCall(SimpleNamespace(choices=[]))
        backend._client = SimpleNamespace(
            chat=SimpleNamespace(completions=SimpleNamespace(create=create))
        )

        assert await backend.send_message([AIMessage("user", "Hi")]) == ""
        assert "temperature" not in create.kwargs

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stream_yields_deltas(self):
        """Streaming yields non-empty content deltas only."""
        from .openai import OpenAIBackend

        def chunk(text):
            return SimpleNamespace(
                choices=[SimpleNamespace(delta=SimpleNamespace(content=text))]
            )

        async def fake_stream():
            for item in (chunk("Hel"), chunk(None), SimpleNamespace(choices=[]), chunk("lo")):
                yield item

        backend = OpenAIBackend(api_key="test-key")
        create = _AsyncCall(fake_stream())
        backend._client = SimpleNamespace(
            chat=SimpleNamespace(completions=SimpleNamespace(create=create))
        )

        chunks = [c async for c in backend.stream_message([AIMessage("user", "Hi")])]
        assert chunks == ["Hel", "lo"]
        assert create.kwargs["stream"] is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_auth_error_converted(self):
        """401 responses become AuthenticationError."""
        import openai

        from .openai import OpenAIBackend

        backend = OpenAIBackend(api_key="test-key")
        error = openai.AuthenticationError("bad key", response=_response(401), body=None)
        backend._client = SimpleNamespace(
            models=SimpleNamespace(list=_AsyncCall(error=error))
        )

        with pytest.raises(AuthenticationError):
            await backend.probe()


class TestGeminiBackend:
    """Tests for Gemini backend."""

    @pytest.fixture
    def tokens(self) -> OAuthTokens:
        return OAuthTokens(
            access_token="ya29.token",
            expires_at=datetime.now(UTC) + timedelta(hours=1),
        )

    @pytest.mark.unit
    def test_api_key_mode_requires_key(self):
        """API-key mode needs a key."""
        from .google import GeminiBackend

        with pytest.raises(AuthenticationError):
            GeminiBackend(api_key=None)

    @pytest.mark.unit
    def test_oauth_mode_requires_tokens(self):
        """OAuth mode needs a token bundle."""
        from .google import GeminiBackend

        with pytest.raises(AuthenticationError):
            GeminiBackend(auth_mode="oauth")

    @pytest.mark.unit
    def test_contents_mapping(self):
        """Assistant turns map to the 'model' role."""
        from .google import to_gemini_contents

        contents = to_gemini_contents(
            [AIMessage("user", "a"), AIMessage("assistant", "b")]
        )
        assert [c["role"] for c in contents] == ["user", "model"]
        assert contents[1]["parts"] == [{"text": "b"}]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_oauth_request(self, tokens):
        """OAuth mode posts to generateContent with a bearer token."""
        from .google import GeminiBackend

        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [{"text": "Hi"}, {"text": "!"}]}}]},
            )

        backend = GeminiBackend(auth_mode=GeminiAuthMode.OAUTH, oauth_tokens=tokens)
        backend._http = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        reply = await backend.send_message([AIMessage("user", "Hello")], "Sys")
        await backend.aclose()

        assert reply == "Hi!"
        assert seen["url"].endswith("/models/gemini-2.5-flash:generateContent")
        assert seen["auth"] == "Bearer ya29.token"
        assert seen["body"]["systemInstruction"] == {"parts": [{"text": "Sys"}]}
        assert seen["body"]["generationConfig"]["maxOutputTokens"] == 2048
        assert backend.credential_expires_at == tokens.expires_at

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_oauth_stream_single_chunk(self, tokens):
        """OAuth streaming yields the full reply once."""
        from .google import GeminiBackend

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"candidates": [{"content": {"parts": [{"text": "All"}]}}]}
            )

        backend = GeminiBackend(auth_mode="oauth", oauth_tokens=tokens)
        backend._http = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        chunks = [c async for c in backend.stream_message([AIMessage("user", "x")])]
        assert chunks == ["All"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_oauth_rate_limit(self, tokens):
        """HTTP 429 becomes RateLimitError."""
        from .google import GeminiBackend

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, headers={"retry-after": "3"}, json={})

        backend = GeminiBackend(auth_mode="oauth", oauth_tokens=tokens)
        backend._http = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        with pytest.raises(RateLimitError) as exc_info:
            await backend.send_message([AIMessage("user", "x")])
        assert exc_info.value.retry_after == 3.0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_expired_token_fails_fast(self):
        """Expired tokens raise AuthenticationError without a request."""
        from .google import GeminiBackend

        expired = OAuthTokens("t", expires_at=datetime.now(UTC) - timedelta(minutes=1))
        backend = GeminiBackend(auth_mode="oauth", oauth_tokens=expired)

        with pytest.raises(AuthenticationError, match="expired"):
            await backend.send_message([AIMessage("user", "x")])
        assert backend._http is None


class TestFactory:
    """Tests for provider client factory."""

    @pytest.mark.unit
    @pytest.mark.parametrize("provider", ["claude", "openai", "gemini"])
    def test_creates_each_provider(self, provider):
        """Factory routes to the right backend class."""
        client = create_provider_client(provider, api_key="test-key")
        assert client.provider == LLMProviderType(provider)

    @pytest.mark.unit
    def test_unknown_provider(self):
        """Unknown providers are rejected."""
        with pytest.raises(ValueError):
            create_provider_client("mistral", api_key="k")

    @pytest.mark.unit
    def test_from_config(self):
        """ProviderConfig values pass through."""
        client = create_from_config(
            ProviderConfig(provider=LLMProviderType.OPENAI, api_key="k", model="gpt-5-mini")
        )
        assert client.model_name == "gpt-5-mini"
