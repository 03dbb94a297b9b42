"""Unit tests for the provider orchestrator."""

import pytest

from ..backend import (
    AIMessage,
    AuthenticationError,
    LLMProviderType,
    ProviderConnectionError,
    RateLimitError,
    RequestOptions,
)
from ..resilience import CircuitState, ErrorCategory, HealthStatus, ProviderError
from . import OrchestratorConfig, ProviderOrchestrator, StreamCallbacks

HELLO = [AIMessage("user", "Hello")]


class TestSendMessage:
    """Tests for send_message."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success(self, make_orchestrator, scripted_client):
        """Replies pass through and are counted."""
        client = scripted_client(replies=["Hi there"])
        orchestrator = make_orchestrator(client)

        reply = await orchestrator.send_message(HELLO, system_prompt="Be brief")

        assert reply == "Hi there"
        assert client.calls[0]["system_prompt"] == "Be brief"
        assert client.calls[0]["options"].max_tokens == 2048
        metrics = orchestrator.get_performance_metrics("send_message")
        assert metrics["success_count"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_provider(self, make_orchestrator):
        """Calls without a configured provider fail as auth."""
        orchestrator = make_orchestrator()

        with pytest.raises(ProviderError) as exc_info:
            await orchestrator.send_message(HELLO)

        assert exc_info.value.category == ErrorCategory.AUTH
        assert exc_info.value.details.title == "API Key Required"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_provider_override(self, make_orchestrator, scripted_client):
        """A provider argument routes past the active provider."""
        claude = scripted_client(LLMProviderType.CLAUDE, replies=["from claude"])
        openai = scripted_client(LLMProviderType.OPENAI, replies=["from openai"])
        orchestrator = make_orchestrator(claude, openai)

        assert orchestrator.active_provider == LLMProviderType.CLAUDE
        assert await orchestrator.send_message(HELLO, provider="openai") == "from openai"
        assert claude.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failures_are_classified(self, make_orchestrator, scripted_client):
        """Raw errors leave as ProviderError with details."""
        client = scripted_client(replies=[RateLimitError("slow down", retry_after=5)])
        orchestrator = make_orchestrator(client)

        with pytest.raises(ProviderError) as exc_info:
            await orchestrator.send_message(HELLO)

        assert exc_info.value.category == ErrorCategory.RATE_LIMIT
        assert exc_info.value.details.retry_after == 5
        assert isinstance(exc_info.value.__cause__, RateLimitError)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_breaker_opens_and_fails_fast(self, make_orchestrator, scripted_client):
        """After the threshold the provider is not called at all."""
        client = scripted_client(replies=[ProviderConnectionError("down")] * 3)
        orchestrator = make_orchestrator(client)

        for _ in range(3):
            with pytest.raises(ProviderError):
                await orchestrator.send_message(HELLO)

        with pytest.raises(ProviderError) as exc_info:
            await orchestrator.send_message(HELLO)

        details = exc_info.value.details
        assert details.code == "circuit_open"
        assert details.retryable is False
        assert details.retry_after == pytest.approx(30.0)
        assert len(client.calls) == 3
        status = orchestrator.get_circuit_breaker_status()
        assert status["claude"]["state"] == "open"
        assert orchestrator.get_performance_metrics()["circuit_open_count"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_half_open_trial_closes(self, make_orchestrator, scripted_client, fake_clock):
        """A successful trial after cooldown closes the circuit."""
        client = scripted_client(replies=[ProviderConnectionError("down")] * 3 + ["back"])
        orchestrator = make_orchestrator(client)
        for _ in range(3):
            with pytest.raises(ProviderError):
                await orchestrator.send_message(HELLO)

        fake_clock.advance(30)

        assert await orchestrator.send_message(HELLO) == "back"
        assert orchestrator.context.breakers.get("claude").state == CircuitState.CLOSED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_validation_never_trips(self, make_orchestrator, scripted_client):
        """Validation failures leave the breaker closed."""
        client = scripted_client(replies=[ValueError("bad input")] * 5)
        orchestrator = make_orchestrator(client)

        for _ in range(5):
            with pytest.raises(ProviderError) as exc_info:
                await orchestrator.send_message(HELLO)
            assert exc_info.value.category == ErrorCategory.VALIDATION

        assert orchestrator.context.breakers.get("claude").state == CircuitState.CLOSED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self, make_orchestrator, scripted_client):
        """Calls past the request timeout fail as timeout."""
        client = scripted_client(delay=2.0)
        orchestrator = make_orchestrator(client)

        with pytest.raises(ProviderError) as exc_info:
            await orchestrator.send_message(HELLO)

        assert exc_info.value.category == ErrorCategory.TIMEOUT
        assert orchestrator.get_performance_metrics()["timeout_count"] == 1
        assert orchestrator.context.breakers.get("claude").consecutive_failures == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cache(self, make_orchestrator, scripted_client):
        """Identical cacheable requests hit the provider once."""
        client = scripted_client(replies=["first", "second"])
        orchestrator = make_orchestrator(client)
        options = RequestOptions(max_tokens=4096)

        first = await orchestrator.send_message(HELLO, options=options, use_cache=True)
        second = await orchestrator.send_message(HELLO, options=options, use_cache=True)
        uncached = await orchestrator.send_message(HELLO, options=options)

        assert first == second == "first"
        assert uncached == "second"
        assert orchestrator.get_cache_stats()["hits"] == 1
        assert orchestrator.get_performance_metrics()["cache_hit_rate"] == 0.5

        orchestrator.clear_caches()
        assert orchestrator.get_cache_stats()["size"] == 0


class TestStreaming:
    """Tests for stream_message and stream_with_callbacks."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_chunks(self, make_orchestrator, scripted_client):
        """Chunks arrive in order and accumulate."""
        orchestrator = make_orchestrator(scripted_client(replies=[["Hel", "lo", "!"]]))

        stream = orchestrator.stream_message(HELLO)
        chunks = [chunk async for chunk in stream]

        assert chunks == ["Hel", "lo", "!"]
        assert stream.text == "Hello!"
        assert stream.finished
        assert orchestrator.get_performance_metrics("stream_message")["success_count"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mid_stream_failure(self, make_orchestrator, scripted_client):
        """A failure after some chunks raises ProviderError from the iterator."""
        client = scripted_client(replies=[["partial", ProviderConnectionError("reset")]])
        orchestrator = make_orchestrator(client)

        received = []
        with pytest.raises(ProviderError) as exc_info:
            async for chunk in orchestrator.stream_message(HELLO):
                received.append(chunk)

        assert received == ["partial"]
        assert exc_info.value.category == ErrorCategory.NETWORK
        assert orchestrator.get_last_error().name == "stream_message"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_open_circuit_rejects_stream(self, make_orchestrator, scripted_client):
        """An open circuit fails the stream before any chunk."""
        client = scripted_client(replies=[ProviderConnectionError("down")] * 3)
        orchestrator = make_orchestrator(client)
        for _ in range(3):
            with pytest.raises(ProviderError):
                await orchestrator.send_message(HELLO)

        with pytest.raises(ProviderError) as exc_info:
            async for _ in orchestrator.stream_message(HELLO):
                pass

        assert exc_info.value.details.code == "circuit_open"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_abandoned_trial_is_released(
        self, make_orchestrator, scripted_client, fake_clock
    ):
        """Abandoning a half-open trial stream frees the trial slot."""
        client = scripted_client(
            replies=[ProviderConnectionError("down")] * 3 + [["one", "two", "three"]]
        )
        orchestrator = make_orchestrator(client)
        for _ in range(3):
            with pytest.raises(ProviderError):
                await orchestrator.send_message(HELLO)
        fake_clock.advance(30)

        async with orchestrator.stream_message(HELLO) as stream:
            async for _ in stream:
                break

        breaker = orchestrator.context.breakers.get("claude")
        assert breaker.state == CircuitState.HALF_OPEN
        assert (await breaker.acquire()).trial is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_callbacks_success(self, make_orchestrator, scripted_client):
        """Tokens then completion are delivered; async callbacks are awaited."""
        orchestrator = make_orchestrator(scripted_client(replies=[["a", "b"]]))
        tokens, completed = [], []

        async def on_complete(text):
            completed.append(text)

        result = await orchestrator.stream_with_callbacks(
            HELLO, StreamCallbacks(on_token=tokens.append, on_complete=on_complete)
        )

        assert result == "ab"
        assert tokens == ["a", "b"]
        assert completed == ["ab"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_callbacks_error(self, make_orchestrator, scripted_client):
        """Failures go to on_error and completion is skipped."""
        orchestrator = make_orchestrator(
            scripted_client(replies=[AuthenticationError("Invalid API key")])
        )
        errors, completed = [], []

        result = await orchestrator.stream_with_callbacks(
            HELLO, StreamCallbacks(on_complete=completed.append, on_error=errors.append)
        )

        assert result is None
        assert completed == []
        assert errors[0].category == ErrorCategory.AUTH


class TestValidateApiKey:
    """Tests for validate_api_key."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_valid(self, make_orchestrator, scripted_client):
        client = scripted_client()
        orchestrator = make_orchestrator(client)

        result = await orchestrator.validate_api_key("claude")

        assert result.valid is True
        assert client.validate_calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_bypasses_breaker(self, make_orchestrator, scripted_client):
        """Rejected keys never touch the breaker but are recorded."""
        client = scripted_client(replies=[AuthenticationError("Invalid API key")] * 5)
        orchestrator = make_orchestrator(client)

        for _ in range(5):
            result = await orchestrator.validate_api_key(LLMProviderType.CLAUDE)
            assert result.valid is False
            assert result.error.category == ErrorCategory.AUTH

        stats = orchestrator.get_circuit_breaker_status()["claude"]
        assert stats["state"] == "closed"
        assert stats["total_requests"] == 0
        assert orchestrator.get_last_error().name == "validate_api_key"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unconfigured(self, make_orchestrator):
        result = await make_orchestrator().validate_api_key("gemini")
        assert result.valid is False
        assert result.to_dict()["error"]["title"] == "API Key Required"


class TestRecovery:
    """Tests for the last-error slot."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_nothing_to_retry(self, make_orchestrator):
        with pytest.raises(ValueError, match="No failed operation"):
            await make_orchestrator().retry_last_operation()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_succeeds_and_clears(self, make_orchestrator, scripted_client):
        """Explicit retry re-runs the call and clears the slot."""
        client = scripted_client(replies=[ProviderConnectionError("down"), "recovered"])
        orchestrator = make_orchestrator(client)
        with pytest.raises(ProviderError):
            await orchestrator.send_message(HELLO)

        last = orchestrator.get_last_error()
        assert last.can_retry
        assert last.attempt_count == 1

        assert await orchestrator.retry_last_operation() == "recovered"
        assert orchestrator.get_last_error() is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_failure_increments_attempts(self, make_orchestrator, scripted_client):
        """A retry that fails again counts the attempt."""
        client = scripted_client(replies=[ProviderConnectionError("down")] * 2)
        orchestrator = make_orchestrator(client)
        with pytest.raises(ProviderError):
            await orchestrator.send_message(HELLO)

        with pytest.raises(ProviderError):
            await orchestrator.retry_last_operation()

        assert orchestrator.get_last_error().attempt_count == 2
        orchestrator.clear_error_state()
        assert orchestrator.get_last_error() is None

    @pytest.mark.unit
    def test_record_failure(self, make_orchestrator):
        """Callers can record their own failures."""
        orchestrator = make_orchestrator()
        failed = orchestrator.record_failure("parse_completion", ValueError("bad json"), "openai")
        assert failed.provider == "openai"
        assert failed.error.category == ErrorCategory.VALIDATION
        assert not failed.can_retry


class TestHealthAndLifecycle:
    """Tests for health, breaker status and shutdown."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_check_health(self, make_orchestrator, scripted_client):
        orchestrator = make_orchestrator(scripted_client())

        single = await orchestrator.check_health("claude")
        assert single["status"] == "healthy"

        snapshot = orchestrator.get_health_snapshot()
        assert set(snapshot["providers"]) == {"claude", "openai", "gemini"}
        assert snapshot["overall"] == "healthy"
        assert orchestrator.overall_health() == HealthStatus.HEALTHY

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reset_and_status(self, make_orchestrator, scripted_client):
        client = scripted_client(replies=[ProviderConnectionError("down")] * 3)
        orchestrator = make_orchestrator(client)
        for _ in range(3):
            with pytest.raises(ProviderError):
                await orchestrator.send_message(HELLO)

        await orchestrator.reset_circuit_breakers()

        status = orchestrator.get_circuit_breaker_status()
        assert set(status) == {"claude", "openai", "gemini"}
        assert all(s["state"] == "closed" for s in status.values())

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_aclose(self, make_orchestrator, scripted_client):
        client = scripted_client()
        orchestrator = make_orchestrator(client)
        orchestrator.start_health_monitoring()

        await orchestrator.aclose()

        assert client.closed
        assert not orchestrator.context.health.running

    @pytest.mark.unit
    def test_config_from_environment(self, monkeypatch):
        monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "12")
        monkeypatch.setenv("CACHE_MAX_SIZE", "7")
        config = OrchestratorConfig.from_environment()
        assert config.request_timeout == 12
        assert config.cache_max_size == 7

    @pytest.mark.unit
    def test_configure_from_environment(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("AI_PROVIDER", "openai")
        orchestrator = ProviderOrchestrator()

        registered = orchestrator.configure_from_environment()

        assert registered == [LLMProviderType.CLAUDE, LLMProviderType.OPENAI]
        assert orchestrator.active_provider == LLMProviderType.OPENAI

    @pytest.mark.unit
    def test_configure_from_environment_gemini_oauth(self, monkeypatch):
        """OAuth mode leaves Gemini for the sign-in flow to configure."""
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("GEMINI_API_KEY", "AIza-test")
        monkeypatch.setenv("GEMINI_AUTH_MODE", "oauth")
        orchestrator = ProviderOrchestrator()

        assert orchestrator.configure_from_environment() == []
        assert orchestrator.active_provider is None

    @pytest.mark.unit
    def test_configure_from_environment_missing_preferred(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("GEMINI_API_KEY", "AIza-test")
        monkeypatch.delenv("GEMINI_AUTH_MODE", raising=False)
        monkeypatch.setenv("AI_PROVIDER", "claude")
        orchestrator = ProviderOrchestrator()

        assert orchestrator.configure_from_environment() == [LLMProviderType.GEMINI]
        assert orchestrator.active_provider == LLMProviderType.GEMINI
