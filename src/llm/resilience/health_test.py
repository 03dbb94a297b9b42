"""Unit tests for provider health monitoring."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from ..backend import AuthenticationError, LLMProviderType, RateLimitError
from .breaker import CircuitBreakerConfig, CircuitBreakerRegistry, CircuitState
from .health import HealthMonitor, HealthStatus, ProviderHealth, overall_status


@pytest.fixture
def registry(fake_clock) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(
        CircuitBreakerConfig(failure_threshold=3, cooldown_seconds=30.0), clock=fake_clock
    )


def _monitor(clients, registry, timeout=0.2, interval=0.05) -> HealthMonitor:
    return HealthMonitor(clients, registry, timeout=timeout, interval=interval)


class TestCheckOne:
    """Tests for single-provider probes."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unconfigured_is_unknown(self, registry):
        """Providers without a client are unknown and never probed."""
        health = await _monitor({}, registry).check_one(LLMProviderType.OPENAI)
        assert health.status == HealthStatus.UNKNOWN
        assert health.message == "No API key configured"
        assert health.last_check_time is not None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_successful_probe(self, registry, scripted_client):
        """A successful probe is healthy with its latency."""
        client = scripted_client(probe_result=42.0)
        monitor = _monitor({LLMProviderType.CLAUDE: client}, registry)

        health = await monitor.check_one("claude")

        assert health.status == HealthStatus.HEALTHY
        assert health.response_time_ms == 42.0
        assert health.circuit_state == CircuitState.CLOSED
        assert registry.get("claude").stats().total_successes == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "status", "message"),
        [
            (AuthenticationError("Invalid API key"), HealthStatus.UNHEALTHY, "Invalid API key"),
            (RateLimitError("Too many requests"), HealthStatus.DEGRADED, "Rate limited"),
        ],
    )
    async def test_failed_probe(self, registry, scripted_client, error, status, message):
        """Probe failures map to health status by category."""
        client = scripted_client(probe_result=error)
        monitor = _monitor({LLMProviderType.CLAUDE: client}, registry)

        health = await monitor.check_one(LLMProviderType.CLAUDE)

        assert health.status == status
        assert health.message == message
        assert health.consecutive_failures == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_probe_timeout(self, registry, scripted_client):
        """Probes slower than the timeout are unhealthy."""
        client = scripted_client(delay=1.0)
        monitor = _monitor({LLMProviderType.CLAUDE: client}, registry, timeout=0.01)

        health = await monitor.check_one(LLMProviderType.CLAUDE)

        assert health.status == HealthStatus.UNHEALTHY
        assert "too long" in health.message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_expiring_credentials_degraded(self, registry, scripted_client):
        """Credentials expiring within a day are reported as degraded."""
        client = scripted_client(LLMProviderType.GEMINI)
        client.expires_at = datetime.now(UTC) + timedelta(hours=3)
        monitor = _monitor({LLMProviderType.GEMINI: client}, registry)

        health = await monitor.check_one(LLMProviderType.GEMINI)

        assert health.status == HealthStatus.DEGRADED
        assert health.message.startswith("OAuth token expires in")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_probe_failures_open_breaker(self, registry, scripted_client):
        """Probe failures share the breaker's failure budget."""
        client = scripted_client(probe_result=ConnectionError("refused"))
        monitor = _monitor({LLMProviderType.CLAUDE: client}, registry)

        for _ in range(3):
            await monitor.check_one(LLMProviderType.CLAUDE)

        assert registry.get("claude").state == CircuitState.OPEN
        assert monitor.snapshot()[LLMProviderType.CLAUDE].circuit_state == CircuitState.OPEN


class TestSnapshot:
    """Tests for snapshots and overall status."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_check_all_covers_every_provider(self, registry, scripted_client):
        """check_all reports every provider, configured or not."""
        monitor = _monitor({LLMProviderType.OPENAI: scripted_client("openai")}, registry)

        results = await monitor.check_all()

        assert set(results) == set(LLMProviderType)
        assert results[LLMProviderType.OPENAI].status == HealthStatus.HEALTHY
        assert results[LLMProviderType.CLAUDE].status == HealthStatus.UNKNOWN

    @pytest.mark.unit
    def test_snapshot_before_any_probe(self, registry, scripted_client):
        """Unprobed providers are unknown."""
        monitor = _monitor({LLMProviderType.CLAUDE: scripted_client()}, registry)
        snapshot = monitor.snapshot()

        assert snapshot[LLMProviderType.CLAUDE].status == HealthStatus.UNKNOWN
        assert snapshot[LLMProviderType.CLAUDE].message is None
        assert snapshot[LLMProviderType.GEMINI].message == "No API key configured"
        assert monitor.overall_status() == HealthStatus.UNKNOWN

    @pytest.mark.unit
    def test_overall_status(self):
        """Any bad provider degrades the system; otherwise healthy wins."""

        def health(status):
            return ProviderHealth(
                LLMProviderType.CLAUDE, status, None, CircuitState.CLOSED, 0
            )

        assert overall_status({}) == HealthStatus.UNKNOWN
        assert overall_status(
            {1: health(HealthStatus.HEALTHY), 2: health(HealthStatus.UNKNOWN)}
        ) == HealthStatus.HEALTHY
        assert overall_status(
            {1: health(HealthStatus.HEALTHY), 2: health(HealthStatus.UNHEALTHY)}
        ) == HealthStatus.DEGRADED

    @pytest.mark.unit
    def test_to_dict(self):
        """Health records serialise enums to values."""
        data = ProviderHealth(
            LLMProviderType.GEMINI, HealthStatus.HEALTHY, None, CircuitState.HALF_OPEN, 2
        ).to_dict()
        assert data["provider"] == "gemini"
        assert data["circuit_state"] == "half-open"
        assert data["last_check_time"] is None


class TestBackgroundMonitoring:
    """Tests for periodic probing."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_start_and_stop(self, registry, scripted_client):
        """The background task probes until stopped."""
        client = scripted_client()
        monitor = _monitor({LLMProviderType.CLAUDE: client}, registry, interval=0.01)

        monitor.start()
        assert monitor.running
        for _ in range(50):
            if client.probe_calls >= 2:
                break
            await asyncio.sleep(0.01)
        await monitor.stop()

        assert client.probe_calls >= 2
        assert not monitor.running
