"""Unit tests for the circuit breaker."""

import asyncio

import pytest

from .breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from .errors import CircuitBreakerOpenError, ErrorCategory


@pytest.fixture
def breaker(fake_clock) -> CircuitBreaker:
    return CircuitBreaker(
        "claude",
        CircuitBreakerConfig(failure_threshold=3, cooldown_seconds=30.0),
        clock=fake_clock,
    )


async def _fail(breaker: CircuitBreaker, times: int, category=ErrorCategory.NETWORK):
    for _ in range(times):
        permit = await breaker.acquire()
        await breaker.record_failure(category, permit)


class TestClosedState:
    """Tests for failure counting while closed."""

    @pytest.mark.unit
    def test_defaults(self):
        """Default threshold and cooldown."""
        config = CircuitBreakerConfig()
        assert config.failure_threshold == 5
        assert config.cooldown_seconds == 30.0

    @pytest.mark.unit
    def test_from_environment(self, monkeypatch):
        """Thresholds are configurable by environment."""
        monkeypatch.setenv("CIRCUIT_FAILURE_THRESHOLD", "2")
        monkeypatch.setenv("CIRCUIT_COOLDOWN_SECONDS", "7.5")
        config = CircuitBreakerConfig.from_environment()
        assert config.failure_threshold == 2
        assert config.cooldown_seconds == 7.5

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, breaker):
        """N consecutive failures open the circuit."""
        await _fail(breaker, 2)
        assert breaker.state == CircuitState.CLOSED
        await _fail(breaker, 1)
        assert breaker.state == CircuitState.OPEN
        assert breaker.consecutive_failures == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success_resets_count(self, breaker):
        """A success zeroes consecutive failures."""
        await _fail(breaker, 2)
        permit = await breaker.acquire()
        await breaker.record_success(permit)
        assert breaker.consecutive_failures == 0
        await _fail(breaker, 2)
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_validation_failures_ignored(self, breaker):
        """Validation failures never count."""
        await _fail(breaker, 10, ErrorCategory.VALIDATION)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 0
        assert breaker.stats().total_failures == 0


class TestOpenAndHalfOpen:
    """Tests for open/half-open transitions."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_open_rejects_until_cooldown(self, breaker, fake_clock):
        """Open circuits fail fast with the remaining wait."""
        await _fail(breaker, 3)
        fake_clock.advance(10)
        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            await breaker.acquire()
        assert exc_info.value.retry_after == pytest.approx(20.0)
        assert breaker.stats().next_attempt_time == pytest.approx(fake_clock.now + 20)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_single_trial_after_cooldown(self, breaker, fake_clock):
        """After cooldown exactly one trial is admitted."""
        await _fail(breaker, 3)
        fake_clock.advance(30)

        trial = await breaker.acquire()
        assert trial.trial is True
        assert breaker.state == CircuitState.HALF_OPEN
        with pytest.raises(CircuitBreakerOpenError):
            await breaker.acquire()

        await breaker.record_success(trial)
        assert breaker.state == CircuitState.CLOSED
        assert (await breaker.acquire()).trial is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrent_acquire_admits_one(self, breaker, fake_clock):
        """Concurrent callers in half-open: one trial, the rest rejected."""
        await _fail(breaker, 3)
        fake_clock.advance(31)

        results = await asyncio.gather(
            *(breaker.acquire() for _ in range(5)), return_exceptions=True
        )
        trials = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, CircuitBreakerOpenError)]
        assert len(trials) == 1
        assert len(rejected) == 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_trial_failure_reopens(self, breaker, fake_clock):
        """A failed trial reopens and restarts the cooldown."""
        await _fail(breaker, 3)
        fake_clock.advance(30)
        trial = await breaker.acquire()
        await breaker.record_failure(ErrorCategory.TIMEOUT, trial)

        assert breaker.state == CircuitState.OPEN
        fake_clock.advance(29)
        with pytest.raises(CircuitBreakerOpenError):
            await breaker.acquire()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_validation_trial_releases_slot(self, breaker, fake_clock):
        """A trial ending in validation failure frees the slot, state unchanged."""
        await _fail(breaker, 3)
        fake_clock.advance(30)
        trial = await breaker.acquire()
        await breaker.record_failure(ErrorCategory.VALIDATION, trial)

        assert breaker.state == CircuitState.HALF_OPEN
        assert (await breaker.acquire()).trial is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_abandoned_trial_releases_slot(self, breaker, fake_clock):
        """Releasing a trial without outcome admits the next trial."""
        await _fail(breaker, 3)
        fake_clock.advance(30)
        trial = await breaker.acquire()
        await breaker.release(trial)

        assert breaker.state == CircuitState.HALF_OPEN
        assert (await breaker.acquire()).trial is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_observations_do_not_resolve_trial(self, breaker, fake_clock):
        """Outcomes recorded without a permit never close a half-open circuit."""
        await _fail(breaker, 3)
        fake_clock.advance(30)
        await breaker.acquire()
        await breaker.record_success()
        assert breaker.state == CircuitState.HALF_OPEN

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_observed_success_clears_count_while_open(self, breaker):
        """A success outside the closed state zeroes the count without closing."""
        await _fail(breaker, 3)

        await breaker.record_success()

        assert breaker.consecutive_failures == 0
        assert breaker.state == CircuitState.OPEN

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_observed_failures_share_budget(self, breaker):
        """Permit-less failures count toward the threshold."""
        await _fail(breaker, 2)
        await breaker.record_failure(ErrorCategory.NETWORK)
        assert breaker.state == CircuitState.OPEN


class TestResetAndStats:
    """Tests for reset and statistics."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reset(self, breaker):
        """Reset forces closed with counters zeroed."""
        await _fail(breaker, 3)
        await breaker.reset()
        stats = breaker.stats()
        assert stats.state == CircuitState.CLOSED
        assert stats.consecutive_failures == 0
        assert stats.total_requests == 0
        assert stats.next_attempt_time is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stats_totals(self, breaker, fake_clock):
        """Totals count requests, failures and successes."""
        await _fail(breaker, 1)
        permit = await breaker.acquire()
        await breaker.record_success(permit)

        data = breaker.stats().to_dict()
        assert data["name"] == "claude"
        assert data["state"] == "closed"
        assert data["total_requests"] == 2
        assert data["total_failures"] == 1
        assert data["total_successes"] == 1
        assert data["last_success_time"] == fake_clock.now


class TestRegistry:
    """Tests for CircuitBreakerRegistry."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_get_or_create_and_reset_all(self, fake_clock):
        """Breakers are created once and reset together."""
        registry = CircuitBreakerRegistry(
            CircuitBreakerConfig(failure_threshold=1), clock=fake_clock
        )
        claude = registry.get_or_create("claude")
        assert registry.get_or_create("claude") is claude
        assert registry.get("openai") is None

        await _fail(claude, 1)
        assert registry.all_stats()["claude"].state == CircuitState.OPEN

        await registry.reset_all()
        assert claude.state == CircuitState.CLOSED
        assert registry.names() == ["claude"]
