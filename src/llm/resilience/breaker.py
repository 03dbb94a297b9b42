"""Per-provider circuit breaker.

States:
- closed: calls pass through; consecutive failures are counted.
- open: calls fail fast until the cooldown has elapsed.
- half-open: exactly one trial call is admitted to test recovery.

The open to half-open transition is checked lazily on the next `acquire()`.
Validation failures never count and never change state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from ...config import EnvVar, get_environment
from .errors import CircuitBreakerOpenError, ErrorCategory

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


@dataclass
class CircuitBreakerConfig:
    """Breaker thresholds.

    Attributes:
        failure_threshold: Consecutive failures before opening.
        cooldown_seconds: Time spent open before a trial is admitted.
    """

    failure_threshold: int = 5
    cooldown_seconds: float = 30.0

    @classmethod
    def from_environment(cls) -> CircuitBreakerConfig:
        """Build from CIRCUIT_FAILURE_THRESHOLD / CIRCUIT_COOLDOWN_SECONDS."""
        return cls(
            failure_threshold=get_environment(EnvVar.CIRCUIT_FAILURE_THRESHOLD),
            cooldown_seconds=get_environment(EnvVar.CIRCUIT_COOLDOWN_SECONDS),
        )


@dataclass
class CircuitBreakerStats:
    """Point-in-time breaker statistics (epoch seconds for times)."""

    name: str
    state: CircuitState
    consecutive_failures: int
    last_failure_time: float | None
    last_success_time: float | None
    next_attempt_time: float | None
    total_requests: int
    total_failures: int
    total_successes: int

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data


@dataclass(frozen=True)
class Permit:
    """Admission ticket returned by `CircuitBreaker.acquire()`.

    Attributes:
        trial: True when this call is the single half-open trial.
    """

    trial: bool = False


class CircuitBreaker:
    """Circuit breaker guarding one provider.

    All mutations run under a per-breaker asyncio.Lock.

    Example:
        >>> breaker = CircuitBreaker("claude")
        >>> permit = await breaker.acquire()
        >>> try:
        ...     reply = await client.send_message(messages)
        ... except Exception as e:
        ...     await breaker.record_failure(classify(e).category, permit)
        ...     raise
        >>> await breaker.record_success(permit)
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = asyncio.Lock()

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._last_failure_time: float | None = None
        self._last_success_time: float | None = None
        self._opened_at: float | None = None
        self._trial_in_flight = False
        self._total_requests = 0
        self._total_failures = 0
        self._total_successes = 0

    @property
    def state(self) -> CircuitState:
        """Current state (open is reported until the next acquire)."""
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def _next_attempt_time(self) -> float | None:
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return None
        return self._opened_at + self.config.cooldown_seconds

    async def acquire(self) -> Permit:
        """Ask for admission.

        Returns:
            Permit; `permit.trial` is True for the half-open trial.

        Raises:
            CircuitBreakerOpenError: While open, or while a trial is running.
        """
        async with self._lock:
            now = self._clock()

            if self._state == CircuitState.OPEN:
                next_attempt = self._next_attempt_time() or now
                if now < next_attempt:
                    raise CircuitBreakerOpenError(self.name, retry_after=next_attempt - now)
                self._transition(CircuitState.HALF_OPEN)

            if self._state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise CircuitBreakerOpenError(self.name)
                self._trial_in_flight = True
                self._total_requests += 1
                return Permit(trial=True)

            self._total_requests += 1
            return Permit()

    async def record_success(self, permit: Permit | None = None) -> None:
        """Record a successful call.

        Args:
            permit: Permit from `acquire()`; None for outside observations
                (health probes), which never resolve a half-open trial.
        """
        async with self._lock:
            if permit is None:
                self._total_requests += 1
            self._total_successes += 1
            self._last_success_time = self._clock()
            self._consecutive_failures = 0

            if permit is not None and permit.trial:
                self._trial_in_flight = False
                self._transition(CircuitState.CLOSED)

    async def record_failure(
        self, category: ErrorCategory | str, permit: Permit | None = None
    ) -> None:
        """Record a classified failure.

        Args:
            category: Error category; validation failures are ignored.
            permit: Permit from `acquire()`; None for outside observations.
        """
        async with self._lock:
            if permit is None:
                self._total_requests += 1

            if ErrorCategory(category) == ErrorCategory.VALIDATION:
                if permit is not None and permit.trial:
                    self._trial_in_flight = False
                return

            self._total_failures += 1
            self._consecutive_failures += 1
            self._last_failure_time = self._clock()

            if permit is not None and permit.trial:
                self._trial_in_flight = False
                self._transition(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._consecutive_failures >= self.config.failure_threshold
            ):
                self._transition(CircuitState.OPEN)
            else:
                logger.debug(
                    f"[{self.name}] Failure recorded "
                    f"({self._consecutive_failures}/{self.config.failure_threshold})"
                )

    async def release(self, permit: Permit) -> None:
        """Give back a permit whose call ended without an outcome."""
        if not permit.trial:
            return
        async with self._lock:
            self._trial_in_flight = False

    async def reset(self) -> None:
        """Force closed with counters zeroed."""
        async with self._lock:
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._last_failure_time = None
            self._last_success_time = None
            self._opened_at = None
            self._trial_in_flight = False
            self._total_requests = 0
            self._total_failures = 0
            self._total_successes = 0
        logger.info(f"[{self.name}] Circuit breaker reset")

    def stats(self) -> CircuitBreakerStats:
        """Snapshot of the breaker statistics."""
        return CircuitBreakerStats(
            name=self.name,
            state=self._state,
            consecutive_failures=self._consecutive_failures,
            last_failure_time=self._last_failure_time,
            last_success_time=self._last_success_time,
            next_attempt_time=self._next_attempt_time(),
            total_requests=self._total_requests,
            total_failures=self._total_failures,
            total_successes=self._total_successes,
        )

    def _transition(self, state: CircuitState) -> None:
        previous = self._state
        self._state = state

        if state == CircuitState.OPEN:
            self._opened_at = self._clock()
            logger.warning(
                f"[{self.name}] Circuit {previous.value} -> open after "
                f"{self._consecutive_failures} failures; retry in "
                f"{self.config.cooldown_seconds:.0f}s"
            )
        elif state == CircuitState.HALF_OPEN:
            logger.info(f"[{self.name}] Circuit half-open, admitting one trial")
        else:
            self._consecutive_failures = 0
            self._opened_at = None
            logger.info(f"[{self.name}] Circuit closed")


class CircuitBreakerRegistry:
    """Named breakers sharing one configuration."""

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}

    def get_or_create(self, name: str) -> CircuitBreaker:
        """Get the breaker for `name`, creating it on first use."""
        if name not in self._breakers:
            self._breakers[name] = CircuitBreaker(name, self.config, self._clock)
        return self._breakers[name]

    def get(self, name: str) -> CircuitBreaker | None:
        return self._breakers.get(name)

    def names(self) -> list[str]:
        return list(self._breakers)

    def all_stats(self) -> dict[str, CircuitBreakerStats]:
        """Stats for every breaker, keyed by name."""
        return {name: breaker.stats() for name, breaker in self._breakers.items()}

    async def reset_all(self) -> None:
        """Reset every breaker."""
        for breaker in self._breakers.values():
            await breaker.reset()


__all__ = [
    "CircuitState",
    "CircuitBreakerConfig",
    "CircuitBreakerStats",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "Permit",
]
