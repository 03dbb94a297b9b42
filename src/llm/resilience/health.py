"""Provider health monitoring.

Probes each configured provider with a lightweight request, classifies the
outcome and keeps one ProviderHealth record per provider. Probe outcomes
feed the provider's circuit breaker so health and breaker share a single
failure budget; circuit state and failure counts in a snapshot are always
read from the breaker.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ...config import EnvVar, get_environment
from ..backend import LLMProviderType, ProviderClient
from .breaker import CircuitBreakerRegistry, CircuitState
from .errors import ErrorCategory, classify

logger = logging.getLogger(__name__)

# OAuth credentials closer than this to expiry are reported as degraded
TOKEN_EXPIRY_WARNING_HOURS = 24


class HealthStatus(str, Enum):
    """Health of a single provider or of the system."""

    HEALTHY = "healthy"  # Probe succeeded
    DEGRADED = "degraded"  # Usable, but rate limited or erroring
    UNHEALTHY = "unhealthy"  # Unreachable or credentials rejected
    UNKNOWN = "unknown"  # Not configured or not yet checked


@dataclass
class ProviderHealth:
    """Health record for one provider."""

    provider: LLMProviderType
    status: HealthStatus
    last_check_time: datetime | None
    circuit_state: CircuitState
    consecutive_failures: int
    response_time_ms: float | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "provider": self.provider.value,
            "status": self.status.value,
            "last_check_time": (
                self.last_check_time.isoformat() if self.last_check_time else None
            ),
            "response_time_ms": self.response_time_ms,
            "circuit_state": self.circuit_state.value,
            "consecutive_failures": self.consecutive_failures,
            "message": self.message,
        }


_FAILURE_STATUS: dict[ErrorCategory, tuple[HealthStatus, str | None]] = {
    ErrorCategory.RATE_LIMIT: (HealthStatus.DEGRADED, "Rate limited"),
    ErrorCategory.AUTH: (HealthStatus.UNHEALTHY, "Invalid API key"),
    ErrorCategory.OAUTH: (HealthStatus.UNHEALTHY, "Invalid API key"),
    ErrorCategory.API_ERROR: (HealthStatus.DEGRADED, None),
}


def overall_status(healths: Mapping[Any, ProviderHealth]) -> HealthStatus:
    """Combine per-provider health into one status.

    Any unhealthy or degraded provider makes the system degraded; otherwise
    any healthy provider makes it healthy; otherwise it is unknown.
    """
    statuses = {h.status for h in healths.values()}
    if statuses & {HealthStatus.UNHEALTHY, HealthStatus.DEGRADED}:
        return HealthStatus.DEGRADED
    if HealthStatus.HEALTHY in statuses:
        return HealthStatus.HEALTHY
    return HealthStatus.UNKNOWN


class HealthMonitor:
    """Probes providers on demand or periodically.

    Args:
        clients: Live provider client table (shared with the orchestrator).
        breakers: Breaker registry the probe outcomes are recorded in.
        timeout: Probe timeout in seconds (HEALTH_CHECK_TIMEOUT).
        interval: Background probe interval in seconds (HEALTH_CHECK_INTERVAL).
    """

    def __init__(
        self,
        clients: Mapping[LLMProviderType, ProviderClient],
        breakers: CircuitBreakerRegistry,
        timeout: float | None = None,
        interval: float | None = None,
    ):
        self._clients = clients
        self._breakers = breakers
        self.timeout = timeout if timeout is not None else get_environment(
            EnvVar.HEALTH_CHECK_TIMEOUT
        )
        self.interval = interval if interval is not None else get_environment(
            EnvVar.HEALTH_CHECK_INTERVAL
        )
        self._health: dict[LLMProviderType, ProviderHealth] = {}
        self._task: asyncio.Task | None = None

    def _record(
        self,
        provider: LLMProviderType,
        status: HealthStatus,
        checked_at: datetime | None,
        response_time_ms: float | None = None,
        message: str | None = None,
    ) -> ProviderHealth:
        stats = self._breakers.get_or_create(provider.value).stats()
        return ProviderHealth(
            provider=provider,
            status=status,
            last_check_time=checked_at,
            circuit_state=stats.state,
            consecutive_failures=stats.consecutive_failures,
            response_time_ms=response_time_ms,
            message=message,
        )

    def _expiry_warning(self, client: ProviderClient, now: datetime) -> str | None:
        expires_at = client.credential_expires_at
        if expires_at is None:
            return None
        hours = (expires_at - now).total_seconds() / 3600
        if 0 < hours < TOKEN_EXPIRY_WARNING_HOURS:
            return f"OAuth token expires in {hours:.1f} hours"
        return None

    async def check_one(self, provider: LLMProviderType | str) -> ProviderHealth:
        """Probe one provider and update its health record.

        Args:
            provider: Provider to probe.

        Returns:
            The new ProviderHealth.
        """
        provider = LLMProviderType(provider)
        client = self._clients.get(provider)
        now = datetime.now(UTC)

        if client is None:
            health = self._record(
                provider, HealthStatus.UNKNOWN, now, message="No API key configured"
            )
            self._health[provider] = health
            return health

        breaker = self._breakers.get_or_create(provider.value)
        warning = self._expiry_warning(client, now)

        try:
            response_time = await asyncio.wait_for(client.probe(), timeout=self.timeout)
        except Exception as e:
            details = classify(e, context=provider.value)
            await breaker.record_failure(details.category)
            status, message = _FAILURE_STATUS.get(
                details.category, (HealthStatus.UNHEALTHY, None)
            )
            health = self._record(
                provider, status, now, message=message or details.message
            )
            logger.info(
                f"Health probe {provider.value}: {status.value} ({details.category.value})"
            )
        else:
            await breaker.record_success()
            status = HealthStatus.DEGRADED if warning else HealthStatus.HEALTHY
            health = self._record(
                provider, status, now, response_time_ms=response_time, message=warning
            )
            logger.debug(
                f"Health probe {provider.value}: {status.value} in {response_time:.0f}ms"
            )

        self._health[provider] = health
        return health

    async def check_all(self) -> dict[LLMProviderType, ProviderHealth]:
        """Probe every provider concurrently."""
        providers = list(LLMProviderType)
        results = await asyncio.gather(*(self.check_one(p) for p in providers))
        return dict(zip(providers, results))

    def snapshot(self) -> dict[LLMProviderType, ProviderHealth]:
        """Latest health per provider, with live breaker state.

        Providers that were never probed are reported as unknown.
        """
        snapshot = {}
        for provider in LLMProviderType:
            previous = self._health.get(provider)
            if previous is None:
                message = None if provider in self._clients else "No API key configured"
                snapshot[provider] = self._record(
                    provider, HealthStatus.UNKNOWN, None, message=message
                )
            else:
                snapshot[provider] = self._record(
                    provider,
                    previous.status,
                    previous.last_check_time,
                    previous.response_time_ms,
                    previous.message,
                )
        return snapshot

    def overall_status(self) -> HealthStatus:
        """Combined status of the latest snapshot."""
        return overall_status(self.snapshot())

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start periodic background probing on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="provider-health-monitor")
        logger.info(f"Health monitor started (every {self.interval:.0f}s)")

    async def stop(self) -> None:
        """Stop periodic probing."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Health monitor stopped")

    async def _run(self) -> None:
        while True:
            await self.check_all()
            await asyncio.sleep(self.interval)


__all__ = [
    "TOKEN_EXPIRY_WARNING_HOURS",
    "HealthStatus",
    "ProviderHealth",
    "HealthMonitor",
    "overall_status",
]
