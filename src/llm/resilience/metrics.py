"""Performance metrics for provider operations.

Keeps a bounded window of recent data points and aggregates durations,
success rates, percentiles and cache hit rates on demand.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any

from ...config import EnvVar, get_environment

logger = logging.getLogger(__name__)

# Operations slower than this are counted as slow
SLOW_OPERATION_MS = 5000.0


@dataclass(frozen=True)
class MetricDataPoint:
    """One recorded operation."""

    operation: str
    duration_ms: float
    success: bool
    provider: str | None = None
    error_category: str | None = None
    cache_hit: bool | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class PerformanceMetrics:
    """Aggregated metrics over a set of data points."""

    total_requests: int = 0
    success_count: int = 0
    failure_count: int = 0
    timeout_count: int = 0
    circuit_open_count: int = 0
    average_duration_ms: float = 0.0
    p50_duration_ms: float = 0.0
    p95_duration_ms: float = 0.0
    p99_duration_ms: float = 0.0
    success_rate: float = 0.0
    error_rate: float = 0.0
    slow_operations: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    cache_hit_rate: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def percentile(sorted_values: list[float], fraction: float) -> float:
    """Nearest-rank percentile of an ascending list (0 when empty)."""
    if not sorted_values:
        return 0.0
    index = math.ceil(len(sorted_values) * fraction) - 1
    return sorted_values[max(0, index)]


def aggregate(points: list[MetricDataPoint]) -> PerformanceMetrics:
    """Aggregate data points into PerformanceMetrics."""
    if not points:
        return PerformanceMetrics()

    durations = sorted(p.duration_ms for p in points)
    successes = sum(1 for p in points if p.success)
    cache_points = [p for p in points if p.cache_hit is not None]
    cache_hits = sum(1 for p in cache_points if p.cache_hit)
    total = len(points)

    return PerformanceMetrics(
        total_requests=total,
        success_count=successes,
        failure_count=total - successes,
        timeout_count=sum(1 for p in points if p.error_category == "timeout"),
        circuit_open_count=sum(1 for p in points if p.error_category == "circuit_open"),
        average_duration_ms=sum(durations) / total,
        p50_duration_ms=percentile(durations, 0.5),
        p95_duration_ms=percentile(durations, 0.95),
        p99_duration_ms=percentile(durations, 0.99),
        success_rate=successes / total,
        error_rate=(total - successes) / total,
        slow_operations=sum(1 for d in durations if d > SLOW_OPERATION_MS),
        cache_hits=cache_hits,
        cache_misses=len(cache_points) - cache_hits,
        cache_hit_rate=cache_hits / len(cache_points) if cache_points else None,
    )


class PerformanceMonitor:
    """Thread-safe rolling window of operation data points.

    Args:
        max_data_points: Window size (METRICS_MAX_DATA_POINTS).
    """

    def __init__(self, max_data_points: int | None = None):
        size = max_data_points if max_data_points is not None else get_environment(
            EnvVar.METRICS_MAX_DATA_POINTS
        )
        self._points: deque[MetricDataPoint] = deque(maxlen=size)
        self._lock = threading.Lock()

    def record(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        provider: str | None = None,
        error_category: str | None = None,
        cache_hit: bool | None = None,
    ) -> MetricDataPoint:
        """Record one finished operation."""
        point = MetricDataPoint(
            operation=operation,
            duration_ms=duration_ms,
            success=success,
            provider=provider,
            error_category=error_category,
            cache_hit=cache_hit,
        )
        with self._lock:
            self._points.append(point)
        if duration_ms > SLOW_OPERATION_MS:
            logger.warning(
                f"Slow operation: {operation} ({provider or 'n/a'}) took {duration_ms:.0f}ms"
            )
        return point

    def data_points(
        self, operation: str | None = None, provider: str | None = None
    ) -> list[MetricDataPoint]:
        """Recorded points, optionally filtered."""
        with self._lock:
            points = list(self._points)
        return [
            p
            for p in points
            if (operation is None or p.operation == operation)
            and (provider is None or p.provider == provider)
        ]

    def get_metrics(
        self, operation: str | None = None, provider: str | None = None
    ) -> PerformanceMetrics:
        """Aggregate metrics, optionally filtered by operation and provider."""
        return aggregate(self.data_points(operation, provider))

    def metrics_by_operation(self) -> dict[str, PerformanceMetrics]:
        """Aggregate metrics per operation name."""
        grouped: dict[str, list[MetricDataPoint]] = {}
        for point in self.data_points():
            grouped.setdefault(point.operation, []).append(point)
        return {name: aggregate(points) for name, points in grouped.items()}

    def reset(self) -> None:
        with self._lock:
            self._points.clear()


__all__ = [
    "SLOW_OPERATION_MS",
    "MetricDataPoint",
    "PerformanceMetrics",
    "PerformanceMonitor",
    "aggregate",
    "percentile",
]
