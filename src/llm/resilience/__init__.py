"""Provider resilience layer.

Error classification, per-provider circuit breakers, health probes,
response caching and performance metrics.
"""

from .breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitBreakerStats,
    CircuitState,
    Permit,
)
from .cache import CacheStats, ResponseCache, make_cache_key
from .errors import (
    CircuitBreakerOpenError,
    ErrorCategory,
    ErrorDetails,
    ErrorPresets,
    ProviderError,
    classify,
    to_provider_error,
)
from .health import HealthMonitor, HealthStatus, ProviderHealth, overall_status
from .metrics import MetricDataPoint, PerformanceMetrics, PerformanceMonitor

__all__ = [
    # Errors
    "ErrorCategory",
    "ErrorDetails",
    "ErrorPresets",
    "ProviderError",
    "CircuitBreakerOpenError",
    "classify",
    "to_provider_error",
    # Breaker
    "CircuitState",
    "CircuitBreakerConfig",
    "CircuitBreakerStats",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "Permit",
    # Health
    "HealthStatus",
    "ProviderHealth",
    "HealthMonitor",
    "overall_status",
    # Cache and metrics
    "CacheStats",
    "ResponseCache",
    "make_cache_key",
    "MetricDataPoint",
    "PerformanceMetrics",
    "PerformanceMonitor",
]
