"""Centralized environment configuration management for sitewizard.

Provides a unified interface for all environment variables with:
- Single `get_environment()` function for all configuration
- Type-safe enum with metadata (default, type, description)
- Consistent resolution: override > environment > default

Example:
    >>> from src.config import EnvVar, get_environment
    >>>
    >>> # Get values with automatic type conversion
    >>> timeout = get_environment(EnvVar.REQUEST_TIMEOUT_SECONDS)  # Returns float
    >>> api_key = get_environment(EnvVar.OPENAI_API_KEY)  # Returns str | None
    >>>
    >>> # Override at runtime
    >>> threshold = get_environment(EnvVar.CIRCUIT_FAILURE_THRESHOLD, override=3)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, overload

# =============================================================================
# Environment Variable Configuration
# =============================================================================


@dataclass(frozen=True)
class EnvConfig:
    """Metadata for an environment variable.

    Attributes:
        name: Environment variable name (e.g., "CACHE_MAX_SIZE").
        default: Default value if not set in environment.
        var_type: Python type for value conversion (str, int, float, bool).
        description: Human-readable description.
        category: Grouping category for documentation.
    """

    name: str
    default: Any
    var_type: type
    description: str = ""
    category: str = "general"


class EnvVar(Enum):
    """All environment variables used by sitewizard.

    Each member contains an EnvConfig with name, default, type, and description.
    Use with `get_environment()` for type-safe access.

    Categories:
        - llm: Provider API keys and provider selection
        - resilience: Timeouts, circuit breaker and health probe tuning
        - cache: Response cache and metrics sizing
        - wizard: Conversation input limits
        - logging: Log output configuration
    """

    # -------------------------------------------------------------------------
    # LLM API Keys
    # -------------------------------------------------------------------------
    ANTHROPIC_API_KEY = EnvConfig(
        name="ANTHROPIC_API_KEY",
        default=None,
        var_type=str,
        description="Anthropic API key for Claude models",
        category="llm",
    )
    OPENAI_API_KEY = EnvConfig(
        name="OPENAI_API_KEY",
        default=None,
        var_type=str,
        description="OpenAI API key for GPT models",
        category="llm",
    )
    GEMINI_API_KEY = EnvConfig(
        name="GEMINI_API_KEY",
        default=None,
        var_type=str,
        description="Google AI Studio API key for Gemini models",
        category="llm",
    )
    AI_PROVIDER = EnvConfig(
        name="AI_PROVIDER",
        default="claude",
        var_type=str,
        description="Active AI provider (claude, openai, gemini)",
        category="llm",
    )
    GEMINI_AUTH_MODE = EnvConfig(
        name="GEMINI_AUTH_MODE",
        default="api-key",
        var_type=str,
        description="Gemini authentication mode: 'api-key' or 'oauth'",
        category="llm",
    )

    # -------------------------------------------------------------------------
    # Resilience
    # -------------------------------------------------------------------------
    REQUEST_TIMEOUT_SECONDS = EnvConfig(
        name="REQUEST_TIMEOUT_SECONDS",
        default=30.0,
        var_type=float,
        description="Upper bound for send, stream-start and key validation calls",
        category="resilience",
    )
    CIRCUIT_FAILURE_THRESHOLD = EnvConfig(
        name="CIRCUIT_FAILURE_THRESHOLD",
        default=5,
        var_type=int,
        description="Consecutive failures before a provider circuit opens",
        category="resilience",
    )
    CIRCUIT_COOLDOWN_SECONDS = EnvConfig(
        name="CIRCUIT_COOLDOWN_SECONDS",
        default=30.0,
        var_type=float,
        description="Seconds an open circuit waits before allowing a trial call",
        category="resilience",
    )
    HEALTH_CHECK_INTERVAL = EnvConfig(
        name="HEALTH_CHECK_INTERVAL",
        default=300.0,
        var_type=float,
        description="Seconds between periodic provider health probes",
        category="resilience",
    )
    HEALTH_CHECK_TIMEOUT = EnvConfig(
        name="HEALTH_CHECK_TIMEOUT",
        default=10.0,
        var_type=float,
        description="Timeout for a single health probe",
        category="resilience",
    )

    # -------------------------------------------------------------------------
    # Cache and Metrics
    # -------------------------------------------------------------------------
    CACHE_MAX_SIZE = EnvConfig(
        name="CACHE_MAX_SIZE",
        default=100,
        var_type=int,
        description="Maximum entries held by the response cache",
        category="cache",
    )
    CACHE_TTL_SECONDS = EnvConfig(
        name="CACHE_TTL_SECONDS",
        default=300.0,
        var_type=float,
        description="Default time-to-live for cached responses",
        category="cache",
    )
    METRICS_MAX_DATA_POINTS = EnvConfig(
        name="METRICS_MAX_DATA_POINTS",
        default=1000,
        var_type=int,
        description="Number of recent operations kept for performance metrics",
        category="cache",
    )

    # -------------------------------------------------------------------------
    # Wizard
    # -------------------------------------------------------------------------
    MAX_MESSAGE_LENGTH = EnvConfig(
        name="MAX_MESSAGE_LENGTH",
        default=5000,
        var_type=int,
        description="Maximum characters of user input forwarded to a provider",
        category="wizard",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    LOG_LEVEL = EnvConfig(
        name="LOG_LEVEL",
        default="INFO",
        var_type=str,
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
        category="logging",
    )


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _parse_bool(value: str) -> bool | None:
    """Parse string to boolean.

    Recognizes: true/false, 1/0, yes/no (case-insensitive).
    Returns None for unrecognized values.
    """
    normalized = value.lower().strip()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    return None


def _convert_value(value: str | None, var_type: type, default: Any) -> Any:
    """Convert string value to target type.

    Args:
        value: Raw string value from environment (or None).
        var_type: Target Python type.
        default: Default value if conversion fails or value is None.

    Returns:
        Converted value or default.
    """
    if value is None:
        return default

    if var_type is str:
        return value

    if var_type is int:
        try:
            return int(value)
        except ValueError:
            return default

    if var_type is float:
        try:
            return float(value)
        except ValueError:
            return default

    if var_type is bool:
        result = _parse_bool(value)
        return result if result is not None else default

    # Unknown type, return as-is
    return value


# =============================================================================
# Main Interface
# =============================================================================


@overload
def get_environment(env_var: EnvVar, override: int) -> int: ...
@overload
def get_environment(env_var: EnvVar, override: float) -> float: ...
@overload
def get_environment(env_var: EnvVar, override: str) -> str: ...
@overload
def get_environment(env_var: EnvVar, override: bool) -> bool: ...
@overload
def get_environment(env_var: EnvVar, override: None = None) -> Any: ...


def get_environment(env_var: EnvVar, override: Any = None) -> Any:
    """Get environment variable value with type conversion.

    Resolution priority:
        1. Explicit override parameter (highest)
        2. Environment variable value
        3. Default from EnvConfig (lowest)

    Args:
        env_var: Environment variable enum member.
        override: Optional override value (bypasses env lookup).

    Returns:
        Value converted to the appropriate type (str, int, float or bool).

    Example:
        >>> get_environment(EnvVar.CIRCUIT_FAILURE_THRESHOLD)
        5
        >>> get_environment(EnvVar.CIRCUIT_FAILURE_THRESHOLD, override=3)
        3
    """
    config: EnvConfig = env_var.value

    if override is not None:
        return override

    raw_value = os.environ.get(config.name)
    return _convert_value(raw_value, config.var_type, config.default)


def get_environment_info(env_var: EnvVar) -> EnvConfig:
    """Get metadata for an environment variable.

    Args:
        env_var: Environment variable enum member.

    Returns:
        EnvConfig with name, default, type, and description.
    """
    return env_var.value


# =============================================================================
# Convenience Functions
# =============================================================================


def get_api_key(provider: str) -> str | None:
    """Get the configured API key for a provider name.

    Args:
        provider: Provider identifier (claude, openai, gemini).

    Returns:
        The key, or None when unset or the provider is unknown.
    """
    env_var = _PROVIDER_KEYS.get(provider)
    if env_var is None:
        return None
    return get_environment(env_var)


def get_available_llm_providers() -> list[str]:
    """Get list of providers that have an API key configured.

    Returns:
        List of provider names (e.g., ["claude", "openai"]).
    """
    return [name for name in _PROVIDER_KEYS if get_api_key(name)]


def get_log_level(override: str | int | None = None) -> int:
    """Resolve the configured log level to a logging constant.

    Unknown level names fall back to INFO.
    """
    if isinstance(override, int):
        return override
    name = str(get_environment(EnvVar.LOG_LEVEL, override=override)).upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def list_environment_variables(category: str | None = None) -> list[EnvVar]:
    """List all environment variables, optionally filtered by category.

    Args:
        category: Filter by category (llm, resilience, cache, wizard, logging).
                 None returns all variables.

    Returns:
        List of EnvVar enum members.
    """
    if category is None:
        return list(EnvVar)

    return [var for var in EnvVar if var.value.category == category]


_PROVIDER_KEYS: dict[str, EnvVar] = {
    "claude": EnvVar.ANTHROPIC_API_KEY,
    "openai": EnvVar.OPENAI_API_KEY,
    "gemini": EnvVar.GEMINI_API_KEY,
}


__all__ = [
    # Core types
    "EnvConfig",
    "EnvVar",
    # Main interface
    "get_environment",
    "get_environment_info",
    # Convenience functions
    "get_api_key",
    "get_available_llm_providers",
    "get_log_level",
    # Introspection
    "list_environment_variables",
]
