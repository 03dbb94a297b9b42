"""Centralized configuration management for sitewizard.

Provides unified access to all configuration via the `get_environment()` function.

Example:
    >>> from src.config import EnvVar, get_environment
    >>>
    >>> # Get any environment variable with automatic type conversion
    >>> timeout = get_environment(EnvVar.REQUEST_TIMEOUT_SECONDS)  # float: 30.0
    >>> api_key = get_environment(EnvVar.ANTHROPIC_API_KEY)  # str | None
    >>>
    >>> # List available variables by category
    >>> for var in list_environment_variables("resilience"):
    ...     info = get_environment_info(var)
    ...     print(f"{info.name}: {info.description}")

Environment Variable Categories:
    llm: API keys and provider selection (Claude, OpenAI, Gemini)
    resilience: Timeouts, circuit breaker thresholds, health probe cadence
    cache: Response cache and performance metrics sizing
    wizard: Conversation input limits
    logging: Log level
"""

from .lib import (
    # Core types
    EnvConfig,
    EnvVar,
    # Main interface
    get_api_key,
    get_available_llm_providers,
    get_environment,
    get_environment_info,
    get_log_level,
    # Introspection
    list_environment_variables,
)

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
