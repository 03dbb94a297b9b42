"""Provider layer for the site wizard.

This module provides multi-provider AI access with resilience built in.

Main components:
- ProviderOrchestrator: Breaker, timeout, cache and error classification per call
- ProviderClient: Abstract interface for provider backends
- create_provider_client: Factory function for creating backends

Supported providers:
- Anthropic (Claude 4.5)
- OpenAI (GPT-5.x)
- Google (Gemini 2.5 / 3, API key or OAuth)

Example:
    >>> from src.llm import ProviderOrchestrator, ProviderConfig, LLMProviderType
    >>> orchestrator = ProviderOrchestrator()
    >>> orchestrator.configure(ProviderConfig(LLMProviderType.CLAUDE, api_key="sk-ant-..."))
    >>> reply = await orchestrator.send_message([AIMessage("user", "Hello")])
"""

from .backend import (
    AIMessage,
    AuthenticationError,
    ContextLengthError,
    GeminiAuthMode,
    InvalidResponseError,
    LLMError,
    LLMModel,
    LLMProviderType,
    OAuthTokens,
    ProviderClient,
    ProviderConfig,
    RateLimitError,
    RequestOptions,
    create_provider_client,
)
from .orchestrator import (
    FailedOperation,
    KeyValidation,
    MessageStream,
    OrchestratorConfig,
    OrchestratorContext,
    ProviderOrchestrator,
    StreamCallbacks,
)
from .resilience import (
    CircuitBreakerOpenError,
    ErrorCategory,
    ErrorDetails,
    HealthStatus,
    ProviderError,
    classify,
)

__all__ = [
    # Main API
    "ProviderOrchestrator",
    "OrchestratorConfig",
    "OrchestratorContext",
    "KeyValidation",
    "MessageStream",
    "StreamCallbacks",
    "FailedOperation",
    "create_provider_client",
    # Backend types
    "ProviderClient",
    "ProviderConfig",
    "OAuthTokens",
    "GeminiAuthMode",
    "AIMessage",
    "RequestOptions",
    "LLMProviderType",
    "LLMModel",
    # Errors
    "LLMError",
    "RateLimitError",
    "ContextLengthError",
    "InvalidResponseError",
    "AuthenticationError",
    "CircuitBreakerOpenError",
    "ProviderError",
    "ErrorCategory",
    "ErrorDetails",
    "HealthStatus",
    "classify",
]
