"""Provider client implementations.

Provides abstract base class and concrete implementations for
the supported providers (Anthropic Claude, OpenAI, Google Gemini).
"""

from .base import (
    AIMessage,
    AuthenticationError,
    ContextLengthError,
    GeminiAuthMode,
    InvalidResponseError,
    LLMError,
    OAuthTokens,
    ProviderAPIError,
    ProviderClient,
    ProviderConfig,
    ProviderConnectionError,
    ProviderTimeoutError,
    RateLimitError,
    RequestOptions,
)
from .factory import create_from_config, create_provider_client
from .model_spec import (
    DEFAULT_CLAUDE_MODEL,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_MODELS,
    DEFAULT_OPENAI_MODEL,
    PROVIDER_METADATA,
    LLMCapability,
    LLMModel,
    LLMProviderType,
    LLMSpec,
    ProviderMetadata,
    get_llm_spec,
    get_provider_metadata,
    resolve_model_name,
)

__all__ = [
    # Base classes and types
    "ProviderClient",
    "AIMessage",
    "RequestOptions",
    "ProviderConfig",
    "OAuthTokens",
    "GeminiAuthMode",
    # Exceptions
    "LLMError",
    "RateLimitError",
    "ContextLengthError",
    "InvalidResponseError",
    "AuthenticationError",
    "ProviderConnectionError",
    "ProviderTimeoutError",
    "ProviderAPIError",
    # Model specification
    "LLMCapability",
    "LLMProviderType",
    "LLMSpec",
    "LLMModel",
    "ProviderMetadata",
    "PROVIDER_METADATA",
    "get_llm_spec",
    "get_provider_metadata",
    "resolve_model_name",
    # Defaults
    "DEFAULT_MODELS",
    "DEFAULT_CLAUDE_MODEL",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_GEMINI_MODEL",
    # Factory
    "create_provider_client",
    "create_from_config",
]
