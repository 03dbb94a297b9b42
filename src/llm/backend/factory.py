"""Backend factory for creating provider clients from configuration.

Provides a unified entry point for creating any supported provider client.
"""

from .base import GeminiAuthMode, OAuthTokens, ProviderClient, ProviderConfig
from .model_spec import LLMProviderType


def create_provider_client(
    provider: LLMProviderType | str,
    *,
    api_key: str | None = None,
    model: str | None = None,
    auth_mode: GeminiAuthMode | str = GeminiAuthMode.API_KEY,
    oauth_tokens: OAuthTokens | None = None,
    **kwargs,
) -> ProviderClient:
    """Create a provider client.

    Routes to the backend class for `provider`; SDK imports happen lazily so
    only the selected vendor package has to be installed.

    Args:
        provider: Provider identifier ('claude', 'openai', 'gemini').
        api_key: API key for the provider.
        model: Optional model override; provider default when None.
        auth_mode: Gemini authentication mode.
        oauth_tokens: Gemini OAuth token bundle.
        **kwargs: Additional arguments passed to backend constructor
            (e.g., timeout, base_url).

    Returns:
        Configured ProviderClient instance.

    Raises:
        ValueError: If provider is unknown.
        AuthenticationError: If required credentials are missing.

    Example:
        >>> client = create_provider_client("claude", api_key="sk-ant-...")
        >>> client = create_provider_client(
        ...     "gemini", auth_mode="oauth", oauth_tokens=tokens
        ... )
    """
    provider = LLMProviderType(provider)

    if provider == LLMProviderType.CLAUDE:
        from .anthropic import AnthropicBackend

        return AnthropicBackend(api_key=api_key, model=model, **kwargs)

    if provider == LLMProviderType.OPENAI:
        from .openai import OpenAIBackend

        return OpenAIBackend(api_key=api_key, model=model, **kwargs)

    if provider == LLMProviderType.GEMINI:
        from .google import GeminiBackend

        return GeminiBackend(
            api_key=api_key,
            model=model,
            auth_mode=auth_mode,
            oauth_tokens=oauth_tokens,
            **kwargs,
        )

    raise ValueError(f"Unsupported provider type: {provider}")


def create_from_config(config: ProviderConfig, **kwargs) -> ProviderClient:
    """Create a provider client from a ProviderConfig."""
    return create_provider_client(
        config.provider,
        api_key=config.api_key,
        model=config.model,
        auth_mode=config.auth_mode,
        oauth_tokens=config.oauth_tokens,
        **{**config.extra, **kwargs},
    )


__all__ = ["create_provider_client", "create_from_config"]
