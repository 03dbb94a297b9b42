"""Model specification system for provider clients.

Provides a registry of supported models with their capabilities,
context windows, and provider information, plus per-provider metadata
used by settings screens and key validation.
"""

from dataclasses import dataclass, field
from enum import Enum


class LLMCapability(Enum):
    """Capabilities that a model may support."""

    JSON_MODE = "json_mode"  # Native JSON output enforcement
    VISION = "vision"  # Image input support
    STREAMING = "streaming"  # Streaming response support
    SYSTEM_PROMPT = "system_prompt"  # Dedicated system role
    EXTENDED_THINKING = "extended_thinking"  # Extended reasoning mode


class LLMProviderType(str, Enum):
    """Closed set of provider backends."""

    CLAUDE = "claude"
    OPENAI = "openai"
    GEMINI = "gemini"


@dataclass(frozen=True)
class LLMSpec:
    """Specification for a model.

    Attributes:
        name: Model identifier (e.g., 'gpt-5.1', 'claude-sonnet-4-5-20250929').
        provider: Backend provider type.
        context_window: Maximum context size in tokens.
        max_output_tokens: Maximum generation tokens.
        capabilities: Set of supported capabilities.
        description: Human-readable description.
    """

    name: str
    provider: LLMProviderType
    context_window: int
    max_output_tokens: int
    capabilities: frozenset[LLMCapability] = field(default_factory=frozenset)
    description: str = ""

    def supports(self, capability: LLMCapability) -> bool:
        """Check if model supports a capability."""
        return capability in self.capabilities


@dataclass(frozen=True)
class ProviderMetadata:
    """Display and credential metadata for a provider.

    Attributes:
        display_name: Label shown in settings.
        api_key_prefix: Expected key prefix, used for a cheap format check.
        api_key_env_var: Environment variable holding the key.
        docs_url: Where users obtain a key.
    """

    display_name: str
    api_key_prefix: str
    api_key_env_var: str
    docs_url: str

    def looks_like_key(self, api_key: str | None) -> bool:
        """Check the key format without a network call."""
        return bool(api_key) and api_key.startswith(self.api_key_prefix)


# Common capability sets
_CLAUDE_FULL = frozenset(
    {
        LLMCapability.VISION,
        LLMCapability.STREAMING,
        LLMCapability.SYSTEM_PROMPT,
        LLMCapability.EXTENDED_THINKING,
    }
)

_OPENAI_FULL = frozenset(
    {
        LLMCapability.JSON_MODE,
        LLMCapability.VISION,
        LLMCapability.STREAMING,
        LLMCapability.SYSTEM_PROMPT,
    }
)

_GEMINI_FULL = frozenset(
    {
        LLMCapability.JSON_MODE,
        LLMCapability.VISION,
        LLMCapability.STREAMING,
        LLMCapability.SYSTEM_PROMPT,
    }
)


class LLMModel(Enum):
    """Registry of selectable models."""

    # === Anthropic Models ===
    CLAUDE_SONNET_4_5 = LLMSpec(
        name="claude-sonnet-4-5-20250929",
        provider=LLMProviderType.CLAUDE,
        context_window=200000,
        max_output_tokens=64000,
        capabilities=_CLAUDE_FULL,
        description="Claude 4.5 Sonnet (recommended)",
    )

    CLAUDE_OPUS_4_5 = LLMSpec(
        name="claude-opus-4-5-20250929",
        provider=LLMProviderType.CLAUDE,
        context_window=200000,
        max_output_tokens=64000,
        capabilities=_CLAUDE_FULL,
        description="Claude 4.5 Opus",
    )

    CLAUDE_HAIKU_4_5 = LLMSpec(
        name="claude-haiku-4-5-20250929",
        provider=LLMProviderType.CLAUDE,
        context_window=200000,
        max_output_tokens=64000,
        capabilities=_CLAUDE_FULL,
        description="Claude 4.5 Haiku (faster)",
    )

    # === OpenAI Models ===
    GPT_5_1 = LLMSpec(
        name="gpt-5.1",
        provider=LLMProviderType.OPENAI,
        context_window=128000,
        max_output_tokens=16384,
        capabilities=_OPENAI_FULL,
        description="GPT-5.1 (recommended)",
    )

    GPT_5_PRO = LLMSpec(
        name="gpt-5-pro",
        provider=LLMProviderType.OPENAI,
        context_window=128000,
        max_output_tokens=16384,
        capabilities=_OPENAI_FULL,
        description="GPT-5 Pro",
    )

    GPT_5_MINI = LLMSpec(
        name="gpt-5-mini",
        provider=LLMProviderType.OPENAI,
        context_window=128000,
        max_output_tokens=16384,
        capabilities=_OPENAI_FULL,
        description="GPT-5 Mini (faster)",
    )

    GPT_5_NANO = LLMSpec(
        name="gpt-5-nano",
        provider=LLMProviderType.OPENAI,
        context_window=128000,
        max_output_tokens=16384,
        capabilities=_OPENAI_FULL,
        description="GPT-5 Nano (fastest)",
    )

    # === Google Models ===
    GEMINI_2_5_FLASH = LLMSpec(
        name="gemini-2.5-flash",
        provider=LLMProviderType.GEMINI,
        context_window=1048576,
        max_output_tokens=65536,
        capabilities=_GEMINI_FULL,
        description="Gemini 2.5 Flash (recommended)",
    )

    GEMINI_3_PRO = LLMSpec(
        name="gemini-3-pro",
        provider=LLMProviderType.GEMINI,
        context_window=1048576,
        max_output_tokens=65536,
        capabilities=_GEMINI_FULL,
        description="Gemini 3 Pro",
    )

    GEMINI_2_5_FLASH_LITE = LLMSpec(
        name="gemini-2.5-flash-lite",
        provider=LLMProviderType.GEMINI,
        context_window=1048576,
        max_output_tokens=65536,
        capabilities=_GEMINI_FULL,
        description="Gemini 2.5 Flash-Lite (faster)",
    )

    @property
    def spec(self) -> LLMSpec:
        """Get the model specification."""
        return self.value

    @classmethod
    def by_name(cls, name: str) -> "LLMModel | None":
        """Look up model by name string.

        Args:
            name: Model name to find.

        Returns:
            LLMModel if found, None otherwise.
        """
        for model in cls:
            if model.spec.name == name:
                return model
        return None

    @classmethod
    def list_by_provider(cls, provider: LLMProviderType) -> list["LLMModel"]:
        """Get all models for a specific provider.

        Args:
            provider: Provider to filter by.

        Returns:
            List of LLMModel values for that provider.
        """
        return [m for m in cls if m.spec.provider == provider]


# Default models for each provider
DEFAULT_CLAUDE_MODEL = LLMModel.CLAUDE_SONNET_4_5
DEFAULT_OPENAI_MODEL = LLMModel.GPT_5_1
DEFAULT_GEMINI_MODEL = LLMModel.GEMINI_2_5_FLASH

DEFAULT_MODELS: dict[LLMProviderType, LLMModel] = {
    LLMProviderType.CLAUDE: DEFAULT_CLAUDE_MODEL,
    LLMProviderType.OPENAI: DEFAULT_OPENAI_MODEL,
    LLMProviderType.GEMINI: DEFAULT_GEMINI_MODEL,
}

PROVIDER_METADATA: dict[LLMProviderType, ProviderMetadata] = {
    LLMProviderType.CLAUDE: ProviderMetadata(
        display_name="Claude (Anthropic)",
        api_key_prefix="sk-ant-",
        api_key_env_var="ANTHROPIC_API_KEY",
        docs_url="https://console.anthropic.com/",
    ),
    LLMProviderType.OPENAI: ProviderMetadata(
        display_name="OpenAI (GPT)",
        api_key_prefix="sk-",
        api_key_env_var="OPENAI_API_KEY",
        docs_url="https://platform.openai.com/api-keys",
    ),
    LLMProviderType.GEMINI: ProviderMetadata(
        display_name="Gemini (Google)",
        api_key_prefix="AIza",
        api_key_env_var="GEMINI_API_KEY",
        docs_url="https://aistudio.google.com/apikey",
    ),
}


def get_llm_spec(model: str | LLMModel | LLMSpec) -> LLMSpec:
    """Resolve a model reference to its LLMSpec.

    Args:
        model: Can be a model name string, LLMModel enum, or LLMSpec.

    Returns:
        The resolved LLMSpec.

    Raises:
        ValueError: If model name is not found.
    """
    if isinstance(model, LLMSpec):
        return model
    if isinstance(model, LLMModel):
        return model.spec
    found = LLMModel.by_name(model)
    if found:
        return found.spec
    raise ValueError(f"Unknown model: {model}")


def resolve_model_name(provider: LLMProviderType, model: str | None) -> str:
    """Return `model` or the provider default.

    Unregistered names are passed through so newly released models can be
    used without a registry update.
    """
    return model or DEFAULT_MODELS[provider].spec.name


def get_provider_metadata(provider: LLMProviderType | str) -> ProviderMetadata:
    """Get display and credential metadata for a provider."""
    return PROVIDER_METADATA[LLMProviderType(provider)]


__all__ = [
    "LLMCapability",
    "LLMProviderType",
    "LLMSpec",
    "LLMModel",
    "ProviderMetadata",
    "DEFAULT_CLAUDE_MODEL",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_GEMINI_MODEL",
    "DEFAULT_MODELS",
    "PROVIDER_METADATA",
    "get_llm_spec",
    "get_provider_metadata",
    "resolve_model_name",
]
