"""Tests for configuration management."""

import logging

import pytest

from .lib import (
    EnvConfig,
    EnvVar,
    get_api_key,
    get_available_llm_providers,
    get_environment,
    get_environment_info,
    get_log_level,
    list_environment_variables,
)

# =============================================================================
# Tests for get_environment (main interface)
# =============================================================================


class TestGetEnvironment:
    """Tests for the unified get_environment interface."""

    @pytest.mark.unit
    def test_returns_default_when_not_set(self, monkeypatch):
        """Returns default value when env var is not set."""
        monkeypatch.delenv("CIRCUIT_FAILURE_THRESHOLD", raising=False)
        result = get_environment(EnvVar.CIRCUIT_FAILURE_THRESHOLD)
        assert result == 5

    @pytest.mark.unit
    def test_override_takes_priority(self, monkeypatch):
        """Override parameter takes highest priority."""
        monkeypatch.setenv("CIRCUIT_FAILURE_THRESHOLD", "9")
        result = get_environment(EnvVar.CIRCUIT_FAILURE_THRESHOLD, override=3)
        assert result == 3

    @pytest.mark.unit
    def test_env_var_overrides_default(self, monkeypatch):
        """Environment variable overrides default value."""
        monkeypatch.setenv("CACHE_MAX_SIZE", "250")
        result = get_environment(EnvVar.CACHE_MAX_SIZE)
        assert result == 250
        assert isinstance(result, int)

    @pytest.mark.unit
    def test_float_type_conversion(self, monkeypatch):
        """Float type conversion from string."""
        monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "12.5")
        result = get_environment(EnvVar.REQUEST_TIMEOUT_SECONDS)
        assert result == 12.5
        assert isinstance(result, float)

    @pytest.mark.unit
    def test_invalid_float_returns_default(self, monkeypatch):
        """Invalid float value returns default."""
        monkeypatch.setenv("CIRCUIT_COOLDOWN_SECONDS", "soon")
        result = get_environment(EnvVar.CIRCUIT_COOLDOWN_SECONDS)
        assert result == 30.0

    @pytest.mark.unit
    def test_invalid_int_returns_default(self, monkeypatch):
        """Invalid integer value returns default."""
        monkeypatch.setenv("CACHE_MAX_SIZE", "not-a-number")
        result = get_environment(EnvVar.CACHE_MAX_SIZE)
        assert result == 100

    @pytest.mark.unit
    def test_string_type(self, monkeypatch):
        """String type returns as-is."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
        result = get_environment(EnvVar.OPENAI_API_KEY)
        assert result == "sk-test-key"

    @pytest.mark.unit
    def test_none_default_for_api_keys(self, monkeypatch):
        """API keys default to None when not set."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        assert get_environment(EnvVar.GEMINI_API_KEY) is None


class TestGetEnvironmentInfo:
    """Tests for environment variable metadata."""

    @pytest.mark.unit
    def test_returns_env_config(self):
        """Returns EnvConfig dataclass."""
        info = get_environment_info(EnvVar.HEALTH_CHECK_INTERVAL)
        assert isinstance(info, EnvConfig)
        assert info.name == "HEALTH_CHECK_INTERVAL"
        assert info.default == 300.0
        assert info.var_type is float
        assert info.category == "resilience"

    @pytest.mark.unit
    def test_description_present(self):
        """Description field is populated."""
        info = get_environment_info(EnvVar.ANTHROPIC_API_KEY)
        assert "Anthropic" in info.description


class TestListEnvironmentVariables:
    """Tests for listing environment variables."""

    @pytest.mark.unit
    def test_returns_all_variables(self):
        """Returns all EnvVar members when no category."""
        result = list_environment_variables()
        assert len(result) == len(EnvVar)

    @pytest.mark.unit
    def test_filter_by_category(self):
        """Filters by category correctly."""
        resilience_vars = list_environment_variables("resilience")
        assert EnvVar.CIRCUIT_FAILURE_THRESHOLD in resilience_vars
        assert EnvVar.CIRCUIT_COOLDOWN_SECONDS in resilience_vars
        assert EnvVar.OPENAI_API_KEY not in resilience_vars

    @pytest.mark.unit
    def test_llm_category(self):
        """LLM category includes all three provider keys."""
        llm_vars = list_environment_variables("llm")
        assert EnvVar.OPENAI_API_KEY in llm_vars
        assert EnvVar.ANTHROPIC_API_KEY in llm_vars
        assert EnvVar.GEMINI_API_KEY in llm_vars


# =============================================================================
# Tests for convenience functions
# =============================================================================


class TestProviderKeys:
    """Tests for provider key lookup."""

    @pytest.mark.unit
    def test_get_api_key_by_provider(self, monkeypatch):
        """Provider names map to their key variables."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-abc")
        assert get_api_key("claude") == "sk-ant-abc"

    @pytest.mark.unit
    def test_unknown_provider(self):
        """Unknown providers have no key."""
        assert get_api_key("mistral") is None

    @pytest.mark.unit
    def test_available_providers(self, monkeypatch):
        """Only providers with keys are listed, in registry order."""
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "sk-x")
        monkeypatch.setenv("GEMINI_API_KEY", "AIza-x")
        assert get_available_llm_providers() == ["openai", "gemini"]


class TestGetLogLevel:
    """Tests for log level resolution."""

    @pytest.mark.unit
    def test_default_is_info(self, monkeypatch):
        """INFO when unset."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert get_log_level() == logging.INFO

    @pytest.mark.unit
    def test_env_value(self, monkeypatch):
        """Level names are case-insensitive."""
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert get_log_level() == logging.DEBUG

    @pytest.mark.unit
    def test_unknown_falls_back(self):
        """Unknown names fall back to INFO."""
        assert get_log_level("chatty") == logging.INFO

    @pytest.mark.unit
    def test_int_override(self):
        """Numeric overrides pass through."""
        assert get_log_level(logging.ERROR) == logging.ERROR
