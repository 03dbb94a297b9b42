"""Unit tests for error classification."""

import asyncio

import httpx
import pytest

from ..backend import (
    AuthenticationError,
    ContextLengthError,
    InvalidResponseError,
    ProviderAPIError,
    ProviderConnectionError,
    RateLimitError,
)
from .errors import (
    CircuitBreakerOpenError,
    ErrorCategory,
    ErrorDetails,
    ErrorPresets,
    ProviderError,
    classify,
    to_provider_error,
)


class _StatusError(Exception):
    """Error carrying only an HTTP status."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


class TestTypedClassification:
    """Tests for exception-type based classification."""

    @pytest.mark.unit
    def test_provider_error_passes_through(self):
        """Structured errors keep their details unchanged."""
        details = ErrorPresets.missing_api_key("claude")
        assert classify(ProviderError(details)) is details

    @pytest.mark.unit
    def test_circuit_open(self):
        """Open circuits are non-retryable api_error."""
        details = classify(CircuitBreakerOpenError("openai", retry_after=12.0))
        assert details.category == ErrorCategory.API_ERROR
        assert details.retryable is False
        assert details.retry_after == 12.0
        assert details.code == "circuit_open"

    @pytest.mark.unit
    def test_rate_limit_keeps_retry_after(self):
        """RateLimitError retry_after is preserved."""
        details = classify(RateLimitError("slow down", retry_after=30))
        assert details.category == ErrorCategory.RATE_LIMIT
        assert details.retryable is True
        assert details.retry_after == 30
        assert "30 seconds" in details.action

    @pytest.mark.unit
    def test_authentication(self):
        """Rejected keys are auth and not retryable."""
        details = classify(AuthenticationError("Invalid API key provided"))
        assert details.category == ErrorCategory.AUTH
        assert details.title == "Invalid API Key"
        assert details.retryable is False

    @pytest.mark.unit
    def test_expired_oauth_token(self):
        """Expired OAuth credentials classify as oauth."""
        details = classify(AuthenticationError("Gemini OAuth token has expired."))
        assert details.category == ErrorCategory.OAUTH

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "error",
        [
            asyncio.TimeoutError(),
            TimeoutError("deadline"),
            httpx.ReadTimeout("read timed out"),
        ],
    )
    def test_timeouts(self, error):
        """Timeout types classify as timeout."""
        details = classify(error)
        assert details.category == ErrorCategory.TIMEOUT
        assert details.retryable is True

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "error",
        [
            ProviderConnectionError("down"),
            ConnectionRefusedError("refused"),
            httpx.ConnectError("boom"),
        ],
    )
    def test_network(self, error):
        """Connection failures classify as network."""
        assert classify(error).category == ErrorCategory.NETWORK

    @pytest.mark.unit
    def test_validation_types(self):
        """Caller errors classify as validation and are not retryable."""
        for error in (ContextLengthError("prompt too long"), ValueError("bad input")):
            details = classify(error)
            assert details.category == ErrorCategory.VALIDATION
            assert details.retryable is False

    @pytest.mark.unit
    def test_file_system(self):
        """Filesystem errors classify as file_system."""
        details = classify(FileNotFoundError("ENOENT: no such file"))
        assert details.category == ErrorCategory.FILE_SYSTEM
        assert details.title == "File Not Found"

    @pytest.mark.unit
    def test_invalid_response(self):
        """Unparseable responses are retryable api_error."""
        details = classify(InvalidResponseError("not json"))
        assert details.category == ErrorCategory.API_ERROR
        assert details.retryable is True


class TestHeuristicClassification:
    """Tests for message and status heuristics."""

    @pytest.mark.unit
    def test_none_and_empty(self):
        """Classification is total."""
        assert classify(None).category == ErrorCategory.INTERNAL
        assert classify(Exception()).category == ErrorCategory.INTERNAL

    @pytest.mark.unit
    def test_plain_strings(self):
        """Strings are classified by keyword."""
        assert classify("fetch failed").category == ErrorCategory.NETWORK
        assert classify("Too Many Requests").category == ErrorCategory.RATE_LIMIT
        assert classify("field name is required").category == ErrorCategory.VALIDATION
        assert classify("refresh token revoked").category == ErrorCategory.OAUTH

    @pytest.mark.unit
    def test_status_401_is_auth(self):
        """HTTP 401 is auth regardless of message."""
        assert classify(_StatusError("nope", 401)).category == ErrorCategory.AUTH

    @pytest.mark.unit
    def test_status_429_is_rate_limit(self):
        """HTTP 429 is rate_limit."""
        assert classify(_StatusError("slow", 429)).category == ErrorCategory.RATE_LIMIT

    @pytest.mark.unit
    def test_network_precedes_auth(self):
        """Keyword order: network is checked before auth."""
        details = classify("connection reset while checking api key")
        assert details.category == ErrorCategory.NETWORK

    @pytest.mark.unit
    def test_server_errors_retryable(self):
        """5xx api errors are retryable, 404 is not."""
        server = classify(ProviderAPIError("upstream exploded", status_code=503))
        assert server.category == ErrorCategory.API_ERROR
        assert server.retryable is True
        assert server.code == "503"

        missing = classify(_StatusError("no such model", 404))
        assert missing.category == ErrorCategory.API_ERROR
        assert missing.retryable is False

    @pytest.mark.unit
    def test_unknown_is_internal_retryable(self):
        """Anything else is a retryable internal error."""
        details = classify(RuntimeError("something odd"))
        assert details.category == ErrorCategory.INTERNAL
        assert details.retryable is True
        assert details.technical == "something odd"


class TestErrorDetails:
    """Tests for ErrorDetails and ProviderError."""

    @pytest.mark.unit
    def test_to_dict(self):
        """Category serialises to its value."""
        data = ErrorPresets.oauth_expired().to_dict()
        assert data["category"] == "oauth"
        assert data["retryable"] is False

    @pytest.mark.unit
    def test_to_provider_error(self):
        """Wrapping is idempotent."""
        wrapped = to_provider_error(RateLimitError("x"))
        assert wrapped.category == ErrorCategory.RATE_LIMIT
        assert to_provider_error(wrapped) is wrapped
        assert isinstance(wrapped.details, ErrorDetails)
