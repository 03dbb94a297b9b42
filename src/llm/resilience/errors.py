"""Uniform error classification for provider failures.

Every failure that crosses the orchestrator boundary is converted into an
`ErrorDetails` record carrying a category, user-facing text and retry hints.
`classify()` is total: it accepts any exception, string or None.

Evaluation order:
1. Already-structured `ProviderError` instances keep their details.
2. Typed exceptions (provider hierarchy, asyncio/httpx, filesystem).
3. Message and status-code heuristics.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any

import httpx

from ..backend.base import (
    AuthenticationError,
    ContextLengthError,
    InvalidResponseError,
    LLMError,
    ProviderConnectionError,
    ProviderTimeoutError,
    RateLimitError,
    retry_after_from,
)


class ErrorCategory(str, Enum):
    """Closed set of failure categories."""

    NETWORK = "network"
    AUTH = "auth"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    API_ERROR = "api_error"
    INTERNAL = "internal"
    OAUTH = "oauth"
    FILE_SYSTEM = "file_system"


@dataclass(frozen=True)
class ErrorDetails:
    """Classified, user-presentable description of a failure.

    Attributes:
        category: Failure category.
        title: Short heading.
        message: What went wrong, in plain language.
        action: What the user should do next.
        code: Error or HTTP status code, when known.
        technical: Raw error text for logs.
        recoverable: Whether the condition clears on its own.
        retryable: Whether repeating the operation may succeed.
        retry_after: Suggested wait in seconds before retrying.
    """

    category: ErrorCategory
    title: str
    message: str
    action: str | None = None
    code: str | None = None
    technical: str | None = None
    recoverable: bool = False
    retryable: bool = False
    retry_after: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serialisable dict."""
        data = asdict(self)
        data["category"] = self.category.value
        return data


class ProviderError(LLMError):
    """Classified provider failure; the only error leaving the orchestrator.

    Attributes:
        details: Classification of the failure.
    """

    def __init__(self, details: ErrorDetails):
        super().__init__(details.message)
        self.details = details

    @property
    def category(self) -> ErrorCategory:
        return self.details.category

    @property
    def retryable(self) -> bool:
        return self.details.retryable


class CircuitBreakerOpenError(LLMError):
    """Raised when a breaker rejects a call.

    Attributes:
        name: Breaker name (provider identifier).
        retry_after: Seconds until the next trial is admitted, if known.
    """

    def __init__(self, name: str, retry_after: float | None = None):
        if retry_after is None:
            detail = "a recovery trial is already in progress"
        else:
            detail = f"next attempt in {retry_after:.0f}s"
        super().__init__(f"Circuit breaker '{name}' is open; {detail}")
        self.name = name
        self.retry_after = retry_after


# =============================================================================
# Presets
# =============================================================================


class ErrorPresets:
    """Canned details for well-known situations."""

    @staticmethod
    def missing_api_key(provider: str) -> ErrorDetails:
        return ErrorDetails(
            category=ErrorCategory.AUTH,
            title="API Key Required",
            message=f"No {provider} API key found.",
            action=f"Add your {provider} API key in Settings to continue.",
        )

    @staticmethod
    def invalid_api_key(provider: str, technical: str | None = None) -> ErrorDetails:
        return ErrorDetails(
            category=ErrorCategory.AUTH,
            title="Invalid API Key",
            message=f"Your {provider} API key is invalid or expired.",
            action=f"Check your {provider} API key in Settings.",
            technical=technical,
        )

    @staticmethod
    def oauth_expired(technical: str | None = None) -> ErrorDetails:
        return ErrorDetails(
            category=ErrorCategory.OAUTH,
            title="Session Expired",
            message="Your authentication session has expired.",
            action="Sign in again to continue.",
            technical=technical,
        )

    @staticmethod
    def parse_failure(technical: str | None = None) -> ErrorDetails:
        return ErrorDetails(
            category=ErrorCategory.API_ERROR,
            title="Unreadable Response",
            message="The AI response could not be understood.",
            action="Send your message again; the assistant will retry.",
            technical=technical,
            recoverable=True,
            retryable=True,
        )

    @staticmethod
    def circuit_open(provider: str, retry_after: float | None = None) -> ErrorDetails:
        wait = f"about {retry_after:.0f} seconds" if retry_after else "a moment"
        return ErrorDetails(
            category=ErrorCategory.API_ERROR,
            title="Service Temporarily Unavailable",
            message=f"{provider} is failing repeatedly and has been paused.",
            action=f"Wait {wait}, or switch to another provider in Settings.",
            code="circuit_open",
            recoverable=True,
            retryable=False,
            retry_after=retry_after,
        )


# =============================================================================
# Classification
# =============================================================================

_NETWORK_KEYWORDS = (
    "econnrefused",
    "enotfound",
    "etimedout",
    "network",
    "fetch failed",
    "connection",
)
_AUTH_KEYWORDS = (
    "unauthorized",
    "invalid api key",
    "authentication",
    "invalid key",
    "api key",
)
_TIMEOUT_KEYWORDS = ("timeout", "timed out")
_RATE_LIMIT_KEYWORDS = ("rate limit", "too many requests", "quota exceeded")
_VALIDATION_KEYWORDS = ("validation", "invalid", "required", "must be", "should be")
_OAUTH_KEYWORDS = ("oauth", "token", "expired", "refresh", "authorization")
_FILE_SYSTEM_KEYWORDS = ("ENOENT", "EACCES", "EPERM", "EEXIST", "file", "directory", "permission")


def _status_code(error: Any) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    code = getattr(error, "code", None)
    if isinstance(code, int):
        return code
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def _error_code(error: Any, status: int | None) -> str | None:
    code = getattr(error, "code", None)
    if code:
        return str(code)
    return str(status) if status else None


def _network(technical: str) -> ErrorDetails:
    return ErrorDetails(
        category=ErrorCategory.NETWORK,
        title="Connection Failed",
        message="Unable to reach the AI service. Check your internet connection.",
        action="Verify your connection, proxy or firewall settings and try again.",
        technical=technical,
        recoverable=True,
        retryable=True,
    )


def _auth(technical: str, context: str | None) -> ErrorDetails:
    hint = f" for {context}" if context else ""
    if "api" in technical.lower():
        return ErrorDetails(
            category=ErrorCategory.AUTH,
            title="Invalid API Key",
            message=f"Your API key{hint} appears to be invalid or expired.",
            action="Check the API key in Settings or create a new one in your provider's dashboard.",
            technical=technical,
        )
    return ErrorDetails(
        category=ErrorCategory.AUTH,
        title="Authentication Failed",
        message=f"Your credentials{hint} are invalid or have expired.",
        action="Sign in again or check your credentials in Settings.",
        technical=technical,
    )


def _timeout(technical: str) -> ErrorDetails:
    return ErrorDetails(
        category=ErrorCategory.TIMEOUT,
        title="Request Timed Out",
        message="The request took too long to complete.",
        action="The service may be under heavy load. Wait a moment and try again.",
        technical=technical,
        recoverable=True,
        retryable=True,
    )


def _rate_limit(technical: str, retry_after: float | None) -> ErrorDetails:
    if retry_after:
        wait = f"Please wait {retry_after:.0f} seconds before trying again."
    else:
        wait = "Please wait a few minutes before trying again."
    return ErrorDetails(
        category=ErrorCategory.RATE_LIMIT,
        title="Rate Limit Exceeded",
        message="Too many requests were made in a short time.",
        action=f"{wait} Consider upgrading your plan for higher limits.",
        technical=technical,
        recoverable=True,
        retryable=True,
        retry_after=retry_after,
    )


def _validation(technical: str) -> ErrorDetails:
    return ErrorDetails(
        category=ErrorCategory.VALIDATION,
        title="Invalid Input",
        message="The information provided is not valid.",
        action="Check your input and try again.",
        technical=technical,
    )


def _oauth(technical: str) -> ErrorDetails:
    lowered = technical.lower()
    if "expired" in lowered or "token" in lowered:
        return ErrorPresets.oauth_expired(technical)
    return ErrorDetails(
        category=ErrorCategory.OAUTH,
        title="Sign In Failed",
        message="Unable to complete the sign-in process.",
        action="Try signing in again, or use an API key instead.",
        technical=technical,
        retryable=True,
    )


def _file_system(technical: str) -> ErrorDetails:
    if "ENOENT" in technical or "not found" in technical.lower():
        title, message, retryable = (
            "File Not Found",
            "A required file or directory could not be found.",
            False,
        )
    elif "EACCES" in technical or "permission" in technical.lower():
        title, message, retryable = (
            "Permission Denied",
            "A file or directory could not be accessed due to insufficient permissions.",
            False,
        )
    else:
        title, message, retryable = (
            "File System Error",
            "An error occurred while accessing the file system.",
            True,
        )
    return ErrorDetails(
        category=ErrorCategory.FILE_SYSTEM,
        title=title,
        message=message,
        action="Check the path, disk space and permissions, then try again.",
        technical=technical,
        retryable=retryable,
    )


def _api_error(technical: str, status: int) -> ErrorDetails:
    if status >= 500:
        return ErrorDetails(
            category=ErrorCategory.API_ERROR,
            title="Service Unavailable",
            message=f"The AI service is currently unavailable (Error {status}).",
            action="This is a temporary problem on the provider's side. Try again in a few minutes.",
            code=str(status),
            technical=technical,
            recoverable=True,
            retryable=True,
        )
    if status == 404:
        return ErrorDetails(
            category=ErrorCategory.API_ERROR,
            title="Resource Not Found",
            message="The requested resource or model could not be found.",
            action="Check the selected model in Settings.",
            code="404",
            technical=technical,
        )
    if status == 403:
        return ErrorDetails(
            category=ErrorCategory.API_ERROR,
            title="Access Denied",
            message="You don't have permission to access this resource.",
            action="Check your API key permissions.",
            code="403",
            technical=technical,
        )
    return ErrorDetails(
        category=ErrorCategory.API_ERROR,
        title="API Error",
        message=f"The AI service returned an error ({status}).",
        action="Please try again. If the problem persists, contact support.",
        code=str(status),
        technical=technical,
        retryable=True,
    )


def _internal(technical: str, code: str | None = None) -> ErrorDetails:
    return ErrorDetails(
        category=ErrorCategory.INTERNAL,
        title="Unexpected Error",
        message="An unexpected error occurred while processing your request.",
        action="Please try again. If the problem persists, check the logs for details.",
        code=code,
        technical=technical,
        retryable=True,
    )


def _classify_typed(error: BaseException, technical: str, context: str | None) -> ErrorDetails | None:
    if isinstance(error, CircuitBreakerOpenError):
        return replace(
            ErrorPresets.circuit_open(context or error.name, error.retry_after),
            technical=technical,
        )
    if isinstance(error, AuthenticationError):
        lowered = technical.lower()
        if "oauth" in lowered or "expired" in lowered:
            return ErrorPresets.oauth_expired(technical)
        return _auth(technical, context)
    if isinstance(error, RateLimitError):
        return _rate_limit(technical, error.retry_after)
    if isinstance(error, (ProviderTimeoutError, TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return _timeout(technical)
    if isinstance(error, (ProviderConnectionError, ConnectionError, httpx.NetworkError)):
        return _network(technical)
    if isinstance(error, (ContextLengthError, ValueError)):
        return _validation(technical)
    if isinstance(error, (FileNotFoundError, PermissionError)):
        return _file_system(technical)
    if isinstance(error, InvalidResponseError):
        return ErrorPresets.parse_failure(technical)
    return None


def classify(error: BaseException | str | None, context: str | None = None) -> ErrorDetails:
    """Classify any failure into ErrorDetails.

    Args:
        error: Exception, message string, or None.
        context: Optional subject (e.g. provider name) for messages.

    Returns:
        ErrorDetails for the failure. Never raises.
    """
    if error is None:
        return ErrorDetails(
            category=ErrorCategory.INTERNAL,
            title="Unknown Error",
            message="An unexpected error occurred.",
            action="Please try again. If the problem persists, contact support.",
            retryable=True,
        )

    if isinstance(error, ProviderError):
        return error.details

    technical = str(error) or type(error).__name__

    if isinstance(error, BaseException):
        typed = _classify_typed(error, technical, context)
        if typed is not None:
            return typed
        status = _status_code(error)
        code = _error_code(error, status)
    else:
        status = None
        code = None

    lowered = technical.lower()

    if any(k in lowered for k in _NETWORK_KEYWORDS):
        return _network(technical)
    if status == 401 or any(k in lowered for k in _AUTH_KEYWORDS):
        return _auth(technical, context)
    if any(k in lowered for k in _TIMEOUT_KEYWORDS):
        return _timeout(technical)
    if status == 429 or any(k in lowered for k in _RATE_LIMIT_KEYWORDS):
        retry_after = retry_after_from(error) if isinstance(error, BaseException) else None
        return _rate_limit(technical, retry_after)
    if any(k in lowered for k in _VALIDATION_KEYWORDS):
        return _validation(technical)
    if any(k in lowered for k in _OAUTH_KEYWORDS):
        return _oauth(technical)
    if any(k in technical for k in _FILE_SYSTEM_KEYWORDS):
        return _file_system(technical)
    if status is not None and status >= 400:
        return _api_error(technical, status)
    return _internal(technical, code)


def to_provider_error(error: BaseException, context: str | None = None) -> ProviderError:
    """Wrap any exception as a ProviderError (identity for ProviderError)."""
    if isinstance(error, ProviderError):
        return error
    return ProviderError(classify(error, context))


__all__ = [
    "ErrorCategory",
    "ErrorDetails",
    "ErrorPresets",
    "ProviderError",
    "CircuitBreakerOpenError",
    "classify",
    "to_provider_error",
]
