"""Last-error slot with explicit retry.

Holds the most recent failed operation together with a closure that
re-invokes it. Nothing here retries automatically; `retry_last()` runs only
when the caller asks.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..resilience import ErrorDetails

logger = logging.getLogger(__name__)

RetryCallable = Callable[[], Awaitable[Any]]


@dataclass
class FailedOperation:
    """Most recent failed operation.

    Attributes:
        name: Operation name (e.g. 'send_message').
        provider: Provider identifier, when the operation had one.
        error: Classified failure.
        attempt_count: 1 for the first failure, +1 per explicit retry.
        timestamp: When the failure was recorded.
    """

    name: str
    provider: str | None
    error: ErrorDetails
    attempt_count: int = 1
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    retry: RetryCallable | None = field(default=None, repr=False, compare=False)

    @property
    def can_retry(self) -> bool:
        return self.retry is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "name": self.name,
            "provider": self.provider,
            "error": self.error.to_dict(),
            "attempt_count": self.attempt_count,
            "timestamp": self.timestamp.isoformat(),
            "can_retry": self.can_retry,
        }


class RecoverySlot:
    """Single-entry store of the last failure."""

    def __init__(self) -> None:
        self._last: FailedOperation | None = None
        self._retrying: FailedOperation | None = None

    @property
    def last(self) -> FailedOperation | None:
        return self._last

    def record(
        self,
        name: str,
        error: ErrorDetails,
        provider: str | None = None,
        retry: RetryCallable | None = None,
    ) -> FailedOperation:
        """Replace the slot with a new failure.

        A failure of the operation currently being retried carries the
        incremented attempt count.
        """
        attempt = 1
        if self._retrying is not None and self._retrying.name == name:
            attempt = self._retrying.attempt_count + 1

        self._last = FailedOperation(
            name=name,
            provider=provider,
            error=error,
            attempt_count=attempt,
            retry=retry,
        )
        logger.warning(
            f"{name} failed ({error.category.value}, attempt {attempt}): {error.message}"
        )
        return self._last

    def clear(self) -> None:
        self._last = None

    async def retry_last(self) -> Any:
        """Re-run the last failed operation.

        Returns:
            The operation's result; the slot is cleared on success.

        Raises:
            ValueError: If there is nothing to retry.
        """
        operation = self._last
        if operation is None or operation.retry is None:
            raise ValueError("No failed operation to retry")

        logger.info(f"Retrying {operation.name} (attempt {operation.attempt_count + 1})")
        self._retrying = operation
        try:
            result = await operation.retry()
        finally:
            self._retrying = None

        if self._last is operation:
            self._last = None
        return result


__all__ = ["FailedOperation", "RecoverySlot", "RetryCallable"]
