"""
Retry policy types and the retryability predicate.

Invariants:
    - A RetryPolicy is immutable; one instance may be shared by many calls
    - Attempts are numbered from 0; a policy allows max_attempts + 1 tries
    - is_retryable_error() looks only at the error value
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from ..errors import SyncError, TransientError

_RETRYABLE_CODES = frozenset({"NETWORK_ERROR", "TIMEOUT"})
_RETRYABLE_WORDS = ("network", "timeout")


class BackoffKind(Enum):
    """How the wait between tries grows."""

    LINEAR = "linear"
    EXPONENTIAL = "exponential"


def _status_of(error: BaseException) -> int | None:
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def is_retryable_error(error: BaseException) -> bool:
    """Classify an error as transient (retry) or permanent (surface now).

    Network errors, timeouts, HTTP 5xx and HTTP 429 are retryable. Every
    other error, including validation, not-found, auth and the remaining
    4xx statuses, is not. Errors from other client libraries that carry
    neither code nor status are also retryable when their message
    mentions "network" or "timeout".
    """
    if isinstance(error, TransientError):
        return True
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    if getattr(error, "code", None) in _RETRYABLE_CODES:
        return True
    if not isinstance(error, SyncError):
        message = str(error)
        if any(word in message for word in _RETRYABLE_WORDS):
            return True

    status = _status_of(error)
    if status is None:
        return False
    return status == 429 or 500 <= status < 600


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule for one kind of call.

    Attributes:
        max_attempts: Retries allowed after the first try
        base_delay_ms: Base wait in milliseconds
        backoff: Linear (base * (attempt + 1)) or exponential (base * 2**attempt)
        is_retryable: Predicate deciding whether a failure is worth retrying
    """

    max_attempts: int = 3
    base_delay_ms: int = 1000
    backoff: BackoffKind = BackoffKind.EXPONENTIAL
    is_retryable: Callable[[BaseException], bool] = field(
        default=is_retryable_error, compare=False
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError(f"max_attempts must be >= 0, got {self.max_attempts}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0, got {self.base_delay_ms}")

    def delay_ms(self, attempt: int) -> int:
        """Wait after the failed try numbered ``attempt`` (0-based)."""
        if self.backoff is BackoffKind.EXPONENTIAL:
            return self.base_delay_ms * (2**attempt)
        return self.base_delay_ms * (attempt + 1)

    @property
    def total_tries(self) -> int:
        return self.max_attempts + 1


@dataclass(frozen=True)
class RetryPolicies:
    """Per-operation-kind policies handed to the mutation coordinator.

    Initial load is patient because it blocks first paint; interactive
    writes fail fast; reorder writes are fire-and-forget.
    """

    load: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=3, base_delay_ms=1000)
    )
    write: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=2, base_delay_ms=500)
    )
    reorder: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_attempts=0, base_delay_ms=250)
    )
