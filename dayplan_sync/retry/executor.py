"""
Retry Policy Executor.

Re-invokes a fallible coroutine factory under a RetryPolicy.

Invariants:
    - The operation is tried at most policy.max_attempts + 1 times
    - A non-retryable error is re-raised on the try that produced it
    - After the last try the last error is re-raised unchanged
    - Cancellation is never retried (CancelledError is not an Exception)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from .policy import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[object]]


async def retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Sleep = asyncio.sleep,
    operation_name: str = "operation",
) -> T:
    """Run ``operation`` until it succeeds or the policy gives up.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per try
        policy: Backoff schedule and retryability predicate
        sleep: Awaitable sleep taking seconds (injectable for tests)
        operation_name: Label used in log records

    Returns:
        The operation's result

    Raises:
        Exception: The last error raised by the operation
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if not policy.is_retryable(e):
                logger.debug(
                    f"{operation_name} failed with a permanent error",
                    extra={"attempt": attempt, "error": str(e)},
                )
                raise
            if attempt >= policy.max_attempts:
                logger.warning(
                    f"{operation_name} failed after {attempt + 1} tries",
                    extra={"attempt": attempt, "error": str(e)},
                )
                raise

            delay_ms = policy.delay_ms(attempt)
            logger.warning(
                f"{operation_name} failed, retrying in {delay_ms}ms",
                extra={"attempt": attempt, "delay_ms": delay_ms, "error": str(e)},
            )
            await sleep(delay_ms / 1000)
            attempt += 1
