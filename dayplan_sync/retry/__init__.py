"""
Retry Policy Executor for the sync engine.

Persistence calls go through retry() with one of the RetryPolicies:
- load: initial fetch, patient
- write: interactive create/update/delete, fail fast
- reorder: per-entity position writes, fire-and-forget
"""

from .executor import retry
from .policy import BackoffKind, RetryPolicies, RetryPolicy, is_retryable_error

__all__ = [
    "retry",
    "BackoffKind",
    "RetryPolicy",
    "RetryPolicies",
    "is_retryable_error",
]
