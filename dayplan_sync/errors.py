"""
Error types for the dayplan sync engine.

This module defines all exception types raised by the engine:
- SyncError: Base exception
- TransientError: Failures worth retrying (network, timeout, 5xx, 429)
- PermanentError: Failures that are surfaced immediately (validation, 4xx)
- Engine errors: closed engine, unsupported operation, bad change payloads

Invariants:
    - All errors inherit from SyncError
    - Errors include context for debugging
    - Retryability is decided by the error type alone, never by engine state

How to change safely:
    - New transport failures must subclass TransientError or PermanentError
    - Keep the ``code`` values stable; callers branch on them
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class SyncError(Exception):
    """Base exception for all sync engine errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "SYNC_ERROR"
        self.details = details or {}


class TransientError(SyncError):
    """A failure that may succeed if the call is repeated."""


class PermanentError(SyncError):
    """A failure that will not go away by retrying."""


class NetworkError(TransientError):
    """The hosted store could not be reached."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message, code="NETWORK_ERROR", details={"url": url})
        self.url = url


class RequestTimeoutError(TransientError):
    """The request did not complete in time."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message, code="TIMEOUT", details={"url": url})
        self.url = url


class ServerError(TransientError):
    """The hosted store answered with an HTTP 5xx status."""

    def __init__(self, message: str, status: int = 500) -> None:
        super().__init__(message, code="SERVER_ERROR", details={"status": status})
        self.status = status


class RateLimitedError(TransientError):
    """The hosted store answered with HTTP 429.

    Attributes:
        retry_after: Seconds the server asked us to wait, if it said so
    """

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(
            message,
            code="RATE_LIMITED",
            details={"status": 429, "retry_after": retry_after},
        )
        self.status = 429
        self.retry_after = retry_after


class ValidationError(PermanentError):
    """Payload validation failed.

    Raised when:
    - Required field is missing
    - Field value has wrong type
    - An immutable field is patched
    - The store rejects the row (HTTP 400/409/422)
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class UnknownFieldError(ValidationError):
    """Unknown field in a draft or patch.

    Includes suggestions for similar field names.

    Attributes:
        field_name: The unknown field
        entity_kind: The entity kind being written
        suggestions: Similar field names
    """

    def __init__(
        self,
        field_name: str,
        entity_kind: str,
        suggestions: Optional[List[str]] = None,
    ) -> None:
        suggestions = suggestions or []
        msg = f"Unknown field '{field_name}' for '{entity_kind}'"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"

        super().__init__(msg, field_name=field_name)
        self.code = "UNKNOWN_FIELD"
        self.details.update({"entity_kind": entity_kind, "suggestions": suggestions})
        self.entity_kind = entity_kind
        self.suggestions = suggestions


class NotFoundError(PermanentError):
    """The addressed record does not exist for this owner."""

    def __init__(self, message: str, resource_type: str, resource_id: str) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.status = 404
        self.resource_type = resource_type
        self.resource_id = resource_id


class UnauthorizedError(PermanentError):
    """The session is not allowed to perform the call (HTTP 401/403)."""

    def __init__(self, message: str, status: int = 401) -> None:
        super().__init__(message, code="UNAUTHORIZED", details={"status": status})
        self.status = status


class HttpStatusError(PermanentError):
    """Any other 4xx answer from the hosted store."""

    def __init__(self, message: str, status: int) -> None:
        super().__init__(message, code="HTTP_ERROR", details={"status": status})
        self.status = status


class EngineClosedError(SyncError):
    """The engine was torn down (owner changed or signed out)."""

    def __init__(self, message: str = "Sync engine is closed") -> None:
        super().__init__(message, code="ENGINE_CLOSED")


class UnsupportedOperationError(SyncError):
    """The entity kind does not support the requested operation."""

    def __init__(self, operation: str, entity_kind: str) -> None:
        super().__init__(
            f"'{operation}' is not supported for '{entity_kind}'",
            code="UNSUPPORTED_OPERATION",
            details={"operation": operation, "entity_kind": entity_kind},
        )
        self.operation = operation
        self.entity_kind = entity_kind


class ChangeNormalizationError(SyncError):
    """A change notification could not be turned into an entity."""

    def __init__(self, message: str, table: Optional[str] = None) -> None:
        super().__init__(message, code="BAD_CHANGE", details={"table": table})
        self.table = table


class LocalStateError(SyncError):
    """A state transform violated a local state invariant."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="LOCAL_STATE_ERROR")
