"""
Base protocol and types for the change stream abstraction.

The hosted store pushes a notification for every insert, update and
delete of a persisted row. This module defines the provider-shaped
RawChange, the canonical ChangeEvent the engine merges, and the ChangeFeed
protocol that feed backends implement.

Invariants:
    - Delivery is at-least-once and may be out of order; consumers must be
      idempotent against duplicates
    - A subscription is scoped to one table and one owner
    - Closing the async iterator returned by subscribe() unsubscribes

How to change safely:
    - Protocol changes require updating all implementations
    - Keep RawChange close to the provider payload; entity knowledge
      belongs in the normalizer
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    AsyncIterator,
    Dict,
    Generic,
    Optional,
    Protocol,
    TypeVar,
    runtime_checkable,
)

E = TypeVar("E")


class ChangeKind(Enum):
    """Canonical operation tag of a change event."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class FeedError(Exception):
    """Base exception for change feed operations."""
    pass


class FeedDisconnectedError(FeedError):
    """The push subscription dropped."""
    pass


@dataclass(frozen=True)
class RawChange:
    """A change notification as delivered by the hosted store.

    Attributes:
        event_type: "INSERT", "UPDATE" or "DELETE"
        table: Table the row lives in
        new: Row after the change (INSERT/UPDATE)
        old: Row before the change (DELETE; may carry only the id)
        commit_timestamp: Store commit time (ISO), if provided

    Example:
        >>> RawChange("UPDATE", "task_pool", new={"id": "t1", "user_id": "u1", ...})
    """

    event_type: str
    table: str
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None
    commit_timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eventType": self.event_type,
            "table": self.table,
            "new": self.new,
            "old": self.old,
            "commit_timestamp": self.commit_timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RawChange:
        """Create from the provider's JSON payload."""
        return cls(
            event_type=str(data.get("eventType") or data.get("event_type") or ""),
            table=str(data.get("table") or ""),
            new=data.get("new") or None,
            old=data.get("old") or None,
            commit_timestamp=data.get("commit_timestamp"),
        )

    def __str__(self) -> str:
        return f"RawChange({self.event_type} {self.table})"


@dataclass(frozen=True)
class ChangeEvent(Generic[E]):
    """A normalized change: operation tag plus entity (or id for deletes)."""

    kind: ChangeKind
    entity_id: str
    entity: Optional[E] = None


@runtime_checkable
class ChangeFeed(Protocol):
    """Protocol for push-based change feed backends.

    Example:
        >>> async for change in feed.subscribe("task_pool", "user-1"):
        ...     subscriber.merge(change)
    """

    @abstractmethod
    def subscribe(self, table: str, owner_id: str) -> AsyncIterator[RawChange]:
        """Open a subscription for one owner's rows in ``table``.

        Yields:
            RawChange objects as the store publishes them

        Raises:
            FeedDisconnectedError: If the subscription drops
        """
        ...
