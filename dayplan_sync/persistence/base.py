"""
Base protocol and types for the persistence abstraction.

The hosted store is consumed at row level: every call names a table and
is scoped by owner identifier. Row <-> entity conversion happens one
level up, in Repository.

Invariants:
    - Every call is scoped by owner_id; no call can touch another owner's rows
    - insert() and update() return the stored row as the store sees it
    - update() and delete() of a missing row raise NotFoundError
    - Calls may fail with the transient errors in dayplan_sync.errors

How to change safely:
    - Protocol changes require updating all implementations
    - Map backend failures onto the error taxonomy; never leak transport
      exceptions past the adapter
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, Tuple, runtime_checkable

Row = Dict[str, Any]


@dataclass(frozen=True)
class ListQuery:
    """Filter and ordering for list().

    Attributes:
        filters: Column equality filters
        order_by: (column, ascending) pairs, applied in order
    """

    filters: Dict[str, Any] = field(default_factory=dict)
    order_by: Tuple[Tuple[str, bool], ...] = ()


@runtime_checkable
class PersistenceApi(Protocol):
    """Protocol for hosted-store backends.

    Example:
        >>> row = await store.insert("task_pool", "user-1", {"title": "Read"})
        >>> row["id"]
        '5c0f...'
    """

    @abstractmethod
    async def insert(self, table: str, owner_id: str, row: Row) -> Row:
        """Insert ``row`` for ``owner_id`` and return the stored row."""
        ...

    @abstractmethod
    async def update(self, table: str, record_id: str, owner_id: str, patch: Row) -> Row:
        """Patch one owned row and return it.

        Raises:
            NotFoundError: If the row does not exist for this owner
        """
        ...

    @abstractmethod
    async def delete(self, table: str, record_id: str, owner_id: str) -> None:
        """Delete one owned row."""
        ...

    @abstractmethod
    async def list(self, table: str, owner_id: str, query: ListQuery | None = None) -> List[Row]:
        """Rows owned by ``owner_id`` matching ``query``."""
        ...
