"""
In-memory hosted store implementation for testing.

This module provides an in-process PersistenceApi for:
- Unit tests
- Integration tests
- Local development without a hosted store

Like the hosted store, it assigns durable identifiers and timestamps and
publishes a change notification for every successful write.

Invariants:
    - All data is lost on process exit
    - Every call is scoped by owner; other owners' rows are invisible
    - Every call suspends at least once, like a network round trip
    - Injected failures are raised before any data changes

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the PersistenceApi protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..errors import NotFoundError
from ..stream.base import RawChange
from ..stream.memory import InMemoryChangeFeed
from .base import ListQuery, Row

logger = logging.getLogger(__name__)

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class InMemoryPersistence:
    """In-memory implementation of PersistenceApi for testing.

    Attributes:
        feed: Change feed that receives a notification per write
        calls: Number of calls per (operation, table)

    Example:
        >>> feed = InMemoryChangeFeed()
        >>> store = InMemoryPersistence(feed)
        >>> row = await store.insert("task_pool", "user-1", {"title": "Read"})
    """

    def __init__(self, feed: Optional[InMemoryChangeFeed] = None) -> None:
        self.feed = feed
        self.calls: Counter = Counter()
        self._tables: Dict[str, Dict[str, Row]] = defaultdict(dict)
        self._failures: List[List[Any]] = []
        self._gate: Optional[asyncio.Event] = None
        self._ticks = 0
        self._in_flight = 0

    async def insert(self, table: str, owner_id: str, row: Row) -> Row:
        await self._enter("insert", table)
        try:
            stored = dict(row)
            stored["id"] = str(uuid.uuid4())
            stored["user_id"] = owner_id
            stored["created_at"] = stored["updated_at"] = self._now()
            self._tables[table][stored["id"]] = stored
            self._publish(RawChange("INSERT", table, new=dict(stored)), owner_id)
            return dict(stored)
        finally:
            self._in_flight -= 1

    async def update(self, table: str, record_id: str, owner_id: str, patch: Row) -> Row:
        await self._enter("update", table)
        try:
            stored = self._owned_row(table, record_id, owner_id)
            stored.update(patch)
            stored["updated_at"] = self._now()
            self._publish(RawChange("UPDATE", table, new=dict(stored)), owner_id)
            return dict(stored)
        finally:
            self._in_flight -= 1

    async def delete(self, table: str, record_id: str, owner_id: str) -> None:
        await self._enter("delete", table)
        try:
            self._owned_row(table, record_id, owner_id)
            del self._tables[table][record_id]
            self._publish(RawChange("DELETE", table, old={"id": record_id}), owner_id)
        finally:
            self._in_flight -= 1

    async def list(self, table: str, owner_id: str, query: ListQuery | None = None) -> List[Row]:
        await self._enter("list", table)
        try:
            query = query or ListQuery()
            rows = [
                dict(r)
                for r in self._tables[table].values()
                if r.get("user_id") == owner_id
                and all(r.get(k) == v for k, v in query.filters.items())
            ]
            # stable sorts, least significant column first
            for column, ascending in reversed(query.order_by):
                rows.sort(
                    key=lambda r: (r.get(column) is not None, r.get(column)),
                    reverse=not ascending,
                )
            return rows
        finally:
            self._in_flight -= 1

    # Testing helpers

    def seed(self, table: str, owner_id: str, row: Row) -> Row:
        """Store a row directly, without calls, failures or notifications."""
        stored = dict(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored["user_id"] = owner_id
        stored.setdefault("created_at", self._now())
        stored.setdefault("updated_at", stored["created_at"])
        self._tables[table][str(stored["id"])] = stored
        return dict(stored)

    def rows(self, table: str) -> List[Row]:
        return [dict(r) for r in self._tables[table].values()]

    def get(self, table: str, record_id: str) -> Optional[Row]:
        row = self._tables[table].get(record_id)
        return dict(row) if row is not None else None

    def fail_next(self, error: BaseException, times: int = 1, operation: Optional[str] = None) -> None:
        """Make the next ``times`` matching calls raise ``error``.

        Args:
            error: Exception to raise
            times: Number of calls to fail
            operation: Only fail this operation ("insert", "update", ...)
        """
        self._failures.append([operation, error, times])

    def block(self) -> None:
        """Hold every new call in flight until release()."""
        if self._gate is None:
            self._gate = asyncio.Event()

    def release(self) -> None:
        gate, self._gate = self._gate, None
        if gate is not None:
            gate.set()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def wait_for_in_flight(self, count: int, timeout: float = 5.0) -> bool:
        """Wait until ``count`` calls are in flight (testing helper)."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if self._in_flight >= count:
                return True
            await asyncio.sleep(0.01)
        return False

    def _owned_row(self, table: str, record_id: str, owner_id: str) -> Row:
        stored = self._tables[table].get(record_id)
        if stored is None or stored.get("user_id") != owner_id:
            raise NotFoundError(f"{table} row not found: {record_id}", table, record_id)
        return stored

    async def _enter(self, operation: str, table: str) -> None:
        self.calls[(operation, table)] += 1
        self._in_flight += 1
        try:
            if self._gate is not None:
                await self._gate.wait()
            else:
                await asyncio.sleep(0)
            self._raise_injected(operation)
        except BaseException:
            self._in_flight -= 1
            raise

    def _raise_injected(self, operation: str) -> None:
        for entry in self._failures:
            wanted, error, remaining = entry
            if wanted is not None and wanted != operation:
                continue
            if remaining <= 1:
                self._failures.remove(entry)
            else:
                entry[2] = remaining - 1
            logger.debug(f"Injected failure for {operation}: {error!r}")
            raise error

    def _publish(self, change: RawChange, owner_id: str) -> None:
        if self.feed is not None:
            self.feed.publish(change, owner_id=owner_id)

    def _now(self) -> str:
        # strictly increasing so created_at breaks position ties deterministically
        self._ticks += 1
        return (_EPOCH + timedelta(milliseconds=self._ticks)).isoformat()
