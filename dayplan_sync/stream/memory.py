"""
In-memory change feed implementation for testing.

This module provides a simple in-process change feed for:
- Unit tests
- Integration tests
- Local development without a hosted store

Invariants:
    - Changes are delivered to every open subscription for the same
      (table, owner) in publish order
    - Changes published while no one listens are not replayed
    - Closing a subscription's iterator removes it

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the ChangeFeed protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import AsyncIterator, Dict, List, Optional, Set, Tuple, Union

from .base import FeedDisconnectedError, RawChange

logger = logging.getLogger(__name__)

_Item = Union[RawChange, BaseException, None]


class InMemoryChangeFeed:
    """In-memory implementation of ChangeFeed for testing.

    Attributes:
        published: Every change published so far, in order

    Example:
        >>> feed = InMemoryChangeFeed()
        >>> async for change in feed.subscribe("task_pool", "user-1"):
        ...     print(change)
    """

    def __init__(self) -> None:
        self.published: List[RawChange] = []
        self._queues: Dict[Tuple[str, str], Set[asyncio.Queue[_Item]]] = defaultdict(set)

    async def subscribe(self, table: str, owner_id: str) -> AsyncIterator[RawChange]:
        """Subscribe to one owner's changes on ``table``.

        Yields:
            RawChange for each published change

        Raises:
            FeedDisconnectedError: When a disconnect is injected
        """
        key = (table, owner_id)
        queue: asyncio.Queue[_Item] = asyncio.Queue()
        self._queues[key].add(queue)
        logger.debug("Change feed subscription opened", extra={"table": table, "owner_id": owner_id})

        try:
            while True:
                item = await queue.get()
                if item is None:
                    return
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self._queues[key].discard(queue)
            logger.debug(
                "Change feed subscription closed", extra={"table": table, "owner_id": owner_id}
            )

    def publish(self, change: RawChange, owner_id: Optional[str] = None) -> int:
        """Deliver ``change`` to the matching subscriptions.

        Args:
            change: The change to deliver
            owner_id: Owner scope; read from the change's rows when omitted

        Returns:
            Number of subscriptions the change was delivered to
        """
        owner = owner_id or _owner_of(change)
        self.published.append(change)
        if owner is None:
            return 0
        queues = self._queues.get((change.table, owner), set())
        for queue in queues:
            queue.put_nowait(change)
        return len(queues)

    # Testing helpers

    def subscriber_count(self, table: str, owner_id: str) -> int:
        return len(self._queues.get((table, owner_id), set()))

    def disconnect(self, table: str, owner_id: str, error: Optional[BaseException] = None) -> None:
        """Drop every subscription for (table, owner) with ``error``."""
        failure = error or FeedDisconnectedError(f"Subscription to {table} dropped")
        for queue in self._queues.get((table, owner_id), set()):
            queue.put_nowait(failure)

    def close(self) -> None:
        """End every open subscription cleanly."""
        for queues in self._queues.values():
            for queue in queues:
                queue.put_nowait(None)

    async def wait_for_subscribers(
        self,
        table: str,
        owner_id: str,
        count: int = 1,
        timeout: float = 5.0,
    ) -> bool:
        """Wait until ``count`` subscriptions are open (testing helper).

        Returns:
            True if count reached, False if timeout
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if self.subscriber_count(table, owner_id) >= count:
                return True
            await asyncio.sleep(0.01)
        return False


def _owner_of(change: RawChange) -> Optional[str]:
    for row in (change.new, change.old):
        if row and row.get("user_id") is not None:
            return str(row["user_id"])
    return None
