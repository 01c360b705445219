"""
Change Stream Subscriber.

Consumes one owner's change feed for one entity kind and merges every
event into the Local State Store.

Merge rules:
    - insert: ignored when the identifier is already present (idempotent
      against duplicates and against this session's own confirmed writes),
      otherwise added
    - update: replaces the entity with the same identifier; never inserts
    - delete: removes the entity if present; absence is not an error

Invariants:
    - All merges go through LocalStateStore.apply()
    - Malformed events are logged and skipped, never fatal
    - A dropped subscription is logged and recorded, never fatal;
      reconnecting (calling start() again) is the caller's decision

How to change safely:
    - Keep merge() synchronous; it must not await between reading and
      publishing the snapshot
    - Test out-of-order delivery (update before insert, double delete)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Generic, Optional, Tuple, TypeVar

from ..errors import ChangeNormalizationError
from ..store.local_state import LocalStateStore
from .base import ChangeEvent, ChangeFeed, ChangeKind, RawChange
from .normalizer import ChangeNormalizer

logger = logging.getLogger(__name__)

E = TypeVar("E")


class ChangeStreamSubscriber(Generic[E]):
    """Merges one owner's change feed into a LocalStateStore.

    Thread safety:
        Runs as a single task on the engine's event loop.

    Example:
        >>> subscriber = ChangeStreamSubscriber(feed, store, "user-1")
        >>> await subscriber.start()
        >>> ...
        >>> await subscriber.stop()
    """

    def __init__(
        self,
        feed: ChangeFeed,
        store: LocalStateStore[E],
        owner_id: str,
    ) -> None:
        self.feed = feed
        self.store = store
        self.owner_id = owner_id
        self.mapping = store.mapping
        self.normalizer: ChangeNormalizer[E] = ChangeNormalizer(store.mapping, owner_id)

        self.last_error: Optional[BaseException] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._processed_count = 0
        self._error_count = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stats(self) -> Tuple[int, int]:
        """(events processed, events rejected)."""
        return self._processed_count, self._error_count

    async def start(self) -> None:
        """Open the subscription and begin merging in the background."""
        if self.is_running:
            logger.warning("Change stream subscriber already running")
            return

        self.last_error = None
        self._task = asyncio.create_task(
            self._run(), name=f"changes:{self.mapping.kind}:{self.owner_id}"
        )
        # let the task open its subscription before returning
        await asyncio.sleep(0)

    async def stop(self) -> None:
        """Unsubscribe. Safe to call more than once."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info(
            "Change stream subscriber stopped",
            extra={"entity_kind": self.mapping.kind, "owner_id": self.owner_id},
        )

    async def _run(self) -> None:
        logger.info(
            "Starting change stream subscriber",
            extra={"entity_kind": self.mapping.kind, "owner_id": self.owner_id},
        )
        try:
            async for raw in self.feed.subscribe(self.mapping.kind, self.owner_id):
                self.merge(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.last_error = e
            logger.error(
                f"Change stream subscription dropped: {e}",
                extra={"entity_kind": self.mapping.kind, "owner_id": self.owner_id},
            )

    def merge(self, raw: RawChange) -> bool:
        """Merge one raw change into local state.

        Returns:
            True if the local state changed
        """
        try:
            event = self.normalizer.normalize(raw)
        except ChangeNormalizationError as e:
            self._error_count += 1
            logger.warning(f"Skipping malformed change: {e}", extra={"entity_kind": self.mapping.kind})
            return False

        self._processed_count += 1
        if event is None:
            return False
        return self.merge_event(event)

    def merge_event(self, event: ChangeEvent[E]) -> bool:
        """Apply a normalized event through the store's atomic primitive."""
        before = self.store.version
        mapping = self.mapping

        if event.kind is ChangeKind.INSERT:
            inserted = event.entity

            def transform(current):
                if any(mapping.entity_id(e) == event.entity_id for e in current):
                    return current
                return (*current, inserted)

        elif event.kind is ChangeKind.UPDATE:
            updated = event.entity

            def transform(current):
                return tuple(
                    updated if mapping.entity_id(e) == event.entity_id else e for e in current
                )

        else:

            def transform(current):
                return tuple(e for e in current if mapping.entity_id(e) != event.entity_id)

        self.store.apply(transform)
        changed = self.store.version != before
        logger.debug(
            f"Merged {event.kind.value} change",
            extra={
                "entity_kind": mapping.kind,
                "entity_id": event.entity_id,
                "changed": changed,
            },
        )
        return changed
