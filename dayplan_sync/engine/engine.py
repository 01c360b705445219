"""
Sync engine for one owner and one entity kind.

Wires together:
- LocalStateStore (the UI-visible snapshot)
- ChangeStreamSubscriber (push notifications from the hosted store)
- MutationCoordinator (optimistic writes and the initial load)

Lifecycle:
    start()  -> subscribe to the change feed, then initial load
    close()  -> unsubscribe; in-flight settlements are discarded

Invariants:
    - The subscription is open before the initial load is issued, and
      entities merged while the load is in flight win over its listed rows,
      so no change committed after the load's read is missed
    - After close() no settlement mutates local state or notifies, and new
      mutations raise EngineClosedError
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, List, Mapping, Optional, Sequence, Tuple, TypeVar

from ..entities.base import EntityMapping
from ..errors import EngineClosedError
from ..notify import Notifier
from ..persistence.base import PersistenceApi
from ..persistence.repository import Repository
from ..retry import RetryPolicies
from ..retry.executor import Sleep
from ..store.local_state import LocalStateStore
from ..stream.base import ChangeFeed
from ..stream.subscriber import ChangeStreamSubscriber
from .coordinator import MutationCoordinator, ReorderResult

logger = logging.getLogger(__name__)

E = TypeVar("E")


class SyncEngine(Generic[E]):
    """Optimistic synchronization of one owner's entities of one kind.

    Example:
        >>> engine = SyncEngine(PoolTaskMapping(), "user-1", api, feed)
        >>> await engine.start()
        >>> await engine.create({"title": "Call dentist"})
        >>> engine.snapshot
        (PoolTask(id='...', title='Call dentist', ...),)
        >>> await engine.close()
    """

    def __init__(
        self,
        mapping: EntityMapping[E],
        owner_id: str,
        api: PersistenceApi,
        feed: ChangeFeed,
        policies: Optional[RetryPolicies] = None,
        notifier: Optional[Notifier] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.mapping = mapping
        self.owner_id = owner_id
        self.store: LocalStateStore[E] = LocalStateStore(mapping)
        self.subscriber: ChangeStreamSubscriber[E] = ChangeStreamSubscriber(
            feed, self.store, owner_id
        )
        self.coordinator: MutationCoordinator[E] = MutationCoordinator(
            owner_id,
            Repository(api, mapping),
            self.store,
            policies=policies,
            notifier=notifier,
            is_current=lambda: not self._closed,
            sleep=sleep,
        )
        self.loading = False
        self._closed = False

    @property
    def kind(self) -> str:
        return self.mapping.kind

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def snapshot(self) -> Tuple[E, ...]:
        return self.store.get_snapshot()

    async def start(self, **load_options: Any) -> Tuple[E, ...]:
        """Subscribe to changes, then load the owner's entities.

        Args:
            **load_options: Passed to the mapping's default_filters()

        Returns:
            The snapshot after the initial load

        Raises:
            SyncError: If the initial load fails terminally (the subscription
                stays open)
        """
        self._ensure_open()
        logger.info(
            "Starting sync engine",
            extra={"owner_id": self.owner_id, "entity_kind": self.kind},
        )
        await self.subscriber.start()
        return await self.reload(**load_options)

    async def reload(self, **load_options: Any) -> Tuple[E, ...]:
        """Re-run the initial load (e.g. after a reconnect)."""
        self._ensure_open()
        self.loading = True
        try:
            return await self.coordinator.load(**load_options)
        finally:
            self.loading = False

    async def close(self) -> None:
        """Tear down. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self.subscriber.stop()
        logger.info(
            "Sync engine closed",
            extra={"owner_id": self.owner_id, "entity_kind": self.kind},
        )

    def subscribe(self, listener: Callable[[Tuple[E, ...]], None]) -> Callable[[], None]:
        """Register a snapshot listener; returns the unsubscribe callable."""
        return self.store.subscribe(listener)

    def select(self, predicate: Callable[[E], bool]) -> List[E]:
        """Entities of the latest snapshot matching ``predicate``, in order."""
        return [e for e in self.store.get_snapshot() if predicate(e)]

    def get(self, entity_id: str) -> Optional[E]:
        return self.store.find(entity_id)

    async def create(self, draft: Mapping[str, Any]) -> E:
        self._ensure_open()
        return await self.coordinator.create(draft)

    async def update(self, entity_id: str, patch: Mapping[str, Any]) -> Optional[E]:
        self._ensure_open()
        return await self.coordinator.update(entity_id, patch)

    async def delete(self, entity_id: str) -> bool:
        self._ensure_open()
        return await self.coordinator.delete(entity_id)

    async def reorder(self, ordered_ids: Sequence[str]) -> ReorderResult:
        self._ensure_open()
        return await self.coordinator.reorder(ordered_ids)

    def _ensure_open(self) -> None:
        if self._closed:
            raise EngineClosedError(f"Sync engine for {self.kind} ({self.owner_id}) is closed")

    async def __aenter__(self) -> SyncEngine[E]:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
