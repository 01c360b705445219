"""
Local State Store: the in-memory, UI-visible list of entities for one owner.

Every writer (mutation coordinator, change stream subscriber, initial load)
goes through apply(), which reads the latest snapshot, computes the next
one with a pure transform, and publishes it in a single assignment. Readers
use get_snapshot() or subscribe() for change notifications.

Invariants:
    - Snapshots are immutable tuples
    - Every published snapshot is sorted by the mapping's sort key
    - No two entities in a snapshot share an identifier
    - apply() never awaits; a transform returning an awaitable is rejected
    - A transform that raises leaves the published snapshot untouched
    - touched_since(v) names every identifier whose entity was added,
      changed or removed by a snapshot published after version v

How to change safely:
    - Never add an ``await`` inside apply(); async work belongs before or
      after the call, never inside it
    - Listeners run synchronously after publication; keep them cheap
"""

from __future__ import annotations

import inspect
import logging
from typing import Callable, Dict, FrozenSet, Generic, Iterable, List, Optional, Sequence, Tuple, TypeVar

from ..entities.base import EntityMapping
from ..errors import LocalStateError

logger = logging.getLogger(__name__)

E = TypeVar("E")

Transform = Callable[[Tuple[E, ...]], Iterable[E]]
Listener = Callable[[Tuple[E, ...]], None]


class LocalStateStore(Generic[E]):
    """Ordered, uniquely-keyed entity list with one atomic write primitive.

    Attributes:
        mapping: Entity mapping used for ids and sort keys
        version: Number of snapshots published so far

    Example:
        >>> store = LocalStateStore(PoolTaskMapping())
        >>> store.apply(lambda current: [*current, task])
        >>> store.get_snapshot()
        (PoolTask(id='...', ...),)
    """

    def __init__(self, mapping: EntityMapping[E], initial: Iterable[E] = ()) -> None:
        self.mapping = mapping
        self.version = 0
        self._snapshot: Tuple[E, ...] = self._normalize(initial)
        self._listeners: List[Listener[E]] = []
        # identifier -> version of the last snapshot that added, changed or removed it
        self._touched: Dict[str, int] = {}

    def get_snapshot(self) -> Tuple[E, ...]:
        """The most recently published snapshot."""
        return self._snapshot

    def find(self, entity_id: str) -> Optional[E]:
        """Entity with ``entity_id`` in the latest snapshot, or None."""
        for entity in self._snapshot:
            if self.mapping.entity_id(entity) == entity_id:
                return entity
        return None

    def apply(self, transform: Transform[E]) -> Tuple[E, ...]:
        """Publish ``transform(latest snapshot)`` as the new snapshot.

        Args:
            transform: Pure function from the current snapshot to the next
                entity sequence (any order; the store sorts it)

        Returns:
            The published snapshot

        Raises:
            LocalStateError: If the transform is async or yields duplicate ids
        """
        current = self._snapshot
        result = transform(current)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise LocalStateError("State transforms must be synchronous")

        next_snapshot = self._normalize(result)
        if next_snapshot == current:
            return current

        self._snapshot = next_snapshot
        self.version += 1
        self._record_touched(current, next_snapshot)
        self._notify(next_snapshot)
        return next_snapshot

    def touched_since(self, version: int) -> FrozenSet[str]:
        """Identifiers added, changed or removed after snapshot ``version``.

        Lets a writer that awaited between capturing ``version`` and calling
        apply() tell which entities are newer than what it read.
        """
        return frozenset(i for i, v in self._touched.items() if v > version)

    def replace_all(self, entities: Iterable[E]) -> Tuple[E, ...]:
        """Publish ``entities`` wholesale (rollback, initial load)."""
        materialized = tuple(entities)
        return self.apply(lambda _current: materialized)

    def subscribe(self, listener: Listener[E]) -> Callable[[], None]:
        """Register a listener called with every new snapshot.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _normalize(self, entities: Iterable[E]) -> Tuple[E, ...]:
        ordered = sorted(entities, key=self.mapping.sort_key)
        seen = set()
        for entity in ordered:
            entity_id = self.mapping.entity_id(entity)
            if entity_id in seen:
                raise LocalStateError(f"Duplicate identifier in local state: {entity_id}")
            seen.add(entity_id)
        return tuple(ordered)

    def _record_touched(self, before: Sequence[E], after: Sequence[E]) -> None:
        entity_id = self.mapping.entity_id
        old = {entity_id(e): e for e in before}
        new = {entity_id(e): e for e in after}
        for key in old.keys() | new.keys():
            if old.get(key) != new.get(key):
                self._touched[key] = self.version

    def _notify(self, snapshot: Sequence[E]) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)  # type: ignore[arg-type]
            except Exception as e:
                logger.error(f"State listener failed: {e}", exc_info=True)

    def __len__(self) -> int:
        return len(self._snapshot)
