"""
Mutation Coordinator.

Orchestrates create/update/delete/reorder for one owner and one entity kind:
1. Optimistically apply the change to the Local State Store
2. Persist it through the Retry Policy Executor
3. Reconcile with the server's canonical entity, or roll back

Rollback targets:
    - create: remove the temporary-identifier entity
    - update: restore the single pre-patch entity
    - delete: restore the whole pre-delete snapshot (list shape changed)
    - reorder: none; partial failures are reported, not reverted

Invariants:
    - Local state is restored before a terminal error is re-raised
    - Every failed user-initiated mutation notifies exactly once
    - Update/delete of an absent identifier is a no-op, not an error
    - Once is_current() turns false, settlements never touch local state
      and never notify

Concurrency:
    Two calls on the same identifier are not serialized. Each captures its
    own rollback target when it is issued and applies its reconciliation or
    rollback when it settles, so the call that settles last decides the
    final local state until the change stream delivers the server's value.

How to change safely:
    - Never await between reading a snapshot and store.apply()
    - Keep persistence calls wrapped in retry() with the matching policy
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from ..entities.base import is_temporary_id, make_temporary_id
from ..errors import UnsupportedOperationError
from ..notify import ERROR, INFO, LoggingNotifier, Notifier
from ..persistence.repository import Repository
from ..retry import RetryPolicies, RetryPolicy, retry
from ..retry.executor import Sleep
from ..store.local_state import LocalStateStore

logger = logging.getLogger(__name__)

E = TypeVar("E")
T = TypeVar("T")


@dataclass
class PendingMutation(Generic[E]):
    """Rollback capture for one user-initiated write.

    Attributes:
        operation: "create", "update" or "delete"
        entity_id: Identifier the write targets (temporary for creates)
        previous: Pre-patch entity (updates)
        previous_state: Whole pre-mutation snapshot (deletes)
    """

    operation: str
    entity_id: str
    previous: Optional[E] = None
    previous_state: Tuple[E, ...] = ()


@dataclass(frozen=True)
class ReorderResult:
    """Outcome of a reorder.

    Attributes:
        updated: Identifiers whose new position was persisted
        failed: (identifier, error) for positions that were not persisted
    """

    updated: Tuple[str, ...] = ()
    failed: Tuple[Tuple[str, BaseException], ...] = field(default=())

    @property
    def ok(self) -> bool:
        return not self.failed


class MutationCoordinator(Generic[E]):
    """Optimistic writes for one owner and one entity kind.

    Example:
        >>> coordinator = MutationCoordinator("user-1", repository, store)
        >>> task = await coordinator.create({"title": "Write report"})
        >>> await coordinator.update(task.id, {"completed": True})
    """

    def __init__(
        self,
        owner_id: str,
        repository: Repository[E],
        store: LocalStateStore[E],
        policies: Optional[RetryPolicies] = None,
        notifier: Optional[Notifier] = None,
        is_current: Optional[Callable[[], bool]] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            owner_id: Owner every call is scoped to
            repository: Typed persistence for this entity kind
            store: Local state to mutate
            policies: Retry policies per operation kind
            notifier: Sink for user-facing messages
            is_current: False once the owning engine has been torn down
            sleep: Retry delay function (injectable for tests)
        """
        self.owner_id = owner_id
        self.repository = repository
        self.store = store
        self.mapping = store.mapping
        self.policies = policies or RetryPolicies()
        self.notifier = notifier or LoggingNotifier()
        self._is_current = is_current or (lambda: True)
        self._sleep = sleep or asyncio.sleep

    @property
    def kind(self) -> str:
        return self.mapping.kind

    async def load(self, **options: Any) -> Tuple[E, ...]:
        """Initial load with the patient load policy.

        The result replaces every server-known entity, except those the
        change stream or a mutation touched while the list was in flight:
        their current local value (or absence) is newer than the listed
        row. Temporary-identifier entities are kept.

        Args:
            **options: Passed to the mapping's default_filters()

        Returns:
            The published snapshot
        """
        filters = self.mapping.default_filters(**options)
        started = self.store.version
        try:
            entities = await self._persist(
                lambda: self.repository.list(self.owner_id, filters),
                self.policies.load,
                "load",
            )
        except Exception as e:
            if self._is_current():
                logger.error(
                    f"Failed to load {self.kind}: {e}",
                    extra={"owner_id": self.owner_id, "entity_kind": self.kind},
                )
                self.notifier.notify(ERROR, f"Failed to load {self.kind}", error=e)
            raise

        if not self._is_current():
            return self.store.get_snapshot()

        loaded = tuple(entities)
        mapping = self.mapping
        newer = self.store.touched_since(started)

        def transform(current):
            fresh = [e for e in loaded if mapping.entity_id(e) not in newer]
            kept = [
                e
                for e in current
                if is_temporary_id(mapping.entity_id(e)) or mapping.entity_id(e) in newer
            ]
            return (*fresh, *kept)

        snapshot = self.store.apply(transform)
        logger.info(
            f"Loaded {len(loaded)} {self.kind}",
            extra={"owner_id": self.owner_id, "entity_kind": self.kind},
        )
        return snapshot

    async def create(self, draft: Mapping[str, Any]) -> E:
        """Add an entity with a temporary identifier, then persist it.

        Returns:
            The server-confirmed entity

        Raises:
            ValidationError: If the draft is incomplete (nothing is applied)
            SyncError: If persistence fails terminally (after rollback)
        """
        mapping = self.mapping
        temp_id = make_temporary_id()
        try:
            optimistic = mapping.build_draft(draft, self.owner_id, temp_id, self.store.get_snapshot())
        except Exception as e:
            self._notify_failure("create", temp_id, e)
            raise

        pending: PendingMutation[E] = PendingMutation("create", temp_id)
        self.store.apply(lambda current: (*current, optimistic))

        try:
            saved = await self._persist(
                lambda: self.repository.insert(self.owner_id, optimistic),
                self.policies.write,
                "create",
            )
        except Exception as e:
            self._rollback(pending, e)
            raise

        if not self._is_current():
            return saved

        saved_id = mapping.entity_id(saved)

        # the change stream may already have delivered the durable row
        def reconcile(current):
            kept = [e for e in current if mapping.entity_id(e) not in (temp_id, saved_id)]
            return (*kept, saved)

        self.store.apply(reconcile)
        logger.debug(
            "Reconciled created entity",
            extra={"entity_kind": self.kind, "temp_id": temp_id, "entity_id": saved_id},
        )
        self.notifier.notify(INFO, f"Added {self.kind} item")
        return saved

    async def update(self, entity_id: str, patch: Mapping[str, Any]) -> Optional[E]:
        """Patch an entity optimistically, then persist the patch.

        Returns:
            The server-confirmed entity, or None if ``entity_id`` is not in
            local state

        Raises:
            UnknownFieldError: If the patch names an unknown field (nothing is applied)
            SyncError: If persistence fails terminally (after rollback)
        """
        previous = self.store.find(entity_id)
        if previous is None:
            logger.debug(
                "Update target not in local state, skipping",
                extra={"entity_kind": self.kind, "entity_id": entity_id},
            )
            return None

        mapping = self.mapping
        try:
            optimistic = mapping.apply_patch(previous, patch)
        except Exception as e:
            self._notify_failure("update", entity_id, e)
            raise

        pending: PendingMutation[E] = PendingMutation("update", entity_id, previous=previous)
        self.store.apply(lambda current: _replace(mapping, current, entity_id, optimistic))

        try:
            saved = await self._persist(
                lambda: self.repository.update(entity_id, self.owner_id, patch),
                self.policies.write,
                "update",
            )
        except Exception as e:
            self._rollback(pending, e)
            raise

        if not self._is_current():
            return saved

        self.store.apply(lambda current: _replace(mapping, current, entity_id, saved))
        self.notifier.notify(INFO, f"Updated {self.kind} item")
        return saved

    async def delete(self, entity_id: str) -> bool:
        """Remove an entity optimistically, then persist the removal.

        Returns:
            True if the entity was deleted, False if it was not in local state

        Raises:
            SyncError: If persistence fails terminally (after rollback)
        """
        previous_state = self.store.get_snapshot()
        if self.store.find(entity_id) is None:
            logger.debug(
                "Delete target not in local state, skipping",
                extra={"entity_kind": self.kind, "entity_id": entity_id},
            )
            return False

        mapping = self.mapping
        pending: PendingMutation[E] = PendingMutation(
            "delete", entity_id, previous_state=previous_state
        )
        self.store.apply(
            lambda current: tuple(e for e in current if mapping.entity_id(e) != entity_id)
        )

        try:
            await self._persist(
                lambda: self.repository.delete(entity_id, self.owner_id),
                self.policies.write,
                "delete",
            )
        except Exception as e:
            self._rollback(pending, e)
            raise

        if self._is_current():
            self.notifier.notify(INFO, f"Deleted {self.kind} item")
        return True

    async def reorder(self, ordered_ids: Sequence[str]) -> ReorderResult:
        """Assign 1-based positions in the given order and persist the changes.

        Unknown identifiers are skipped. Entities not named keep their
        relative order after the named ones. Each changed position is
        persisted concurrently with the reorder policy; failures are
        reported once and not rolled back.

        Raises:
            UnsupportedOperationError: If the entity kind has no position
        """
        mapping = self.mapping
        if not mapping.positional:
            raise UnsupportedOperationError("reorder", mapping.kind)

        changed: Dict[str, int] = {}

        def transform(current):
            by_id = {mapping.entity_id(e): e for e in current}
            named = [by_id[i] for i in dict.fromkeys(ordered_ids) if i in by_id]
            named_ids = {mapping.entity_id(e) for e in named}
            rest = [e for e in current if mapping.entity_id(e) not in named_ids]
            result = []
            for position, entity in enumerate((*named, *rest), start=1):
                moved = mapping.with_position(entity, position)
                if moved != entity:
                    changed[mapping.entity_id(entity)] = position
                result.append(moved)
            return result

        self.store.apply(transform)
        if not changed:
            return ReorderResult()

        ids = list(changed)
        outcomes = await asyncio.gather(
            *(self._persist_position(entity_id, changed[entity_id]) for entity_id in ids),
            return_exceptions=True,
        )

        updated: List[str] = []
        failed: List[Tuple[str, BaseException]] = []
        for entity_id, outcome in zip(ids, outcomes):
            if isinstance(outcome, BaseException):
                failed.append((entity_id, outcome))
            else:
                updated.append(entity_id)

        result = ReorderResult(tuple(updated), tuple(failed))
        if failed and self._is_current():
            logger.error(
                f"Failed to persist {len(failed)} of {len(ids)} positions",
                extra={"owner_id": self.owner_id, "entity_kind": self.kind},
            )
            self.notifier.notify(ERROR, f"Order of {self.kind} not saved", error=failed[0][1])
        return result

    def _persist_position(self, entity_id: str, position: int) -> Awaitable[E]:
        return self._persist(
            lambda: self.repository.update(entity_id, self.owner_id, {"position": position}),
            self.policies.reorder,
            "reorder",
        )

    async def _persist(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        action: str,
    ) -> T:
        return await retry(
            operation,
            policy,
            sleep=self._sleep,
            operation_name=f"{action} {self.kind}",
        )

    def _rollback(self, pending: PendingMutation[E], error: BaseException) -> None:
        if not self._is_current():
            logger.debug(
                "Discarding settlement for a closed engine",
                extra={"entity_kind": self.kind, "entity_id": pending.entity_id},
            )
            return

        mapping = self.mapping
        if pending.operation == "create":
            self.store.apply(
                lambda current: tuple(
                    e for e in current if mapping.entity_id(e) != pending.entity_id
                )
            )
        elif pending.operation == "update":
            previous = pending.previous
            # a concurrent delete that already removed the entity wins
            self.store.apply(
                lambda current: _replace(mapping, current, pending.entity_id, previous)
            )
        else:
            self.store.replace_all(pending.previous_state)

        self._notify_failure(pending.operation, pending.entity_id, error)

    def _notify_failure(self, operation: str, entity_id: str, error: BaseException) -> None:
        logger.error(
            f"Failed to {operation} {self.kind}: {error}",
            extra={"owner_id": self.owner_id, "entity_kind": self.kind, "entity_id": entity_id},
        )
        self.notifier.notify(ERROR, f"Failed to {operation} {self.kind} item", error=error)


def _replace(mapping, current: Sequence[Any], entity_id: str, entity: Any) -> Tuple[Any, ...]:
    return tuple(entity if mapping.entity_id(e) == entity_id else e for e in current)
