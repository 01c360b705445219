"""
Owner lifecycle for the sync engines.

A SyncSession holds one SyncEngine per entity kind (schedule items and
pool tasks) for the signed-in owner. Local state belongs to the owner: it
is discarded on sign-out and rebuilt from the hosted store on sign-in.

Invariants:
    - At most one owner's engines are live at a time
    - sign_in() closes the previous owner's engines before starting new ones
    - Without a signed-in owner, engine access raises EngineClosedError
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..config import SyncSettings
from ..entities.pool import PoolTask, PoolTaskMapping
from ..entities.schedule import ScheduleItem, ScheduleItemMapping
from ..errors import EngineClosedError
from ..notify import Notifier
from ..persistence.base import PersistenceApi
from ..retry import RetryPolicies
from ..retry.executor import Sleep
from ..stream.base import ChangeFeed
from .engine import SyncEngine

logger = logging.getLogger(__name__)


class SyncSession:
    """Schedule-item and pool-task engines for the signed-in owner.

    Example:
        >>> session = SyncSession(api, feed)
        >>> await session.sign_in("user-1")
        >>> await session.pool.create({"title": "Buy milk"})
        >>> await session.sign_out()
    """

    def __init__(
        self,
        api: PersistenceApi,
        feed: ChangeFeed,
        policies: Optional[RetryPolicies] = None,
        notifier: Optional[Notifier] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.api = api
        self.feed = feed
        self.policies = policies or RetryPolicies()
        self.notifier = notifier
        self._sleep = sleep
        self._owner_id: Optional[str] = None
        self._schedule: Optional[SyncEngine[ScheduleItem]] = None
        self._pool: Optional[SyncEngine[PoolTask]] = None

    @classmethod
    def from_settings(
        cls,
        settings: SyncSettings,
        api: PersistenceApi,
        feed: ChangeFeed,
        **kwargs: Any,
    ) -> SyncSession:
        """Build a session using the configured retry policies."""
        return cls(api, feed, policies=settings.retry.policies(), **kwargs)

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def schedule(self) -> SyncEngine[ScheduleItem]:
        if self._schedule is None:
            raise EngineClosedError("No owner is signed in")
        return self._schedule

    @property
    def pool(self) -> SyncEngine[PoolTask]:
        if self._pool is None:
            raise EngineClosedError("No owner is signed in")
        return self._pool

    async def sign_in(self, owner_id: str, *, include_completed_tasks: bool = False) -> None:
        """Switch to ``owner_id``: tear down the previous owner, then sync the new one.

        Raises:
            SyncError: If an initial load fails terminally (engines stay live)
        """
        await self.sign_out()

        logger.info("Signing in", extra={"owner_id": owner_id})
        self._owner_id = owner_id
        self._schedule = SyncEngine(
            ScheduleItemMapping(),
            owner_id,
            self.api,
            self.feed,
            policies=self.policies,
            notifier=self.notifier,
            sleep=self._sleep,
        )
        self._pool = SyncEngine(
            PoolTaskMapping(),
            owner_id,
            self.api,
            self.feed,
            policies=self.policies,
            notifier=self.notifier,
            sleep=self._sleep,
        )
        await self._schedule.start()
        await self._pool.start(include_completed=include_completed_tasks)

    async def sign_out(self) -> None:
        """Discard the current owner's engines. Safe without an owner."""
        schedule, pool = self._schedule, self._pool
        owner_id = self._owner_id
        self._schedule = self._pool = None
        self._owner_id = None

        for engine in (schedule, pool):
            if engine is not None:
                await engine.close()
        if owner_id is not None:
            logger.info("Signed out", extra={"owner_id": owner_id})

    async def __aenter__(self) -> SyncSession:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.sign_out()
