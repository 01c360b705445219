"""
dayplan-sync - Optimistic synchronization engine for a personal day planner.

Keeps an owner's schedule items and pool tasks in an in-memory, ordered
local state that user interfaces read synchronously, while:
- applying every create/update/delete/reorder optimistically
- persisting it to a hosted store with bounded retries
- reconciling with the server's canonical entity, or rolling back
- merging push notifications from the store's change feed

Example:
    >>> from dayplan_sync import InMemoryChangeFeed, InMemoryPersistence, SyncSession
    >>>
    >>> feed = InMemoryChangeFeed()
    >>> async with SyncSession(InMemoryPersistence(feed), feed) as session:
    ...     await session.sign_in("user-1")
    ...     await session.schedule.create({
    ...         "title": "Deep work",
    ...         "date": "2024-05-02",
    ...         "start_time": "09:00",
    ...         "end_time": "11:00",
    ...     })
    ...     session.schedule.snapshot

Invariants:
    - Local state only changes through LocalStateStore.apply()
    - Local state is sorted by the entity's sort key after every change
    - A failed mutation restores local state before its error is raised

Version: 1.0.0
"""

from ._version import __version__
from .config import ObservabilitySettings, RetrySettings, StoreSettings, SyncSettings
from .engine import MutationCoordinator, ReorderResult, SyncEngine, SyncSession
from .entities import (
    BlockStatus,
    Category,
    EntityMapping,
    PoolTask,
    PoolTaskMapping,
    ScheduleItem,
    ScheduleItemMapping,
    SubTask,
    is_temporary_id,
)
from .errors import (
    ChangeNormalizationError,
    EngineClosedError,
    LocalStateError,
    NetworkError,
    NotFoundError,
    PermanentError,
    RateLimitedError,
    RequestTimeoutError,
    ServerError,
    SyncError,
    TransientError,
    UnauthorizedError,
    UnknownFieldError,
    UnsupportedOperationError,
    ValidationError,
)
from .notify import LoggingNotifier, Notifier, RecordingNotifier
from .observability import setup_logging
from .persistence import InMemoryPersistence, PersistenceApi, Repository, RestPersistence
from .retry import BackoffKind, RetryPolicies, RetryPolicy, is_retryable_error, retry
from .store import LocalStateStore
from .stream import ChangeFeed, InMemoryChangeFeed, RawChange

__all__ = [
    "__version__",
    # Engine
    "SyncSession",
    "SyncEngine",
    "MutationCoordinator",
    "ReorderResult",
    "LocalStateStore",
    # Entities
    "EntityMapping",
    "ScheduleItem",
    "ScheduleItemMapping",
    "SubTask",
    "Category",
    "BlockStatus",
    "PoolTask",
    "PoolTaskMapping",
    "is_temporary_id",
    # Persistence and change feed
    "PersistenceApi",
    "Repository",
    "InMemoryPersistence",
    "RestPersistence",
    "ChangeFeed",
    "RawChange",
    "InMemoryChangeFeed",
    # Retry
    "retry",
    "RetryPolicy",
    "RetryPolicies",
    "BackoffKind",
    "is_retryable_error",
    # Configuration and logging
    "SyncSettings",
    "RetrySettings",
    "StoreSettings",
    "ObservabilitySettings",
    "setup_logging",
    # Notifications
    "Notifier",
    "LoggingNotifier",
    "RecordingNotifier",
    # Errors
    "SyncError",
    "TransientError",
    "PermanentError",
    "NetworkError",
    "RequestTimeoutError",
    "ServerError",
    "RateLimitedError",
    "ValidationError",
    "UnknownFieldError",
    "NotFoundError",
    "UnauthorizedError",
    "EngineClosedError",
    "UnsupportedOperationError",
    "ChangeNormalizationError",
    "LocalStateError",
]
