"""
Change stream abstraction for the sync engine.

The hosted store pushes row-level insert/update/delete notifications.
This package provides:
- ChangeFeed protocol and the RawChange / ChangeEvent types
- ChangeNormalizer (provider payload -> canonical event)
- ChangeStreamSubscriber (canonical event -> local state)
- InMemoryChangeFeed (for testing)

Invariants:
    - Delivery is at-least-once and may be out of order
    - Merging is idempotent: a duplicate insert changes nothing
    - Updates never create entities
"""

from .base import (
    ChangeEvent,
    ChangeFeed,
    ChangeKind,
    FeedDisconnectedError,
    FeedError,
    RawChange,
)
from .memory import InMemoryChangeFeed
from .normalizer import ChangeNormalizer
from .subscriber import ChangeStreamSubscriber

__all__ = [
    # Protocol and types
    "ChangeFeed",
    "ChangeKind",
    "ChangeEvent",
    "RawChange",
    "FeedError",
    "FeedDisconnectedError",
    # Components
    "ChangeNormalizer",
    "ChangeStreamSubscriber",
    # Implementations
    "InMemoryChangeFeed",
]
