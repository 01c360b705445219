"""
Sync engine: mutation coordination, engine lifecycle and owner sessions.
"""

from .coordinator import MutationCoordinator, PendingMutation, ReorderResult
from .engine import SyncEngine
from .session import SyncSession

__all__ = [
    "MutationCoordinator",
    "PendingMutation",
    "ReorderResult",
    "SyncEngine",
    "SyncSession",
]
