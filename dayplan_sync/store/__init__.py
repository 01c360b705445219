"""
Local state for the sync engine.

LocalStateStore is the single synchronization point between optimistic
mutations and incoming change events.
"""

from .local_state import LocalStateStore

__all__ = ["LocalStateStore"]
