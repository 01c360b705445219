"""
Persistence layer for the sync engine.

The hosted store is reached through the row-level PersistenceApi:
- RestPersistence: PostgREST-style HTTP adapter (httpx)
- InMemoryPersistence: in-process store that also emits change notifications

Repository binds a PersistenceApi to an EntityMapping for entity-level calls.
"""

from .base import ListQuery, PersistenceApi, Row
from .memory import InMemoryPersistence
from .repository import Repository
from .rest import RestPersistence

__all__ = [
    "PersistenceApi",
    "ListQuery",
    "Row",
    "Repository",
    "InMemoryPersistence",
    "RestPersistence",
]
