"""
Typed repository: PersistenceApi plus an EntityMapping.

Gives the mutation coordinator entity-level calls:
insert(owner_id, entity), update(id, owner_id, patch), delete(id, owner_id)
and list(owner_id, filters, order_by).
"""

from __future__ import annotations

from typing import Any, Dict, Generic, List, Mapping, Optional, Sequence, Tuple, TypeVar

from ..entities.base import EntityMapping
from .base import ListQuery, PersistenceApi

E = TypeVar("E")


class Repository(Generic[E]):
    """Entity-level access to one table of the hosted store."""

    def __init__(self, api: PersistenceApi, mapping: EntityMapping[E]) -> None:
        self.api = api
        self.mapping = mapping

    @property
    def table(self) -> str:
        return self.mapping.kind

    async def insert(self, owner_id: str, entity: E) -> E:
        row = await self.api.insert(self.table, owner_id, self.mapping.to_insert_row(entity, owner_id))
        return self.mapping.from_row(row)

    async def update(self, entity_id: str, owner_id: str, patch: Mapping[str, Any]) -> E:
        row = await self.api.update(
            self.table, entity_id, owner_id, self.mapping.patch_to_row(patch)
        )
        return self.mapping.from_row(row)

    async def delete(self, entity_id: str, owner_id: str) -> None:
        await self.api.delete(self.table, entity_id, owner_id)

    async def list(
        self,
        owner_id: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[Sequence[Tuple[str, bool]]] = None,
    ) -> List[E]:
        query = ListQuery(
            filters=dict(filters or {}),
            order_by=tuple(order_by if order_by is not None else self.mapping.default_order),
        )
        rows = await self.api.list(self.table, owner_id, query)
        return [self.mapping.from_row(row) for row in rows]
