"""
Pool tasks: unscheduled to-dos kept in a user-ordered list.

Pool tasks are positional: their sort key is an integer ``position``
(1-based), with the creation timestamp breaking ties the same way the
store orders them.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..errors import ValidationError
from .base import DataclassMapping, coerce_enum, require
from .schedule import Category

TABLE = "task_pool"


@dataclass(frozen=True)
class PoolTask:
    """A to-do waiting in the task pool.

    Attributes:
        id: Durable server id, or a temporary id while the insert is pending
        owner_id: Owning user
        title: Display title
        category: Life area
        completed: Whether the task is done
        position: 1-based place in the pool
        notes: Free-form notes
        created_at: Server creation timestamp (ISO), None until confirmed
        updated_at: Server update timestamp (ISO), None until confirmed
    """

    id: str
    owner_id: str
    title: str
    category: Category = Category.OTHER
    completed: bool = False
    position: int = 0
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PoolTaskMapping(DataclassMapping[PoolTask]):
    """Maps PoolTask to and from ``task_pool`` rows."""

    entity_type = PoolTask
    kind = TABLE
    positional = True
    default_order = (("position", True), ("created_at", True))

    def sort_key(self, entity: PoolTask) -> Tuple[int, str]:
        return (entity.position, entity.created_at or "")

    def from_row(self, row: Mapping[str, Any]) -> PoolTask:
        require(row, "id", "user_id", table=TABLE)
        return PoolTask(
            id=str(row["id"]),
            owner_id=str(row["user_id"]),
            title=row.get("title") or "",
            category=coerce_enum(Category, row.get("category") or "other", "category"),
            completed=bool(row.get("completed") or False),
            position=int(row.get("position") or 0),
            notes=row.get("notes"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_insert_row(self, entity: PoolTask, owner_id: str) -> Dict[str, Any]:
        return {
            "user_id": owner_id,
            "title": entity.title,
            "category": entity.category.value,
            "completed": entity.completed,
            "position": entity.position,
            "notes": entity.notes,
        }

    def patch_to_row(self, patch: Mapping[str, Any]) -> Dict[str, Any]:
        self.check_fields(patch.keys())
        row: Dict[str, Any] = {}
        for name, value in self.coerce_patch(patch).items():
            # timestamps are owned by the store
            if name in ("created_at", "updated_at"):
                continue
            row[name] = value.value if isinstance(value, Category) else value
        return row

    def coerce_patch(self, patch: Mapping[str, Any]) -> Dict[str, Any]:
        coerced = dict(patch)
        if "category" in coerced:
            coerced["category"] = coerce_enum(Category, coerced["category"], "category")
        if "position" in coerced:
            position = coerced["position"]
            if not isinstance(position, int) or isinstance(position, bool):
                raise ValidationError("position must be an integer", field_name="position")
        return coerced

    def build_draft(
        self,
        draft: Mapping[str, Any],
        owner_id: str,
        temp_id: str,
        snapshot: Sequence[PoolTask],
    ) -> PoolTask:
        self.check_fields(draft.keys())
        if not draft.get("title"):
            raise ValidationError("Pool task draft is missing: ['title']", field_name="title")
        values = {
            k: v
            for k, v in self.coerce_patch(draft).items()
            if k not in ("id", "owner_id", "position", "created_at", "updated_at")
        }
        return PoolTask(
            id=temp_id,
            owner_id=owner_id,
            position=next_position(snapshot),
            **values,
        )

    def with_position(self, entity: PoolTask, position: int) -> PoolTask:
        return replace(entity, position=position)

    def default_filters(self, *, include_completed: bool = False, **options: Any) -> Dict[str, Any]:
        return {} if include_completed else {"completed": False}


def next_position(tasks: Iterable[PoolTask]) -> int:
    """One past the highest position in the pool, 1 for an empty pool."""
    positions = [t.position for t in tasks]
    return max(positions) + 1 if positions else 1


def remaining_tasks(tasks: Iterable[PoolTask]) -> List[PoolTask]:
    """Pool tasks not yet completed."""
    return [t for t in tasks if not t.completed]
