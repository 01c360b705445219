"""
Schedule items: time blocks placed on a calendar day.

A schedule item is ordered by its ``(date, start_time)`` pair. The caller
chooses the slot when creating one, so drafts must carry both values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..errors import ValidationError
from .base import DataclassMapping, coerce_enum, require

TABLE = "time_blocks"


class Category(Enum):
    """Life area a block or task belongs to."""

    WORK = "work"
    STUDY = "study"
    PERSONAL = "personal"
    HEALTH = "health"
    OTHER = "other"


class BlockStatus(Enum):
    """Progress of a schedule item during its day."""

    PLANNED = "planned"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SubTask:
    """A checklist entry inside a schedule item."""

    id: str
    title: str
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "completed": self.completed}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SubTask:
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            completed=bool(data.get("completed", False)),
        )


@dataclass(frozen=True)
class ScheduleItem:
    """A time block on the owner's calendar.

    Attributes:
        id: Durable server id, or a temporary id while the insert is pending
        owner_id: Owning user
        title: Display title
        date: Day of the block (YYYY-MM-DD)
        start_time: Start of the block (HH:MM)
        end_time: End of the block (HH:MM)
        category: Life area
        completed: Whether the block is done
        status: Progress state
        sub_tasks: Checklist entries
        actual_start_time: ISO timestamp the block really started
        actual_end_time: ISO timestamp the block really ended
        paused_duration: Total paused time in milliseconds
        external_event: Whether the block mirrors an external calendar event
        external_id: Id of the mirrored external event
    """

    id: str
    owner_id: str
    title: str
    date: str
    start_time: str
    end_time: str
    category: Category = Category.OTHER
    completed: bool = False
    status: BlockStatus = BlockStatus.PLANNED
    sub_tasks: Tuple[SubTask, ...] = field(default_factory=tuple)
    actual_start_time: Optional[str] = None
    actual_end_time: Optional[str] = None
    paused_duration: int = 0
    external_event: bool = False
    external_id: Optional[str] = None


def _sub_tasks(value: Any) -> Tuple[SubTask, ...]:
    if not value:
        return ()
    if not isinstance(value, (list, tuple)):
        raise ValidationError("sub_tasks must be a list", field_name="sub_tasks")
    return tuple(v if isinstance(v, SubTask) else SubTask.from_dict(v) for v in value)


class ScheduleItemMapping(DataclassMapping[ScheduleItem]):
    """Maps ScheduleItem to and from ``time_blocks`` rows."""

    entity_type = ScheduleItem
    kind = TABLE
    positional = False
    default_order = (("date", True), ("start_time", True))

    def sort_key(self, entity: ScheduleItem) -> Tuple[str, str]:
        return (entity.date, entity.start_time)

    def from_row(self, row: Mapping[str, Any]) -> ScheduleItem:
        require(row, "id", "user_id", "date", "start_time", table=TABLE)
        return ScheduleItem(
            id=str(row["id"]),
            owner_id=str(row["user_id"]),
            title=row.get("title") or "",
            date=row["date"],
            start_time=row["start_time"],
            end_time=row.get("end_time") or row["start_time"],
            category=coerce_enum(Category, row.get("category") or "other", "category"),
            completed=bool(row.get("completed") or False),
            status=coerce_enum(BlockStatus, row.get("status") or "planned", "status"),
            sub_tasks=_sub_tasks(row.get("sub_tasks")),
            actual_start_time=row.get("actual_start_time"),
            actual_end_time=row.get("actual_end_time"),
            paused_duration=int(row.get("paused_duration") or 0),
            external_event=bool(row.get("external_event") or False),
            external_id=row.get("external_id"),
        )

    def to_insert_row(self, entity: ScheduleItem, owner_id: str) -> Dict[str, Any]:
        return {
            "user_id": owner_id,
            "title": entity.title,
            "start_time": entity.start_time,
            "end_time": entity.end_time,
            "category": entity.category.value,
            "date": entity.date,
            "completed": entity.completed,
            "status": entity.status.value,
            "actual_start_time": entity.actual_start_time,
            "actual_end_time": entity.actual_end_time,
            "external_event": entity.external_event,
            "external_id": (entity.external_id or entity.id) if entity.external_event else None,
            "sub_tasks": [s.to_dict() for s in entity.sub_tasks],
            "paused_duration": entity.paused_duration,
        }

    def patch_to_row(self, patch: Mapping[str, Any]) -> Dict[str, Any]:
        self.check_fields(patch.keys())
        row: Dict[str, Any] = {}
        for name, value in self.coerce_patch(patch).items():
            if isinstance(value, Enum):
                value = value.value
            elif name == "sub_tasks":
                value = [s.to_dict() for s in value]
            row[name] = value
        return row

    def coerce_patch(self, patch: Mapping[str, Any]) -> Dict[str, Any]:
        coerced = dict(patch)
        if "category" in coerced:
            coerced["category"] = coerce_enum(Category, coerced["category"], "category")
        if "status" in coerced:
            coerced["status"] = coerce_enum(BlockStatus, coerced["status"], "status")
        if "sub_tasks" in coerced:
            coerced["sub_tasks"] = _sub_tasks(coerced["sub_tasks"])
        return coerced

    def build_draft(
        self,
        draft: Mapping[str, Any],
        owner_id: str,
        temp_id: str,
        snapshot: Sequence[ScheduleItem],
    ) -> ScheduleItem:
        self.check_fields(draft.keys())
        missing = [k for k in ("title", "date", "start_time", "end_time") if not draft.get(k)]
        if missing:
            raise ValidationError(
                f"Schedule item draft is missing: {missing}",
                field_name=missing[0],
                errors=[f"{name} is required" for name in missing],
            )
        values = {k: v for k, v in self.coerce_patch(draft).items() if k not in ("id", "owner_id")}
        # imported calendar events keep the source event's id
        if values.get("external_event") and not values.get("external_id") and draft.get("id"):
            values["external_id"] = str(draft["id"])
        return ScheduleItem(id=temp_id, owner_id=owner_id, **values)


def items_for_date(items: Iterable[ScheduleItem], date: str) -> List[ScheduleItem]:
    """Schedule items falling on ``date``, in sort order."""
    return [item for item in items if item.date == date]
