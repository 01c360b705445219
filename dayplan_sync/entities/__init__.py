"""
Entity kinds kept in sync by the engine.

- ScheduleItem: time blocks on a calendar day, ordered by (date, start_time)
- PoolTask: unscheduled to-dos, ordered by position
"""

from .base import (
    TEMP_ID_PREFIX,
    DataclassMapping,
    EntityMapping,
    is_temporary_id,
    make_temporary_id,
)
from .pool import PoolTask, PoolTaskMapping, next_position, remaining_tasks
from .schedule import (
    BlockStatus,
    Category,
    ScheduleItem,
    ScheduleItemMapping,
    SubTask,
    items_for_date,
)

__all__ = [
    "TEMP_ID_PREFIX",
    "EntityMapping",
    "DataclassMapping",
    "is_temporary_id",
    "make_temporary_id",
    "Category",
    "BlockStatus",
    "SubTask",
    "ScheduleItem",
    "ScheduleItemMapping",
    "items_for_date",
    "PoolTask",
    "PoolTaskMapping",
    "next_position",
    "remaining_tasks",
]
