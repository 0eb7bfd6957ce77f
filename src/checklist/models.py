from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Optional, TypedDict


# PUBLIC_INTERFACE
class Priority(str, Enum):
    """Task priority. Compared through `rank`, never through the raw value."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANKS[self]

    @classmethod
    def parse(cls, raw: Any) -> "Priority":
        """Return the matching Priority; unknown or missing values read as Medium."""
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            for member in cls:
                if member.value.lower() == raw.strip().lower():
                    return member
        return cls.MEDIUM


_PRIORITY_RANKS = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


# PUBLIC_INTERFACE
class AlarmOffset(IntEnum):
    """Minutes before the due date at which a reminder fires."""

    FIFTEEN_MINUTES = 15
    THIRTY_MINUTES = 30
    ONE_HOUR = 60
    TWO_HOURS = 120
    ONE_DAY = 1440

    @classmethod
    def default(cls) -> "AlarmOffset":
        return cls.THIRTY_MINUTES

    @classmethod
    def normalize(cls, raw: Any) -> "AlarmOffset":
        """
        Map stored/received offsets onto the fixed option set.
        Anything that is not one of the options falls back to 30 minutes.
        """
        try:
            return cls(int(raw))
        except (TypeError, ValueError):
            return cls.default()


# PUBLIC_INTERFACE
class TaskFilter(str, Enum):
    """Mutually exclusive selections over the task collection."""

    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"
    OVERDUE = "overdue"


# PUBLIC_INTERFACE
class SortKey(str, Enum):
    """Orderings applied to a filtered task sequence."""

    DUE_DATE = "due_date"
    PRIORITY = "priority"
    ALPHABETICAL = "alphabetical"


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    Plain-data task record as stored by repositories.

    Fields:
    - id: Opaque UUID string, assigned once at creation
    - title: Short title (1..200 chars, trimmed on input via schemas)
    - completed: Completion flag
    - priority: High/Medium/Low
    - due_date: Optional due datetime; midnight when has_time is False
    - has_time: Whether due_date carries a time of day
    - has_alarm: Whether a reminder should fire before due_date
    - alarm_offset: Minutes before due_date for the reminder
    - created_at / updated_at: Local timestamps
    """

    id: str
    title: str
    completed: bool
    priority: Priority
    due_date: Optional[datetime]
    has_time: bool
    has_alarm: bool
    alarm_offset: AlarmOffset
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
def apply_invariants(entity: TaskEntity) -> TaskEntity:
    """
    Normalize a task record in place so that
    has_alarm -> has_time -> due_date, and completed -> not has_alarm.
    """
    entity["priority"] = Priority.parse(entity.get("priority"))
    entity["alarm_offset"] = AlarmOffset.normalize(entity.get("alarm_offset"))
    if entity.get("due_date") is None:
        entity["has_time"] = False
    if not entity.get("has_time"):
        entity["has_alarm"] = False
        due = entity.get("due_date")
        if due is not None:
            entity["due_date"] = due.replace(hour=0, minute=0, second=0, microsecond=0)
    if entity.get("completed"):
        entity["has_alarm"] = False
    return entity


# PUBLIC_INTERFACE
def priority_rank(entity: TaskEntity) -> int:
    """High=3, Medium=2, Low=1; unknown priorities rank as Medium."""
    return Priority.parse(entity.get("priority")).rank


# PUBLIC_INTERFACE
def is_overdue(entity: TaskEntity, now: datetime) -> bool:
    """An open task whose due date lies strictly before `now`."""
    due = entity.get("due_date")
    return not entity["completed"] and due is not None and due < now


# PUBLIC_INTERFACE
def wants_reminder(entity: TaskEntity) -> bool:
    """True when the task's fields ask for a live reminder."""
    return (
        bool(entity["has_alarm"])
        and bool(entity["has_time"])
        and entity["due_date"] is not None
        and not entity["completed"]
    )
