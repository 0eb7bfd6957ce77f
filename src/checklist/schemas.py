from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import (
    AlarmOffset,
    Priority,
    SortKey,
    TaskEntity,
    TaskFilter,
    is_overdue,
    priority_rank,
)

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]


def _naive_local(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Internal helper to normalize due_date input into a naive local datetime.
    - If value is a string, attempt to parse via datetime.fromisoformat; if time is missing, set to 00:00.
    - If value is a date (not datetime), convert to datetime at 00:00.
    - If value is an aware datetime, convert it to local time and drop the tzinfo.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return _naive_local(value)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, 0, 0, 0)

    if isinstance(value, str):
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            return _naive_local(datetime.fromisoformat(s))
        except ValueError:
            try:
                d = date.fromisoformat(s)
                return datetime(d.year, d.month, d.day, 0, 0, 0)
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00')."
                ) from e

    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")


def _clean_title(v: str) -> str:
    s = v.strip()
    if not (1 <= len(s) <= 200):
        raise ValueError("title length must be between 1 and 200 characters")
    return s


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new task. Only the title is required.

    Alarm fields that cannot apply are cleared rather than rejected: no due date
    clears has_time, no time clears has_alarm, and a completed task never keeps
    an alarm.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Pay rent",
                "priority": "High",
                "due_date": "2025-02-01T18:00:00",
                "has_time": True,
                "has_alarm": True,
                "alarm_offset": 60,
            }
        }
    )

    title: str = Field(..., description="Short title for the task", min_length=1, max_length=200)
    completed: bool = Field(default=False, description="Completion status flag")
    priority: Priority = Field(default=Priority.MEDIUM, description="High, Medium or Low")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time. Accepts ISO8601 date or datetime; dates are set to 00:00",
    )
    has_time: bool = Field(default=False, description="Whether due_date carries a time of day")
    has_alarm: bool = Field(default=False, description="Whether a reminder should fire")
    alarm_offset: AlarmOffset = Field(
        default=AlarmOffset.THIRTY_MINUTES,
        description="Minutes before the due date: 15, 30, 60, 120 or 1440 (others become 30)",
    )

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        if v is None:
            raise ValueError("title is required")
        return _clean_title(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, v: Any) -> Priority:
        return Priority.parse(v)

    @field_validator("alarm_offset", mode="before")
    @classmethod
    def normalize_alarm_offset(cls, v: Any) -> AlarmOffset:
        return AlarmOffset.normalize(v)

    @model_validator(mode="after")
    def enforce_alarm_invariants(self) -> "TaskCreate":
        if self.due_date is None:
            self.has_time = False
        if not self.has_time:
            self.has_alarm = False
            if self.due_date is not None:
                self.due_date = self.due_date.replace(hour=0, minute=0, second=0, microsecond=0)
        if self.completed:
            self.has_alarm = False
        return self


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for updating an existing task.
    All fields are optional; only provided fields will be updated.
    Invariants are re-applied to the merged record by the repository.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Pay rent and utilities",
                "completed": True,
                "due_date": "2025-02-02T09:30:00",
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the task", min_length=1, max_length=200)
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    priority: Optional[Priority] = Field(default=None, description="High, Medium or Low")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time; send null to clear it",
    )
    has_time: Optional[bool] = Field(default=None)
    has_alarm: Optional[bool] = Field(default=None)
    alarm_offset: Optional[AlarmOffset] = Field(default=None)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        if v is None:
            return v
        return _clean_title(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, v: Any) -> Optional[Priority]:
        return None if v is None else Priority.parse(v)

    @field_validator("alarm_offset", mode="before")
    @classmethod
    def normalize_alarm_offset(cls, v: Any) -> Optional[AlarmOffset]:
        return None if v is None else AlarmOffset.normalize(v)

    # PUBLIC_INTERFACE
    @classmethod
    def replacing(cls, payload: TaskCreate) -> "TaskUpdate":
        """Full-field update carrying every value of a create payload (PUT semantics)."""
        return cls(**payload.model_dump())


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a task, including the derived fields.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "3f1c8a8e-54b1-4b7e-9a55-2f1d2c9b7e10",
                "title": "Pay rent",
                "completed": False,
                "priority": "High",
                "due_date": "2025-02-01T18:00:00",
                "has_time": True,
                "has_alarm": True,
                "alarm_offset": 60,
                "created_at": "2025-01-25T10:15:30.123456",
                "updated_at": "2025-01-26T09:00:00.000001",
                "is_overdue": False,
                "priority_rank": 3,
            }
        }
    )

    id: str = Field(..., description="Unique identifier of the task")
    title: str
    completed: bool
    priority: Priority
    due_date: Optional[datetime] = None
    has_time: bool
    has_alarm: bool
    alarm_offset: int
    created_at: datetime
    updated_at: datetime
    is_overdue: bool = Field(..., description="Open task whose due date has passed")
    priority_rank: int = Field(..., description="High=3, Medium=2, Low=1")

    # PUBLIC_INTERFACE
    @classmethod
    def from_entity(cls, entity: TaskEntity, now: datetime) -> "TaskOut":
        return cls(
            id=entity["id"],
            title=entity["title"],
            completed=entity["completed"],
            priority=entity["priority"],
            due_date=entity["due_date"],
            has_time=entity["has_time"],
            has_alarm=entity["has_alarm"],
            alarm_offset=int(entity["alarm_offset"]),
            created_at=entity["created_at"],
            updated_at=entity["updated_at"],
            is_overdue=is_overdue(entity, now),
            priority_rank=priority_rank(entity),
        )


# PUBLIC_INTERFACE
class TaskListEnvelope(BaseModel):
    """
    Envelope for the visible-task list.
    """

    items: List[TaskOut] = Field(..., description="Tasks after filtering and sorting")
    total: int = Field(..., description="Number of visible tasks")
    filter: TaskFilter
    sort: SortKey


# PUBLIC_INTERFACE
class ReminderOut(BaseModel):
    """A reminder tracked by the coordinator."""

    task_id: str
    fire_at: datetime
    title: str
    body: str
    state: str


# PUBLIC_INTERFACE
class RemindersEnvelope(BaseModel):
    items: List[ReminderOut]
    badge_count: int
