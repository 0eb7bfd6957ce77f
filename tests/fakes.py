from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from checklist.errors import NotificationSchedulingError, PersistenceError
from checklist.models import AlarmOffset, Priority
from checklist.notifications import InMemoryNotificationStore, NotificationRequest
from checklist.repositories import InMemoryRepository
from checklist.schemas import TaskCreate, TaskUpdate


class FixedClock:
    """
    Deterministic clock for tests. Call it like datetime.now; move it with advance().
    """

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class FailingRepository(InMemoryRepository):
    """
    In-memory repository whose writes raise PersistenceError while `failing` is set.
    Reads keep working, like a disk that is full.
    """

    def __init__(self, clock=datetime.now) -> None:
        super().__init__(clock)
        self.failing = False

    def _check(self, operation: str) -> None:
        if self.failing:
            raise PersistenceError(f"{operation} failed: disk full", operation=operation)

    def create(self, data: TaskCreate):
        self._check("create")
        return super().create(data)

    def update(self, task_id: str, data: TaskUpdate):
        self._check("update")
        return super().update(task_id, data)

    def delete(self, task_id: str) -> bool:
        self._check("delete")
        return super().delete(task_id)

    def clear(self) -> int:
        self._check("clear")
        return super().clear()


class RecordingNotificationStore(InMemoryNotificationStore):
    """
    InMemoryNotificationStore that records cancellations and can be switched
    into failure modes.
    """

    def __init__(self, *, authorized: bool = True) -> None:
        super().__init__(authorized=authorized)
        self.removed_pending: List[str] = []
        self.removed_delivered: List[str] = []
        self.fail_schedule = False
        self.fail_remove = False
        self.fail_list = False
        self.fail_badge = False

    async def schedule(self, identifier: str, fire_at: datetime, title: str, body: str) -> None:
        if self.fail_schedule:
            raise NotificationSchedulingError("permission denied")
        await super().schedule(identifier, fire_at, title, body)

    async def remove_pending(self, identifiers: Iterable[str]) -> None:
        if self.fail_remove:
            raise NotificationSchedulingError("store unavailable")
        identifiers = list(identifiers)
        self.removed_pending.extend(identifiers)
        await super().remove_pending(identifiers)

    async def remove_delivered(self, identifiers: Iterable[str]) -> None:
        if self.fail_remove:
            raise NotificationSchedulingError("store unavailable")
        identifiers = list(identifiers)
        self.removed_delivered.extend(identifiers)
        await super().remove_delivered(identifiers)

    async def list_pending(self) -> List[NotificationRequest]:
        if self.fail_list:
            raise NotificationSchedulingError("store unavailable")
        return await super().list_pending()

    async def list_delivered(self) -> List[NotificationRequest]:
        if self.fail_list:
            raise NotificationSchedulingError("store unavailable")
        return await super().list_delivered()

    async def set_badge_count(self, count: int) -> None:
        if self.fail_badge:
            raise NotificationSchedulingError("badge unavailable")
        await super().set_badge_count(count)

    def pending_ids(self) -> set:
        return set(self._pending)

    def delivered_ids(self) -> set:
        return set(self._delivered)

    def force_delivered(self, identifier: str, fire_at: Optional[datetime] = None) -> None:
        """Put a delivered notification in place without going through schedule()."""
        self._delivered[identifier] = NotificationRequest(
            identifier, fire_at or datetime(2000, 1, 1), "Todo Reminder", "stale"
        )


def task_entity(
    title: str = "Task",
    *,
    task_id: Optional[str] = None,
    completed: bool = False,
    priority=None,
    due_date: Optional[datetime] = None,
    has_time: bool = False,
    has_alarm: bool = False,
    alarm_offset: int = 30,
    created_at: datetime = datetime(2030, 1, 1),
):
    """Plain TaskEntity for pure view/model tests; no invariants applied."""
    return {
        "id": task_id or title,
        "title": title,
        "completed": completed,
        "priority": priority if priority is not None else Priority.MEDIUM,
        "due_date": due_date,
        "has_time": has_time,
        "has_alarm": has_alarm,
        "alarm_offset": AlarmOffset.normalize(alarm_offset),
        "created_at": created_at,
        "updated_at": created_at,
    }
