from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Mapping, Union

import pydantic

from .errors import PersistenceError, TaskNotFoundError, ValidationError
from .models import SortKey, TaskEntity, TaskFilter, wants_reminder
from .reminders import ReminderCoordinator
from .repositories import Repository
from .schemas import TaskCreate, TaskUpdate
from .views import visible_tasks

logger = logging.getLogger(__name__)

# Fields whose change means the reminder has to be recomputed.
_REMINDER_FIELDS = ("title", "due_date", "has_time", "has_alarm", "alarm_offset", "completed")


def _coerce(model: type, data: Union[pydantic.BaseModel, Mapping[str, Any]]):
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError(str(e)) from e


# PUBLIC_INTERFACE
class TaskService:
    """
    Task commands: add, edit, toggle, delete and clear.

    Every command persists first. Only when the repository accepted the change
    is the reminder scheduled or cancelled, so a failed save leaves both the
    stored task and its reminder as they were.
    """

    def __init__(
        self,
        repository: Repository,
        reminders: ReminderCoordinator,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.repository = repository
        self.reminders = reminders
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def list_visible(
        self,
        task_filter: TaskFilter = TaskFilter.ALL,
        sort_key: SortKey = SortKey.DUE_DATE,
    ) -> List[TaskEntity]:
        """Re-query the repository and derive the displayed ordering."""
        return visible_tasks(self.repository.query(), task_filter, sort_key, now=self.now())

    def get_task(self, task_id: str) -> TaskEntity:
        task = self.repository.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def add_task(self, data: Union[TaskCreate, Mapping[str, Any]]) -> TaskEntity:
        payload: TaskCreate = _coerce(TaskCreate, data)
        try:
            created = self.repository.create(payload)
        except PersistenceError:
            logger.exception("Saving new task %r failed", payload.title)
            raise
        logger.info("Created task %s", created["id"])
        if wants_reminder(created):
            await self.reminders.schedule(created)
        return created

    async def edit_task(self, task_id: str, data: Union[TaskUpdate, Mapping[str, Any]]) -> TaskEntity:
        changes: TaskUpdate = _coerce(TaskUpdate, data)
        before = self.get_task(task_id)
        try:
            updated = self.repository.update(task_id, changes)
        except PersistenceError:
            logger.exception("Saving task %s failed; edit not applied", task_id)
            raise
        if updated is None:
            raise TaskNotFoundError(task_id)
        await self._sync_reminder(before, updated)
        return updated

    async def toggle_completion(self, task_id: str) -> TaskEntity:
        """Flip `completed`; completing a task also switches its alarm off."""
        before = self.get_task(task_id)
        return await self.edit_task(task_id, TaskUpdate(completed=not before["completed"]))

    async def delete_task(self, task_id: str) -> None:
        try:
            deleted = self.repository.delete(task_id)
        except PersistenceError:
            logger.exception("Deleting task %s failed", task_id)
            raise
        if not deleted:
            raise TaskNotFoundError(task_id)
        logger.info("Deleted task %s", task_id)
        await self.reminders.cancel(task_id)

    async def clear_tasks(self) -> int:
        """Delete every task and every reminder."""
        try:
            removed = self.repository.clear()
        except PersistenceError:
            logger.exception("Clearing tasks failed")
            raise
        logger.info("Cleared %d task(s)", removed)
        await self.reminders.clear_all()
        return removed

    async def _sync_reminder(self, before: TaskEntity, after: TaskEntity) -> None:
        if not wants_reminder(after):
            if wants_reminder(before) or self.reminders.get(after["id"]) is not None:
                await self.reminders.cancel(after["id"])
            return

        changed = any(before[f] != after[f] for f in _REMINDER_FIELDS)  # type: ignore[literal-required]
        if not changed and self.reminders.get(after["id"]) is not None:
            return
        scheduled = await self.reminders.schedule(after)
        if scheduled is None:
            # New fire time already passed; drop the one computed for the old due date.
            await self.reminders.cancel(after["id"])

    async def restore_reminders(self) -> int:
        """
        Startup hook: schedule reminders for stored tasks that ask for one.
        Returns how many were scheduled; stale ones are skipped.
        """
        restored = 0
        for task in self.repository.query(wants_reminder):
            if await self.reminders.schedule(task) is not None:
                restored += 1
        logger.info("Restored %d reminder(s)", restored)
        return restored

    async def refresh_reminders(self) -> int:
        """
        Foreground hook: reconcile tracked reminders with the store. Returns the
        resulting badge count.
        """
        await self.reminders.reconcile()
        return self.reminders.badge_count
