from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from threading import RLock
from typing import Callable, List, Optional

from .models import SortKey, TaskEntity, apply_invariants
from .schemas import TaskCreate, TaskUpdate
from .settings import Settings, get_settings
from .views import sort_tasks

logger = logging.getLogger(__name__)

TaskPredicate = Callable[[TaskEntity], bool]

_UPDATABLE_FIELDS = ("title", "completed", "priority", "due_date", "has_time", "has_alarm", "alarm_offset")


def new_task_id() -> str:
    return str(uuid.uuid4())


def merge_update(existing: TaskEntity, data: TaskUpdate, now: datetime) -> TaskEntity:
    """
    Return a copy of `existing` with the fields explicitly set on `data` applied
    and the task invariants re-established.
    """
    updated = existing.copy()
    for name in _UPDATABLE_FIELDS:
        if name not in data.model_fields_set:
            continue
        value = getattr(data, name)
        # Only due_date may be explicitly nulled.
        if value is None and name != "due_date":
            continue
        updated[name] = value  # type: ignore[literal-required]
    updated["updated_at"] = now
    return apply_invariants(updated)


# PUBLIC_INTERFACE
class Repository(ABC):
    """Abstract repository contract for task storage backends."""

    @abstractmethod
    def create(self, data: TaskCreate) -> TaskEntity:
        """Create and return a new TaskEntity with a freshly assigned id."""

    @abstractmethod
    def get(self, task_id: str) -> Optional[TaskEntity]:
        """Return a TaskEntity by id, or None if not found."""

    @abstractmethod
    def update(self, task_id: str, data: TaskUpdate) -> Optional[TaskEntity]:
        """Update fields of an existing TaskEntity. Return updated entity or None if not found."""

    @abstractmethod
    def delete(self, task_id: str) -> bool:
        """Delete a TaskEntity by id. Return True if deleted, False if not found."""

    @abstractmethod
    def query(
        self,
        predicate: Optional[TaskPredicate] = None,
        sort_key: Optional[SortKey] = None,
    ) -> List[TaskEntity]:
        """
        Return the tasks matching `predicate` (all when None), ordered by
        `sort_key` or by created_at descending when no key is given.
        """

    @abstractmethod
    def clear(self) -> int:
        """Delete every task. Return the number of tasks removed."""


def order_tasks(items: List[TaskEntity], sort_key: Optional[SortKey]) -> List[TaskEntity]:
    if sort_key is None:
        return sorted(items, key=lambda t: t["created_at"], reverse=True)
    return sort_tasks(items, sort_key)


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._lock = RLock()
        self._items: dict[str, TaskEntity] = {}
        self._clock = clock

    def create(self, data: TaskCreate) -> TaskEntity:
        now = self._clock()
        entity: TaskEntity = {
            "id": new_task_id(),
            "title": data.title,
            "completed": data.completed,
            "priority": data.priority,
            "due_date": data.due_date,
            "has_time": data.has_time,
            "has_alarm": data.has_alarm,
            "alarm_offset": data.alarm_offset,
            "created_at": now,
            "updated_at": now,
        }
        apply_invariants(entity)
        with self._lock:
            self._items[entity["id"]] = entity
        return entity.copy()

    def get(self, task_id: str) -> Optional[TaskEntity]:
        with self._lock:
            item = self._items.get(task_id)
            return None if item is None else item.copy()

    def update(self, task_id: str, data: TaskUpdate) -> Optional[TaskEntity]:
        with self._lock:
            existing = self._items.get(task_id)
            if existing is None:
                return None
            updated = merge_update(existing, data, self._clock())
            self._items[task_id] = updated
            return updated.copy()

    def delete(self, task_id: str) -> bool:
        with self._lock:
            return self._items.pop(task_id, None) is not None

    def query(
        self,
        predicate: Optional[TaskPredicate] = None,
        sort_key: Optional[SortKey] = None,
    ) -> List[TaskEntity]:
        with self._lock:
            items = [t.copy() for t in self._items.values()]
        if predicate is not None:
            items = [t for t in items if predicate(t)]
        return order_tasks(items, sort_key)

    def clear(self) -> int:
        with self._lock:
            count = len(self._items)
            self._items.clear()
            return count


# PUBLIC_INTERFACE
def build_repository(settings: Optional[Settings] = None) -> Repository:
    """
    Return the configured repository based on settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository at settings.sqlite_db_path
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        logger.info("Using SQLite task repository at %s", settings.sqlite_db_path)
        return SQLiteRepository(settings.sqlite_db_path)
    logger.info("Using in-memory task repository")
    return InMemoryRepository()
