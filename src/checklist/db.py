from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Generator, List, Optional

from .errors import PersistenceError
from .models import AlarmOffset, Priority, SortKey, TaskEntity, apply_invariants
from .repositories import Repository, TaskPredicate, order_tasks, merge_update, new_task_id
from .schemas import TaskCreate, TaskUpdate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "tasks"
    id: str = "id"
    title: str = "title"
    completed: str = "completed"
    priority: str = "priority"
    due_date: str = "due_date"
    has_time: str = "has_time"
    has_alarm: str = "has_alarm"
    alarm_offset: str = "alarm_offset"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_COLS = _Cols()


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(s: Optional[str]) -> Optional[datetime]:
    if s is None:
        return None
    return datetime.fromisoformat(s)


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.

    Each call runs in its own connection and transaction; a failing statement
    rolls the transaction back and surfaces as PersistenceError.
    """

    def __init__(self, db_path: str, clock: Callable[[], datetime] = datetime.now) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._clock = clock
        self._init_db()

    @contextmanager
    def _conn(self, operation: str) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            logger.exception("Could not open task database %s", self._db_path)
            raise PersistenceError(f"{operation} failed: {e}", operation=operation) from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.exception("Task %s failed; transaction rolled back", operation)
            raise PersistenceError(f"{operation} failed: {e}", operation=operation) from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn("init") as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} TEXT PRIMARY KEY,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.completed} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.priority} TEXT NULL,
                    {_COLS.due_date} TEXT NULL,
                    {_COLS.has_time} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.has_alarm} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.alarm_offset} INTEGER NOT NULL DEFAULT 30,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_completed ON {_COLS.table}({_COLS.completed})"
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_due_date ON {_COLS.table}({_COLS.due_date})"
            )

    def _row_to_entity(self, row: sqlite3.Row) -> TaskEntity:
        entity: TaskEntity = {
            "id": str(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "completed": bool(row[_COLS.completed]),
            "priority": Priority.parse(row[_COLS.priority]),
            "due_date": _parse_dt(row[_COLS.due_date]),
            "has_time": bool(row[_COLS.has_time]),
            "has_alarm": bool(row[_COLS.has_alarm]),
            "alarm_offset": AlarmOffset.normalize(row[_COLS.alarm_offset]),
            "created_at": _parse_dt(row[_COLS.created_at]),  # type: ignore[typeddict-item]
            "updated_at": _parse_dt(row[_COLS.updated_at]),  # type: ignore[typeddict-item]
        }
        return apply_invariants(entity)

    def _fetch(self, conn: sqlite3.Connection, task_id: str) -> Optional[TaskEntity]:
        row = conn.execute(f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,)).fetchone()
        return self._row_to_entity(row) if row else None

    def _write(self, conn: sqlite3.Connection, entity: TaskEntity) -> None:
        conn.execute(
            f"""
            INSERT OR REPLACE INTO {_COLS.table} ({_COLS.id}, {_COLS.title}, {_COLS.completed},
                {_COLS.priority}, {_COLS.due_date}, {_COLS.has_time}, {_COLS.has_alarm},
                {_COLS.alarm_offset}, {_COLS.created_at}, {_COLS.updated_at})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entity["id"],
                entity["title"],
                1 if entity["completed"] else 0,
                Priority.parse(entity["priority"]).value,
                _iso(entity["due_date"]),
                1 if entity["has_time"] else 0,
                1 if entity["has_alarm"] else 0,
                int(entity["alarm_offset"]),
                _iso(entity["created_at"]),
                _iso(entity["updated_at"]),
            ),
        )

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
        with self._conn("create") as conn:
            self._write(conn, entity)
            created = self._fetch(conn, entity["id"])
            assert created is not None
            return created

    def get(self, task_id: str) -> Optional[TaskEntity]:
        with self._conn("get") as conn:
            return self._fetch(conn, task_id)

    def update(self, task_id: str, data: TaskUpdate) -> Optional[TaskEntity]:
        with self._conn("update") as conn:
            current = self._fetch(conn, task_id)
            if current is None:
                return None
            self._write(conn, merge_update(current, data, self._clock()))
            return self._fetch(conn, task_id)

    def delete(self, task_id: str) -> bool:
        with self._conn("delete") as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,))
            return cur.rowcount > 0

    def query(
        self,
        predicate: Optional[TaskPredicate] = None,
        sort_key: Optional[SortKey] = None,
    ) -> List[TaskEntity]:
        with self._conn("query") as conn:
            rows = conn.execute(f"SELECT * FROM {_COLS.table}").fetchall()
        items = [self._row_to_entity(r) for r in rows]
        if predicate is not None:
            items = [t for t in items if predicate(t)]
        return order_tasks(items, sort_key)

    def clear(self) -> int:
        with self._conn("clear") as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table}")
            return cur.rowcount
