"""
Task list view: the displayed ordering of tasks for a filter and sort selection.

Everything here is a pure function of its arguments. Callers re-query the
repository and call `visible_tasks` again after every mutation.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List

from .models import SortKey, TaskEntity, TaskFilter, is_overdue, priority_rank


# PUBLIC_INTERFACE
def matches_filter(task: TaskEntity, task_filter: TaskFilter, now: datetime) -> bool:
    """Return True when `task` belongs to the `task_filter` selection at time `now`."""
    if task_filter is TaskFilter.ACTIVE:
        return not task["completed"]
    if task_filter is TaskFilter.COMPLETED:
        return bool(task["completed"])
    if task_filter is TaskFilter.OVERDUE:
        return is_overdue(task, now)
    return True


def _by_due_date(task: TaskEntity):
    due = task["due_date"]
    # Undated tasks go after every dated one.
    return (due is None, due or datetime.min)


def _by_title(task: TaskEntity) -> str:
    return task["title"].casefold()


# PUBLIC_INTERFACE
def sort_tasks(tasks: Iterable[TaskEntity], sort_key: SortKey) -> List[TaskEntity]:
    """
    Return a new list ordered by `sort_key`. Python's sort is stable, so ties keep
    their incoming relative order.
    - due_date: ascending, tasks without a due date last
    - priority: High first; equal priorities newest created_at first
    - alphabetical: case-insensitive by title
    """
    items = list(tasks)
    if sort_key is SortKey.PRIORITY:
        items.sort(key=lambda t: t["created_at"], reverse=True)
        items.sort(key=priority_rank, reverse=True)
        return items
    if sort_key is SortKey.ALPHABETICAL:
        items.sort(key=_by_title)
        return items
    items.sort(key=_by_due_date)
    return items


# PUBLIC_INTERFACE
def visible_tasks(
    tasks: Iterable[TaskEntity],
    task_filter: TaskFilter = TaskFilter.ALL,
    sort_key: SortKey = SortKey.DUE_DATE,
    *,
    now: datetime,
) -> List[TaskEntity]:
    """Filter first, then sort. Identical inputs always yield the identical ordering."""
    selected = [t for t in tasks if matches_filter(t, task_filter, now)]
    return sort_tasks(selected, sort_key)
