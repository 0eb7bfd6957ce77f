from __future__ import annotations

from typing import Optional


class ChecklistError(Exception):
    """Base class for all errors raised by the checklist backend."""


# PUBLIC_INTERFACE
class ValidationError(ChecklistError, ValueError):
    """
    Raised when task input is rejected before any mutation happens
    (e.g., an empty title on create).
    """


# PUBLIC_INTERFACE
class TaskNotFoundError(ChecklistError, LookupError):
    """Raised when a task id does not exist in the repository."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


# PUBLIC_INTERFACE
class PersistenceError(ChecklistError):
    """
    Raised by repositories when a create/update/delete could not be committed.
    The stored state is left as it was before the call.
    """

    def __init__(self, message: str, *, operation: Optional[str] = None) -> None:
        super().__init__(message)
        self.operation = operation


# PUBLIC_INTERFACE
class NotificationSchedulingError(ChecklistError):
    """
    Raised by notification stores when a schedule/cancel/query call fails
    (permission denied, store unavailable). Never fatal for task mutations.
    """
