from __future__ import annotations

from fastapi import Request

from .reminders import ReminderCoordinator
from .service import TaskService


# PUBLIC_INTERFACE
def get_service(request: Request) -> TaskService:
    """Return the TaskService built by the app factory."""
    return request.app.state.service


# PUBLIC_INTERFACE
def get_reminders(request: Request) -> ReminderCoordinator:
    """Return the process-wide ReminderCoordinator."""
    return request.app.state.service.reminders
