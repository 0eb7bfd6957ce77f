from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from checklist.main import create_app
from checklist.reminders import ReminderCoordinator
from checklist.service import TaskService
from checklist.settings import Settings

from .fakes import FailingRepository, FixedClock, RecordingNotificationStore

START = datetime(2030, 6, 1, 12, 0, 0)


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(START)


@pytest.fixture()
def store() -> RecordingNotificationStore:
    return RecordingNotificationStore()


@pytest.fixture()
def repository(clock: FixedClock) -> FailingRepository:
    return FailingRepository(clock)


@pytest.fixture()
def coordinator(store: RecordingNotificationStore, clock: FixedClock) -> ReminderCoordinator:
    return ReminderCoordinator(store, clock)


@pytest.fixture()
def service(repository: FailingRepository, coordinator: ReminderCoordinator, clock: FixedClock) -> TaskService:
    return TaskService(repository, coordinator, clock)


@pytest.fixture()
def settings(tmp_path) -> Settings:
    """
    Explicit settings rather than environment variables, so tests do not depend
    on the caller's shell.
    """
    return Settings(
        persistence_backend="memory",
        sqlite_db_path=str(tmp_path / "tasks.db"),
        cors_allow_origins=["*"],
        log_level=20,
        log_file=None,
        reminder_title="Todo Reminder",
    )


@pytest.fixture()
def client(settings, repository, store, clock):
    app = create_app(
        settings=settings,
        repository=repository,
        notification_store=store,
        clock=clock,
        configure_logging=False,
    )
    with TestClient(app) as c:
        yield c
