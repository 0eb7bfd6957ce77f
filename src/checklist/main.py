from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import PersistenceError, TaskNotFoundError, ValidationError
from .logging_setup import setup_logging
from .notifications import InMemoryNotificationStore, NotificationStore
from .reminders import ReminderCoordinator, run_delivery_loop
from .repositories import Repository, build_repository
from .routers import reminders as reminders_router
from .routers import tasks as tasks_router
from .service import TaskService
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "tasks",
        "description": "Create, edit, complete and delete tasks; list them by filter and sort order.",
    },
    {
        "name": "reminders",
        "description": "Inspect, reconcile and cancel the reminders that accompany tasks.",
    },
]


# PUBLIC_INTERFACE
def create_app(
    *,
    settings: Optional[Settings] = None,
    repository: Optional[Repository] = None,
    notification_store: Optional[NotificationStore] = None,
    clock: Callable[[], datetime] = datetime.now,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application with one TaskService and one ReminderCoordinator.

    Collaborators default to the configured repository and an in-process
    notification store; tests pass their own.
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.log_level, settings.log_file)

    repo = repository if repository is not None else build_repository(settings)
    store = notification_store if notification_store is not None else InMemoryNotificationStore()
    coordinator = ReminderCoordinator(store, clock, title=settings.reminder_title)
    service = TaskService(repo, coordinator, clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await coordinator.request_authorization()
        await service.restore_reminders()
        delivery = None
        if isinstance(store, InMemoryNotificationStore):
            delivery = asyncio.create_task(
                run_delivery_loop(store, coordinator, clock, interval_seconds=settings.delivery_interval_seconds)
            )
        try:
            yield
        finally:
            if delivery is not None:
                delivery.cancel()
                with suppress(asyncio.CancelledError):
                    await delivery

    app = FastAPI(
        title="Checklist Backend",
        description="Task list service with filtered views and reminder scheduling.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "detail": [... pydantic/fastapi error details ...],
                "message": "Request validation failed"
            }
        """
        return JSONResponse(
            status_code=422,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(ValidationError)
    async def task_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"error": "ValidationError", "message": str(exc), "detail": []},
        )

    @app.exception_handler(TaskNotFoundError)
    async def not_found_handler(request: Request, exc: TaskNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": "Task not found"})

    @app.exception_handler(PersistenceError)
    async def persistence_handler(request: Request, exc: PersistenceError) -> JSONResponse:
        """The change was not saved; the client keeps showing the previous state."""
        return JSONResponse(
            status_code=503,
            content={
                "error": "PersistenceError",
                "message": "The change could not be saved and was not applied",
                "operation": exc.operation,
            },
        )

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(tasks_router.router)
    app.include_router(reminders_router.router)
    return app
