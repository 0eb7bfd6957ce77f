from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from ..dependencies import get_service
from ..models import SortKey, TaskFilter
from ..schemas import TaskCreate, TaskListEnvelope, TaskOut, TaskUpdate
from ..service import TaskService

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
)


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new task and schedule its reminder when it asks for one.",
    responses={
        201: {"description": "Task created successfully"},
        422: {"description": "Validation error"},
        503: {"description": "Task could not be saved"},
    },
)
async def create_task(payload: TaskCreate, service: TaskService = Depends(get_service)) -> TaskOut:
    created = await service.add_task(payload)
    return TaskOut.from_entity(created, service.now())


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=TaskListEnvelope,
    summary="List Tasks",
    description=(
        "List the visible tasks for a filter and sort selection.\n\n"
        "Query parameters:\n"
        "- filter: all, active, completed or overdue\n"
        "- sort: due_date, priority or alphabetical"
    ),
)
def list_tasks(
    task_filter: TaskFilter = Query(TaskFilter.ALL, alias="filter", description="Which tasks to show"),
    sort: SortKey = Query(SortKey.DUE_DATE, description="How to order them"),
    service: TaskService = Depends(get_service),
) -> TaskListEnvelope:
    now = service.now()
    items = [TaskOut.from_entity(t, now) for t in service.list_visible(task_filter, sort)]
    return TaskListEnvelope(items=items, total=len(items), filter=task_filter, sort=sort)


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    responses={404: {"description": "Task not found"}},
)
def get_task(task_id: str, service: TaskService = Depends(get_service)) -> TaskOut:
    return TaskOut.from_entity(service.get_task(task_id), service.now())


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Replace Task",
    description="Replace every field of a task. Omitted fields take their defaults.",
    responses={404: {"description": "Task not found"}},
)
async def put_task(task_id: str, payload: TaskCreate, service: TaskService = Depends(get_service)) -> TaskOut:
    updated = await service.edit_task(task_id, TaskUpdate.replacing(payload))
    return TaskOut.from_entity(updated, service.now())


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description="Partially update fields of a task; its reminder follows the new values.",
    responses={404: {"description": "Task not found"}},
)
async def patch_task(task_id: str, payload: TaskUpdate, service: TaskService = Depends(get_service)) -> TaskOut:
    updated = await service.edit_task(task_id, payload)
    return TaskOut.from_entity(updated, service.now())


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/toggle",
    response_model=TaskOut,
    summary="Toggle Completion",
    description="Flip the completion flag. Completing a task switches its reminder off.",
    responses={404: {"description": "Task not found"}},
)
async def toggle_task(task_id: str, service: TaskService = Depends(get_service)) -> TaskOut:
    updated = await service.toggle_completion(task_id)
    return TaskOut.from_entity(updated, service.now())


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    responses={
        204: {"description": "Task deleted"},
        404: {"description": "Task not found"},
    },
)
async def delete_task(task_id: str, service: TaskService = Depends(get_service)) -> Response:
    await service.delete_task(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.delete(
    "/",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear All Tasks",
    description="Delete every task and cancel every reminder. Irreversible.",
)
async def clear_tasks(service: TaskService = Depends(get_service)) -> Response:
    await service.clear_tasks()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
