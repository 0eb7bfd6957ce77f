from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..dependencies import get_reminders
from ..reminders import Reminder, ReminderCoordinator
from ..schemas import ReminderOut, RemindersEnvelope

router = APIRouter(
    prefix="/api/v1/reminders",
    tags=["reminders"],
)


def _envelope(coordinator: ReminderCoordinator) -> RemindersEnvelope:
    return RemindersEnvelope(
        items=[_out(r) for r in coordinator.reminders()],
        badge_count=coordinator.badge_count,
    )


def _out(reminder: Reminder) -> ReminderOut:
    return ReminderOut(
        task_id=reminder.task_id,
        fire_at=reminder.fire_at,
        title=reminder.title,
        body=reminder.body,
        state=reminder.state.value,
    )


# PUBLIC_INTERFACE
@router.get("/", response_model=RemindersEnvelope, summary="List Reminders")
async def list_reminders(coordinator: ReminderCoordinator = Depends(get_reminders)) -> RemindersEnvelope:
    """Tracked reminders, soonest first, with the current badge count."""
    return _envelope(coordinator)


# PUBLIC_INTERFACE
@router.post("/reconcile", response_model=RemindersEnvelope, summary="Reconcile Reminders")
async def reconcile_reminders(coordinator: ReminderCoordinator = Depends(get_reminders)) -> RemindersEnvelope:
    """
    Align tracked reminders with the notification store. Clients call this when
    the app comes back to the foreground.
    """
    await coordinator.reconcile()
    return _envelope(coordinator)


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/delivered",
    response_model=RemindersEnvelope,
    summary="Report Delivered Reminder",
    responses={404: {"description": "Reminder not found"}},
)
async def reminder_delivered(
    task_id: str, coordinator: ReminderCoordinator = Depends(get_reminders)
) -> RemindersEnvelope:
    """
    A client presented the reminder while the app was open. The reminder is
    marked as fired and the badge refreshed.
    """
    if not await coordinator.mark_delivered(task_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found")
    return _envelope(coordinator)


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/acknowledge",
    response_model=RemindersEnvelope,
    summary="Acknowledge Reminder",
    responses={404: {"description": "Reminder not found"}},
)
async def acknowledge_reminder(
    task_id: str, coordinator: ReminderCoordinator = Depends(get_reminders)
) -> RemindersEnvelope:
    """The user opened or dismissed a delivered reminder."""
    if not await coordinator.acknowledge(task_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found")
    return _envelope(coordinator)


# PUBLIC_INTERFACE
@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Cancel Reminder")
async def cancel_reminder(task_id: str, coordinator: ReminderCoordinator = Depends(get_reminders)) -> Response:
    """Cancel the reminder for a task. Idempotent."""
    await coordinator.cancel(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.delete("/", status_code=status.HTTP_204_NO_CONTENT, summary="Clear Reminders")
async def clear_reminders(coordinator: ReminderCoordinator = Depends(get_reminders)) -> Response:
    """Cancel every reminder and reset the badge."""
    await coordinator.clear_all()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
