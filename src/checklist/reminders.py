"""Keeps one scheduled reminder per task in sync with the notification store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from .models import TaskEntity
from .notifications import InMemoryNotificationStore, NotificationStore

logger = logging.getLogger(__name__)

MINUTES_IN_HOUR = 60
MINUTES_IN_DAY = 24 * MINUTES_IN_HOUR

DEFAULT_REMINDER_TITLE = "Todo Reminder"


class ReminderState(str, Enum):
    """Lifecycle of a tracked reminder. Untracked means none."""

    SCHEDULED = "scheduled"
    FIRED = "fired"


@dataclass
class Reminder:
    """A reminder tracked locally, keyed by the id of the task it belongs to."""

    task_id: str
    fire_at: datetime
    title: str
    body: str
    state: ReminderState = ReminderState.SCHEDULED


def _unit(value: int, unit: str) -> str:
    return f"{value} {unit}{'' if value == 1 else 's'}"


# PUBLIC_INTERFACE
def format_remaining_time(minutes: int) -> str:
    """
    Human-readable duration: days and hours from one day up, hours and minutes
    from one hour up, otherwise minutes. Zero components are left out.

    >>> format_remaining_time(60)
    '1 hour'
    >>> format_remaining_time(1500)
    '1 day 1 hour'
    """
    minutes = max(int(minutes), 0)
    days, rest = divmod(minutes, MINUTES_IN_DAY)
    hours, mins = divmod(rest, MINUTES_IN_HOUR)

    if days:
        if hours:
            return f"{_unit(days, 'day')} {_unit(hours, 'hour')}"
        return _unit(days, "day")
    if hours:
        if mins:
            return f"{_unit(hours, 'hour')} {_unit(mins, 'minute')}"
        return _unit(hours, "hour")
    return _unit(mins, "minute")


# PUBLIC_INTERFACE
def reminder_body(title: str, remaining_minutes: int) -> str:
    return f"{title} — due in {format_remaining_time(remaining_minutes)}"


# PUBLIC_INTERFACE
class ReminderCoordinator:
    """
    Tracks at most one reminder per task id and mirrors it into a NotificationStore.

    Local tracking is updated before each store call. Store failures are logged
    and never raised; `reconcile()` later drops whatever the store does not know
    about. Reconcile only narrows tracking, so a cancelled id is never adopted
    back from the store.
    """

    def __init__(
        self,
        store: NotificationStore,
        clock: Callable[[], datetime] = datetime.now,
        *,
        title: str = DEFAULT_REMINDER_TITLE,
    ) -> None:
        self._store = store
        self._clock = clock
        self._title = title
        self._tracked: Dict[str, Reminder] = {}

    @property
    def badge_count(self) -> int:
        return len(self._tracked)

    def reminders(self) -> List[Reminder]:
        """Tracked reminders, soonest first."""
        return sorted(self._tracked.values(), key=lambda r: (r.fire_at, r.task_id))

    def get(self, task_id: str) -> Optional[Reminder]:
        return self._tracked.get(task_id)

    async def request_authorization(self) -> bool:
        """
        Ask the permission gate once. A denial is logged; scheduling keeps working
        but nothing will be delivered.
        """
        try:
            granted = await self._store.request_authorization()
        except Exception:
            logger.exception("Requesting notification authorization failed")
            return False
        if not granted:
            logger.warning("Notification permission denied; reminders will not be delivered")
        return granted

    async def schedule(self, task: TaskEntity) -> Optional[Reminder]:
        """
        Register the reminder for `task`, replacing any existing one.

        Returns None without touching anything when the fire time is already in
        the past.
        """
        due = task["due_date"]
        if not (task["has_alarm"] and task["has_time"] and due is not None):
            raise ValueError(f"task {task['id']} does not ask for a reminder")

        offset = int(task["alarm_offset"])
        fire_at = due - timedelta(minutes=offset)
        if fire_at <= self._clock():
            logger.debug("Skipping stale reminder for task %s (fire_at=%s)", task["id"], fire_at)
            return None

        await self.cancel(task["id"])

        remaining = int((due - fire_at).total_seconds() // 60)
        reminder = Reminder(
            task_id=task["id"],
            fire_at=fire_at,
            title=self._title,
            body=reminder_body(task["title"], remaining),
        )
        self._tracked[reminder.task_id] = reminder
        try:
            await self._store.schedule(reminder.task_id, reminder.fire_at, reminder.title, reminder.body)
        except Exception:
            logger.exception("Scheduling reminder for task %s failed", reminder.task_id)
        else:
            logger.info("Scheduled reminder for task %s at %s", reminder.task_id, reminder.fire_at)
        await self._update_badge()
        return reminder

    async def cancel(self, task_id: str) -> bool:
        """
        Remove the reminder for `task_id` from pending and delivered notifications.
        Idempotent; returns True when a reminder was being tracked.
        """
        tracked = self._tracked.pop(task_id, None) is not None
        try:
            await self._store.remove_pending([task_id])
            await self._store.remove_delivered([task_id])
        except Exception:
            logger.exception("Cancelling reminder for task %s failed", task_id)
        if tracked:
            logger.info("Cancelled reminder for task %s", task_id)
            await self._update_badge()
        return tracked

    async def reconcile(self) -> Set[str]:
        """
        Align tracking with the store: look up pending and delivered identifiers
        together, drop tracked reminders the store no longer has, mark delivered
        ones as fired and refresh the badge. Returns the dropped task ids.
        """
        try:
            pending, delivered = await asyncio.gather(
                self._store.list_pending(),
                self._store.list_delivered(),
            )
        except Exception:
            logger.exception("Reading the notification store failed; reconcile skipped")
            return set()

        delivered_ids = {r.identifier for r in delivered}
        live = {r.identifier for r in pending} | delivered_ids

        dropped = {task_id for task_id in self._tracked if task_id not in live}
        for task_id in dropped:
            del self._tracked[task_id]
        for task_id in delivered_ids & self._tracked.keys():
            self._tracked[task_id].state = ReminderState.FIRED

        if dropped:
            logger.info("Reconcile dropped %d reminder(s)", len(dropped))
        await self._update_badge()
        return dropped

    async def clear_all(self) -> None:
        """Cancel every reminder and reset the badge to zero."""
        self._tracked.clear()
        try:
            await self._store.remove_all()
        except Exception:
            logger.exception("Clearing notifications failed")
        await self._update_badge()

    async def mark_delivered(self, task_id: str) -> bool:
        """The store delivered the reminder for `task_id` while we are running."""
        reminder = self._tracked.get(task_id)
        if reminder is None:
            return False
        reminder.state = ReminderState.FIRED
        await self._update_badge()
        return True

    async def acknowledge(self, task_id: str) -> bool:
        """The user opened or dismissed the delivered reminder for `task_id`."""
        tracked = self._tracked.pop(task_id, None) is not None
        try:
            await self._store.remove_delivered([task_id])
        except Exception:
            logger.exception("Removing delivered reminder for task %s failed", task_id)
        await self._update_badge()
        return tracked

    async def _update_badge(self) -> None:
        try:
            await self._store.set_badge_count(self.badge_count)
        except Exception:
            logger.warning("Updating badge count failed", exc_info=True)


# PUBLIC_INTERFACE
async def run_delivery_loop(
    store: InMemoryNotificationStore,
    coordinator: ReminderCoordinator,
    clock: Callable[[], datetime] = datetime.now,
    *,
    interval_seconds: float = 15.0,
) -> None:
    """
    Polling loop standing in for the platform timer of the in-process store.

    Every interval_seconds, due requests are delivered and each delivered id is
    reported to the coordinator, which marks the reminder as fired.

    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        try:
            delivered = await store.deliver_due(clock())
        except Exception:
            logger.exception("Delivering due notifications failed")
            delivered = set()

        for task_id in sorted(delivered):
            if await coordinator.mark_delivered(task_id):
                logger.info("Reminder for task %s fired", task_id)

        await asyncio.sleep(sleep_s)
