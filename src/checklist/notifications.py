"""Local notification store contract and an in-process implementation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Set

from .errors import NotificationSchedulingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationRequest:
    """A one-shot notification registered with the store."""

    identifier: str
    fire_at: datetime
    title: str
    body: str


# PUBLIC_INTERFACE
class NotificationStore(ABC):
    """
    Asynchronous contract of the platform notification centre.

    Scheduling an identifier that is already pending replaces the previous
    request. Implementations raise NotificationSchedulingError on failure.
    """

    @abstractmethod
    async def request_authorization(self) -> bool:
        """Ask for permission to deliver notifications. Return True when granted."""

    @abstractmethod
    async def schedule(self, identifier: str, fire_at: datetime, title: str, body: str) -> None:
        """Register a notification that fires once at `fire_at`."""

    @abstractmethod
    async def remove_pending(self, identifiers: Iterable[str]) -> None:
        """Drop pending requests with the given identifiers."""

    @abstractmethod
    async def remove_delivered(self, identifiers: Iterable[str]) -> None:
        """Drop delivered notifications with the given identifiers."""

    @abstractmethod
    async def remove_all(self) -> None:
        """Drop every pending and delivered notification."""

    @abstractmethod
    async def list_pending(self) -> List[NotificationRequest]:
        """Return the requests that have not fired yet."""

    @abstractmethod
    async def list_delivered(self) -> List[NotificationRequest]:
        """Return notifications that fired and have not been removed."""

    @abstractmethod
    async def set_badge_count(self, count: int) -> None:
        """Set the application badge number."""


class InMemoryNotificationStore(NotificationStore):
    """
    In-process notification store used as the default runtime backend and in tests.

    Nothing fires on its own: `deliver_due(now)` moves due requests from pending
    to delivered, standing in for the platform's timer.
    """

    def __init__(self, *, authorized: bool = True) -> None:
        self._pending: Dict[str, NotificationRequest] = {}
        self._delivered: Dict[str, NotificationRequest] = {}
        self._grant = authorized
        self.authorized = False
        self.badge_count = 0

    async def request_authorization(self) -> bool:
        self.authorized = self._grant
        return self.authorized

    async def schedule(self, identifier: str, fire_at: datetime, title: str, body: str) -> None:
        if not identifier:
            raise NotificationSchedulingError("notification identifier must not be empty")
        self._pending[identifier] = NotificationRequest(identifier, fire_at, title, body)

    async def remove_pending(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            self._pending.pop(identifier, None)

    async def remove_delivered(self, identifiers: Iterable[str]) -> None:
        for identifier in identifiers:
            self._delivered.pop(identifier, None)

    async def remove_all(self) -> None:
        self._pending.clear()
        self._delivered.clear()

    async def list_pending(self) -> List[NotificationRequest]:
        return list(self._pending.values())

    async def list_delivered(self) -> List[NotificationRequest]:
        return list(self._delivered.values())

    async def set_badge_count(self, count: int) -> None:
        self.badge_count = max(int(count), 0)

    # PUBLIC_INTERFACE
    async def deliver_due(self, now: datetime) -> Set[str]:
        """
        Move every pending request with fire_at <= now to delivered and return
        the identifiers that reached the user. Without authorization due requests
        are dropped silently, as the platform does.
        """
        due = [r for r in self._pending.values() if r.fire_at <= now]
        delivered: Set[str] = set()
        for request in due:
            del self._pending[request.identifier]
            if self.authorized:
                self._delivered[request.identifier] = request
                delivered.add(request.identifier)
            else:
                logger.debug("Dropping notification %s: not authorized", request.identifier)
        return delivered
