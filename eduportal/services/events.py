"""Post-commit attendance events and their best-effort delivery.

The attendance core publishes an event only after its own write has committed.
Delivery (in-app rows + push) happens here and never reaches back into the
caller: every failure is logged and dropped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from fastapi import BackgroundTasks

from eduportal.models.notification import NotificationKind
from eduportal.services import notifications, roster

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionCreated:
    session_id: str
    session_name: str
    class_filter: Optional[str]
    created_by: str


@dataclass(frozen=True)
class SessionDeactivated:
    session_id: str
    session_name: str


AttendanceEvent = Union[SessionCreated, SessionDeactivated]


async def handle_event(event: AttendanceEvent) -> None:
    if isinstance(event, SessionCreated):
        students = await roster.list_students(event.class_filter)
        audience = f" for {event.class_filter}" if event.class_filter else ""
        await notifications.notify(
            [str(s.id) for s in students],
            "New attendance session",
            f"{event.session_name}{audience} is open. Tap to join now.",
            NotificationKind.SESSION_CREATED,
            {"session_id": event.session_id, "session_name": event.session_name, "action": "join"},
        )
    elif isinstance(event, SessionDeactivated):
        # imported here: the attendance core publishes through this module
        from eduportal.services.attendance import get_absentees

        absentees = await get_absentees(event.session_id)
        await notifications.notify(
            [a.student_id for a in absentees],
            "Marked absent",
            f"You were marked absent for {event.session_name}.",
            NotificationKind.ABSENT,
            {"session_id": event.session_id, "session_name": event.session_name},
        )
    else:
        logger.warning("Unhandled attendance event %r", event)


async def deliver(event: AttendanceEvent, handler: Callable[[AttendanceEvent], Awaitable[None]] = handle_event) -> None:
    try:
        await handler(event)
    except Exception:
        logger.exception("Delivery failed for %s(session_id=%s)", type(event).__name__, event.session_id)


class EventDispatcher:
    """Delivers events inline, after the caller's write, swallowing failures."""

    def __init__(self, handler: Callable[[AttendanceEvent], Awaitable[None]] = handle_event):
        self.handler = handler

    async def publish(self, event: AttendanceEvent) -> None:
        await deliver(event, self.handler)


class BackgroundDispatcher(EventDispatcher):
    """Defers delivery until the HTTP response has been sent."""

    def __init__(self, background_tasks: BackgroundTasks, handler: Callable[[AttendanceEvent], Awaitable[None]] = handle_event):
        super().__init__(handler)
        self.background_tasks = background_tasks

    async def publish(self, event: AttendanceEvent) -> None:
        self.background_tasks.add_task(deliver, event, self.handler)


default_dispatcher = EventDispatcher()
