"""Domain events raised by the leave workflow and the dispatcher that fans them out.

The leave services publish events; the dispatcher decides who hears about
them, so the state machine never loops over admins itself.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import DATE_FORMAT, NotificationType
from leaveflow.core_hr.service import EmployeeService
from leaveflow.notifications.models import Notification
from leaveflow.notifications.service import NotificationService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaveConflictDetected:
    """An accepted cover took MEDICAL leave during a leave they are covering."""

    reassignment_id: uuid.UUID
    original_leave_id: uuid.UUID
    cover_employee_leave_id: uuid.UUID
    original_cover_employee_id: uuid.UUID
    original_cover_name: str
    leave_owner_name: str
    original_start: date
    original_end: date
    medical_start: date
    medical_end: date


Handler = Callable[[AsyncSession, object], Awaitable[list[Notification]]]


async def _on_leave_conflict(
    db: AsyncSession,
    event: LeaveConflictDetected,
) -> list[Notification]:
    admins = await EmployeeService.list_active_admins(db)
    message = (
        f"{event.original_cover_name} applied for medical leave "
        f"({event.medical_start.strftime(DATE_FORMAT)} to "
        f"{event.medical_end.strftime(DATE_FORMAT)}) while covering for "
        f"{event.leave_owner_name} ({event.original_start.strftime(DATE_FORMAT)} "
        f"to {event.original_end.strftime(DATE_FORMAT)}). "
        "Please assign a new cover employee."
    )
    return await NotificationService.notify_many(
        db,
        [admin.id for admin in admins],
        type=NotificationType.COVER_REASSIGNMENT,
        title="Cover Duty Reassignment Required",
        message=message,
        sender_id=event.original_cover_employee_id,
        related_id=event.reassignment_id,
        is_pinned=True,
    )


class NotificationDispatcher:
    """Maps event types to handlers that turn them into notifications."""

    def __init__(self) -> None:
        self._handlers: dict[type, Handler] = {}

    def register(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type] = handler

    async def dispatch(self, db: AsyncSession, event: object) -> list[Notification]:
        handler: Optional[Handler] = self._handlers.get(type(event))
        if handler is None:
            logger.warning("No handler registered for %s", type(event).__name__)
            return []
        notifications = await handler(db, event)
        logger.info(
            "Dispatched %s to %d recipient(s)",
            type(event).__name__,
            len(notifications),
        )
        return notifications


dispatcher = NotificationDispatcher()
dispatcher.register(LeaveConflictDetected, _on_leave_conflict)
