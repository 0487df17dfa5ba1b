"""Notification service — CRUD operations and leave-workflow notification helpers.

Writes happen inside a SAVEPOINT: a failing notification is logged and rolled
back on its own, leaving the caller's leave transaction intact.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import DATE_FORMAT, NotificationType
from leaveflow.common.exceptions import ForbiddenException, NotFoundException
from leaveflow.common.pagination import PaginationParams
from leaveflow.core_hr.schemas import AdminRef
from leaveflow.notifications.models import Notification
from leaveflow.notifications.schemas import (
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
)

if TYPE_CHECKING:
    from leaveflow.core_hr.models import Employee
    from leaveflow.leave.models import CoverDutyReassignment, Leave

logger = logging.getLogger(__name__)


def _fmt(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def _leave_label(leave: "Leave") -> str:
    return leave.leave_type.value.lower()


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType,
        title: str,
        message: str,
        sender_id: Optional[uuid.UUID] = None,
        related_id: Optional[uuid.UUID] = None,
        is_pinned: bool = False,
    ) -> Optional[Notification]:
        """Create a notification inside a savepoint.

        Returns None (after logging) when the insert fails.
        """
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            sender_id=sender_id,
            related_id=related_id,
            is_pinned=is_pinned,
        )
        try:
            async with db.begin_nested():
                db.add(notification)
                await db.flush()
        except SQLAlchemyError:
            logger.exception(
                "Failed to create %s notification for %s", type.value, recipient_id,
            )
            return None
        return notification

    @staticmethod
    async def notify_many(
        db: AsyncSession,
        recipient_ids: Iterable[uuid.UUID],
        **kwargs,
    ) -> list[Notification]:
        """Create the same notification for each recipient (deduplicated)."""
        created: list[Notification] = []
        seen: set[uuid.UUID] = set()
        for recipient_id in recipient_ids:
            if recipient_id in seen:
                continue
            seen.add(recipient_id)
            notification = await NotificationService.create_notification(
                db, recipient_id=recipient_id, **kwargs,
            )
            if notification is not None:
                created.append(notification)
        return created

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
    ) -> NotificationListResponse:
        """Return paginated notifications for an employee, pinned first, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == employee_id)
            .order_by(Notification.is_pinned.desc(), Notification.created_at.desc())
        )

        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)

        count_q = query.with_only_columns(func.count()).order_by(None)
        total: int = (await db.execute(count_q)).scalar_one()

        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()

        total_pages = math.ceil(total / pagination.page_size) if total else 0

        # Unread count (always unfiltered — for the badge)
        unread = await NotificationService.get_unread_count(db, employee_id)

        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta(
                page=pagination.page,
                page_size=pagination.page_size,
                total=total,
                total_pages=total_pages,
                has_next=pagination.page < total_pages,
                has_prev=pagination.page > 1,
                unread=unread,
            ),
        )

    @staticmethod
    async def _get_owned(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        notification = await db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundException("Notification", notification_id)
        if notification.recipient_id != employee_id:
            raise ForbiddenException("You can only change your own notifications.")
        return notification

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        notification = await NotificationService._get_owned(db, notification_id, employee_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            await db.flush()
        return notification

    @staticmethod
    async def set_pinned(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
        is_pinned: bool,
    ) -> Notification:
        notification = await NotificationService._get_owned(db, notification_id, employee_id)
        notification.is_pinned = is_pinned
        await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        """Bulk-mark all unread notifications as read. Returns count updated."""
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=now)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        """Return the number of unread notifications for an employee."""
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


# ── Leave workflow helpers ──────────────────────────────────────────
# Called by the leave services with ORM objects already in hand.


async def notify_cover_request(
    db: AsyncSession,
    leave: "Leave",
    applicant: "Employee",
) -> Optional[Notification]:
    """Ask the cover employee to accept or decline."""
    return await NotificationService.create_notification(
        db,
        recipient_id=leave.cover_employee_id,
        type=NotificationType.COVER_REQUEST,
        title="New Cover Request",
        message=(
            f"{applicant.full_name} requested you to cover their "
            f"{_leave_label(leave)} leave from {_fmt(leave.start_date)} to "
            f"{_fmt(leave.end_date)}."
        ),
        sender_id=applicant.id,
        related_id=leave.id,
    )


async def notify_leave_request(
    db: AsyncSession,
    leave: "Leave",
    applicant: "Employee",
    admins: list[AdminRef],
) -> list[Notification]:
    """Tell every active admin a leave is waiting for a decision."""
    return await NotificationService.notify_many(
        db,
        [admin.id for admin in admins],
        type=NotificationType.LEAVE_REQUEST,
        title="Leave Awaiting Approval",
        message=(
            f"{applicant.full_name} has a {_leave_label(leave)} leave request "
            f"from {_fmt(leave.start_date)} to {_fmt(leave.end_date)} "
            f"({leave.total_days} day(s)) pending your approval."
        ),
        sender_id=applicant.id,
        related_id=leave.id,
    )


async def notify_no_pay(
    db: AsyncSession,
    leave: "Leave",
) -> Optional[Notification]:
    return await NotificationService.create_notification(
        db,
        recipient_id=leave.employee_id,
        type=NotificationType.SYSTEM_ALERT,
        title="No-Pay Leave Warning",
        message=(
            f"Your {_leave_label(leave)} leave balance does not cover "
            f"{leave.total_days} day(s) from {_fmt(leave.start_date)}. "
            "If approved, this leave will be treated as no-pay leave."
        ),
        related_id=leave.id,
        is_pinned=True,
    )


async def notify_cover_accepted(
    db: AsyncSession,
    leave: "Leave",
    cover: "Employee",
) -> Optional[Notification]:
    return await NotificationService.create_notification(
        db,
        recipient_id=leave.employee_id,
        type=NotificationType.COVER_ACCEPTED,
        title="Cover Request Accepted",
        message=(
            f"{cover.full_name} accepted to cover your {_leave_label(leave)} "
            f"leave from {_fmt(leave.start_date)} to {_fmt(leave.end_date)}. "
            "It is now awaiting admin approval."
        ),
        sender_id=cover.id,
        related_id=leave.id,
    )


async def notify_cover_declined(
    db: AsyncSession,
    leave: "Leave",
    cover: "Employee",
    reason: str,
) -> Optional[Notification]:
    return await NotificationService.create_notification(
        db,
        recipient_id=leave.employee_id,
        type=NotificationType.COVER_DECLINED,
        title="Cover Request Declined",
        message=(
            f"{cover.full_name} declined to cover your {_leave_label(leave)} "
            f"leave from {_fmt(leave.start_date)} to {_fmt(leave.end_date)}. "
            f"Reason: {reason}"
        ),
        sender_id=cover.id,
        related_id=leave.id,
    )


async def notify_cover_expired(
    db: AsyncSession,
    leave: "Leave",
) -> Optional[Notification]:
    return await NotificationService.create_notification(
        db,
        recipient_id=leave.employee_id,
        type=NotificationType.SYSTEM_ALERT,
        title="Leave Request Expired",
        message=(
            f"Your {_leave_label(leave)} leave request from "
            f"{_fmt(leave.start_date)} to {_fmt(leave.end_date)} expired because "
            "the cover employee did not respond in time. Please apply again."
        ),
        related_id=leave.id,
        is_pinned=True,
    )


async def notify_leave_approved(
    db: AsyncSession,
    leave: "Leave",
    applicant: "Employee",
    cover: Optional["Employee"],
    admin: "Employee",
) -> list[Notification]:
    created = []
    note = f" Note: {leave.admin_response}" if leave.admin_response else ""
    n = await NotificationService.create_notification(
        db,
        recipient_id=applicant.id,
        type=NotificationType.LEAVE_APPROVED,
        title="Leave Approved",
        message=(
            f"Your {_leave_label(leave)} leave from {_fmt(leave.start_date)} to "
            f"{_fmt(leave.end_date)} has been approved.{note}"
        ),
        sender_id=admin.id,
        related_id=leave.id,
    )
    created.append(n)
    if cover is not None:
        n = await NotificationService.create_notification(
            db,
            recipient_id=cover.id,
            type=NotificationType.LEAVE_APPROVED,
            title="Cover Duty Confirmed",
            message=(
                f"The leave of {applicant.full_name} from {_fmt(leave.start_date)} "
                f"to {_fmt(leave.end_date)} was approved. Please cover their duties."
            ),
            sender_id=admin.id,
            related_id=leave.id,
        )
        created.append(n)
    return [n for n in created if n is not None]


async def notify_leave_declined(
    db: AsyncSession,
    leave: "Leave",
    applicant: "Employee",
    cover: Optional["Employee"],
    admin: "Employee",
) -> list[Notification]:
    created = []
    reason = f" Reason: {leave.admin_response}" if leave.admin_response else ""
    n = await NotificationService.create_notification(
        db,
        recipient_id=applicant.id,
        type=NotificationType.LEAVE_DECLINED,
        title="Leave Declined",
        message=(
            f"Your {_leave_label(leave)} leave from {_fmt(leave.start_date)} to "
            f"{_fmt(leave.end_date)} has been declined.{reason}"
        ),
        sender_id=admin.id,
        related_id=leave.id,
    )
    created.append(n)
    if cover is not None:
        n = await NotificationService.create_notification(
            db,
            recipient_id=cover.id,
            type=NotificationType.LEAVE_DECLINED,
            title="No Cover Needed",
            message=(
                f"The leave of {applicant.full_name} from {_fmt(leave.start_date)} "
                f"to {_fmt(leave.end_date)} was declined. No cover action is needed."
            ),
            sender_id=admin.id,
            related_id=leave.id,
        )
        created.append(n)
    return [n for n in created if n is not None]


async def notify_leave_cancelled(
    db: AsyncSession,
    leave: "Leave",
    applicant: "Employee",
) -> Optional[Notification]:
    if leave.cover_employee_id is None:
        return None
    return await NotificationService.create_notification(
        db,
        recipient_id=leave.cover_employee_id,
        type=NotificationType.LEAVE_CANCELLED,
        title="Leave Cancelled",
        message=(
            f"{applicant.full_name} cancelled their {_leave_label(leave)} leave "
            f"from {_fmt(leave.start_date)} to {_fmt(leave.end_date)}. "
            "No cover action is needed."
        ),
        sender_id=applicant.id,
        related_id=leave.id,
    )


async def notify_cover_reassigned(
    db: AsyncSession,
    reassignment: "CoverDutyReassignment",
    original_leave: "Leave",
    *,
    leave_owner: "Employee",
    new_cover: "Employee",
    original_cover: "Employee",
    actor: "Employee",
    directors: list[AdminRef],
) -> list[Notification]:
    """Tell the new cover, the leave owner and every managing director."""
    period = f"{_fmt(original_leave.start_date)} to {_fmt(original_leave.end_date)}"
    created = [
        await NotificationService.create_notification(
            db,
            recipient_id=new_cover.id,
            type=NotificationType.COVER_REASSIGNMENT,
            title="Cover Duty Assigned",
            message=(
                f"You have been assigned to cover {leave_owner.full_name} from "
                f"{period}, replacing {original_cover.full_name}."
            ),
            sender_id=actor.id,
            related_id=original_leave.id,
        ),
        await NotificationService.create_notification(
            db,
            recipient_id=leave_owner.id,
            type=NotificationType.COVER_REASSIGNMENT,
            title="Cover Employee Changed",
            message=(
                f"{new_cover.full_name} will now cover your leave from {period} "
                f"because {original_cover.full_name} is on leave."
            ),
            sender_id=actor.id,
            related_id=original_leave.id,
        ),
    ]
    created.extend(
        await NotificationService.notify_many(
            db,
            [d.id for d in directors if d.id not in (actor.id, new_cover.id, leave_owner.id)],
            type=NotificationType.COVER_REASSIGNMENT,
            title="Cover Duty Reassigned",
            message=(
                f"{actor.full_name} reassigned cover for {leave_owner.full_name} "
                f"({period}) from {original_cover.full_name} to {new_cover.full_name}."
            ),
            sender_id=actor.id,
            related_id=reassignment.id,
        )
    )
    return [n for n in created if n is not None]
