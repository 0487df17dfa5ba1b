"""Overlap and covering-duty conflict detection."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leaveflow.common.constants import ACTIVE_LEAVE_STATUSES, LeaveStatus, LeaveType
from leaveflow.common.exceptions import CoveringConflictException, OverlapException
from leaveflow.leave.models import Leave


def describe_leave(leave: Leave) -> dict[str, Any]:
    return {
        "id": str(leave.id),
        "leave_type": leave.leave_type.value,
        "start_date": leave.start_date.isoformat(),
        "end_date": leave.end_date.isoformat(),
        "status": leave.status.value,
    }


# ── Overlap ─────────────────────────────────────────────────────────

async def find_overlapping_leave(
    db: AsyncSession,
    employee_id: uuid.UUID,
    start: date,
    end: date,
) -> Optional[Leave]:
    """First active leave of *employee_id* sharing a date with ``[start, end]``."""
    result = await db.execute(
        select(Leave)
        .where(
            Leave.employee_id == employee_id,
            Leave.status.in_(ACTIVE_LEAVE_STATUSES),
            Leave.start_date <= end,
            Leave.end_date >= start,
        )
        .order_by(Leave.start_date)
        .limit(1)
    )
    return result.scalars().first()


async def check_overlap(
    db: AsyncSession,
    employee_id: uuid.UUID,
    start: date,
    end: date,
) -> None:
    conflicting = await find_overlapping_leave(db, employee_id, start, end)
    if conflicting is not None:
        raise OverlapException(describe_leave(conflicting))


# ── Covering duty ───────────────────────────────────────────────────

async def find_covering_duties(
    db: AsyncSession,
    employee_id: uuid.UUID,
    start: date,
    end: date,
) -> list[Leave]:
    """APPROVED leaves that *employee_id* covers during ``[start, end]``."""
    result = await db.execute(
        select(Leave)
        .where(
            Leave.cover_employee_id == employee_id,
            Leave.status == LeaveStatus.APPROVED,
            or_(
                # new leave starts inside the covered period
                and_(Leave.start_date <= start, Leave.end_date >= start),
                # new leave ends inside the covered period
                and_(Leave.start_date <= end, Leave.end_date >= end),
                # new leave spans the covered period
                and_(Leave.start_date >= start, Leave.end_date <= end),
            ),
        )
        .options(selectinload(Leave.employee))
        .order_by(Leave.start_date)
    )
    return list(result.scalars().all())


async def check_covering_conflict(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    start: date,
    end: date,
) -> list[Leave]:
    """Return the covering duties a MEDICAL leave must reassign.

    Any other leave type overlapping a covering duty is rejected.
    """
    duties = await find_covering_duties(db, employee_id, start, end)
    if duties and leave_type != LeaveType.MEDICAL:
        raise CoveringConflictException(
            [
                {
                    "leave_id": str(duty.id),
                    "employee_name": duty.employee.full_name,
                    "start_date": duty.start_date.isoformat(),
                    "end_date": duty.end_date.isoformat(),
                }
                for duty in duties
            ]
        )
    return duties
