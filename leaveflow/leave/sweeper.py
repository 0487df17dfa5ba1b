"""Expiry sweeper for cover requests nobody answered in time.

Runs at the top of every mutating leave entry point, from the admin
maintenance endpoint and from ``scripts/sweep_expired_covers.py``. Each row
is flipped with a conditional UPDATE, so concurrent sweeps expire it once.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leaveflow.common.audit import create_audit_entry
from leaveflow.common.constants import (
    COVER_EXPIRED_RESPONSE,
    CoverRequestStatus,
    LeaveStatus,
)
from leaveflow.config import settings
from leaveflow.leave.models import CoverRequest, Leave
from leaveflow.notifications.service import notify_cover_expired

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_today(now: Optional[datetime] = None) -> date:
    """Calendar date at *now* in the company timezone."""
    return as_utc(now or utcnow()).astimezone(ZoneInfo(settings.TIMEZONE)).date()


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def cover_request_ttl() -> timedelta:
    return timedelta(hours=settings.COVER_REQUEST_TTL_HOURS)


def is_expired(cover_request: CoverRequest, now: datetime) -> bool:
    return as_utc(cover_request.expires_at) < now


async def sweep_expired(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Expire PENDING cover requests past ``expires_at``; return how many."""
    now = now or utcnow()
    result = await db.execute(
        select(CoverRequest)
        .where(
            CoverRequest.status == CoverRequestStatus.PENDING,
            CoverRequest.expires_at < now,
        )
        .options(selectinload(CoverRequest.leave))
    )
    candidates = list(result.scalars().all())

    expired = 0
    for cover_request in candidates:
        flipped = await db.execute(
            update(CoverRequest)
            .where(
                CoverRequest.id == cover_request.id,
                CoverRequest.status == CoverRequestStatus.PENDING,
            )
            .values(status=CoverRequestStatus.EXPIRED, responded_at=now)
        )
        if flipped.rowcount == 0:
            continue
        expired += 1

        leave = cover_request.leave
        moved = await db.execute(
            update(Leave)
            .where(Leave.id == leave.id, Leave.status == LeaveStatus.PENDING_COVER)
            .values(
                status=LeaveStatus.COVER_DECLINED,
                cover_response=COVER_EXPIRED_RESPONSE,
                updated_at=now,
            )
        )
        await create_audit_entry(
            db,
            action="expire",
            entity_type="cover_request",
            entity_id=cover_request.id,
            old_values={"status": CoverRequestStatus.PENDING},
            new_values={"status": CoverRequestStatus.EXPIRED, "leave_id": leave.id},
        )
        if moved.rowcount:
            await notify_cover_expired(db, leave)

    if expired:
        logger.info("Expired %d cover request(s) past their deadline", expired)
    return expired
