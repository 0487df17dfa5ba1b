"""Balance ledger — one LeaveBalance row per employee, reset when the year changes."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.constants import LeaveType
from leaveflow.leave.models import LeaveBalance

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Leave types drawing from a balance bucket; OFFICIAL has none.
BUCKETS: dict[LeaveType, str] = {
    LeaveType.ANNUAL: "annual",
    LeaveType.CASUAL: "casual",
    LeaveType.MEDICAL: "medical",
}


@dataclass(frozen=True)
class Allotment:
    annual: Decimal
    casual: Decimal
    medical: Decimal
    official: Decimal = ZERO


AllotmentPolicy = Callable[[bool, int, Optional[date]], Allotment]

_CASUAL = Decimal("7")
_MEDICAL = Decimal("7")
_FULL_ANNUAL = Decimal("14")


def _annual_after_confirmation(confirmed_at: date) -> Decimal:
    """Annual days for the year after confirmation, by quarter confirmed."""
    quarter = (confirmed_at.month - 1) // 3
    return (Decimal("14"), Decimal("10"), Decimal("7"), Decimal("4"))[quarter]


def default_allotment(
    is_probation: bool,
    year: int,
    confirmed_at: Optional[date] = None,
) -> Allotment:
    """Yearly allotment: none of annual while on probation or in the
    confirmation year, a quarter-scaled amount the year after, full after that."""
    if is_probation:
        return Allotment(annual=ZERO, casual=_CASUAL, medical=_MEDICAL)
    if confirmed_at is None or year > confirmed_at.year + 1 or year < confirmed_at.year:
        return Allotment(annual=_FULL_ANNUAL, casual=_CASUAL, medical=_MEDICAL)
    if year == confirmed_at.year:
        return Allotment(annual=ZERO, casual=_CASUAL, medical=_MEDICAL)
    return Allotment(
        annual=_annual_after_confirmation(confirmed_at),
        casual=_CASUAL,
        medical=_MEDICAL,
    )


def apply_year_reset(balance: LeaveBalance, year: int, allotment: Allotment) -> None:
    """Overwrite *balance* with a fresh allotment for *year*.

    Prior-year balances are discarded, not carried forward.
    """
    balance.year = year
    balance.annual = allotment.annual
    balance.casual = allotment.casual
    balance.medical = allotment.medical
    balance.official = allotment.official
    balance.updated_at = datetime.now(timezone.utc)


async def ensure_balance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
    is_probation: bool,
    confirmed_at: Optional[date] = None,
    *,
    policy: AllotmentPolicy = default_allotment,
) -> LeaveBalance:
    """Return the employee's balance for *year*, creating or resetting it."""
    result = await db.execute(
        select(LeaveBalance).where(LeaveBalance.employee_id == employee_id)
    )
    balance = result.scalars().first()

    if balance is None:
        balance = LeaveBalance(employee_id=employee_id)
        apply_year_reset(balance, year, policy(is_probation, year, confirmed_at))
        db.add(balance)
        await db.flush()
        logger.info("Created %d leave balance for employee %s", year, employee_id)
    elif balance.year != year:
        previous = balance.year
        apply_year_reset(balance, year, policy(is_probation, year, confirmed_at))
        await db.flush()
        logger.info(
            "Reset leave balance for employee %s from %d to %d",
            employee_id, previous, year,
        )
    return balance


def remaining(balance: LeaveBalance, leave_type: LeaveType) -> Optional[Decimal]:
    bucket = BUCKETS.get(leave_type)
    if bucket is None:
        return None
    return Decimal(getattr(balance, bucket))


def check_no_pay(balance: LeaveBalance, leave_type: LeaveType, total_days: Decimal) -> bool:
    """True when the type's bucket is strictly smaller than *total_days*."""
    available = remaining(balance, leave_type)
    if available is None:
        return False
    return available < Decimal(total_days)


def deduct_on_approval(
    balance: LeaveBalance,
    leave_type: LeaveType,
    total_days: Decimal,
) -> Decimal:
    """Deduct an approved leave from its bucket, floored at zero.

    MEDICAL draws from its own bucket like ANNUAL and CASUAL, so medical
    days beyond the yearly allotment are flagged no-pay. Only OFFICIAL
    leave is never deducted.

    Returns the amount actually deducted.
    """
    bucket = BUCKETS.get(leave_type)
    if bucket is None:
        return ZERO
    available = Decimal(getattr(balance, bucket))
    new_value = max(ZERO, available - Decimal(total_days))
    setattr(balance, bucket, new_value)
    balance.updated_at = datetime.now(timezone.utc)
    return available - new_value


@dataclass(frozen=True)
class ApprovalDeduction:
    deducted: Decimal
    balance_year: int
    skipped: bool = False


async def deduct_for_approval(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    total_days: Decimal,
    year: int,
    is_probation: bool,
    confirmed_at: Optional[date] = None,
    *,
    policy: AllotmentPolicy = default_allotment,
) -> ApprovalDeduction:
    """Charge an approved leave starting in *year* to the balance row.

    The row only ever moves forward in time. When it already holds a later
    year, the earlier year's allotment is gone and nothing is deducted.
    """
    result = await db.execute(
        select(LeaveBalance).where(LeaveBalance.employee_id == employee_id)
    )
    balance = result.scalars().first()

    if balance is not None and balance.year > year:
        logger.warning(
            "Skipped deduction of %s %s day(s) for employee %s: balance is for %d, leave is in %d",
            total_days, leave_type.value, employee_id, balance.year, year,
        )
        return ApprovalDeduction(deducted=ZERO, balance_year=balance.year, skipped=True)

    balance = await ensure_balance(
        db, employee_id, year, is_probation, confirmed_at, policy=policy,
    )
    deducted = deduct_on_approval(balance, leave_type, total_days)
    return ApprovalDeduction(deducted=deducted, balance_year=balance.year)


async def balance_for_application(
    db: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
    is_probation: bool,
    confirmed_at: Optional[date] = None,
    *,
    policy: AllotmentPolicy = default_allotment,
) -> LeaveBalance:
    """Balance a new application in *year* is checked against.

    The stored row is created or rolled forward as needed. A row already in
    a later year is left alone and an unsaved allotment for *year* is
    returned instead.
    """
    result = await db.execute(
        select(LeaveBalance).where(LeaveBalance.employee_id == employee_id)
    )
    balance = result.scalars().first()
    if balance is not None and balance.year > year:
        preview = LeaveBalance(employee_id=employee_id)
        apply_year_reset(preview, year, policy(is_probation, year, confirmed_at))
        return preview
    return await ensure_balance(
        db, employee_id, year, is_probation, confirmed_at, policy=policy,
    )
