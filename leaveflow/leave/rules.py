"""Eligibility rules per leave type.

Day counts are compared as integer half-day units so that 0.5 boundaries
never depend on floating point.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from leaveflow.common.constants import HalfDayType, LeaveType
from leaveflow.common.exceptions import ValidationException

DayCount = Union[Decimal, int, str]


def to_half_units(days: DayCount) -> int:
    """Convert a day count to half-day units (1.5 -> 3).

    Raises ValueError when the count is not a multiple of 0.5.
    """
    try:
        doubled = Decimal(str(days)) * 2
    except InvalidOperation:
        raise ValueError(f"{days!r} is not a number of days")
    if doubled != doubled.to_integral_value():
        raise ValueError(f"{days} is not a multiple of 0.5 days")
    return int(doubled)


def from_half_units(units: int) -> Decimal:
    return (Decimal(units) / 2).quantize(Decimal("0.1"))


@dataclass(frozen=True)
class LeaveRule:
    label: str
    max_units: int
    whole_days_only: bool
    days_before_today: int
    days_after_today: Optional[int] = None
    # Certificate required when the request exceeds this many half-day units.
    certificate_over_units: Optional[int] = None
    requires_cover: bool = True

    def allows(self, units: int) -> bool:
        if units <= 0 or units > self.max_units:
            return False
        return units % 2 == 0 if self.whole_days_only else True

    @property
    def max_days(self) -> Decimal:
        return from_half_units(self.max_units)

    def describe_allowed(self) -> str:
        if self.whole_days_only:
            return f"whole days from 1 to {self.max_days.normalize()}"
        return f"0.5-day steps from 0.5 to {self.max_days.normalize()}"


LEAVE_RULES: dict[LeaveType, LeaveRule] = {
    LeaveType.ANNUAL: LeaveRule(
        label="Annual",
        max_units=14,
        whole_days_only=True,
        days_before_today=7,
    ),
    LeaveType.CASUAL: LeaveRule(
        label="Casual",
        max_units=2,
        whole_days_only=False,
        days_before_today=2,
    ),
    LeaveType.MEDICAL: LeaveRule(
        label="Medical",
        max_units=6,
        whole_days_only=False,
        days_before_today=4,
        certificate_over_units=2,
    ),
    LeaveType.OFFICIAL: LeaveRule(
        label="Official",
        max_units=6,
        whole_days_only=True,
        days_before_today=3,
        days_after_today=3,
        requires_cover=False,
    ),
}


def _fail(field_name: str, message: str) -> ValidationException:
    return ValidationException({field_name: [message]})


def validate_application(
    leave_type: LeaveType,
    start_date: date,
    end_date: date,
    total_days: DayCount,
    *,
    today: date,
    cover_employee_id: Optional[uuid.UUID] = None,
    medical_cert_path: Optional[str] = None,
    half_day_type: Optional[HalfDayType] = None,
    is_probation: bool = False,
) -> LeaveRule:
    """Check an application against its type's rule; raise on the first violation."""
    rule = LEAVE_RULES[leave_type]

    if start_date > end_date:
        raise _fail("end_date", "End date must be on or after the start date.")

    if is_probation and leave_type == LeaveType.ANNUAL:
        raise _fail(
            "leave_type",
            "Employees on probation are not eligible for annual leave.",
        )

    if half_day_type is not None and start_date != end_date:
        raise _fail("half_day_type", "A half-day leave must start and end on the same date.")

    try:
        units = to_half_units(total_days)
    except ValueError:
        raise _fail("total_days", "Leave must be requested in multiples of 0.5 days.")
    if units <= 0:
        raise _fail("total_days", "The selected dates contain no working days.")
    if units > rule.max_units:
        raise _fail(
            "total_days",
            f"{rule.label} leave cannot exceed {rule.max_days.normalize()} day(s) per request.",
        )
    if not rule.allows(units):
        raise _fail(
            "total_days",
            f"{rule.label} leave must be taken in {rule.describe_allowed()}.",
        )

    earliest = today - timedelta(days=rule.days_before_today)
    if start_date < earliest:
        raise _fail(
            "start_date",
            f"{rule.label} leave can only start from {rule.days_before_today} "
            "day(s) before today onwards.",
        )
    if rule.days_after_today is not None:
        latest = today + timedelta(days=rule.days_after_today)
        if start_date > latest:
            raise _fail(
                "start_date",
                f"{rule.label} leave can only be applied for dates within "
                f"{rule.days_before_today} day(s) before or "
                f"{rule.days_after_today} day(s) after today.",
            )

    if (
        rule.certificate_over_units is not None
        and units > rule.certificate_over_units
        and not medical_cert_path
    ):
        raise _fail(
            "medical_cert_path",
            "A medical certificate is required for medical leave longer than one day.",
        )

    if rule.requires_cover and cover_employee_id is None:
        raise _fail("cover_employee_id", f"{rule.label} leave requires a cover employee.")

    return rule
