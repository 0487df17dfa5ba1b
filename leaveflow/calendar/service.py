"""Calendar service — working-day arithmetic over company holidays.

``working_days`` is pure; the async helpers load the holiday set for a range
and apply the half-day shortcut used by leave applications.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import AbstractSet, Iterable, Optional, Sequence

from sqlalchemy import Select, extract, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.calendar.models import PublicHoliday
from leaveflow.common.constants import HalfDayType
from leaveflow.common.exceptions import ValidationException
from leaveflow.config import settings

HALF_DAY = Decimal("0.5")
_SUNDAY = 6

# Longest range, in calendar days, that is ever counted.
MAX_SPAN_DAYS = 366


def iter_dates(start: date, end: date) -> Iterable[date]:
    """Yield every calendar date in ``[start, end]`` inclusive."""
    for offset in range((end - start).days + 1):
        yield start + timedelta(days=offset)


def check_span(start: date, end: date, *, field: str = "end_date") -> None:
    """Reject an inverted range or one longer than MAX_SPAN_DAYS."""
    if start > end:
        raise ValidationException({field: ["End date must be on or after the start date."]})
    if (end - start).days + 1 > MAX_SPAN_DAYS:
        raise ValidationException(
            {field: [f"A date range may cover at most {MAX_SPAN_DAYS} days."]}
        )


def working_days(start: date, end: date, holidays: AbstractSet[date]) -> int:
    """Count days in ``[start, end]`` that are neither Sundays nor holidays."""
    return sum(
        1
        for day in iter_dates(start, end)
        if day.weekday() != _SUNDAY and day not in holidays
    )


def _company_holiday_filter(categories: Sequence[str]):
    clauses = []
    for category in categories:
        pattern = f"%{category}%"
        clauses.append(PublicHoliday.description.ilike(pattern))
        clauses.append(PublicHoliday.name.ilike(pattern))
    return or_(*clauses)


def company_holidays_query(categories: Optional[Sequence[str]] = None) -> Select:
    """Select PublicHoliday rows tagged with one of the company categories."""
    categories = list(categories or settings.HOLIDAY_CATEGORIES)
    return select(PublicHoliday).where(_company_holiday_filter(categories))


async def get_holiday_dates(
    db: AsyncSession,
    start: date,
    end: date,
    *,
    categories: Optional[Sequence[str]] = None,
) -> set[date]:
    """Return company holiday dates falling within ``[start, end]``."""
    query = company_holidays_query(categories).where(
        PublicHoliday.date >= start,
        PublicHoliday.date <= end,
    )
    result = await db.execute(query)
    return {holiday.date for holiday in result.scalars().all()}


async def list_company_holidays(
    db: AsyncSession,
    *,
    year: Optional[int] = None,
    include_all: bool = False,
) -> list[PublicHoliday]:
    query = select(PublicHoliday) if include_all else company_holidays_query()
    if year is not None:
        query = query.where(extract("year", PublicHoliday.date) == year)
    result = await db.execute(query.order_by(PublicHoliday.date, PublicHoliday.name))
    return list(result.scalars().all())


async def count_leave_days(
    db: AsyncSession,
    start: date,
    end: date,
    half_day_type: Optional[HalfDayType] = None,
) -> Decimal:
    """Leave days for a request: 0.5 for a half day, else working days.

    Raises ValidationException for an inverted or oversized range, or a
    half day that spans more than one date.
    """
    check_span(start, end)
    if half_day_type is not None:
        if start != end:
            raise ValidationException(
                {"half_day_type": ["A half-day leave must start and end on the same date."]},
            )
        return HALF_DAY
    holidays = await get_holiday_dates(db, start, end)
    return Decimal(working_days(start, end, holidays))
