"""Calendar API router — company holidays and working-day counts."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.dependencies import get_current_user
from leaveflow.calendar.schemas import (
    HolidayListResponse,
    HolidayResponse,
    WorkingDaysResponse,
)
from leaveflow.calendar.service import (
    check_span,
    get_holiday_dates,
    list_company_holidays,
    working_days,
)
from leaveflow.core_hr.models import Employee
from leaveflow.database import get_db

router = APIRouter()


@router.get("", response_model=HolidayListResponse)
async def list_holidays(
    year: Optional[int] = Query(default=None, ge=1900, le=2100),
    all: bool = Query(default=False, description="Include non-company holidays"),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List Mercantile / Poya holidays, optionally for one year."""
    holidays = await list_company_holidays(db, year=year, include_all=all)
    return HolidayListResponse(
        year=year,
        holidays=[HolidayResponse.model_validate(h) for h in holidays],
    )


@router.get("/working-days", response_model=WorkingDaysResponse)
async def count_working_days(
    start: date = Query(...),
    end: date = Query(...),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Working days between two dates, excluding Sundays and company holidays."""
    check_span(start, end, field="end")
    holidays = await get_holiday_dates(db, start, end)
    return WorkingDaysResponse(
        start_date=start,
        end_date=end,
        working_days=working_days(start, end, holidays),
        holidays=sorted(holidays),
    )
