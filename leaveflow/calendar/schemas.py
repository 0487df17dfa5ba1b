"""Calendar Pydantic v2 schemas."""


import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class HolidayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    date: date
    name: str
    description: Optional[str] = None


class HolidayListResponse(BaseModel):
    year: Optional[int] = None
    holidays: list[HolidayResponse]


class WorkingDaysResponse(BaseModel):
    start_date: date
    end_date: date
    working_days: Decimal
    holidays: list[date]
