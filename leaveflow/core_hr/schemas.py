"""Core HR Pydantic v2 schemas — compact employee representations."""


import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict

from leaveflow.common.constants import AdminType, UserRole


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in leave / cover payloads."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    email: str
    department: Optional[str] = None


class EmployeeProfile(EmployeeBrief):
    """The caller's own record, as returned by ``GET /employees/me``."""

    role: UserRole
    admin_type: Optional[AdminType] = None
    is_probation: bool = False


class AdminRef(BaseModel):
    """Active admin reference used for notification fan-out."""

    id: uuid.UUID
    admin_type: Optional[AdminType] = None
