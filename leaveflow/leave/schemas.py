"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Request            → request bodies (write)
  - *Out / *Result      → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from leaveflow.common.constants import (
    CoverRequestStatus,
    HalfDayType,
    LeaveStatus,
    LeaveType,
    ReassignmentStatus,
)
from leaveflow.core_hr.schemas import EmployeeBrief


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


class LeaveApplyRequest(BaseModel):
    """Body for ``POST /leave/apply``.

    ``total_days`` is optional: the server derives it from the calendar and
    rejects a client value that disagrees.
    """

    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: Optional[Decimal] = Field(default=None, gt=0)
    half_day_type: Optional[HalfDayType] = None
    reason: str = Field(default="", max_length=2000)
    cover_employee_id: Optional[uuid.UUID] = None
    medical_cert_path: Optional[str] = Field(default=None, max_length=500)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        return v.strip()


class CoverResponseRequest(BaseModel):
    action: Literal["accept", "decline"]
    reason: Optional[str] = Field(default=None, max_length=2000)


class AdminDecisionRequest(BaseModel):
    response: Optional[str] = Field(default=None, max_length=2000)


class AssignCoverRequest(BaseModel):
    new_cover_employee_id: uuid.UUID


# ═════════════════════════════════════════════════════════════════════
# Responses
# ═════════════════════════════════════════════════════════════════════


class LeaveOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee: EmployeeBrief
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: Decimal
    half_day_type: Optional[HalfDayType] = None
    reason: str = ""
    cover_employee: Optional[EmployeeBrief] = None
    medical_cert_path: Optional[str] = None
    status: LeaveStatus
    is_no_pay: bool = False
    cover_response: Optional[str] = None
    admin_response: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def build(cls, leave, employee, cover=None) -> "LeaveOut":
        """Assemble from a Leave row and already-loaded Employee rows."""
        return cls(
            id=leave.id,
            employee=EmployeeBrief.model_validate(employee),
            leave_type=leave.leave_type,
            start_date=leave.start_date,
            end_date=leave.end_date,
            total_days=leave.total_days,
            half_day_type=leave.half_day_type,
            reason=leave.reason or "",
            cover_employee=EmployeeBrief.model_validate(cover) if cover is not None else None,
            medical_cert_path=leave.medical_cert_path,
            status=leave.status,
            is_no_pay=leave.is_no_pay,
            cover_response=leave.cover_response,
            admin_response=leave.admin_response,
            reviewed_at=leave.reviewed_at,
            created_at=leave.created_at,
        )


class CoverRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    leave_id: uuid.UUID
    cover_employee_id: uuid.UUID
    status: CoverRequestStatus
    created_at: datetime
    expires_at: datetime
    responded_at: Optional[datetime] = None
    leave: Optional[LeaveOut] = None


class LeaveApplyResult(BaseModel):
    message: str
    leave: LeaveOut
    cover_request: Optional[CoverRequestOut] = None
    reassignment_ids: list[uuid.UUID] = []


class LeaveBalanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: uuid.UUID
    year: int
    annual: Decimal
    casual: Decimal
    medical: Decimal
    official: Decimal


class ReassignmentOut(BaseModel):
    id: uuid.UUID
    status: ReassignmentStatus
    original_leave: LeaveOut
    cover_employee_leave: LeaveOut
    original_cover_employee: EmployeeBrief
    new_cover_employee: Optional[EmployeeBrief] = None
    created_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None


class CandidateOut(BaseModel):
    id: uuid.UUID
    name: str
    employee_code: str
    department: Optional[str] = None
    covering_count: int
    pending_cover_requests: int
    on_leave: bool
    workload_score: int
    available: bool


class CandidateListResult(BaseModel):
    reassignment_id: uuid.UUID
    start_date: date
    end_date: date
    candidates: list[CandidateOut]


class SweepResult(BaseModel):
    expired: int
