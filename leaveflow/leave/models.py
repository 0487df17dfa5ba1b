"""Leave ORM models: Leave, LeaveBalance, CoverRequest, CoverDutyReassignment."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaveflow.common.audit import TimestampMixin
from leaveflow.common.constants import (
    CoverRequestStatus,
    HalfDayType,
    LeaveStatus,
    LeaveType,
    ReassignmentStatus,
)
from leaveflow.core_hr.models import Employee
from leaveflow.database import Base


class Leave(Base, TimestampMixin):
    __tablename__ = "leaves"
    __table_args__ = (
        sa.CheckConstraint("start_date <= end_date", name="ck_leave_date_order"),
        sa.CheckConstraint("total_days > 0", name="ck_leave_total_days_positive"),
        sa.Index("ix_leaves_employee_status", "employee_id", "status"),
        sa.Index("ix_leaves_cover_status", "cover_employee_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type: Mapped[LeaveType] = mapped_column(
        sa.Enum(LeaveType, name="leave_type"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(sa.Numeric(5, 1), nullable=False)
    half_day_type: Mapped[Optional[HalfDayType]] = mapped_column(
        sa.Enum(HalfDayType, name="half_day_type")
    )
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    # Null only for OFFICIAL leave.
    cover_employee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    medical_cert_path: Mapped[Optional[str]] = mapped_column(sa.String(500))
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        server_default=LeaveStatus.PENDING_COVER.value,
    )
    is_no_pay: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.text("FALSE")
    )
    cover_response: Mapped[Optional[str]] = mapped_column(sa.Text)
    admin_response: Mapped[Optional[str]] = mapped_column(sa.Text)
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )

    # Relationships (load explicitly with selectinload)
    employee: Mapped[Employee] = relationship(foreign_keys=[employee_id])
    cover_employee: Mapped[Optional[Employee]] = relationship(
        foreign_keys=[cover_employee_id]
    )
    cover_request: Mapped[Optional[CoverRequest]] = relationship(
        back_populates="leave", uselist=False
    )

    def __repr__(self) -> str:
        return (
            f"<Leave {self.leave_type.value} {self.start_date}..{self.end_date} "
            f"{self.status.value}>"
        )


class LeaveBalance(Base):
    """One row per employee, holding the balances of a single year."""

    __tablename__ = "leave_balances"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), unique=True, nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    annual: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("0")
    )
    casual: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("0")
    )
    medical: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("0")
    )
    official: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("0")
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )


class CoverRequest(Base):
    __tablename__ = "cover_requests"
    __table_args__ = (
        sa.Index("ix_cover_requests_cover_status", "cover_employee_id", "status"),
        sa.Index("ix_cover_requests_status_expires", "status", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    leave_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leaves.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    cover_employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    status: Mapped[CoverRequestStatus] = mapped_column(
        sa.Enum(CoverRequestStatus, name="cover_request_status"),
        nullable=False,
        server_default=CoverRequestStatus.PENDING.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    # Always created_at + COVER_REQUEST_TTL_HOURS.
    expires_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    responded_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )

    leave: Mapped[Leave] = relationship(back_populates="cover_request")


class CoverDutyReassignment(Base, TimestampMixin):
    """A covered leave that lost its cover to the cover's own medical leave."""

    __tablename__ = "cover_duty_reassignments"
    __table_args__ = (
        sa.UniqueConstraint(
            "original_leave_id", "cover_employee_leave_id", name="uq_reassignment_leaves"
        ),
        sa.Index("ix_reassignments_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    original_leave_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leaves.id"), nullable=False
    )
    cover_employee_leave_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leaves.id"), nullable=False
    )
    original_cover_employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    new_cover_employee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    status: Mapped[ReassignmentStatus] = mapped_column(
        sa.Enum(ReassignmentStatus, name="reassignment_status"),
        nullable=False,
        server_default=ReassignmentStatus.PENDING.value,
    )
    assigned_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    assigned_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )

    original_leave: Mapped[Leave] = relationship(foreign_keys=[original_leave_id])
    cover_employee_leave: Mapped[Leave] = relationship(
        foreign_keys=[cover_employee_leave_id]
    )
