"""Leave service — the leave lifecycle and its cover-request workflow.

States: PENDING_COVER → PENDING_ADMIN → APPROVED / DECLINED, with
COVER_DECLINED (cover declined or expired) and CANCELLED (by the applicant
while still pending). Every mutating entry point first runs the expiry
sweeper, then reads and writes inside the request's transaction.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leaveflow.calendar.service import count_leave_days
from leaveflow.common.audit import create_audit_entry
from leaveflow.common.constants import (
    CANCELLABLE_LEAVE_STATUSES,
    CoverRequestStatus,
    LeaveStatus,
    LeaveType,
)
from leaveflow.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from leaveflow.common.pagination import PaginatedResponse, PaginationParams, paginate
from leaveflow.core_hr.models import Employee
from leaveflow.core_hr.service import EmployeeService
from leaveflow.leave.balance import (
    balance_for_application,
    check_no_pay,
    deduct_for_approval,
    default_allotment,
    ensure_balance,
)
from leaveflow.leave.detection import check_covering_conflict, check_overlap
from leaveflow.leave.models import CoverRequest, Leave, LeaveBalance
from leaveflow.leave.reassignment import ReassignmentService
from leaveflow.leave.rules import validate_application
from leaveflow.leave.schemas import (
    CoverRequestOut,
    LeaveApplyRequest,
    LeaveApplyResult,
    LeaveBalanceOut,
    LeaveOut,
)
from leaveflow.leave.sweeper import (
    cover_request_ttl,
    is_expired,
    local_today,
    sweep_expired,
    utcnow,
)
from leaveflow.notifications.email import queue_email
from leaveflow.notifications.service import (
    notify_cover_accepted,
    notify_cover_declined,
    notify_cover_request,
    notify_leave_approved,
    notify_leave_cancelled,
    notify_leave_declined,
    notify_leave_request,
    notify_no_pay,
)

logger = logging.getLogger(__name__)


def _email_data(leave: Leave, employee: Employee, cover: Optional[Employee]) -> dict:
    return {
        "employee_name": employee.full_name,
        "cover_name": cover.full_name if cover is not None else None,
        "leave_type": leave.leave_type.value.title(),
        "start_date": leave.start_date.isoformat(),
        "end_date": leave.end_date.isoformat(),
        "total_days": str(leave.total_days),
        "admin_response": leave.admin_response,
    }


def _cover_request_out(
    cover_request: CoverRequest,
    leave_out: Optional[LeaveOut] = None,
) -> CoverRequestOut:
    return CoverRequestOut(
        id=cover_request.id,
        leave_id=cover_request.leave_id,
        cover_employee_id=cover_request.cover_employee_id,
        status=cover_request.status,
        created_at=cover_request.created_at,
        expires_at=cover_request.expires_at,
        responded_at=cover_request.responded_at,
        leave=leave_out,
    )


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _load_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> Leave:
        query = (
            select(Leave)
            .where(Leave.id == leave_id)
            .options(
                selectinload(Leave.employee),
                selectinload(Leave.cover_employee),
            )
        )
        if for_update:
            query = query.with_for_update()
        leave = (await db.execute(query)).scalars().first()
        if leave is None:
            raise NotFoundException("Leave", leave_id)
        return leave

    @staticmethod
    def _leave_out(leave: Leave) -> LeaveOut:
        return LeaveOut.build(leave, leave.employee, leave.cover_employee)

    # ─────────────────────────────────────────────────────────────────
    # Apply
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply_leave(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveApplyRequest,
        *,
        now: Optional[datetime] = None,
    ) -> LeaveApplyResult:
        """Apply for leave.

        Order of checks: working-day count, eligibility rules, cover
        employee, overlap with the applicant's active leaves, no-pay flag,
        covering-duty conflict. The leave row is only written once all pass.
        """
        now = now or utcnow()
        today = local_today(now)

        await sweep_expired(db, now)

        applicant = await EmployeeService.get_active_employee(db, employee_id, for_update=True)
        is_official = data.leave_type == LeaveType.OFFICIAL
        cover_employee_id = None if is_official else data.cover_employee_id

        total_days = await count_leave_days(db, data.start_date, data.end_date, data.half_day_type)
        if (
            data.total_days is not None
            and data.half_day_type is None
            and Decimal(data.total_days) != total_days
        ):
            raise ValidationException(
                {"total_days": [
                    f"Total days must equal the {total_days.normalize()} working day(s) "
                    "in the selected range."
                ]}
            )

        validate_application(
            data.leave_type,
            data.start_date,
            data.end_date,
            total_days,
            today=today,
            cover_employee_id=cover_employee_id,
            medical_cert_path=data.medical_cert_path,
            half_day_type=data.half_day_type,
            is_probation=applicant.is_probation,
        )

        cover: Optional[Employee] = None
        if cover_employee_id is not None:
            if cover_employee_id == applicant.id:
                raise ValidationException(
                    {"cover_employee_id": ["You cannot cover your own leave."]}
                )
            cover = await EmployeeService.get_active_employee(db, cover_employee_id)

        await check_overlap(db, applicant.id, data.start_date, data.end_date)

        balance = await balance_for_application(
            db,
            applicant.id,
            data.start_date.year,
            applicant.is_probation,
            applicant.confirmed_at,
        )
        is_no_pay = check_no_pay(balance, data.leave_type, total_days)

        covering_duties = await check_covering_conflict(
            db, applicant.id, data.leave_type, data.start_date, data.end_date,
        )

        # ── Persist ─────────────────────────────────────────────────
        leave = Leave(
            employee_id=applicant.id,
            leave_type=data.leave_type,
            start_date=data.start_date,
            end_date=data.end_date,
            total_days=total_days,
            half_day_type=data.half_day_type,
            reason=data.reason,
            cover_employee_id=cover_employee_id,
            medical_cert_path=data.medical_cert_path,
            status=LeaveStatus.PENDING_ADMIN if is_official else LeaveStatus.PENDING_COVER,
            is_no_pay=is_no_pay,
        )
        db.add(leave)
        await db.flush()

        cover_request: Optional[CoverRequest] = None
        if cover is not None:
            cover_request = CoverRequest(
                leave_id=leave.id,
                cover_employee_id=cover.id,
                status=CoverRequestStatus.PENDING,
                created_at=now,
                expires_at=now + cover_request_ttl(),
            )
            db.add(cover_request)
            await db.flush()

        await create_audit_entry(
            db,
            action="apply",
            entity_type="leave",
            entity_id=leave.id,
            actor_id=applicant.id,
            new_values={
                "leave_type": leave.leave_type,
                "start_date": leave.start_date,
                "end_date": leave.end_date,
                "total_days": leave.total_days,
                "status": leave.status,
                "is_no_pay": leave.is_no_pay,
                "cover_employee_id": leave.cover_employee_id,
            },
        )

        if cover is not None:
            await notify_cover_request(db, leave, applicant)
        else:
            admins = await EmployeeService.list_active_admins(db)
            await notify_leave_request(db, leave, applicant, admins)
        if is_no_pay:
            await notify_no_pay(db, leave)

        reassignment_ids: list[uuid.UUID] = []
        for duty in covering_duties:
            reassignment = await ReassignmentService.open_for_conflict(
                db, duty, leave, applicant,
            )
            reassignment_ids.append(reassignment.id)

        logger.info(
            "Leave %s applied by %s: %s %s..%s (%s day(s)) -> %s%s",
            leave.id, applicant.id, leave.leave_type.value, leave.start_date,
            leave.end_date, leave.total_days, leave.status.value,
            " [no-pay]" if is_no_pay else "",
        )

        leave_out = LeaveOut.build(leave, applicant, cover)
        return LeaveApplyResult(
            message="Leave request submitted successfully",
            leave=leave_out,
            cover_request=_cover_request_out(cover_request) if cover_request else None,
            reassignment_ids=reassignment_ids,
        )

    # ─────────────────────────────────────────────────────────────────
    # Cover response
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def respond_to_cover(
        db: AsyncSession,
        cover_request_id: uuid.UUID,
        cover_employee_id: uuid.UUID,
        *,
        accept: bool,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LeaveOut:
        """Accept (→ PENDING_ADMIN) or decline (→ COVER_DECLINED) a cover request."""
        now = now or utcnow()
        reason = (reason or "").strip() or None

        await sweep_expired(db, now)

        cover_request = (
            await db.execute(
                select(CoverRequest)
                .where(CoverRequest.id == cover_request_id)
                .with_for_update()
            )
        ).scalars().first()
        if cover_request is None:
            raise NotFoundException("CoverRequest", cover_request_id)
        if cover_request.cover_employee_id != cover_employee_id:
            raise ForbiddenException("This cover request was sent to someone else.")
        if cover_request.status == CoverRequestStatus.EXPIRED or (
            cover_request.status == CoverRequestStatus.PENDING
            and is_expired(cover_request, now)
        ):
            raise ValidationException({"cover_request": ["This cover request has expired."]})
        if cover_request.status != CoverRequestStatus.PENDING:
            raise ValidationException(
                {"cover_request": [
                    f"This cover request was already {cover_request.status.value.lower()}."
                ]}
            )
        if not accept and not reason:
            raise ValidationException(
                {"reason": ["Please give a reason for declining the cover request."]}
            )

        leave = await LeaveService._load_leave(db, cover_request.leave_id, for_update=True)
        if leave.status != LeaveStatus.PENDING_COVER:
            raise ValidationException(
                {"status": [f"Leave is {leave.status.value}, not awaiting cover."]}
            )

        old_status = leave.status
        cover_request.status = (
            CoverRequestStatus.ACCEPTED if accept else CoverRequestStatus.DECLINED
        )
        cover_request.responded_at = now
        leave.status = LeaveStatus.PENDING_ADMIN if accept else LeaveStatus.COVER_DECLINED
        leave.cover_response = reason
        await db.flush()

        await create_audit_entry(
            db,
            action="cover_accept" if accept else "cover_decline",
            entity_type="leave",
            entity_id=leave.id,
            actor_id=cover_employee_id,
            old_values={"status": old_status},
            new_values={"status": leave.status, "cover_response": reason},
        )

        cover = leave.cover_employee
        if accept:
            await notify_cover_accepted(db, leave, cover)
            admins = await EmployeeService.list_active_admins(db)
            await notify_leave_request(db, leave, leave.employee, admins)
        else:
            await notify_cover_declined(db, leave, cover, reason)

        logger.info(
            "Cover request %s %s by %s; leave %s -> %s",
            cover_request.id, cover_request.status.value, cover_employee_id,
            leave.id, leave.status.value,
        )
        return LeaveService._leave_out(leave)

    # ─────────────────────────────────────────────────────────────────
    # Admin decision
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _decide(
        db: AsyncSession,
        leave_id: uuid.UUID,
        admin: Employee,
        *,
        approve: bool,
        response: Optional[str],
        now: Optional[datetime],
    ) -> LeaveOut:
        now = now or utcnow()
        await sweep_expired(db, now)

        leave = await LeaveService._load_leave(db, leave_id, for_update=True)
        if leave.status != LeaveStatus.PENDING_ADMIN:
            raise ValidationException(
                {"status": [f"Leave is {leave.status.value}, not awaiting admin approval."]}
            )

        old_status = leave.status
        leave.status = LeaveStatus.APPROVED if approve else LeaveStatus.DECLINED
        leave.admin_response = (response or "").strip() or None
        leave.reviewed_by = admin.id
        leave.reviewed_at = now

        new_values: dict = {"status": leave.status, "admin_response": leave.admin_response}
        if approve:
            applicant = leave.employee
            deduction = await deduct_for_approval(
                db,
                applicant.id,
                leave.leave_type,
                leave.total_days,
                leave.start_date.year,
                applicant.is_probation,
                applicant.confirmed_at,
            )
            new_values["deducted"] = deduction.deducted
            if deduction.skipped:
                new_values["deduction_skipped"] = True
                new_values["balance_year"] = deduction.balance_year
        await db.flush()

        await create_audit_entry(
            db,
            action="approve" if approve else "decline",
            entity_type="leave",
            entity_id=leave.id,
            actor_id=admin.id,
            old_values={"status": old_status},
            new_values=new_values,
        )

        employee, cover = leave.employee, leave.cover_employee
        email_data = _email_data(leave, employee, cover)
        if approve:
            await notify_leave_approved(db, leave, employee, cover, admin)
            queue_email(db, to=employee.email, template_id="leave_approved", data=email_data)
            if cover is not None:
                queue_email(
                    db, to=cover.email, template_id="leave_approved_cover", data=email_data,
                )
        else:
            await notify_leave_declined(db, leave, employee, cover, admin)
            queue_email(db, to=employee.email, template_id="leave_declined", data=email_data)
            if cover is not None:
                queue_email(
                    db, to=cover.email, template_id="leave_declined_cover", data=email_data,
                )

        logger.info(
            "Leave %s %s by admin %s",
            leave.id, leave.status.value, admin.id,
        )
        return LeaveService._leave_out(leave)

    @staticmethod
    async def approve_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        admin: Employee,
        *,
        response: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LeaveOut:
        """PENDING_ADMIN → APPROVED; deducts the balance bucket."""
        return await LeaveService._decide(
            db, leave_id, admin, approve=True, response=response, now=now,
        )

    @staticmethod
    async def decline_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        admin: Employee,
        *,
        response: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LeaveOut:
        """PENDING_ADMIN → DECLINED."""
        return await LeaveService._decide(
            db, leave_id, admin, approve=False, response=response, now=now,
        )

    # ─────────────────────────────────────────────────────────────────
    # Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        employee_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
    ) -> LeaveOut:
        """Cancel the caller's own leave while it is still pending."""
        now = now or utcnow()
        await sweep_expired(db, now)

        leave = await LeaveService._load_leave(db, leave_id, for_update=True)
        if leave.employee_id != employee_id:
            raise ForbiddenException("You can only cancel your own leave requests.")
        if leave.status not in CANCELLABLE_LEAVE_STATUSES:
            raise ValidationException(
                {"status": [f"Leave is {leave.status.value} and can no longer be cancelled."]}
            )

        old_status = leave.status
        leave.status = LeaveStatus.CANCELLED
        await db.flush()

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="leave",
            entity_id=leave.id,
            actor_id=employee_id,
            old_values={"status": old_status},
            new_values={"status": leave.status},
        )
        await notify_leave_cancelled(db, leave, leave.employee)

        logger.info("Leave %s cancelled by %s", leave.id, employee_id)
        return LeaveService._leave_out(leave)

    # ─────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        viewer: Employee,
    ) -> LeaveOut:
        """A single leave, visible to its owner, its cover employee and admins."""
        leave = await LeaveService._load_leave(db, leave_id)
        if not viewer.is_admin and viewer.id not in (leave.employee_id, leave.cover_employee_id):
            raise ForbiddenException("You cannot view this leave.")
        return LeaveService._leave_out(leave)

    @staticmethod
    async def list_my_leaves(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
    ) -> PaginatedResponse:
        query = (
            select(Leave)
            .where(Leave.employee_id == employee_id)
            .options(
                selectinload(Leave.employee),
                selectinload(Leave.cover_employee),
            )
            .order_by(Leave.start_date.desc(), Leave.created_at.desc())
        )
        if status is not None:
            query = query.where(Leave.status == status)
        return await paginate(db, query, pagination, transform=LeaveService._leave_out)

    @staticmethod
    async def list_pending_admin(
        db: AsyncSession,
        pagination: PaginationParams,
    ) -> PaginatedResponse:
        """Admin queue: leaves awaiting a decision, oldest first."""
        query = (
            select(Leave)
            .where(Leave.status == LeaveStatus.PENDING_ADMIN)
            .options(
                selectinload(Leave.employee),
                selectinload(Leave.cover_employee),
            )
            .order_by(Leave.created_at, Leave.start_date)
        )
        return await paginate(db, query, pagination, transform=LeaveService._leave_out)

    @staticmethod
    async def list_cover_requests(
        db: AsyncSession,
        cover_employee_id: uuid.UUID,
        *,
        now: Optional[datetime] = None,
    ) -> list[CoverRequestOut]:
        """Cover requests still awaiting the caller's answer (expired ones excluded)."""
        now = now or utcnow()
        result = await db.execute(
            select(CoverRequest)
            .join(Leave, Leave.id == CoverRequest.leave_id)
            .where(
                CoverRequest.cover_employee_id == cover_employee_id,
                CoverRequest.status == CoverRequestStatus.PENDING,
                CoverRequest.expires_at > now,
                Leave.status == LeaveStatus.PENDING_COVER,
            )
            .options(
                selectinload(CoverRequest.leave).selectinload(Leave.employee),
                selectinload(CoverRequest.leave).selectinload(Leave.cover_employee),
            )
            .order_by(CoverRequest.expires_at)
        )
        return [
            _cover_request_out(cr, LeaveService._leave_out(cr.leave))
            for cr in result.scalars().all()
        ]

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee: Employee,
        year: Optional[int] = None,
    ) -> LeaveBalanceOut:
        """The caller's balance for *year* (current year by default).

        Reading never resets the stored row: for a year other than the one
        on record, the allotment that year would start with is returned.
        """
        year = year or local_today().year
        balance = (
            await db.execute(
                select(LeaveBalance).where(LeaveBalance.employee_id == employee.id)
            )
        ).scalars().first()
        if balance is None:
            balance = await ensure_balance(
                db, employee.id, year, employee.is_probation, employee.confirmed_at,
            )
        elif balance.year != year:
            allotment = default_allotment(employee.is_probation, year, employee.confirmed_at)
            return LeaveBalanceOut(
                employee_id=employee.id,
                year=year,
                annual=allotment.annual,
                casual=allotment.casual,
                medical=allotment.medical,
                official=allotment.official,
            )
        return LeaveBalanceOut.model_validate(balance)
