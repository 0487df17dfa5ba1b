"""Leave router — apply, cover responses, admin decisions, cancellation,
balances and cover-duty reassignment.

All endpoints require authentication. Admin endpoints enforce role checks;
resolving a reassignment additionally requires an allowed admin type.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.dependencies import get_current_user, require_admin, require_admin_type
from leaveflow.common.constants import LeaveStatus
from leaveflow.common.pagination import PaginationParams
from leaveflow.common.rate_limit import APPLY_RATE_LIMIT, limiter
from leaveflow.core_hr.models import Employee
from leaveflow.database import get_db
from leaveflow.leave.reassignment import ReassignmentService
from leaveflow.leave.schemas import (
    AdminDecisionRequest,
    AssignCoverRequest,
    CandidateListResult,
    CoverRequestOut,
    CoverResponseRequest,
    LeaveApplyRequest,
    LeaveApplyResult,
    LeaveBalanceOut,
    LeaveOut,
    ReassignmentOut,
    SweepResult,
)
from leaveflow.leave.service import LeaveService
from leaveflow.leave.sweeper import sweep_expired

router = APIRouter(prefix="", tags=["leave"])


# ── POST /apply ─────────────────────────────────────────────────────

@router.post("/apply", response_model=LeaveApplyResult, status_code=201)
@limiter.limit(APPLY_RATE_LIMIT)
async def apply_leave(
    request: Request,
    body: LeaveApplyRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. Validates eligibility, overlap, balance and covering duties."""
    return await LeaveService.apply_leave(db, employee.id, body)


# ── GET /my-leaves ──────────────────────────────────────────────────

@router.get("/my-leaves")
async def my_leaves(
    status: Optional[LeaveStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The authenticated user's leaves, newest first."""
    return await LeaveService.list_my_leaves(db, employee.id, pagination, status=status)


# ── GET /balance ────────────────────────────────────────────────────

@router.get("/balance", response_model=LeaveBalanceOut)
async def get_balance(
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Defaults to current year"),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_balance(db, employee, year)


# ── Cover requests ──────────────────────────────────────────────────

@router.get("/cover-requests", response_model=list[CoverRequestOut])
async def my_cover_requests(
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cover requests waiting for the authenticated user's answer."""
    return await LeaveService.list_cover_requests(db, employee.id)


@router.post("/cover-requests/{cover_request_id}/respond", response_model=LeaveOut)
async def respond_to_cover_request(
    cover_request_id: uuid.UUID,
    body: CoverResponseRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Accept or decline a cover request (a reason is required to decline)."""
    return await LeaveService.respond_to_cover(
        db,
        cover_request_id,
        employee.id,
        accept=body.action == "accept",
        reason=body.reason,
    )


# ── GET /pending-admin ──────────────────────────────────────────────

@router.get("/pending-admin")
async def pending_admin(
    pagination: PaginationParams = Depends(),
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Leaves awaiting an admin decision, oldest first."""
    return await LeaveService.list_pending_admin(db, pagination)


# ── Reassignments ───────────────────────────────────────────────────

@router.get("/reassignments", response_model=list[ReassignmentOut])
async def pending_reassignments(
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ReassignmentService.list_pending(db)


@router.get("/reassignments/{reassignment_id}/candidates", response_model=CandidateListResult)
async def reassignment_candidates(
    reassignment_id: uuid.UUID,
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Ranked replacement covers for the reassignment's date window."""
    return await ReassignmentService.list_candidates(db, reassignment_id)


@router.post("/reassignments/{reassignment_id}/assign", response_model=ReassignmentOut)
async def assign_reassignment(
    reassignment_id: uuid.UUID,
    body: AssignCoverRequest,
    admin: Employee = Depends(require_admin_type()),
    db: AsyncSession = Depends(get_db),
):
    """Assign a new cover employee. Returns 409 if the choice went stale."""
    return await ReassignmentService.assign_cover(
        db, reassignment_id, body.new_cover_employee_id, admin,
    )


# ── POST /maintenance/sweep-expired ─────────────────────────────────

@router.post("/maintenance/sweep-expired", response_model=SweepResult)
async def sweep_expired_cover_requests(
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Expire unanswered cover requests now instead of on the next application."""
    return SweepResult(expired=await sweep_expired(db))


# ── /{leave_id} ─────────────────────────────────────────────────────
# NOTE: registered after the static paths above.

@router.get("/{leave_id}", response_model=LeaveOut)
async def get_leave(
    leave_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave(db, leave_id, employee)


@router.put("/{leave_id}/approve", response_model=LeaveOut)
async def approve_leave(
    leave_id: uuid.UUID,
    body: AdminDecisionRequest,
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Approve a leave awaiting admin decision. Deducts from the balance."""
    return await LeaveService.approve_leave(db, leave_id, admin, response=body.response)


@router.put("/{leave_id}/decline", response_model=LeaveOut)
async def decline_leave(
    leave_id: uuid.UUID,
    body: AdminDecisionRequest,
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.decline_leave(db, leave_id, admin, response=body.response)


@router.put("/{leave_id}/cancel", response_model=LeaveOut)
async def cancel_leave(
    leave_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel one of your own leaves while it is still pending."""
    return await LeaveService.cancel_leave(db, leave_id, employee.id)
