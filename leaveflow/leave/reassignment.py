"""Reassignment engine — replacing a cover employee who went on medical leave.

A CoverDutyReassignment is opened when an accepted cover applies for
MEDICAL leave during an APPROVED leave they cover. An authorized admin then
picks a replacement from a ranked candidate list; the pick is re-validated
under row locks in the same transaction that performs the assignment.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leaveflow.common.audit import create_audit_entry
from leaveflow.common.constants import (
    AdminType,
    CoverRequestStatus,
    LeaveStatus,
    ReassignmentStatus,
    UserRole,
)
from leaveflow.common.exceptions import (
    NotFoundException,
    StaleAssignmentException,
    ValidationException,
)
from leaveflow.core_hr.models import Employee
from leaveflow.core_hr.schemas import EmployeeBrief
from leaveflow.core_hr.service import EmployeeService
from leaveflow.leave.models import CoverDutyReassignment, CoverRequest, Leave
from leaveflow.leave.schemas import (
    CandidateListResult,
    CandidateOut,
    LeaveOut,
    ReassignmentOut,
)
from leaveflow.leave.sweeper import utcnow
from leaveflow.notifications.events import LeaveConflictDetected, dispatcher
from leaveflow.notifications.service import notify_cover_reassigned

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# Candidate ranking
# ═════════════════════════════════════════════════════════════════════


@dataclass
class Candidate:
    id: uuid.UUID
    name: str
    employee_code: str
    department: Optional[str]
    covering_count: int
    pending_cover_requests: int
    on_leave: bool
    workload_score: int = 0
    available: bool = True


class RankingStrategy(Protocol):
    def rank(self, candidates: list[Candidate]) -> list[Candidate]: ...


class DefaultWorkloadRanking:
    """Lower score is preferred; candidates on leave are listed last."""

    covering_weight = 2
    pending_weight = 1
    on_leave_penalty = 10

    def score(self, candidate: Candidate) -> int:
        return (
            candidate.covering_count * self.covering_weight
            + candidate.pending_cover_requests * self.pending_weight
            + (self.on_leave_penalty if candidate.on_leave else 0)
        )

    def rank(self, candidates: list[Candidate]) -> list[Candidate]:
        for candidate in candidates:
            candidate.workload_score = self.score(candidate)
            candidate.available = not candidate.on_leave
        return sorted(
            candidates,
            key=lambda c: (not c.available, c.workload_score, c.name.lower()),
        )


def _overlapping(start: date, end: date):
    return (Leave.start_date <= end, Leave.end_date >= start)


# ═════════════════════════════════════════════════════════════════════
# ReassignmentService
# ═════════════════════════════════════════════════════════════════════


class ReassignmentService:
    """Create, list and resolve cover-duty reassignments."""

    ranking: RankingStrategy = DefaultWorkloadRanking()

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def open_for_conflict(
        db: AsyncSession,
        covered_leave: Leave,
        medical_leave: Leave,
        cover_employee: Employee,
    ) -> CoverDutyReassignment:
        """Record that *covered_leave* needs a new cover and alert the admins.

        *covered_leave* must be APPROVED and have its ``employee`` loaded.
        """
        if covered_leave.status != LeaveStatus.APPROVED:
            raise ValueError("Reassignments are only opened for APPROVED leaves")

        reassignment = CoverDutyReassignment(
            original_leave_id=covered_leave.id,
            cover_employee_leave_id=medical_leave.id,
            original_cover_employee_id=cover_employee.id,
            status=ReassignmentStatus.PENDING,
        )
        db.add(reassignment)
        await db.flush()

        await create_audit_entry(
            db,
            action="reassign_create",
            entity_type="cover_reassignment",
            entity_id=reassignment.id,
            actor_id=cover_employee.id,
            new_values={
                "original_leave_id": covered_leave.id,
                "cover_employee_leave_id": medical_leave.id,
                "status": ReassignmentStatus.PENDING,
            },
        )
        logger.info(
            "Opened reassignment %s: %s is on medical leave while covering leave %s",
            reassignment.id, cover_employee.id, covered_leave.id,
        )

        await dispatcher.dispatch(
            db,
            LeaveConflictDetected(
                reassignment_id=reassignment.id,
                original_leave_id=covered_leave.id,
                cover_employee_leave_id=medical_leave.id,
                original_cover_employee_id=cover_employee.id,
                original_cover_name=cover_employee.full_name,
                leave_owner_name=covered_leave.employee.full_name,
                original_start=covered_leave.start_date,
                original_end=covered_leave.end_date,
                medical_start=medical_leave.start_date,
                medical_end=medical_leave.end_date,
            ),
        )
        return reassignment

    # ── Read ────────────────────────────────────────────────────────

    @staticmethod
    async def _get(
        db: AsyncSession,
        reassignment_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> CoverDutyReassignment:
        query = select(CoverDutyReassignment).where(
            CoverDutyReassignment.id == reassignment_id
        )
        if for_update:
            query = query.with_for_update()
        reassignment = (await db.execute(query)).scalars().first()
        if reassignment is None:
            raise NotFoundException("CoverDutyReassignment", reassignment_id)
        return reassignment

    @staticmethod
    async def _build_out(
        db: AsyncSession,
        reassignments: list[CoverDutyReassignment],
    ) -> list[ReassignmentOut]:
        leave_ids = {r.original_leave_id for r in reassignments} | {
            r.cover_employee_leave_id for r in reassignments
        }
        leaves: dict[uuid.UUID, Leave] = {}
        if leave_ids:
            result = await db.execute(select(Leave).where(Leave.id.in_(list(leave_ids))))
            leaves = {leave.id: leave for leave in result.scalars().all()}

        employee_ids: list[uuid.UUID] = []
        for r in reassignments:
            employee_ids.append(r.original_cover_employee_id)
            if r.new_cover_employee_id:
                employee_ids.append(r.new_cover_employee_id)
        for leave in leaves.values():
            employee_ids.append(leave.employee_id)
            if leave.cover_employee_id:
                employee_ids.append(leave.cover_employee_id)
        employees = await EmployeeService.get_employees_by_ids(db, employee_ids)

        def _leave_out(leave_id: uuid.UUID) -> LeaveOut:
            leave = leaves[leave_id]
            return LeaveOut.build(
                leave,
                employees[leave.employee_id],
                employees.get(leave.cover_employee_id) if leave.cover_employee_id else None,
            )

        return [
            ReassignmentOut(
                id=r.id,
                status=r.status,
                original_leave=_leave_out(r.original_leave_id),
                cover_employee_leave=_leave_out(r.cover_employee_leave_id),
                original_cover_employee=EmployeeBrief.model_validate(
                    employees[r.original_cover_employee_id]
                ),
                new_cover_employee=(
                    EmployeeBrief.model_validate(employees[r.new_cover_employee_id])
                    if r.new_cover_employee_id
                    else None
                ),
                created_at=r.created_at,
                assigned_at=r.assigned_at,
            )
            for r in reassignments
        ]

    @staticmethod
    async def list_pending(db: AsyncSession) -> list[ReassignmentOut]:
        """PENDING reassignments, oldest first."""
        result = await db.execute(
            select(CoverDutyReassignment)
            .where(CoverDutyReassignment.status == ReassignmentStatus.PENDING)
            .order_by(CoverDutyReassignment.created_at)
        )
        return await ReassignmentService._build_out(db, list(result.scalars().all()))

    # ── Candidates ──────────────────────────────────────────────────

    @staticmethod
    async def list_candidates(
        db: AsyncSession,
        reassignment_id: uuid.UUID,
        *,
        strategy: Optional[RankingStrategy] = None,
        now: Optional[datetime] = None,
    ) -> CandidateListResult:
        """Rank active employees for the covered leave's date window.

        The leave owner and the cover being replaced are excluded; employees
        on APPROVED leave during the window are listed but not available.
        """
        now = now or utcnow()
        reassignment = await ReassignmentService._get(db, reassignment_id)
        original = await db.get(Leave, reassignment.original_leave_id)
        start, end = original.start_date, original.end_date

        employees = (
            await db.execute(
                select(Employee)
                .where(
                    Employee.is_active.is_(True),
                    Employee.role == UserRole.EMPLOYEE,
                    Employee.id.not_in(
                        [original.employee_id, reassignment.original_cover_employee_id]
                    ),
                )
                .order_by(Employee.first_name, Employee.last_name)
            )
        ).scalars().all()

        on_leave_ids = set(
            (
                await db.execute(
                    select(Leave.employee_id).where(
                        Leave.status == LeaveStatus.APPROVED,
                        *_overlapping(start, end),
                    )
                )
            ).scalars().all()
        )
        covering_counts = dict(
            (
                await db.execute(
                    select(Leave.cover_employee_id, func.count(Leave.id))
                    .where(
                        Leave.cover_employee_id.is_not(None),
                        Leave.status == LeaveStatus.APPROVED,
                        *_overlapping(start, end),
                    )
                    .group_by(Leave.cover_employee_id)
                )
            ).all()
        )
        pending_counts = dict(
            (
                await db.execute(
                    select(CoverRequest.cover_employee_id, func.count(CoverRequest.id))
                    .where(
                        CoverRequest.status == CoverRequestStatus.PENDING,
                        CoverRequest.expires_at > now,
                    )
                    .group_by(CoverRequest.cover_employee_id)
                )
            ).all()
        )

        candidates = [
            Candidate(
                id=emp.id,
                name=emp.full_name,
                employee_code=emp.employee_code,
                department=emp.department,
                covering_count=covering_counts.get(emp.id, 0),
                pending_cover_requests=pending_counts.get(emp.id, 0),
                on_leave=emp.id in on_leave_ids,
            )
            for emp in employees
        ]
        ranked = (strategy or ReassignmentService.ranking).rank(candidates)

        return CandidateListResult(
            reassignment_id=reassignment.id,
            start_date=start,
            end_date=end,
            candidates=[CandidateOut(**vars(c)) for c in ranked],
        )

    # ── Assign ──────────────────────────────────────────────────────

    @staticmethod
    async def assign_cover(
        db: AsyncSession,
        reassignment_id: uuid.UUID,
        new_cover_employee_id: uuid.UUID,
        actor: Employee,
        *,
        now: Optional[datetime] = None,
    ) -> ReassignmentOut:
        """Swap in a new cover for the original leave.

        The reassignment row is locked and the candidate re-checked before
        anything is written; a lost race raises StaleAssignmentException.
        """
        now = now or utcnow()
        reassignment = await ReassignmentService._get(db, reassignment_id, for_update=True)
        if reassignment.status != ReassignmentStatus.PENDING:
            raise StaleAssignmentException("This reassignment has already been resolved.")

        original = (
            await db.execute(
                select(Leave)
                .where(Leave.id == reassignment.original_leave_id)
                .options(selectinload(Leave.employee))
                .with_for_update()
            )
        ).scalars().first()
        if original.cover_employee_id != reassignment.original_cover_employee_id:
            raise StaleAssignmentException(
                "The leave's cover has already been changed by another reassignment."
            )

        candidate = await db.get(Employee, new_cover_employee_id)
        if candidate is None:
            raise NotFoundException("Employee", new_cover_employee_id)
        if candidate.id == reassignment.original_cover_employee_id:
            raise ValidationException(
                {"new_cover_employee_id": ["Choose someone other than the cover being replaced."]}
            )
        if not candidate.is_active:
            raise StaleAssignmentException(f"{candidate.full_name} is no longer active.")
        if candidate.id == original.employee_id:
            raise StaleAssignmentException(
                f"{candidate.full_name} owns the leave and cannot cover it."
            )
        busy = (
            await db.execute(
                select(Leave.id)
                .where(
                    Leave.employee_id == candidate.id,
                    Leave.status == LeaveStatus.APPROVED,
                    *_overlapping(original.start_date, original.end_date),
                )
                .limit(1)
            )
        ).scalars().first()
        if busy is not None:
            raise StaleAssignmentException(
                f"{candidate.full_name} is on approved leave during this period."
            )

        previous_cover_id = original.cover_employee_id
        original.cover_employee_id = candidate.id
        reassignment.status = ReassignmentStatus.ASSIGNED
        reassignment.new_cover_employee_id = candidate.id
        reassignment.assigned_by = actor.id
        reassignment.assigned_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="reassign_assign",
            entity_type="cover_reassignment",
            entity_id=reassignment.id,
            actor_id=actor.id,
            old_values={"status": ReassignmentStatus.PENDING},
            new_values={
                "status": ReassignmentStatus.ASSIGNED,
                "new_cover_employee_id": candidate.id,
            },
        )
        await create_audit_entry(
            db,
            action="reassign_assign",
            entity_type="leave",
            entity_id=original.id,
            actor_id=actor.id,
            old_values={"cover_employee_id": previous_cover_id},
            new_values={"cover_employee_id": candidate.id},
        )

        # Other open conflicts on the same leave and cover are settled too.
        siblings = (
            await db.execute(
                select(CoverDutyReassignment)
                .where(
                    CoverDutyReassignment.original_leave_id == original.id,
                    CoverDutyReassignment.original_cover_employee_id == previous_cover_id,
                    CoverDutyReassignment.status == ReassignmentStatus.PENDING,
                    CoverDutyReassignment.id != reassignment.id,
                )
                .with_for_update()
            )
        ).scalars().all()
        for sibling in siblings:
            sibling.status = ReassignmentStatus.ASSIGNED
            sibling.new_cover_employee_id = candidate.id
            sibling.assigned_by = actor.id
            sibling.assigned_at = now
            await create_audit_entry(
                db,
                action="reassign_resolve",
                entity_type="cover_reassignment",
                entity_id=sibling.id,
                actor_id=actor.id,
                old_values={"status": ReassignmentStatus.PENDING},
                new_values={
                    "status": ReassignmentStatus.ASSIGNED,
                    "new_cover_employee_id": candidate.id,
                    "resolved_by_reassignment_id": reassignment.id,
                },
            )
        original_cover = await db.get(Employee, reassignment.original_cover_employee_id)
        directors = await EmployeeService.list_active_admins(
            db, admin_types=[AdminType.MANAGING_DIRECTOR],
        )
        await notify_cover_reassigned(
            db,
            reassignment,
            original,
            leave_owner=original.employee,
            new_cover=candidate,
            original_cover=original_cover,
            actor=actor,
            directors=directors,
        )
        logger.info(
            "Reassignment %s resolved: leave %s now covered by %s",
            reassignment.id, original.id, candidate.id,
        )

        return (await ReassignmentService._build_out(db, [reassignment]))[0]
