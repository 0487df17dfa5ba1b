"""Leave workflow test suite — application checks, overlap, no-pay, the
cover/admin state machine, cancellation and covering-duty conflicts.

Service-level tests pass a fixed ``now`` so the expiry sweeper and the
date windows are deterministic.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.common.audit import AuditTrail
from leaveflow.common.constants import (
    AdminType,
    CoverRequestStatus,
    HalfDayType,
    LeaveStatus,
    LeaveType,
    NotificationType,
    ReassignmentStatus,
)
from leaveflow.common.exceptions import (
    CoveringConflictException,
    ForbiddenException,
    NotFoundException,
    OverlapException,
    ValidationException,
)
from leaveflow.config import settings
from leaveflow.database import commit_session
from leaveflow.leave.detection import find_covering_duties
from leaveflow.leave.models import CoverDutyReassignment, CoverRequest, Leave, LeaveBalance
from leaveflow.leave.schemas import LeaveApplyRequest
from leaveflow.leave.service import LeaveService
from leaveflow.notifications.models import Notification
from tests.conftest import (
    NOW,
    TODAY,
    next_monday,
    seed_admin,
    seed_balance,
    seed_employee,
    seed_leave,
)

MONDAY = next_monday(TODAY)  # 2026-03-09


# ═════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════


@dataclass
class People:
    applicant: object
    cover: object
    other: object
    admin: object


@pytest.fixture
async def people(db) -> People:
    return People(
        applicant=await seed_employee(db, first_name="Nimal", last_name="Perera"),
        cover=await seed_employee(db, first_name="Kamala", last_name="Silva"),
        other=await seed_employee(db, first_name="Ruwan", last_name="Fernando"),
        admin=await seed_admin(db, AdminType.HR_HEAD),
    )


def _request(
    leave_type: LeaveType,
    start,
    end=None,
    *,
    cover=None,
    **kwargs,
) -> LeaveApplyRequest:
    return LeaveApplyRequest(
        leave_type=leave_type,
        start_date=start,
        end_date=end or start,
        cover_employee_id=cover.id if cover is not None else None,
        reason="Family matters",
        **kwargs,
    )


async def _notifications(db: AsyncSession, recipient_id: uuid.UUID) -> list[Notification]:
    result = await db.execute(
        select(Notification)
        .where(Notification.recipient_id == recipient_id)
        .order_by(Notification.created_at)
    )
    return list(result.scalars().all())


async def _apply_and_accept(db, people: People, leave_type=LeaveType.ANNUAL, end=None):
    result = await LeaveService.apply_leave(
        db,
        people.applicant.id,
        _request(leave_type, MONDAY, end, cover=people.cover),
        now=NOW,
    )
    await LeaveService.respond_to_cover(
        db, result.cover_request.id, people.cover.id, accept=True, now=NOW,
    )
    return result


# ═════════════════════════════════════════════════════════════════════
# 1. Apply
# ═════════════════════════════════════════════════════════════════════


class TestApplyLeave:
    async def test_apply_creates_pending_cover_and_request(self, db, people):
        result = await LeaveService.apply_leave(
            db,
            people.applicant.id,
            _request(LeaveType.ANNUAL, MONDAY, MONDAY + timedelta(days=2), cover=people.cover),
            now=NOW,
        )

        assert result.leave.status == LeaveStatus.PENDING_COVER
        assert result.leave.total_days == Decimal("3")
        assert result.leave.is_no_pay is False
        assert result.cover_request.status == CoverRequestStatus.PENDING
        assert result.cover_request.expires_at == NOW + timedelta(hours=24)

        notes = await _notifications(db, people.cover.id)
        assert [n.type for n in notes] == [NotificationType.COVER_REQUEST]
        assert notes[0].related_id == result.leave.id

        actions = (
            await db.execute(
                select(AuditTrail.action).where(AuditTrail.entity_id == result.leave.id)
            )
        ).scalars().all()
        assert actions == ["apply"]

    async def test_total_days_derived_around_sunday(self, db, people):
        # Saturday .. Monday spans one Sunday
        saturday = MONDAY + timedelta(days=5)
        result = await LeaveService.apply_leave(
            db,
            people.applicant.id,
            _request(LeaveType.ANNUAL, saturday, saturday + timedelta(days=2), cover=people.cover),
            now=NOW,
        )
        assert result.leave.total_days == Decimal("2")

    async def test_mismatched_total_days_rejected(self, db, people):
        with pytest.raises(ValidationException) as exc:
            await LeaveService.apply_leave(
                db,
                people.applicant.id,
                _request(
                    LeaveType.ANNUAL, MONDAY, MONDAY + timedelta(days=2),
                    cover=people.cover, total_days=Decimal("2"),
                ),
                now=NOW,
            )
        assert "total_days" in exc.value.errors

    async def test_oversized_range_rejected(self, db, people):
        with pytest.raises(ValidationException) as exc:
            await LeaveService.apply_leave(
                db,
                people.applicant.id,
                _request(LeaveType.ANNUAL, MONDAY, date.max, cover=people.cover),
                now=NOW,
            )
        assert "end_date" in exc.value.errors

    async def test_back_dating_window_uses_company_date(self, db, people, monkeypatch):
        # 20:00 UTC on 2 March is already 3 March in Colombo
        evening = datetime(2026, 3, 2, 20, 0, tzinfo=timezone.utc)
        saturday = date(2026, 2, 28)

        monkeypatch.setattr(settings, "TIMEZONE", "Asia/Colombo")
        with pytest.raises(ValidationException) as exc:
            await LeaveService.apply_leave(
                db, people.applicant.id,
                _request(LeaveType.CASUAL, saturday, cover=people.cover), now=evening,
            )
        assert "start_date" in exc.value.errors

        monkeypatch.setattr(settings, "TIMEZONE", "UTC")
        result = await LeaveService.apply_leave(
            db, people.applicant.id,
            _request(LeaveType.CASUAL, saturday, cover=people.cover), now=evening,
        )
        assert result.leave.start_date == saturday

    async def test_half_day_casual(self, db, people):
        result = await LeaveService.apply_leave(
            db,
            people.applicant.id,
            _request(
                LeaveType.CASUAL, MONDAY, cover=people.cover,
                half_day_type=HalfDayType.FIRST_HALF,
            ),
            now=NOW,
        )
        assert result.leave.total_days == Decimal("0.5")
        assert result.leave.half_day_type == HalfDayType.FIRST_HALF

    async def test_official_goes_straight_to_admin(self, db, people):
        result = await LeaveService.apply_leave(
            db,
            people.applicant.id,
            # a supplied cover is ignored for official leave
            _request(LeaveType.OFFICIAL, TODAY + timedelta(days=1), cover=people.cover),
            now=NOW,
        )
        assert result.leave.status == LeaveStatus.PENDING_ADMIN
        assert result.leave.cover_employee is None
        assert result.cover_request is None

        admin_notes = await _notifications(db, people.admin.id)
        assert [n.type for n in admin_notes] == [NotificationType.LEAVE_REQUEST]
        assert await _notifications(db, people.cover.id) == []

    async def test_cannot_cover_yourself(self, db, people):
        with pytest.raises(ValidationException) as exc:
            await LeaveService.apply_leave(
                db,
                people.applicant.id,
                _request(LeaveType.CASUAL, MONDAY, cover=people.applicant),
                now=NOW,
            )
        assert "cover_employee_id" in exc.value.errors

    async def test_inactive_cover_not_found(self, db, people):
        gone = await seed_employee(db, first_name="Gone", is_active=False)
        with pytest.raises(NotFoundException):
            await LeaveService.apply_leave(
                db,
                people.applicant.id,
                _request(LeaveType.CASUAL, MONDAY, cover=gone),
                now=NOW,
            )

    async def test_probation_employee_cannot_take_annual(self, db, people):
        trainee = await seed_employee(db, first_name="Trainee", is_probation=True)
        with pytest.raises(ValidationException) as exc:
            await LeaveService.apply_leave(
                db,
                trainee.id,
                _request(LeaveType.ANNUAL, MONDAY, cover=people.cover),
                now=NOW,
            )
        assert "leave_type" in exc.value.errors

    async def test_no_working_days_rejected(self, db, people):
        sunday = MONDAY - timedelta(days=1)
        with pytest.raises(ValidationException) as exc:
            await LeaveService.apply_leave(
                db,
                people.applicant.id,
                _request(LeaveType.CASUAL, sunday, cover=people.cover),
                now=NOW,
            )
        assert "total_days" in exc.value.errors

    async def test_rejected_application_writes_nothing(self, db, people):
        with pytest.raises(ValidationException):
            await LeaveService.apply_leave(
                db,
                people.applicant.id,
                _request(LeaveType.CASUAL, MONDAY, cover=None),
                now=NOW,
            )
        leaves = (await db.execute(select(Leave))).scalars().all()
        assert leaves == []


# ═════════════════════════════════════════════════════════════════════
# 2. Overlap and no-pay
# ═════════════════════════════════════════════════════════════════════


class TestOverlapAndNoPay:
    async def test_overlap_with_pending_leave(self, db, people):
        existing = await seed_leave(
            db, people.applicant.id, MONDAY, MONDAY + timedelta(days=1),
            leave_type=LeaveType.ANNUAL, status=LeaveStatus.PENDING_ADMIN,
            cover_employee_id=people.cover.id,
        )
        with pytest.raises(OverlapException) as exc:
            await LeaveService.apply_leave(
                db,
                people.applicant.id,
                _request(LeaveType.CASUAL, MONDAY + timedelta(days=1), cover=people.cover),
                now=NOW,
            )
        assert exc.value.conflicting_leave["id"] == str(existing.id)
        assert exc.value.conflicting_leave["status"] == "PENDING_ADMIN"
        assert exc.value.status_code == 409

    async def test_touching_ranges_overlap(self, db, people):
        await seed_leave(
            db, people.applicant.id, MONDAY - timedelta(days=3), MONDAY,
            leave_type=LeaveType.ANNUAL, status=LeaveStatus.APPROVED,
            cover_employee_id=people.cover.id,
        )
        with pytest.raises(OverlapException):
            await LeaveService.apply_leave(
                db,
                people.applicant.id,
                _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
                now=NOW,
            )

    @pytest.mark.parametrize(
        "status",
        [LeaveStatus.DECLINED, LeaveStatus.COVER_DECLINED, LeaveStatus.CANCELLED],
    )
    async def test_inactive_leaves_do_not_block(self, db, people, status):
        await seed_leave(
            db, people.applicant.id, MONDAY, MONDAY,
            status=status, cover_employee_id=people.cover.id,
        )
        result = await LeaveService.apply_leave(
            db,
            people.applicant.id,
            _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        assert result.leave.status == LeaveStatus.PENDING_COVER

    async def test_no_pay_flag_and_pinned_alert(self, db, people):
        await seed_balance(db, people.applicant.id, year=2026, casual=Decimal("0.5"))
        result = await LeaveService.apply_leave(
            db,
            people.applicant.id,
            _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        assert result.leave.is_no_pay is True

        alerts = [
            n for n in await _notifications(db, people.applicant.id)
            if n.type == NotificationType.SYSTEM_ALERT
        ]
        assert len(alerts) == 1
        assert alerts[0].is_pinned is True

    async def test_balance_exactly_enough_is_paid(self, db, people):
        await seed_balance(db, people.applicant.id, year=2026, casual=Decimal("1"))
        result = await LeaveService.apply_leave(
            db,
            people.applicant.id,
            _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        assert result.leave.is_no_pay is False


# ═════════════════════════════════════════════════════════════════════
# 3. Cover response
# ═════════════════════════════════════════════════════════════════════


class TestCoverResponse:
    async def test_accept_moves_to_pending_admin(self, db, people):
        result = await LeaveService.apply_leave(
            db, people.applicant.id, _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        leave = await LeaveService.respond_to_cover(
            db, result.cover_request.id, people.cover.id, accept=True,
            now=NOW + timedelta(hours=2),
        )
        assert leave.status == LeaveStatus.PENDING_ADMIN

        cover_request = await db.get(CoverRequest, result.cover_request.id)
        assert cover_request.status == CoverRequestStatus.ACCEPTED
        assert cover_request.responded_at is not None

        applicant_types = [n.type for n in await _notifications(db, people.applicant.id)]
        assert NotificationType.COVER_ACCEPTED in applicant_types
        admin_types = [n.type for n in await _notifications(db, people.admin.id)]
        assert admin_types == [NotificationType.LEAVE_REQUEST]

    async def test_decline_requires_reason(self, db, people):
        result = await LeaveService.apply_leave(
            db, people.applicant.id, _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        with pytest.raises(ValidationException) as exc:
            await LeaveService.respond_to_cover(
                db, result.cover_request.id, people.cover.id, accept=False,
                reason="   ", now=NOW,
            )
        assert "reason" in exc.value.errors

    async def test_decline_moves_to_cover_declined(self, db, people):
        result = await LeaveService.apply_leave(
            db, people.applicant.id, _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        leave = await LeaveService.respond_to_cover(
            db, result.cover_request.id, people.cover.id, accept=False,
            reason="I am travelling that day", now=NOW,
        )
        assert leave.status == LeaveStatus.COVER_DECLINED
        assert leave.cover_response == "I am travelling that day"

        declined = [
            n for n in await _notifications(db, people.applicant.id)
            if n.type == NotificationType.COVER_DECLINED
        ]
        assert "I am travelling that day" in declined[0].message

    async def test_only_addressed_cover_may_respond(self, db, people):
        result = await LeaveService.apply_leave(
            db, people.applicant.id, _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        with pytest.raises(ForbiddenException):
            await LeaveService.respond_to_cover(
                db, result.cover_request.id, people.other.id, accept=True, now=NOW,
            )

    async def test_second_response_rejected(self, db, people):
        result = await _apply_and_accept(db, people, LeaveType.CASUAL)
        with pytest.raises(ValidationException):
            await LeaveService.respond_to_cover(
                db, result.cover_request.id, people.cover.id, accept=True, now=NOW,
            )

    async def test_unknown_cover_request(self, db, people):
        with pytest.raises(NotFoundException):
            await LeaveService.respond_to_cover(
                db, uuid.uuid4(), people.cover.id, accept=True, now=NOW,
            )


# ═════════════════════════════════════════════════════════════════════
# 4. Admin decision
# ═════════════════════════════════════════════════════════════════════


class TestAdminDecision:
    async def test_approve_deducts_balance_and_emails(self, db, people, mailbox):
        result = await _apply_and_accept(db, people, end=MONDAY + timedelta(days=2))

        leave = await LeaveService.approve_leave(
            db, result.leave.id, people.admin, response="Enjoy", now=NOW,
        )
        assert leave.status == LeaveStatus.APPROVED
        assert leave.admin_response == "Enjoy"
        assert leave.reviewed_at is not None

        balance = (
            await db.execute(
                select(LeaveBalance).where(LeaveBalance.employee_id == people.applicant.id)
            )
        ).scalars().one()
        assert balance.annual == Decimal("11")

        await commit_session(db)
        recipients = sorted(mail["to"] for mail in mailbox.sent)
        assert recipients == sorted([people.applicant.email, people.cover.email])
        subjects = {mail["subject"] for mail in mailbox.sent}
        assert "Your Annual leave has been approved" in subjects

    async def test_approve_requires_pending_admin(self, db, people):
        result = await LeaveService.apply_leave(
            db, people.applicant.id, _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        with pytest.raises(ValidationException):
            await LeaveService.approve_leave(db, result.leave.id, people.admin, now=NOW)

    async def test_decline_keeps_balance(self, db, people, mailbox):
        result = await _apply_and_accept(db, people, LeaveType.CASUAL)

        leave = await LeaveService.decline_leave(
            db, result.leave.id, people.admin, response="Busy week", now=NOW,
        )
        assert leave.status == LeaveStatus.DECLINED

        balance = (
            await db.execute(
                select(LeaveBalance).where(LeaveBalance.employee_id == people.applicant.id)
            )
        ).scalars().one()
        assert balance.casual == Decimal("7")

        applicant_types = [n.type for n in await _notifications(db, people.applicant.id)]
        assert NotificationType.LEAVE_DECLINED in applicant_types
        cover_types = [n.type for n in await _notifications(db, people.cover.id)]
        assert NotificationType.LEAVE_DECLINED in cover_types

        await commit_session(db)
        assert {mail["subject"] for mail in mailbox.sent} == {
            "Your Casual leave has been declined",
            f"No cover needed for {people.applicant.full_name}",
        }

    async def test_approvals_across_year_end_keep_newer_balance(self, db, people):
        await seed_balance(db, people.applicant.id, year=2026, annual=Decimal("14"))
        december = await seed_leave(
            db, people.applicant.id, date(2026, 12, 28), date(2026, 12, 29),
            leave_type=LeaveType.ANNUAL, status=LeaveStatus.PENDING_ADMIN,
            cover_employee_id=people.cover.id,
        )
        january = await seed_leave(
            db, people.applicant.id, date(2027, 1, 4), date(2027, 1, 8),
            leave_type=LeaveType.ANNUAL, status=LeaveStatus.PENDING_ADMIN,
            cover_employee_id=people.cover.id,
        )

        await LeaveService.approve_leave(db, january.id, people.admin, now=NOW)
        await LeaveService.approve_leave(db, december.id, people.admin, now=NOW)

        balance = (
            await db.execute(
                select(LeaveBalance).where(LeaveBalance.employee_id == people.applicant.id)
            )
        ).scalars().one()
        assert (balance.year, balance.annual) == (2027, Decimal("9"))

        entry = (
            await db.execute(
                select(AuditTrail).where(
                    AuditTrail.entity_id == december.id, AuditTrail.action == "approve",
                )
            )
        ).scalars().one()
        assert entry.new_values["deducted"] == "0"
        assert entry.new_values["deduction_skipped"] is True
        assert entry.new_values["balance_year"] == 2027

    async def test_terminal_states_reject_further_decisions(self, db, people):
        result = await _apply_and_accept(db, people, LeaveType.CASUAL)
        await LeaveService.approve_leave(db, result.leave.id, people.admin, now=NOW)
        with pytest.raises(ValidationException):
            await LeaveService.decline_leave(db, result.leave.id, people.admin, now=NOW)


# ═════════════════════════════════════════════════════════════════════
# 5. Cancel
# ═════════════════════════════════════════════════════════════════════


class TestCancelLeave:
    async def test_cancel_pending_notifies_cover(self, db, people):
        result = await LeaveService.apply_leave(
            db, people.applicant.id, _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        leave = await LeaveService.cancel_leave(db, result.leave.id, people.applicant.id, now=NOW)
        assert leave.status == LeaveStatus.CANCELLED

        cover_types = [n.type for n in await _notifications(db, people.cover.id)]
        assert cover_types == [NotificationType.COVER_REQUEST, NotificationType.LEAVE_CANCELLED]

    async def test_cancelled_leave_hidden_from_cover_queue(self, db, people):
        result = await LeaveService.apply_leave(
            db, people.applicant.id, _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        await LeaveService.cancel_leave(db, result.leave.id, people.applicant.id, now=NOW)

        queue = await LeaveService.list_cover_requests(db, people.cover.id, now=NOW)
        assert queue == []

    async def test_cannot_cancel_someone_elses_leave(self, db, people):
        result = await LeaveService.apply_leave(
            db, people.applicant.id, _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        with pytest.raises(ForbiddenException):
            await LeaveService.cancel_leave(db, result.leave.id, people.cover.id, now=NOW)

    async def test_cannot_cancel_approved(self, db, people):
        result = await _apply_and_accept(db, people, LeaveType.CASUAL)
        await LeaveService.approve_leave(db, result.leave.id, people.admin, now=NOW)
        with pytest.raises(ValidationException):
            await LeaveService.cancel_leave(db, result.leave.id, people.applicant.id, now=NOW)


# ═════════════════════════════════════════════════════════════════════
# 6. Covering-duty conflicts
# ═════════════════════════════════════════════════════════════════════


class TestCoveringConflict:
    async def _covered_leave(self, db, people) -> Leave:
        """Applicant on APPROVED annual leave Mon..Fri, covered by ``people.cover``."""
        return await seed_leave(
            db, people.applicant.id, MONDAY, MONDAY + timedelta(days=4),
            leave_type=LeaveType.ANNUAL, status=LeaveStatus.APPROVED,
            cover_employee_id=people.cover.id,
        )

    async def test_non_medical_leave_rejected(self, db, people):
        covered = await self._covered_leave(db, people)
        with pytest.raises(CoveringConflictException) as exc:
            await LeaveService.apply_leave(
                db,
                people.cover.id,
                _request(LeaveType.CASUAL, MONDAY + timedelta(days=2), cover=people.other),
                now=NOW,
            )
        duties = exc.value.covering_duties
        assert [d["leave_id"] for d in duties] == [str(covered.id)]
        assert duties[0]["employee_name"] == "Nimal Perera"
        assert exc.value.status_code == 409

    async def test_medical_leave_opens_reassignment(self, db, people):
        covered = await self._covered_leave(db, people)
        result = await LeaveService.apply_leave(
            db,
            people.cover.id,
            _request(LeaveType.MEDICAL, MONDAY + timedelta(days=2), cover=people.other),
            now=NOW,
        )
        assert result.leave.status == LeaveStatus.PENDING_COVER
        assert len(result.reassignment_ids) == 1

        reassignment = await db.get(CoverDutyReassignment, result.reassignment_ids[0])
        assert reassignment.status == ReassignmentStatus.PENDING
        assert reassignment.original_leave_id == covered.id
        assert reassignment.cover_employee_leave_id == result.leave.id
        assert reassignment.original_cover_employee_id == people.cover.id

        alerts = [
            n for n in await _notifications(db, people.admin.id)
            if n.type == NotificationType.COVER_REASSIGNMENT
        ]
        assert len(alerts) == 1
        assert alerts[0].is_pinned is True
        assert alerts[0].related_id == reassignment.id

    async def test_pending_cover_duty_does_not_conflict(self, db, people):
        await seed_leave(
            db, people.applicant.id, MONDAY, MONDAY + timedelta(days=4),
            leave_type=LeaveType.ANNUAL, status=LeaveStatus.PENDING_ADMIN,
            cover_employee_id=people.cover.id,
        )
        result = await LeaveService.apply_leave(
            db,
            people.cover.id,
            _request(LeaveType.CASUAL, MONDAY + timedelta(days=2), cover=people.other),
            now=NOW,
        )
        assert result.reassignment_ids == []

    async def test_duty_window_boundaries(self, db, people):
        covered = await self._covered_leave(db, people)
        friday = MONDAY + timedelta(days=4)

        # starts inside, ends inside, spans, and disjoint
        assert await find_covering_duties(db, people.cover.id, friday, friday + timedelta(days=3))
        assert await find_covering_duties(
            db, people.cover.id, MONDAY - timedelta(days=3), MONDAY,
        )
        spanning = await find_covering_duties(
            db, people.cover.id, MONDAY - timedelta(days=1), friday + timedelta(days=1),
        )
        assert [leave.id for leave in spanning] == [covered.id]
        assert await find_covering_duties(
            db, people.cover.id, friday + timedelta(days=1), friday + timedelta(days=3),
        ) == []


# ═════════════════════════════════════════════════════════════════════
# 7. Queries
# ═════════════════════════════════════════════════════════════════════


class TestQueries:
    async def test_get_leave_visibility(self, db, people):
        result = await LeaveService.apply_leave(
            db, people.applicant.id, _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        for viewer in (people.applicant, people.cover, people.admin):
            leave = await LeaveService.get_leave(db, result.leave.id, viewer)
            assert leave.id == result.leave.id
        with pytest.raises(ForbiddenException):
            await LeaveService.get_leave(db, result.leave.id, people.other)

    async def test_cover_queue_excludes_expired(self, db, people):
        await LeaveService.apply_leave(
            db, people.applicant.id, _request(LeaveType.CASUAL, MONDAY, cover=people.cover),
            now=NOW,
        )
        fresh = await LeaveService.list_cover_requests(
            db, people.cover.id, now=NOW + timedelta(hours=23),
        )
        assert len(fresh) == 1
        assert fresh[0].leave.employee.first_name == "Nimal"

        stale = await LeaveService.list_cover_requests(
            db, people.cover.id, now=NOW + timedelta(hours=25),
        )
        assert stale == []
