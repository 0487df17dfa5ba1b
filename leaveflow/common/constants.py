"""Enums and constants for the leave workflow — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Employees / Roles ───────────────────────────────────────────────

class UserRole(str, enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    ADMIN = "ADMIN"


class AdminType(str, enum.Enum):
    HR_HEAD = "HR_HEAD"
    MANAGING_DIRECTOR = "MANAGING_DIRECTOR"
    HR_OFFICER = "HR_OFFICER"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    ANNUAL = "ANNUAL"
    CASUAL = "CASUAL"
    MEDICAL = "MEDICAL"
    OFFICIAL = "OFFICIAL"


class LeaveStatus(str, enum.Enum):
    PENDING_COVER = "PENDING_COVER"
    PENDING_ADMIN = "PENDING_ADMIN"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    COVER_DECLINED = "COVER_DECLINED"
    CANCELLED = "CANCELLED"


class HalfDayType(str, enum.Enum):
    FIRST_HALF = "FIRST_HALF"
    SECOND_HALF = "SECOND_HALF"


class CoverRequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"


class ReassignmentStatus(str, enum.Enum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"


# Statuses that still occupy the employee's calendar.
ACTIVE_LEAVE_STATUSES: tuple[LeaveStatus, ...] = (
    LeaveStatus.PENDING_COVER,
    LeaveStatus.PENDING_ADMIN,
    LeaveStatus.APPROVED,
)

# Statuses the employee may still cancel from.
CANCELLABLE_LEAVE_STATUSES: tuple[LeaveStatus, ...] = (
    LeaveStatus.PENDING_COVER,
    LeaveStatus.PENDING_ADMIN,
)


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    COVER_REQUEST = "COVER_REQUEST"
    COVER_ACCEPTED = "COVER_ACCEPTED"
    COVER_DECLINED = "COVER_DECLINED"
    LEAVE_REQUEST = "LEAVE_REQUEST"
    LEAVE_APPROVED = "LEAVE_APPROVED"
    LEAVE_DECLINED = "LEAVE_DECLINED"
    LEAVE_CANCELLED = "LEAVE_CANCELLED"
    COVER_REASSIGNMENT = "COVER_REASSIGNMENT"
    SYSTEM_ALERT = "SYSTEM_ALERT"


# ── Misc constants ──────────────────────────────────────────────────

DATE_FORMAT = "%d %b %Y"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
COVER_EXPIRED_RESPONSE = "Cover request expired"
