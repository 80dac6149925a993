"""Enums and constants for Leaveflow: persisted by name in the database."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    HR = "HR"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


# Roles that administer every request inside their organization
ORG_WIDE_ROLES: frozenset[UserRole] = frozenset({UserRole.ADMIN, UserRole.HR})

# Roles that may review (approve / reject) somebody else's request
REVIEWER_ROLES: frozenset[UserRole] = frozenset(
    {UserRole.ADMIN, UserRole.HR, UserRole.MANAGER},
)


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


# ── Holidays ────────────────────────────────────────────────────────

class HolidayType(str, enum.Enum):
    PUBLIC = "PUBLIC"
    COMPANY = "COMPANY"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    info = "info"
    action_required = "action_required"
    approval = "approval"
    alert = "alert"


# ── General ─────────────────────────────────────────────────────────

DATE_FORMAT = "%Y-%m-%d"
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
MAX_SPAN_DAYS = 365
