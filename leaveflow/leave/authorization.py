"""Approval authorization: who may act on whose leave request."""

from __future__ import annotations

import uuid
from typing import Optional

from leaveflow.auth.principal import Principal
from leaveflow.common.constants import UserRole
from leaveflow.leave.models import LeaveRequest


def can_act(
    actor: Principal,
    request: LeaveRequest,
    employee_manager_id: Optional[uuid.UUID],
) -> bool:
    """True if *actor* may approve or reject *request*.

    ADMIN and HR may act on any request of their organization. A MANAGER
    may act only on requests of direct reports (one level, no chain).
    Nobody acts across organizations.
    """
    if actor.organization_id != request.organization_id:
        return False
    if actor.is_org_admin:
        return True
    if actor.role == UserRole.MANAGER:
        return employee_manager_id is not None and employee_manager_id == actor.user_id
    return False


def can_delete(actor: Principal, request: LeaveRequest) -> bool:
    return actor.is_org_admin and actor.organization_id == request.organization_id


def can_view_employee(
    actor: Principal,
    employee_id: uuid.UUID,
    employee_org_id: uuid.UUID,
    employee_manager_id: Optional[uuid.UUID],
) -> bool:
    """Self, org administrators, or the direct manager."""
    if actor.organization_id != employee_org_id:
        return False
    if actor.user_id == employee_id or actor.is_org_admin:
        return True
    return actor.role == UserRole.MANAGER and employee_manager_id == actor.user_id
