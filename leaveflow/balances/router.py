"""Leave balance router: own balances, employee balances, provisioning."""


import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.dependencies import get_current_user, require_role
from leaveflow.auth.principal import Principal
from leaveflow.balances.ledger import BalanceLedger
from leaveflow.balances.schemas import LeaveBalanceOut, ProvisionResult
from leaveflow.common.constants import UserRole
from leaveflow.common.exceptions import ForbiddenException, NotFoundException
from leaveflow.database import get_db
from leaveflow.leave.authorization import can_view_employee
from leaveflow.organization.models import LeavePolicy, User

router = APIRouter(prefix="", tags=["leave-balances"])

_org_admin = require_role(UserRole.ADMIN, UserRole.HR)


# ── GET /me ─────────────────────────────────────────────────────────

@router.get("/me", response_model=list[LeaveBalanceOut])
async def my_balances(
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's balance under every provisioned policy."""
    return await BalanceLedger.list_for_employee(
        db, principal.user_id, organization_id=principal.organization_id,
    )


# ── GET /employees/{id} ─────────────────────────────────────────────

@router.get("/employees/{employee_id}", response_model=list[LeaveBalanceOut])
async def employee_balances(
    employee_id: uuid.UUID,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    employee = await db.get(User, employee_id)
    if employee is None:
        raise NotFoundException("User", str(employee_id))
    if not can_view_employee(principal, employee.id, employee.organization_id, employee.manager_id):
        raise ForbiddenException()
    return await BalanceLedger.list_for_employee(
        db, employee.id, organization_id=employee.organization_id,
    )


# ── POST /policies/{id}/provision ───────────────────────────────────

@router.post("/policies/{policy_id}/provision", response_model=ProvisionResult)
async def provision_policy(
    policy_id: uuid.UUID,
    principal: Principal = Depends(_org_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a balance under this policy for every active member lacking one."""
    policy = await db.get(LeavePolicy, policy_id)
    if policy is None or policy.organization_id != principal.organization_id:
        raise NotFoundException("LeavePolicy", str(policy_id))
    return await BalanceLedger.provision_for_policy(db, policy, actor_id=principal.user_id)


# ── POST /users/{id}/provision ──────────────────────────────────────

@router.post("/users/{user_id}/provision", response_model=ProvisionResult)
async def provision_user(
    user_id: uuid.UUID,
    principal: Principal = Depends(_org_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create balances for every active policy the member lacks."""
    user = await db.get(User, user_id)
    if user is None or user.organization_id != principal.organization_id:
        raise NotFoundException("User", str(user_id))
    return await BalanceLedger.provision_for_user(db, user, actor_id=principal.user_id)
