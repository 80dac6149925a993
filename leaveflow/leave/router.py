"""Leave router: apply, dry-run eligibility, approve/reject/cancel/delete, listings.

All endpoints require authentication. Reviewer endpoints enforce role checks
here and per-request authorization in the service.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.dependencies import get_current_user, require_role
from leaveflow.auth.principal import Principal
from leaveflow.common.constants import LeaveStatus, UserRole
from leaveflow.common.pagination import PaginatedResponse, PaginationParams
from leaveflow.common.rate_limit import limiter
from leaveflow.database import get_db
from leaveflow.leave.schemas import (
    EligibilityOut,
    LeaveDecisionRequest,
    LeaveEligibilityRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveStatsOut,
)
from leaveflow.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])

_reviewer = require_role(UserRole.ADMIN, UserRole.HR, UserRole.MANAGER)


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", response_model=LeaveRequestOut, status_code=201)
@limiter.limit("30/minute")
async def create_leave(
    request: Request,
    body: LeaveRequestCreate,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. Eligibility is re-checked and the days are reserved."""
    return await LeaveService.create_leave(db, principal, body)


# ── POST /eligibility ───────────────────────────────────────────────

@router.post("/eligibility", response_model=EligibilityOut)
async def check_eligibility(
    body: LeaveEligibilityRequest,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Dry run. Reports every rule the request would violate; writes nothing."""
    return await LeaveService.check_eligibility(db, principal, body)


# ── GET /my ─────────────────────────────────────────────────────────

@router.get("/my", response_model=PaginatedResponse[LeaveRequestOut])
async def my_leaves(
    status: Optional[LeaveStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's own leave requests, newest first."""
    return await LeaveService.get_my_leaves(
        db,
        principal,
        status=status,
        page=pagination.page,
        page_size=pagination.page_size,
    )


# ── GET /my/stats ───────────────────────────────────────────────────

@router.get("/my/stats", response_model=LeaveStatsOut)
async def my_stats(
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_stats(db, principal, mine=True)


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[LeaveRequestOut])
async def organization_leaves(
    status: Optional[LeaveStatus] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    principal: Principal = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    """Organization requests (ADMIN/HR) or direct reports' requests (MANAGER)."""
    return await LeaveService.get_organization_leaves(
        db,
        principal,
        status=status,
        employee_id=employee_id,
        page=pagination.page,
        page_size=pagination.page_size,
    )


# ── GET /stats ──────────────────────────────────────────────────────

@router.get("/stats", response_model=LeaveStatsOut)
async def organization_stats(
    principal: Principal = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_stats(db, principal)


# ── GET /pending-approvals ──────────────────────────────────────────

@router.get("/pending-approvals", response_model=list[LeaveRequestOut])
async def pending_approvals(
    principal: Principal = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    """PENDING requests the caller is allowed to decide on."""
    return await LeaveService.get_pending_approvals(db, principal)


# ── PATCH /{id}/approve ─────────────────────────────────────────────

@router.patch("/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    body: Optional[LeaveDecisionRequest] = None,
    principal: Principal = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.approve_leave(
        db, request_id, principal, remarks=body.remarks if body else None,
    )


# ── PATCH /{id}/reject ──────────────────────────────────────────────

@router.patch("/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    body: Optional[LeaveDecisionRequest] = None,
    principal: Principal = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    """Reject and release the reserved days back to the balance."""
    return await LeaveService.reject_leave(
        db, request_id, principal, remarks=body.remarks if body else None,
    )


# ── PATCH /{id}/cancel ──────────────────────────────────────────────

@router.patch("/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    request_id: uuid.UUID,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Requester withdraws a pending request."""
    return await LeaveService.cancel_leave(db, request_id, principal)


# ── DELETE /{id} ────────────────────────────────────────────────────

@router.delete("/{request_id}", status_code=204)
async def delete_leave(
    request_id: uuid.UUID,
    principal: Principal = Depends(require_role(UserRole.ADMIN, UserRole.HR)),
    db: AsyncSession = Depends(get_db),
):
    await LeaveService.delete_leave(db, request_id, principal)
    return Response(status_code=204)
