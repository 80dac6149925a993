"""Leave service layer: request lifecycle, eligibility, listings, stats.

Every public method runs inside the caller's session and never commits:
the request-scoped ``get_db`` dependency commits or rolls back the whole
unit of work, so a status transition and its ledger mutation are atomic.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.principal import Principal
from leaveflow.balances.ledger import BalanceLedger
from leaveflow.common.audit import record_audit
from leaveflow.common.constants import LeaveStatus, UserRole
from leaveflow.common.exceptions import (
    EligibilityException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from leaveflow.common.pagination import PaginatedResponse, paginate
from leaveflow.holiday.service import load_holidays
from leaveflow.leave.authorization import can_act, can_delete
from leaveflow.leave.eligibility import EligibilityResult, check_eligibility, overlap_reason
from leaveflow.leave.models import LeaveRequest
from leaveflow.leave.schemas import (
    EligibilityOut,
    LeaveEligibilityRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveStatsOut,
)
from leaveflow.leave.state_machine import LeaveStateMachine
from leaveflow.notifications.events import (
    LeaveApproved,
    LeaveCancelled,
    LeaveRejected,
    LeaveRequested,
)
from leaveflow.notifications.service import event_bus
from leaveflow.organization.models import LeavePolicy, User

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaveService:
    """Async leave request operations."""

    # ═════════════════════════════════════════════════════════════════
    # Internal lookups
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def _get_active_policy(
        db: AsyncSession,
        name: str,
        organization_id: uuid.UUID,
    ) -> LeavePolicy:
        result = await db.execute(
            select(LeavePolicy).where(
                LeavePolicy.organization_id == organization_id,
                LeavePolicy.name == name,
                LeavePolicy.active.is_(True),
            ),
        )
        policy = result.scalars().first()
        if policy is None:
            raise NotFoundException("LeavePolicy", name)
        return policy

    @staticmethod
    async def _lock_employee(db: AsyncSession, user_id: uuid.UUID) -> User:
        """Load the requester ``FOR UPDATE`` so one employee's creates serialize.

        The overlap rule spans every policy, so the lock sits on the user row
        rather than on a single balance row.
        """
        result = await db.execute(
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True),
        )
        user = result.scalars().first()
        if user is None:
            raise NotFoundException("User", str(user_id))
        return user

    @staticmethod
    async def _lock_request(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        """Load the request ``FOR UPDATE`` so concurrent transitions serialize."""
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True),
        )
        leave = result.scalars().first()
        if leave is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave

    @staticmethod
    async def _find_overlaps(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
    ) -> Sequence[LeaveRequest]:
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status.in_(LeaveStateMachine.HOLDS_RESERVATION),
                LeaveRequest.start_date <= end_date,
                LeaveRequest.end_date >= start_date,
            )
            .order_by(LeaveRequest.start_date),
        )
        return result.scalars().all()

    @staticmethod
    async def _validate_notify_users(
        db: AsyncSession,
        user_ids: Sequence[uuid.UUID],
        organization_id: uuid.UUID,
    ) -> list[uuid.UUID]:
        unique = list(dict.fromkeys(user_ids))
        if not unique:
            return []
        result = await db.execute(
            select(User.id).where(
                User.id.in_(unique),
                User.organization_id == organization_id,
                User.is_active.is_(True),
            ),
        )
        found = set(result.scalars().all())
        unknown = [str(u) for u in unique if u not in found]
        if unknown:
            raise ValidationException(
                {"notify_users": [f"Unknown user '{u}'." for u in unknown]},
            )
        return unique

    @staticmethod
    def _event_fields(leave: LeaveRequest, actor_id: uuid.UUID, now: datetime) -> dict[str, Any]:
        return dict(
            request_id=leave.id,
            employee_id=leave.employee_id,
            organization_id=leave.organization_id,
            actor_id=actor_id,
            leave_type=leave.type,
            start_date=leave.start_date,
            end_date=leave.end_date,
            days=leave.days,
            occurred_at=now,
        )

    @staticmethod
    async def _authorize_review(
        db: AsyncSession,
        principal: Principal,
        leave: LeaveRequest,
    ) -> None:
        employee = await db.get(User, leave.employee_id)
        manager_id = employee.manager_id if employee is not None else None
        if not can_act(principal, leave, manager_id):
            logger.info(
                "Review refused: actor=%s role=%s request=%s",
                principal.user_id, principal.role.value, leave.id,
            )
            raise ForbiddenException()

    # ═════════════════════════════════════════════════════════════════
    # Eligibility
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def _evaluate(
        db: AsyncSession,
        principal: Principal,
        policy: LeavePolicy,
        start_date: date,
        end_date: date,
        now: datetime,
    ) -> EligibilityResult:
        """Run every eligibility rule plus the overlap rule."""
        balance = await BalanceLedger.find_balance(
            db, principal.user_id, policy.name, organization_id=principal.organization_id,
        )
        holidays = await load_holidays(db, principal.organization_id)
        result = check_eligibility(start_date, end_date, policy, balance, holidays, now)

        if end_date < start_date:
            return result

        overlaps = await LeaveService._find_overlaps(db, principal.user_id, start_date, end_date)
        if not overlaps:
            return result

        reasons = list(result.reasons) + [
            overlap_reason(o.status.value, o.type, o.start_date, o.end_date)
            for o in overlaps
        ]
        return EligibilityResult(
            ok=False,
            days=result.days,
            reasons=reasons,
            available_days=result.available_days,
            earliest_start_date=result.earliest_start_date,
        )

    @staticmethod
    async def check_eligibility(
        db: AsyncSession,
        principal: Principal,
        data: LeaveEligibilityRequest,
        *,
        now: Optional[datetime] = None,
    ) -> EligibilityOut:
        """Dry run: same rules as ``create_leave``, nothing is written."""
        now = now or _utcnow()
        policy = await LeaveService._get_active_policy(db, data.type, principal.organization_id)
        result = await LeaveService._evaluate(
            db, principal, policy, data.start_date, data.end_date, now,
        )
        return EligibilityOut.model_validate(result)

    # ═════════════════════════════════════════════════════════════════
    # Lifecycle
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def create_leave(
        db: AsyncSession,
        principal: Principal,
        data: LeaveRequestCreate,
        *,
        now: Optional[datetime] = None,
    ) -> LeaveRequestOut:
        """Validate, reserve the days, and insert a PENDING request.

        Eligibility is recomputed here from server-side data; nothing the
        client computed is trusted. Policies that do not require approval
        are approved in the same transaction.
        """
        now = now or _utcnow()

        if data.end_date < data.start_date:
            raise ValidationException({"end_date": ["end date is before start date"]})

        policy = await LeaveService._get_active_policy(db, data.type, principal.organization_id)
        employee = await LeaveService._lock_employee(db, principal.user_id)
        notify_users = await LeaveService._validate_notify_users(
            db, data.notify_users, principal.organization_id,
        )

        verdict = await LeaveService._evaluate(
            db, principal, policy, data.start_date, data.end_date, now,
        )
        if not verdict.ok:
            logger.info(
                "Leave request rejected by eligibility: employee=%s type=%s reasons=%s",
                principal.user_id, policy.name, verdict.reasons,
            )
            raise EligibilityException(verdict.reasons)

        await BalanceLedger.reserve(
            db, principal.user_id, policy.name, verdict.days,
            organization_id=principal.organization_id,
        )

        leave = LeaveRequest(
            employee_id=principal.user_id,
            organization_id=principal.organization_id,
            type=policy.name,
            start_date=data.start_date,
            end_date=data.end_date,
            days=verdict.days,
            reason=data.reason,
            status=LeaveStatus.PENDING,
            approver_id=employee.manager_id,
            notify_users=[str(u) for u in notify_users],
            created_at=now,
            updated_at=now,
        )
        db.add(leave)
        await db.flush()

        await record_audit(
            db,
            organization_id=leave.organization_id,
            action="create",
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=principal.user_id,
            new_state={
                "type": leave.type,
                "start_date": str(leave.start_date),
                "end_date": str(leave.end_date),
                "days": leave.days,
                "status": leave.status.value,
            },
        )
        await event_bus.publish(
            db,
            LeaveRequested(
                **LeaveService._event_fields(leave, principal.user_id, now),
                approver_id=leave.approver_id,
                notify_users=tuple(notify_users),
            ),
        )
        logger.info(
            "Leave request %s created: employee=%s type=%s days=%d",
            leave.id, leave.employee_id, leave.type, leave.days,
        )

        if not policy.requires_approval:
            remarks = "Auto-approved: policy does not require approval."
            await LeaveService._transition(
                db, leave, LeaveStatus.APPROVED,
                actor_id=principal.user_id, now=now, action="approve", remarks=remarks,
            )
            await event_bus.publish(
                db,
                LeaveApproved(**LeaveService._event_fields(leave, principal.user_id, now), remarks=remarks),
            )

        return LeaveRequestOut.model_validate(leave)

    @staticmethod
    async def _transition(
        db: AsyncSession,
        leave: LeaveRequest,
        target: LeaveStatus,
        *,
        actor_id: uuid.UUID,
        now: datetime,
        action: str,
        remarks: Optional[str] = None,
        reviewer: bool = False,
    ) -> None:
        """Move *leave* to *target* and apply the paired ledger effect.

        The row must already be locked. A release failure propagates and
        rolls the status change back with the caller's transaction.
        """
        LeaveStateMachine.validate_transition(leave.status, target)

        old_status = leave.status
        leave.status = target
        leave.updated_at = now
        if reviewer:
            leave.approver_id = actor_id
        if reviewer or remarks is not None:
            leave.remarks = remarks
        await db.flush()

        if LeaveStateMachine.releases_on(target):
            await BalanceLedger.release(
                db, leave.employee_id, leave.type, leave.days,
                organization_id=leave.organization_id,
            )

        await record_audit(
            db,
            organization_id=leave.organization_id,
            action=action,
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=actor_id,
            prior_state={"status": old_status.value},
            new_state={"status": target.value, "remarks": remarks},
        )
        logger.info(
            "Leave request %s %s -> %s by %s",
            leave.id, old_status.value, target.value, actor_id,
        )

    @staticmethod
    async def approve_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        principal: Principal,
        *,
        remarks: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LeaveRequestOut:
        """PENDING → APPROVED. The reservation simply stays in place."""
        now = now or _utcnow()
        leave = await LeaveService._lock_request(db, request_id)
        await LeaveService._authorize_review(db, principal, leave)
        await LeaveService._transition(
            db, leave, LeaveStatus.APPROVED,
            actor_id=principal.user_id, now=now, action="approve",
            remarks=remarks, reviewer=True,
        )
        await event_bus.publish(
            db,
            LeaveApproved(**LeaveService._event_fields(leave, principal.user_id, now), remarks=remarks),
        )
        return LeaveRequestOut.model_validate(leave)

    @staticmethod
    async def reject_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        principal: Principal,
        *,
        remarks: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LeaveRequestOut:
        """PENDING → REJECTED and give the reserved days back."""
        now = now or _utcnow()
        leave = await LeaveService._lock_request(db, request_id)
        await LeaveService._authorize_review(db, principal, leave)
        await LeaveService._transition(
            db, leave, LeaveStatus.REJECTED,
            actor_id=principal.user_id, now=now, action="reject",
            remarks=remarks, reviewer=True,
        )
        await event_bus.publish(
            db,
            LeaveRejected(**LeaveService._event_fields(leave, principal.user_id, now), remarks=remarks),
        )
        return LeaveRequestOut.model_validate(leave)

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        principal: Principal,
        *,
        now: Optional[datetime] = None,
    ) -> LeaveRequestOut:
        """Requester withdraws a PENDING request; the days are released."""
        now = now or _utcnow()
        leave = await LeaveService._lock_request(db, request_id)
        if leave.employee_id != principal.user_id:
            raise ForbiddenException()
        await LeaveService._transition(
            db, leave, LeaveStatus.CANCELLED,
            actor_id=principal.user_id, now=now, action="cancel",
        )
        await event_bus.publish(
            db,
            LeaveCancelled(
                **LeaveService._event_fields(leave, principal.user_id, now),
                approver_id=leave.approver_id,
            ),
        )
        return LeaveRequestOut.model_validate(leave)

    @staticmethod
    async def delete_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        principal: Principal,
    ) -> None:
        """Remove a request (ADMIN / HR), releasing any reservation it holds.

        PENDING and APPROVED requests still hold their days; REJECTED and
        CANCELLED ones were released on transition and are removed as is.
        """
        leave = await LeaveService._lock_request(db, request_id)
        if not can_delete(principal, leave):
            raise ForbiddenException()

        if LeaveStateMachine.holds_reservation(leave.status):
            await BalanceLedger.release(
                db, leave.employee_id, leave.type, leave.days,
                organization_id=leave.organization_id,
            )

        await record_audit(
            db,
            organization_id=leave.organization_id,
            action="delete",
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=principal.user_id,
            prior_state={
                "employee_id": str(leave.employee_id),
                "type": leave.type,
                "days": leave.days,
                "status": leave.status.value,
            },
        )
        await db.delete(leave)
        await db.flush()
        logger.info("Leave request %s deleted by %s", request_id, principal.user_id)

    # ═════════════════════════════════════════════════════════════════
    # Listings
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    def _organization_scope(principal: Principal) -> Select:
        """Requests the principal may see beyond their own."""
        query = select(LeaveRequest).where(
            LeaveRequest.organization_id == principal.organization_id,
        )
        if principal.is_org_admin:
            return query
        if principal.role == UserRole.MANAGER:
            reports = select(User.id).where(User.manager_id == principal.user_id)
            return query.where(LeaveRequest.employee_id.in_(reports))
        raise ForbiddenException()

    @staticmethod
    async def get_my_leaves(
        db: AsyncSession,
        principal: Principal,
        *,
        status: Optional[LeaveStatus] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> PaginatedResponse[LeaveRequestOut]:
        query = select(LeaveRequest).where(LeaveRequest.employee_id == principal.user_id)
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        query = query.order_by(LeaveRequest.start_date.desc())
        items, meta = await paginate(
            db, query, page=page, page_size=page_size,
            transform=LeaveRequestOut.model_validate,
        )
        return PaginatedResponse[LeaveRequestOut](data=items, meta=meta)

    @staticmethod
    async def get_organization_leaves(
        db: AsyncSession,
        principal: Principal,
        *,
        status: Optional[LeaveStatus] = None,
        employee_id: Optional[uuid.UUID] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> PaginatedResponse[LeaveRequestOut]:
        """ADMIN / HR see the whole organization; managers see direct reports."""
        query = LeaveService._organization_scope(principal)
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if employee_id is not None:
            query = query.where(LeaveRequest.employee_id == employee_id)
        query = query.order_by(LeaveRequest.start_date.desc())
        items, meta = await paginate(
            db, query, page=page, page_size=page_size,
            transform=LeaveRequestOut.model_validate,
        )
        return PaginatedResponse[LeaveRequestOut](data=items, meta=meta)

    @staticmethod
    async def get_pending_approvals(
        db: AsyncSession,
        principal: Principal,
    ) -> list[LeaveRequestOut]:
        """PENDING requests the principal could approve right now, oldest first."""
        query = (
            LeaveService._organization_scope(principal)
            .where(
                LeaveRequest.status == LeaveStatus.PENDING,
                LeaveRequest.employee_id != principal.user_id,
            )
            .order_by(LeaveRequest.created_at.asc())
        )
        result = await db.execute(query)
        return [LeaveRequestOut.model_validate(r) for r in result.scalars().all()]

    # ═════════════════════════════════════════════════════════════════
    # Stats
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_stats(
        db: AsyncSession,
        principal: Principal,
        *,
        mine: bool = False,
    ) -> LeaveStatsOut:
        """Counts per status and approved-day total, for self or the visible scope."""
        if mine:
            scope = select(LeaveRequest.id).where(LeaveRequest.employee_id == principal.user_id)
        else:
            scope = LeaveService._organization_scope(principal).with_only_columns(LeaveRequest.id)

        result = await db.execute(
            select(
                LeaveRequest.status,
                func.count(LeaveRequest.id),
                func.coalesce(func.sum(LeaveRequest.days), 0),
            )
            .where(LeaveRequest.id.in_(scope))
            .group_by(LeaveRequest.status),
        )

        stats = LeaveStatsOut()
        for status, count, days in result.all():
            setattr(stats, status.value.lower(), count)
            stats.total += count
            if status == LeaveStatus.APPROVED:
                stats.approved_days = int(days)
        return stats
