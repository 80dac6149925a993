"""Balance ledger: the only code path that changes ``LeaveBalance.used_days``.

Every mutation is one conditional UPDATE whose WHERE clause carries the
invariant ``0 <= used_days <= total_days``; a zero row count means the
guard refused the change. Concurrent reservations against the same balance
therefore serialize in the database and can never oversubscribe it.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Update, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from leaveflow.balances.models import LeaveBalance
from leaveflow.balances.schemas import LeaveBalanceOut, ProvisionResult
from leaveflow.common.audit import record_audit
from leaveflow.common.exceptions import (
    ConsistencyFault,
    InsufficientBalanceException,
    NotFoundException,
    ValidationException,
)
from leaveflow.config import settings
from leaveflow.organization.models import LeavePolicy, User

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# Guarded statement execution
# ═════════════════════════════════════════════════════════════════════

@retry(
    stop=stop_after_attempt(settings.LEDGER_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=0.05, max=1),
    retry=retry_if_exception_type(OperationalError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _apply(db: AsyncSession, stmt: Update) -> int:
    """Run a conditional UPDATE inside a savepoint and return the row count.

    Only ``OperationalError`` (lock timeouts, dropped connections) is
    retried; the savepoint keeps a failed attempt from poisoning the outer
    transaction.
    """
    async with db.begin_nested():
        result = await db.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BalanceLedger:
    """Reserve / release days against a (employee, policy) balance."""

    # ═════════════════════════════════════════════════════════════════
    # Lookups
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def find_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        policy_name: str,
        *,
        organization_id: uuid.UUID,
    ) -> Optional[LeaveBalance]:
        """Balance for the named policy, or ``None`` if never provisioned."""
        result = await db.execute(
            select(LeaveBalance)
            .join(LeavePolicy, LeaveBalance.leave_policy_id == LeavePolicy.id)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.organization_id == organization_id,
                LeavePolicy.organization_id == organization_id,
                LeavePolicy.name == policy_name,
            ),
        )
        return result.scalars().first()

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        policy_name: str,
        *,
        organization_id: uuid.UUID,
    ) -> LeaveBalance:
        balance = await BalanceLedger.find_balance(
            db, employee_id, policy_name, organization_id=organization_id,
        )
        if balance is None:
            raise NotFoundException("LeaveBalance", f"{employee_id}/{policy_name}")
        return balance

    @staticmethod
    async def list_for_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        organization_id: uuid.UUID,
    ) -> list[LeaveBalanceOut]:
        result = await db.execute(
            select(LeaveBalance, LeavePolicy.name)
            .join(LeavePolicy, LeaveBalance.leave_policy_id == LeavePolicy.id)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.organization_id == organization_id,
            )
            .order_by(LeavePolicy.name),
        )
        return [
            LeaveBalanceOut.from_balance(balance, name)
            for balance, name in result.all()
        ]

    # ═════════════════════════════════════════════════════════════════
    # Mutations
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def reserve(
        db: AsyncSession,
        employee_id: uuid.UUID,
        policy_name: str,
        days: int,
        *,
        organization_id: uuid.UUID,
    ) -> LeaveBalance:
        """Add *days* to ``used_days`` if, and only if, they fit.

        Raises ``InsufficientBalanceException`` (with requested vs available)
        when the guard refuses the update.
        """
        if days <= 0:
            raise ValidationException({"days": ["Reservation must be a positive number of days."]})

        balance = await BalanceLedger.get_balance(
            db, employee_id, policy_name, organization_id=organization_id,
        )
        stmt = (
            update(LeaveBalance)
            .where(
                LeaveBalance.id == balance.id,
                LeaveBalance.used_days + days <= LeaveBalance.total_days,
            )
            .values(used_days=LeaveBalance.used_days + days, updated_at=_utcnow())
        )
        updated = await _apply(db, stmt)
        await db.refresh(balance)

        if updated == 0:
            logger.info(
                "Reservation refused: employee=%s policy=%s requested=%d available=%d",
                employee_id, policy_name, days, balance.remaining_days,
            )
            raise InsufficientBalanceException(
                available=balance.remaining_days, requested=days,
            )

        logger.info(
            "Reserved %d day(s): employee=%s policy=%s used=%d/%d",
            days, employee_id, policy_name, balance.used_days, balance.total_days,
        )
        return balance

    @staticmethod
    async def release(
        db: AsyncSession,
        employee_id: uuid.UUID,
        policy_name: str,
        days: int,
        *,
        organization_id: uuid.UUID,
    ) -> LeaveBalance:
        """Subtract *days* from ``used_days``.

        A release larger than ``used_days`` is a bookkeeping error upstream.
        With ``LEDGER_STRICT`` it raises ``ConsistencyFault`` and the caller's
        transaction rolls back; otherwise ``used_days`` is clamped to 0. Both
        paths log at ERROR.
        """
        if days <= 0:
            raise ValidationException({"days": ["Release must be a positive number of days."]})

        balance = await BalanceLedger.get_balance(
            db, employee_id, policy_name, organization_id=organization_id,
        )
        stmt = (
            update(LeaveBalance)
            .where(
                LeaveBalance.id == balance.id,
                LeaveBalance.used_days >= days,
            )
            .values(used_days=LeaveBalance.used_days - days, updated_at=_utcnow())
        )
        updated = await _apply(db, stmt)
        await db.refresh(balance)

        if updated == 0:
            logger.error(
                "Ledger underflow: releasing %d day(s) from balance %s "
                "(employee=%s policy=%s) with only %d used",
                days, balance.id, employee_id, policy_name, balance.used_days,
            )
            if settings.LEDGER_STRICT:
                raise ConsistencyFault(
                    f"Cannot release {days} day(s) from '{policy_name}': "
                    f"only {balance.used_days} day(s) are in use.",
                )
            await _apply(
                db,
                update(LeaveBalance)
                .where(LeaveBalance.id == balance.id)
                .values(used_days=0, updated_at=_utcnow()),
            )
            await db.refresh(balance)
            return balance

        logger.info(
            "Released %d day(s): employee=%s policy=%s used=%d/%d",
            days, employee_id, policy_name, balance.used_days, balance.total_days,
        )
        return balance

    # ═════════════════════════════════════════════════════════════════
    # Provisioning
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    def _new_balance(user_id: uuid.UUID, policy: LeavePolicy) -> LeaveBalance:
        return LeaveBalance(
            organization_id=policy.organization_id,
            employee_id=user_id,
            leave_policy_id=policy.id,
            total_days=policy.max_days + policy.carry_forward,
            carry_forward=policy.carry_forward,
            used_days=0,
        )

    @staticmethod
    async def provision_for_policy(
        db: AsyncSession,
        policy: LeavePolicy,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> ProvisionResult:
        """Give every active member of the policy's organization a balance."""
        members = (
            await db.execute(
                select(User.id).where(
                    User.organization_id == policy.organization_id,
                    User.is_active.is_(True),
                ),
            )
        ).scalars().all()
        existing = set(
            (
                await db.execute(
                    select(LeaveBalance.employee_id).where(
                        LeaveBalance.leave_policy_id == policy.id,
                    ),
                )
            ).scalars().all()
        )

        missing = [uid for uid in members if uid not in existing]
        for user_id in missing:
            db.add(BalanceLedger._new_balance(user_id, policy))
        await db.flush()

        await record_audit(
            db,
            organization_id=policy.organization_id,
            action="provision",
            entity_type="leave_policy",
            entity_id=policy.id,
            actor_id=actor_id,
            new_state={"created": len(missing), "total_days": policy.max_days + policy.carry_forward},
        )
        logger.info(
            "Provisioned policy %s: created=%d skipped=%d",
            policy.name, len(missing), len(members) - len(missing),
        )
        return ProvisionResult(created=len(missing), skipped=len(members) - len(missing))

    @staticmethod
    async def provision_for_user(
        db: AsyncSession,
        user: User,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> ProvisionResult:
        """Give *user* a balance under every active policy of their organization."""
        policies = (
            await db.execute(
                select(LeavePolicy).where(
                    LeavePolicy.organization_id == user.organization_id,
                    LeavePolicy.active.is_(True),
                ),
            )
        ).scalars().all()
        existing = set(
            (
                await db.execute(
                    select(LeaveBalance.leave_policy_id).where(
                        LeaveBalance.employee_id == user.id,
                    ),
                )
            ).scalars().all()
        )

        missing = [p for p in policies if p.id not in existing]
        for policy in missing:
            db.add(BalanceLedger._new_balance(user.id, policy))
        await db.flush()

        await record_audit(
            db,
            organization_id=user.organization_id,
            action="provision",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor_id,
            new_state={"policies": [p.name for p in missing]},
        )
        logger.info(
            "Provisioned user %s: created=%d skipped=%d",
            user.id, len(missing), len(policies) - len(missing),
        )
        return ProvisionResult(created=len(missing), skipped=len(policies) - len(missing))
