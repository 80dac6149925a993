"""LeaveBalance ORM model."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaveflow.database import Base
from leaveflow.organization.models import LeavePolicy, User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaveBalance(Base):
    """Days granted and consumed for one employee under one policy.

    ``used_days`` is written only by ``BalanceLedger``; the CHECK constraints
    keep it inside ``[0, total_days]`` even if that contract is broken.
    """

    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "leave_policy_id", name="uq_leave_balance_employee_policy",
        ),
        sa.CheckConstraint("used_days >= 0", name="ck_leave_balance_used_non_negative"),
        sa.CheckConstraint("used_days <= total_days", name="ck_leave_balance_used_within_total"),
        sa.Index("ix_leave_balances_employee_id", "employee_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_policy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_policies.id", ondelete="RESTRICT"),
        nullable=False,
    )
    # max_days + carry_forward, snapshotted when the balance is provisioned
    total_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    carry_forward: Mapped[int] = mapped_column(sa.Integer, default=0)
    used_days: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    # Relationships
    employee: Mapped[User] = relationship(foreign_keys=[employee_id])
    policy: Mapped[LeavePolicy] = relationship(foreign_keys=[leave_policy_id])

    @property
    def remaining_days(self) -> int:
        return self.total_days - self.used_days

    def __repr__(self) -> str:
        return (
            f"<LeaveBalance employee={self.employee_id} policy={self.leave_policy_id} "
            f"{self.used_days}/{self.total_days}>"
        )
