"""Organization ORM models: Organization, User, LeavePolicy.

These rows are owned by the identity / admin side of the product. The leave
core only reads them.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leaveflow.common.constants import UserRole
from leaveflow.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    code: Mapped[str] = mapped_column(sa.String(50), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )

    # Relationships
    members: Mapped[list[User]] = relationship(back_populates="organization")
    policies: Mapped[list[LeavePolicy]] = relationship(back_populates="organization")


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        sa.Index("ix_users_organization_id", "organization_id"),
        sa.Index("ix_users_manager_id", "manager_id"),
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
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.EMPLOYEE,
    )
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )

    # Relationships
    organization: Mapped[Organization] = relationship(back_populates="members")
    manager: Mapped[Optional[User]] = relationship(
        remote_side="User.id", foreign_keys=[manager_id],
    )

    def __repr__(self) -> str:
        return f"<User {self.email} {self.role.value}>"


class LeavePolicy(Base):
    """A named leave type for one organization.

    Deactivate with ``active=False`` instead of deleting; balances keep
    pointing at the row.
    """

    __tablename__ = "leave_policies"
    __table_args__ = (
        sa.UniqueConstraint("organization_id", "name", name="uq_leave_policy_org_name"),
        sa.CheckConstraint("max_days >= 0", name="ck_leave_policy_max_days"),
        sa.CheckConstraint("carry_forward >= 0", name="ck_leave_policy_carry_forward"),
        sa.CheckConstraint("min_notice >= 0", name="ck_leave_policy_min_notice"),
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
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    max_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    carry_forward: Mapped[int] = mapped_column(sa.Integer, default=0)
    requires_approval: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    min_notice: Mapped[int] = mapped_column(sa.Integer, default=0)
    active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow,
    )

    # Relationships
    organization: Mapped[Organization] = relationship(back_populates="policies")

    def __repr__(self) -> str:
        return f"<LeavePolicy {self.name} max={self.max_days}>"
