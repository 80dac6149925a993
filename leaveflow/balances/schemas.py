"""Pydantic schemas for leave balances."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class LeaveBalanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_id: UUID
    leave_policy_id: UUID
    policy_name: str
    total_days: int
    carry_forward: int
    used_days: int
    remaining_days: int

    @classmethod
    def from_balance(cls, balance, policy_name: str) -> "LeaveBalanceOut":
        return cls(
            id=balance.id,
            employee_id=balance.employee_id,
            leave_policy_id=balance.leave_policy_id,
            policy_name=policy_name,
            total_days=balance.total_days,
            carry_forward=balance.carry_forward,
            used_days=balance.used_days,
            remaining_days=balance.remaining_days,
        )


class ProvisionResult(BaseModel):
    """Outcome of a provisioning call; existing balances are never touched."""

    created: int
    skipped: int
