"""Leave Pydantic v2 schemas: request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leaveflow.common.constants import MAX_SPAN_DAYS, LeaveStatus


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Create / dry run
# ═════════════════════════════════════════════════════════════════════


class LeaveEligibilityRequest(BaseModel):
    """Dry-run payload. Date order is reported as an eligibility reason."""

    type: str = Field(..., min_length=1, max_length=100, description="Leave policy name")
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")

    @model_validator(mode="after")
    def validate_span(self) -> "LeaveEligibilityRequest":
        if (self.end_date - self.start_date).days > MAX_SPAN_DAYS:
            raise ValueError(f"Leave request cannot span more than {MAX_SPAN_DAYS} days.")
        return self


class LeaveRequestCreate(LeaveEligibilityRequest):
    """Payload for applying for leave."""

    reason: Optional[str] = Field(None, max_length=1000, description="Reason for leave")
    notify_users: list[uuid.UUID] = Field(
        default_factory=list,
        description="Colleagues to inform about the request",
    )


class LeaveDecisionRequest(BaseModel):
    """Payload for approve / reject."""

    remarks: Optional[str] = Field(None, max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Response
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    organization_id: uuid.UUID
    type: str
    start_date: date
    end_date: date
    days: int
    reason: Optional[str] = None
    status: LeaveStatus
    approver_id: Optional[uuid.UUID] = None
    remarks: Optional[str] = None
    notify_users: list[uuid.UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class EligibilityOut(BaseModel):
    """Dry-run verdict. ``reasons`` lists every violated rule."""

    model_config = ConfigDict(from_attributes=True)

    ok: bool
    days: int
    reasons: list[str]
    available_days: int
    earliest_start_date: Optional[date] = None


class LeaveStatsOut(BaseModel):
    """Request counts per status plus approved day total."""

    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    cancelled: int = 0
    approved_days: int = 0
