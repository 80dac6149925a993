"""Eligibility checker for prospective leave requests.

Pure: the caller supplies the policy, the balance and the holidays, plus the
current time. Every rule is evaluated so the requester sees all problems at
once. The same function backs the dry-run endpoint and the authoritative
check inside ``LeaveService.create_leave``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional, Union

from leaveflow.holiday.service import count_business_days

REASON_NO_BUSINESS_DAYS = "no business days in range"
REASON_START_IN_PAST = "start date is in the past"
REASON_END_BEFORE_START = "end date is before start date"


@dataclass(frozen=True)
class EligibilityResult:
    ok: bool
    days: int
    reasons: list[str] = field(default_factory=list)
    available_days: int = 0
    earliest_start_date: Optional[date] = None


def _as_date(now: Union[date, datetime]) -> date:
    return now.date() if isinstance(now, datetime) else now


def check_eligibility(
    start_date: date,
    end_date: date,
    policy: Any,
    balance: Any,
    holidays: Iterable[Any],
    now: Union[date, datetime],
) -> EligibilityResult:
    """Evaluate a prospective request.

    Args:
        start_date / end_date: inclusive range.
        policy: anything with ``name`` and ``min_notice``.
        balance: anything with ``remaining_days``; ``None`` counts as 0 available.
        holidays: the organization's holidays (rows or dates).
        now: current instant; only its calendar date is used.

    Returns:
        ``EligibilityResult`` with ``ok`` false and one reason per violated rule.
    """
    today = _as_date(now)
    reasons: list[str] = []
    available = balance.remaining_days if balance is not None else 0

    inverted = end_date < start_date
    days = 0 if inverted else count_business_days(start_date, end_date, holidays)

    if not inverted and days == 0:
        reasons.append(REASON_NO_BUSINESS_DAYS)

    if days > available:
        reasons.append(f"insufficient balance: {available} available, {days} requested")

    earliest: Optional[date] = None
    min_notice = policy.min_notice or 0
    if min_notice > 0:
        earliest = today + timedelta(days=min_notice)
        notice_days = (start_date - today).days
        if notice_days < min_notice:
            reasons.append(
                f"insufficient advance notice: {policy.name} requires {min_notice} "
                f"day(s) notice, earliest permissible start date is {earliest.isoformat()}",
            )

    if start_date < today:
        reasons.append(REASON_START_IN_PAST)

    if inverted:
        reasons.append(REASON_END_BEFORE_START)

    return EligibilityResult(
        ok=not reasons,
        days=days,
        reasons=reasons,
        available_days=available,
        earliest_start_date=earliest,
    )


def overlap_reason(
    status_value: str,
    policy_name: str,
    start_date: date,
    end_date: date,
) -> str:
    return (
        f"overlaps an existing {status_value.lower()} {policy_name} leave "
        f"from {start_date.isoformat()} to {end_date.isoformat()}"
    )
