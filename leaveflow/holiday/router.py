"""Holiday read API: calendar listing and business-day counter."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.auth.dependencies import get_current_user
from leaveflow.auth.principal import Principal
from leaveflow.common.constants import MAX_SPAN_DAYS
from leaveflow.common.exceptions import ValidationException
from leaveflow.database import get_db
from leaveflow.holiday.schemas import BusinessDaysOut, HolidayOut
from leaveflow.holiday.service import count_business_days, load_holidays

router = APIRouter(tags=["holidays"])


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=list[HolidayOut])
async def list_holidays(
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Holidays of the caller's organization."""
    holidays = await load_holidays(db, principal.organization_id)
    return [HolidayOut.model_validate(h) for h in holidays]


# ── GET /business-days ──────────────────────────────────────────────

@router.get("/business-days", response_model=BusinessDaysOut)
async def business_days(
    start_date: date = Query(...),
    end_date: date = Query(...),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Business days between two dates (inclusive) for the caller's organization."""
    if end_date < start_date:
        raise ValidationException({"end_date": ["end date is before start date"]})
    if (end_date - start_date).days > MAX_SPAN_DAYS:
        raise ValidationException(
            {"end_date": [f"range cannot span more than {MAX_SPAN_DAYS} days"]},
        )
    holidays = await load_holidays(db, principal.organization_id)
    return BusinessDaysOut(
        start_date=start_date,
        end_date=end_date,
        business_days=count_business_days(start_date, end_date, holidays),
    )
