"""Pydantic schemas for the holiday read API."""

from __future__ import annotations

from datetime import date
from datetime import date as date_type
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from leaveflow.common.constants import HolidayType


class HolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    date: date_type
    type: HolidayType
    recurring: bool


class BusinessDaysOut(BaseModel):
    start_date: date
    end_date: date
    business_days: int
