"""Calendar resolver: business-day arithmetic over an organization's holidays.

The counting functions are pure; only :func:`load_holidays` touches the
database.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.holiday.models import Holiday

# Saturday / Sunday
WEEKEND_DAYS: frozenset[int] = frozenset({5, 6})


@dataclass(frozen=True)
class HolidayCalendar:
    """Lookup structure built once per request from raw holiday inputs."""

    fixed: frozenset[date] = field(default_factory=frozenset)
    recurring: frozenset[tuple[int, int]] = field(default_factory=frozenset)

    @classmethod
    def from_holidays(cls, holidays: Iterable[Any]) -> "HolidayCalendar":
        """Accept ``Holiday`` rows, anything with ``date``/``recurring``, or bare dates."""
        if isinstance(holidays, HolidayCalendar):
            return holidays
        fixed: set[date] = set()
        recurring: set[tuple[int, int]] = set()
        for h in holidays:
            if isinstance(h, date):
                fixed.add(h)
            elif getattr(h, "recurring", False):
                recurring.add((h.date.month, h.date.day))
            else:
                fixed.add(h.date)
        return cls(fixed=frozenset(fixed), recurring=frozenset(recurring))

    def is_holiday(self, day: date) -> bool:
        return day in self.fixed or (day.month, day.day) in self.recurring


def is_business_day(day: date, holidays: Iterable[Any] = ()) -> bool:
    """A weekday that is not a holiday."""
    if day.weekday() in WEEKEND_DAYS:
        return False
    return not HolidayCalendar.from_holidays(holidays).is_holiday(day)


def count_business_days(
    start: date,
    end: date,
    holidays: Iterable[Any] = (),
) -> int:
    """Count business days in ``[start, end]``, both ends inclusive.

    Weekends and holidays are skipped. Zero is a valid answer (for instance a
    range that only covers a weekend); callers decide whether to reject it.
    An inverted range counts as zero.
    """
    calendar = HolidayCalendar.from_holidays(holidays)
    days = 0
    # Step by offset so an end of date.max never overflows
    for offset in range((end - start).days + 1):
        current = start + timedelta(days=offset)
        if current.weekday() not in WEEKEND_DAYS and not calendar.is_holiday(current):
            days += 1
    return days


async def load_holidays(
    db: AsyncSession,
    organization_id: uuid.UUID,
) -> list[Holiday]:
    """All holidays of the organization, ordered by date."""
    result = await db.execute(
        select(Holiday)
        .where(Holiday.organization_id == organization_id)
        .order_by(Holiday.date),
    )
    return list(result.scalars().all())
