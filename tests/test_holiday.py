"""Calendar resolver tests: business-day counting, recurring holidays,
holiday loading, and the holiday read API.
"""

from __future__ import annotations

from datetime import date, timedelta
from types import SimpleNamespace

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.holiday.service import (
    HolidayCalendar,
    count_business_days,
    is_business_day,
    load_holidays,
)
from tests.conftest import (
    auth_headers,
    seed_holiday,
    seed_organization,
    seed_user,
)


def _holiday(day: date, recurring: bool = False) -> SimpleNamespace:
    return SimpleNamespace(date=day, recurring=recurring)


# ═════════════════════════════════════════════════════════════════════
# 1. count_business_days
# ═════════════════════════════════════════════════════════════════════


class TestCountBusinessDays:
    """Pure counting over weekends and holidays."""

    def test_full_work_week(self):
        # Mon 2026-03-09 .. Fri 2026-03-13
        assert count_business_days(date(2026, 3, 9), date(2026, 3, 13)) == 5

    def test_single_weekday(self):
        assert count_business_days(date(2026, 3, 10), date(2026, 3, 10)) == 1

    def test_weekend_only_is_zero(self):
        # Sat 2026-03-07 .. Sun 2026-03-08
        assert count_business_days(date(2026, 3, 7), date(2026, 3, 8)) == 0

    def test_week_with_midweek_holiday(self):
        """Mon..Sun with a Wednesday holiday leaves 4 business days."""
        holidays = [_holiday(date(2026, 3, 4))]
        assert count_business_days(date(2026, 3, 2), date(2026, 3, 8), holidays) == 4

    def test_holiday_on_weekend_not_double_counted(self):
        holidays = [_holiday(date(2026, 3, 7))]
        assert count_business_days(date(2026, 3, 2), date(2026, 3, 8), holidays) == 5

    def test_recurring_holiday_matches_any_year(self):
        """A recurring 25 Dec registered in 2020 still applies in 2026."""
        holidays = [_holiday(date(2020, 12, 25), recurring=True)]
        # Mon 2026-12-21 .. Fri 2026-12-25
        assert count_business_days(date(2026, 12, 21), date(2026, 12, 25), holidays) == 4

    def test_non_recurring_holiday_only_matches_its_year(self):
        holidays = [_holiday(date(2025, 12, 25))]
        assert count_business_days(date(2026, 12, 21), date(2026, 12, 25), holidays) == 5

    def test_accepts_bare_dates(self):
        holidays = {date(2026, 3, 10), date(2026, 3, 11)}
        assert count_business_days(date(2026, 3, 9), date(2026, 3, 13), holidays) == 3

    def test_holiday_only_range(self):
        """A single weekday that is a holiday yields zero."""
        holidays = [_holiday(date(2026, 3, 9))]
        assert count_business_days(date(2026, 3, 9), date(2026, 3, 9), holidays) == 0

    def test_inverted_range_counts_zero(self):
        assert count_business_days(date(2026, 3, 13), date(2026, 3, 9)) == 0

    def test_deterministic(self):
        holidays = [_holiday(date(2026, 3, 4))]
        first = count_business_days(date(2026, 3, 1), date(2026, 3, 31), holidays)
        second = count_business_days(date(2026, 3, 1), date(2026, 3, 31), holidays)
        assert first == second == 21

    def test_range_ending_on_last_representable_date(self):
        # 9999-12-31 is a Friday
        assert count_business_days(date.max, date.max) == 1
        assert count_business_days(date.max - timedelta(days=6), date.max) == 5


class TestIsBusinessDay:
    def test_weekday(self):
        assert is_business_day(date(2026, 3, 9)) is True

    def test_saturday_and_sunday(self):
        assert is_business_day(date(2026, 3, 7)) is False
        assert is_business_day(date(2026, 3, 8)) is False

    def test_recurring_holiday(self):
        calendar = HolidayCalendar.from_holidays([_holiday(date(2000, 1, 1), recurring=True)])
        # Thu 2026-01-01
        assert calendar.is_holiday(date(2026, 1, 1)) is True
        assert is_business_day(date(2026, 1, 1), calendar) is False
        assert is_business_day(date(2026, 1, 2), calendar) is True


# ═════════════════════════════════════════════════════════════════════
# 2. load_holidays
# ═════════════════════════════════════════════════════════════════════


class TestLoadHolidays:
    async def test_scoped_to_organization(self, db: AsyncSession):
        org = await seed_organization(db)
        other = await seed_organization(db)
        await seed_holiday(db, org, date(2026, 3, 4), name="Founders Day")
        await seed_holiday(db, other, date(2026, 3, 5), name="Elsewhere")

        holidays = await load_holidays(db, org.id)

        assert [h.name for h in holidays] == ["Founders Day"]

    async def test_rows_feed_counting(self, db: AsyncSession):
        org = await seed_organization(db)
        await seed_holiday(db, org, date(2026, 3, 4))
        await seed_holiday(db, org, date(2019, 3, 6), recurring=True)

        holidays = await load_holidays(db, org.id)

        assert count_business_days(date(2026, 3, 2), date(2026, 3, 8), holidays) == 3


# ═════════════════════════════════════════════════════════════════════
# 3. API
# ═════════════════════════════════════════════════════════════════════


class TestHolidayAPI:
    async def test_list_and_count(self, db: AsyncSession, client: AsyncClient):
        org = await seed_organization(db)
        user = await seed_user(db, org)
        await seed_holiday(db, org, date(2026, 3, 4), name="Founders Day")
        await db.commit()

        resp = await client.get("/api/v1/holidays", headers=auth_headers(user))
        assert resp.status_code == 200
        assert resp.json()[0]["name"] == "Founders Day"

        resp = await client.get(
            "/api/v1/holidays/business-days",
            params={"start_date": "2026-03-02", "end_date": "2026-03-08"},
            headers=auth_headers(user),
        )
        assert resp.status_code == 200
        assert resp.json()["business_days"] == 4

    async def test_inverted_range_is_422(self, db: AsyncSession, client: AsyncClient):
        org = await seed_organization(db)
        user = await seed_user(db, org)
        await db.commit()

        start = date(2026, 3, 9)
        resp = await client.get(
            "/api/v1/holidays/business-days",
            params={"start_date": str(start), "end_date": str(start - timedelta(days=1))},
            headers=auth_headers(user),
        )
        assert resp.status_code == 422
        assert resp.headers["content-type"].startswith("application/problem+json")

    async def test_range_longer_than_a_year_is_422(self, db: AsyncSession, client: AsyncClient):
        org = await seed_organization(db)
        user = await seed_user(db, org)
        await db.commit()

        year = await client.get(
            "/api/v1/holidays/business-days",
            params={"start_date": "2026-01-01", "end_date": "2027-01-01"},
            headers=auth_headers(user),
        )
        assert year.status_code == 200

        for end in ("2027-01-02", "9999-12-30"):
            resp = await client.get(
                "/api/v1/holidays/business-days",
                params={"start_date": "2026-01-01", "end_date": end},
                headers=auth_headers(user),
            )
            assert resp.status_code == 422
            assert resp.headers["content-type"].startswith("application/problem+json")
            assert resp.json()["errors"]["end_date"] == ["range cannot span more than 365 days"]

    async def test_requires_auth(self, client: AsyncClient):
        resp = await client.get("/api/v1/holidays")
        assert resp.status_code == 401
