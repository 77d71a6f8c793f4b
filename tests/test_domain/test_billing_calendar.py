"""Tests for billing calendar arithmetic"""
from datetime import date, datetime, timezone, timedelta

import pytest

from subtracker.domain.billing_calendar import (
    BillingCalendar, UTC_CALENDAR,
    last_day_of_month, clamped_date, add_months, add_years,
)


@pytest.mark.parametrize("year,month,expected", [
    (2025, 1, 31), (2025, 2, 28), (2024, 2, 29), (1900, 2, 28), (2000, 2, 29), (2025, 4, 30),
])
def test_last_day_of_month(year, month, expected):
    assert last_day_of_month(year, month) == expected


def test_clamped_date():
    assert clamped_date(2025, 2, 31) == date(2025, 2, 28)
    assert clamped_date(2025, 3, 31) == date(2025, 3, 31)


@pytest.mark.parametrize("year,month", [(2025, 0), (2025, 13), (10000, 1), (0, 1)])
def test_clamped_date_out_of_range(year, month):
    assert clamped_date(year, month, 1) is None


class TestAddMonths:
    def test_clamps_to_month_end(self):
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_anchor_day_not_carried_between_calls(self):
        # Jan 31 -> Feb 28 -> Mar 28: the helper only sees its input date
        assert add_months(add_months(date(2025, 1, 31), 1), 1) == date(2025, 3, 28)

    def test_crosses_year(self):
        assert add_months(date(2025, 11, 15), 3) == date(2026, 2, 15)

    def test_negative(self):
        assert add_months(date(2025, 3, 31), -1) == date(2025, 2, 28)
        assert add_months(date(2025, 1, 15), -13) == date(2023, 12, 15)

    def test_zero(self):
        assert add_months(date(2025, 5, 5), 0) == date(2025, 5, 5)


class TestAddYears:
    def test_leap_day(self):
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
        assert add_years(date(2024, 2, 29), 4) == date(2028, 2, 29)

    def test_regular_day(self):
        assert add_years(date(2025, 7, 14), -2) == date(2023, 7, 14)


class TestBillingCalendar:
    def test_date_passes_through(self):
        assert UTC_CALENDAR.start_of_day(date(2025, 1, 1)) == date(2025, 1, 1)

    def test_aware_datetime_converted_to_zone(self):
        tokyo = BillingCalendar.from_name("Asia/Tokyo")
        instant = datetime(2025, 1, 31, 16, 0, tzinfo=timezone.utc)
        assert tokyo.start_of_day(instant) == date(2025, 2, 1)
        assert UTC_CALENDAR.start_of_day(instant) == date(2025, 1, 31)

    def test_naive_datetime_taken_as_local_wall_time(self):
        tokyo = BillingCalendar.from_name("Asia/Tokyo")
        assert tokyo.start_of_day(datetime(2025, 1, 31, 23, 59)) == date(2025, 1, 31)

    def test_today_uses_given_now(self):
        cal = BillingCalendar(timezone(timedelta(hours=-5)))
        now = datetime(2025, 3, 1, 2, 0, tzinfo=timezone.utc)
        assert cal.today(now) == date(2025, 2, 28)
