"""Tests for billing cycle definitions and year-month keys"""
from datetime import date
from types import SimpleNamespace

import pytest

from subtracker.domain.billing_cycle import (
    Monthly, Yearly, SelectedMonths, CalendarMonths, OneTime, CustomDays,
    Active, Paused, Cancelled,
    format_year_month_key, parse_year_month_key,
    normalize_months, normalize_year_month_keys,
    parse_selected_months, serialize_selected_months,
    parse_year_month_list, serialize_year_month_list,
    cycle_from_db, definition_from_db,
)


class TestYearMonthKeys:
    def test_format_zero_pads(self):
        assert format_year_month_key(2025, 3) == "2025-03"

    @pytest.mark.parametrize("raw,expected", [
        ("2025-03", (2025, 3)),
        (" 2025-3 ", (2025, 3)),
        ("1900-01", (1900, 1)),
        ("3000-12", (3000, 12)),
    ])
    def test_parse_valid(self, raw, expected):
        assert parse_year_month_key(raw) == expected

    @pytest.mark.parametrize("raw", ["2025-13", "2025-00", "1899-12", "3001-01", "2025/03", "abc", "", None])
    def test_parse_invalid(self, raw):
        assert parse_year_month_key(raw) is None

    def test_normalize_keys_dedupes_and_sorts(self):
        assert normalize_year_month_keys(["2026-02", "2025-01", "bad", "2025-1"]) == ["2025-01", "2026-02"]


class TestSelectedMonths:
    def test_normalize(self):
        assert normalize_months([10, 1, 3, 3, 0, 13]) == (1, 3, 10)

    def test_of(self):
        assert SelectedMonths.of([7, 1, 7]).months == (1, 7)

    def test_parse_and_serialize(self):
        assert parse_selected_months("10, 1,3,x,3") == (1, 3, 10)
        assert parse_selected_months("") == ()
        assert parse_selected_months(None) == ()
        assert serialize_selected_months([3, 1]) == "1,3"

    def test_year_month_list(self):
        assert parse_year_month_list("2025-03,2025-01") == ["2025-01", "2025-03"]
        assert parse_year_month_list("  ") == []
        assert serialize_year_month_list(["2025-10", "2025-02", "2025-02"]) == "2025-02,2025-10"


def _row(**kwargs):
    defaults = dict(
        first_billing_date=date(2025, 1, 10),
        status="ACTIVE",
        cancellation_date=None,
        billing_cycle="MONTHLY",
        billing_interval=1,
        custom_days_interval=None,
        selected_months="",
        selected_year_months="",
    )
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


class TestFromDb:
    @pytest.mark.parametrize("row,expected", [
        (_row(billing_interval=2), Monthly(2)),
        (_row(billing_cycle="YEARLY", billing_interval=3), Yearly(3)),
        (_row(billing_cycle="SELECTED_MONTHS", selected_months="7,1"), SelectedMonths((1, 7))),
        (_row(billing_cycle="CALENDAR_MONTHS", selected_year_months="2026-02,2025-01"),
         CalendarMonths(((2025, 1), (2026, 2)))),
        (_row(billing_cycle="ONE_TIME"), OneTime()),
        (_row(billing_cycle="CUSTOM_DAYS", custom_days_interval=14), CustomDays(14)),
    ])
    def test_cycle(self, row, expected):
        assert cycle_from_db(row) == expected

    def test_status(self):
        assert definition_from_db(_row()).status == Active()
        assert definition_from_db(_row(status="PAUSED")).status == Paused()
        cancelled = definition_from_db(_row(status="CANCELLED", cancellation_date=date(2025, 3, 1)))
        assert cancelled.status == Cancelled(date(2025, 3, 1))

    def test_anchor(self):
        assert definition_from_db(_row()).anchor_date == date(2025, 1, 10)
