"""
Deterministic billing occurrence engine.

Uses date only; datetimes are reduced to billing days by a BillingCalendar.

- occurrence_date: the Nth (0-based) billing date of a definition
- generate_projected_dates: billing dates inside [range_start, range_end]
  minus days already confirmed
- next_billing_date: first billing date on/after a reference date

Pure functions, no I/O. Walks are bounded by step caps; hitting a cap
truncates the result and logs a warning.
"""
import logging
from datetime import date, datetime, timedelta
from typing import AbstractSet

from subtracker.domain.billing_calendar import BillingCalendar, UTC_CALENDAR, clamped_date
from subtracker.domain.billing_cycle import (
    BillingCycleDefinition,
    Monthly, Yearly, SelectedMonths, CalendarMonths, OneTime, CustomDays,
    Paused, Cancelled,
)

logger = logging.getLogger(__name__)

SELECTED_MONTHS_MAX_STEPS = 20_000
SKIP_PHASE_MAX_STEPS = 20_000
TOTAL_MAX_STEPS = 40_000


def _monthly(anchor: date, interval: int, index: int) -> date | None:
    if interval < 1:
        return None
    month = anchor.month - 1 + interval * index
    return clamped_date(anchor.year + month // 12, month % 12 + 1, anchor.day)


def _yearly(anchor: date, interval: int, index: int) -> date | None:
    if interval < 1:
        return None
    return clamped_date(anchor.year + interval * index, anchor.month, anchor.day)


def _selected_months(anchor: date, months: tuple[int, ...], index: int) -> date | None:
    wanted = {m for m in months if 1 <= m <= 12}
    if not wanted:
        return None
    year, month = anchor.year, anchor.month
    hits = 0
    for _ in range(SELECTED_MONTHS_MAX_STEPS):
        if month in wanted:
            candidate = clamped_date(year, month, anchor.day)
            if candidate is None:
                return None
            if candidate >= anchor:
                if hits == index:
                    return candidate
                hits += 1
        month += 1
        if month > 12:
            month = 1
            year += 1
    return None


def _calendar_months(anchor: date, year_months: tuple[tuple[int, int], ...], index: int) -> date | None:
    candidates = sorted({
        d for d in (clamped_date(y, m, anchor.day) for y, m in year_months)
        if d is not None and d >= anchor
    })
    if index >= len(candidates):
        return None
    return candidates[index]


def _custom_days(anchor: date, interval_days: int, index: int) -> date | None:
    if interval_days < 1:
        return None
    try:
        return anchor + timedelta(days=interval_days * index)
    except OverflowError:
        return None


def occurrence_date(definition: BillingCycleDefinition, index: int) -> date | None:
    """Date of the index-th billing (0-based), or None when there is none."""
    if index < 0:
        return None
    anchor = definition.anchor_date
    cycle = definition.cycle
    if isinstance(cycle, Monthly):
        return _monthly(anchor, cycle.interval, index)
    if isinstance(cycle, Yearly):
        return _yearly(anchor, cycle.interval, index)
    if isinstance(cycle, SelectedMonths):
        return _selected_months(anchor, cycle.months, index)
    if isinstance(cycle, CalendarMonths):
        return _calendar_months(anchor, cycle.year_months, index)
    if isinstance(cycle, OneTime):
        return anchor if index == 0 else None
    if isinstance(cycle, CustomDays):
        return _custom_days(anchor, cycle.interval_days, index)
    raise ValueError(f"unhandled billing cycle: {cycle!r}")


def _cancellation_day(definition: BillingCycleDefinition, cal: BillingCalendar) -> date | None:
    status = definition.status
    if isinstance(status, Cancelled) and status.cancellation_date is not None:
        return cal.start_of_day(status.cancellation_date)
    return None


def generate_projected_dates(
    definition: BillingCycleDefinition,
    confirmed_dates: AbstractSet[date],
    range_start: date | datetime,
    range_end: date | datetime,
    calendar: BillingCalendar | None = None,
) -> list[date]:
    """Billing dates in [range_start, range_end] (inclusive) not in confirmed_dates.
    Deterministic, sorted ascending."""
    if isinstance(definition.status, Paused):
        return []

    cal = calendar or UTC_CALENDAR
    start = cal.start_of_day(range_start)
    end = cal.start_of_day(range_end)

    cancelled_on = _cancellation_day(definition, cal)
    if cancelled_on is not None:
        end = min(end, cancelled_on)
    if start > end:
        return []

    index = 0
    steps = 0
    occurrence = occurrence_date(definition, index)
    while occurrence is not None and occurrence < start:
        if steps >= SKIP_PHASE_MAX_STEPS:
            logger.warning(
                "Projection walk hit %d steps before reaching %s (anchor=%s), giving up",
                SKIP_PHASE_MAX_STEPS, start, definition.anchor_date,
            )
            return []
        index += 1
        steps += 1
        occurrence = occurrence_date(definition, index)

    out: list[date] = []
    while occurrence is not None and occurrence <= end:
        if steps >= TOTAL_MAX_STEPS:
            logger.warning(
                "Projection walk truncated at %d steps (anchor=%s, window %s..%s)",
                TOTAL_MAX_STEPS, definition.anchor_date, start, end,
            )
            break
        if occurrence not in confirmed_dates:
            out.append(occurrence)
        index += 1
        steps += 1
        occurrence = occurrence_date(definition, index)
    return out


def next_billing_date(
    definition: BillingCycleDefinition,
    reference_date: date | datetime,
    confirmed_dates: AbstractSet[date] = frozenset(),
    calendar: BillingCalendar | None = None,
) -> date | None:
    """First billing date on/after reference_date that is not already confirmed."""
    if isinstance(definition.status, Paused):
        return None

    cal = calendar or UTC_CALENDAR
    start = cal.start_of_day(reference_date)
    cancelled_on = _cancellation_day(definition, cal)
    if cancelled_on is not None and cancelled_on < start:
        return None

    index = 0
    occurrence = occurrence_date(definition, index)
    for _ in range(SKIP_PHASE_MAX_STEPS):
        if occurrence is None:
            return None
        if occurrence >= start and occurrence not in confirmed_dates:
            break
        index += 1
        occurrence = occurrence_date(definition, index)
    else:
        logger.warning(
            "Next billing date search hit %d steps (anchor=%s, reference=%s)",
            SKIP_PHASE_MAX_STEPS, definition.anchor_date, start,
        )
        return None

    if cancelled_on is not None and occurrence > cancelled_on:
        return None
    return occurrence
