"""
Billing cycle definitions.

A subscription's schedule is described by a BillingCycleDefinition:
anchor date (first billing) + cycle kind + status. Cycle kinds and statuses
are closed sets of frozen dataclasses, so a CustomDays cycle cannot carry a
month set and a Paused status cannot carry a cancellation date.

Kinds:
- Monthly: every N months on the anchor day
- Yearly: every N years on the anchor month/day
- SelectedMonths: every year in the listed months (1..12)
- CalendarMonths: explicit list of (year, month), finite
- OneTime: the anchor date only
- CustomDays: every N days
"""
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Union


YEAR_MONTH_MIN_YEAR = 1900
YEAR_MONTH_MAX_YEAR = 3000

CYCLE_MONTHLY = "MONTHLY"
CYCLE_YEARLY = "YEARLY"
CYCLE_SELECTED_MONTHS = "SELECTED_MONTHS"
CYCLE_CALENDAR_MONTHS = "CALENDAR_MONTHS"
CYCLE_ONE_TIME = "ONE_TIME"
CYCLE_CUSTOM_DAYS = "CUSTOM_DAYS"
VALID_CYCLES = frozenset({
    CYCLE_MONTHLY, CYCLE_YEARLY, CYCLE_SELECTED_MONTHS,
    CYCLE_CALENDAR_MONTHS, CYCLE_ONE_TIME, CYCLE_CUSTOM_DAYS,
})

STATUS_ACTIVE = "ACTIVE"
STATUS_PAUSED = "PAUSED"
STATUS_CANCELLED = "CANCELLED"
VALID_STATUSES = frozenset({STATUS_ACTIVE, STATUS_PAUSED, STATUS_CANCELLED})

_YEAR_MONTH_RE = re.compile(r"^\s*(\d+)-(\d+)\s*$")


# --- Cycle kinds ---

@dataclass(frozen=True)
class Monthly:
    interval: int = 1


@dataclass(frozen=True)
class Yearly:
    interval: int = 1


@dataclass(frozen=True)
class SelectedMonths:
    months: tuple[int, ...]

    @classmethod
    def of(cls, months: Iterable[int]) -> "SelectedMonths":
        return cls(normalize_months(months))


@dataclass(frozen=True)
class CalendarMonths:
    year_months: tuple[tuple[int, int], ...]

    @classmethod
    def of(cls, keys: Iterable[str]) -> "CalendarMonths":
        return cls(normalize_year_months(keys))


@dataclass(frozen=True)
class OneTime:
    pass


@dataclass(frozen=True)
class CustomDays:
    interval_days: int = 1


BillingCycle = Union[Monthly, Yearly, SelectedMonths, CalendarMonths, OneTime, CustomDays]


# --- Statuses ---

@dataclass(frozen=True)
class Active:
    pass


@dataclass(frozen=True)
class Paused:
    pass


@dataclass(frozen=True)
class Cancelled:
    cancellation_date: date | None = None


SubscriptionStatus = Union[Active, Paused, Cancelled]


@dataclass(frozen=True)
class BillingCycleDefinition:
    anchor_date: date
    cycle: BillingCycle
    status: SubscriptionStatus = Active()


# --- Year-month keys ("YYYY-MM") ---

def format_year_month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def parse_year_month_key(raw: str) -> tuple[int, int] | None:
    """Parse 'YYYY-MM' into (year, month). Out-of-range or garbage -> None."""
    if not isinstance(raw, str):
        return None
    m = _YEAR_MONTH_RE.match(raw)
    if not m:
        return None
    year, month = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        return None
    if not YEAR_MONTH_MIN_YEAR <= year <= YEAR_MONTH_MAX_YEAR:
        return None
    return year, month


def normalize_months(months: Iterable[int]) -> tuple[int, ...]:
    """Drop values outside 1..12, dedupe, sort."""
    return tuple(sorted({m for m in months if isinstance(m, int) and 1 <= m <= 12}))


def normalize_year_months(keys: Iterable[str]) -> tuple[tuple[int, int], ...]:
    """Parse keys, drop invalid ones, dedupe, sort chronologically."""
    parsed = {p for p in (parse_year_month_key(k) for k in keys) if p is not None}
    return tuple(sorted(parsed))


def normalize_year_month_keys(keys: Iterable[str]) -> list[str]:
    return [format_year_month_key(y, m) for y, m in normalize_year_months(keys)]


# --- Helpers for converting DB rows ---

def parse_selected_months(s: str | None) -> tuple[int, ...]:
    """Parse comma-separated month numbers (e.g. '1,3,7') into a normalized tuple."""
    if not s or not s.strip():
        return ()
    out: list[int] = []
    for part in s.split(","):
        part = part.strip()
        if part.isdigit():
            out.append(int(part))
    return normalize_months(out)


def serialize_selected_months(months: Iterable[int]) -> str:
    return ",".join(str(m) for m in normalize_months(months))


def parse_year_month_list(s: str | None) -> list[str]:
    """Parse comma-separated 'YYYY-MM' keys into a normalized list."""
    if not s or not s.strip():
        return []
    return normalize_year_month_keys(s.split(","))


def serialize_year_month_list(keys: Iterable[str]) -> str:
    return ",".join(normalize_year_month_keys(keys))


def status_from_db(status: str | None, cancellation_date: date | None) -> SubscriptionStatus:
    if status == STATUS_PAUSED:
        return Paused()
    if status == STATUS_CANCELLED:
        return Cancelled(cancellation_date)
    return Active()


def cycle_from_db(row) -> BillingCycle:
    """Build the cycle kind from a SubscriptionModel row (any object with matching attributes)."""
    kind = row.billing_cycle
    if kind == CYCLE_YEARLY:
        return Yearly(row.billing_interval)
    if kind == CYCLE_SELECTED_MONTHS:
        return SelectedMonths(parse_selected_months(row.selected_months))
    if kind == CYCLE_CALENDAR_MONTHS:
        return CalendarMonths(normalize_year_months(parse_year_month_list(row.selected_year_months)))
    if kind == CYCLE_ONE_TIME:
        return OneTime()
    if kind == CYCLE_CUSTOM_DAYS:
        return CustomDays(row.custom_days_interval or 1)
    return Monthly(row.billing_interval)


def definition_from_db(row) -> BillingCycleDefinition:
    """Build BillingCycleDefinition from a SubscriptionModel row."""
    return BillingCycleDefinition(
        anchor_date=row.first_billing_date,
        cycle=cycle_from_db(row),
        status=status_from_db(row.status, row.cancellation_date),
    )
