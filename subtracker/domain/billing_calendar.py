"""
Calendar arithmetic for billing dates.

Everything works on plain `date` values. Datetimes coming from outside are
reduced to a calendar day through an explicit BillingCalendar, so the result
never depends on the process-local timezone.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from zoneinfo import ZoneInfo


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamped_date(year: int, month: int, day: int) -> date | None:
    """Date in (year, month) with day clamped to the month length.

    Returns None when the target lies outside the supported date range.
    """
    if not 1 <= month <= 12 or not date.min.year <= year <= date.max.year:
        return None
    return date(year, month, min(day, last_day_of_month(year, month)))


def add_months(d: date, n: int) -> date:
    """Same day n months later (or earlier), clamped to the target month.

    add_months(date(2025, 1, 31), 1) -> date(2025, 2, 28)
    """
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    return date(year, month, min(d.day, last_day_of_month(year, month)))


def add_years(d: date, n: int) -> date:
    """Same month/day n years later; Feb 29 becomes Feb 28 in non-leap years."""
    year = d.year + n
    return date(year, d.month, min(d.day, last_day_of_month(year, d.month)))


@dataclass(frozen=True)
class BillingCalendar:
    """Timezone context used to turn instants into billing days."""
    timezone: tzinfo

    @classmethod
    def from_name(cls, name: str) -> "BillingCalendar":
        return cls(ZoneInfo(name))

    def start_of_day(self, value: date | datetime) -> date:
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(self.timezone)
            return value.date()
        return value

    def today(self, now: datetime | None = None) -> date:
        if now is None:
            now = datetime.now(tz=self.timezone)
        return self.start_of_day(now)


UTC_CALENDAR = BillingCalendar(ZoneInfo("UTC"))


def default_calendar() -> BillingCalendar:
    """Calendar built from Settings.TIMEZONE."""
    from subtracker.config import get_settings

    return BillingCalendar.from_name(get_settings().TIMEZONE)
