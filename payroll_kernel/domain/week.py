"""
Week boundary resolution.

Responsibility:
    Maps an instant to the pay week that contains it, for a worker-specific
    week start day.  This is the only function that derives the key of a
    weekly payment record: every writer and reader of payment records goes
    through ``resolve_week`` so that one logical week is one record.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - week_start is midnight UTC on a day whose weekday equals
      week_start_day (0 = Sunday ... 6 = Saturday).
    - week_start <= instant <= week_end, and week_end is exactly
      6 days 23:59:59.999 after week_start.
    - Two instants in the same worker week produce identical keys.

Failure modes:
    - ValidationError if week_start_day is outside 0..6.

Week numbering is a calendar week count from January 1 (the week that
contains Jan 1 is week 1, weeks split on Sunday).  It is NOT ISO-8601 and is
stored only for display and record compatibility.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from payroll_kernel.exceptions import ValidationError

DAYS_IN_WEEK = 7

# 6 days, 23:59:59.999
_WEEK_SPAN = timedelta(days=6, hours=23, minutes=59, seconds=59, milliseconds=999)


@dataclass(frozen=True)
class WeekBoundaries:
    """Inclusive UTC bounds of one pay week."""

    week_start: datetime
    week_end: datetime

    @property
    def start_date(self) -> date:
        return self.week_start.date()

    @property
    def end_date(self) -> date:
        return self.week_end.date()

    def contains(self, value: datetime | date) -> bool:
        instant = _as_utc_datetime(value)
        return self.week_start <= instant <= self.week_end


@dataclass(frozen=True)
class WeekKey:
    """Boundaries plus display numbering for one worker week."""

    week_start: datetime
    week_end: datetime
    week_number: int
    year: int
    week_start_day: int

    @property
    def boundaries(self) -> WeekBoundaries:
        return WeekBoundaries(self.week_start, self.week_end)


def sunday_based_weekday(d: date) -> int:
    """Weekday with Sunday = 0 and Saturday = 6."""
    return (d.weekday() + 1) % DAYS_IN_WEEK


def validate_week_start_day(week_start_day: int) -> int:
    if (
        isinstance(week_start_day, bool)
        or not isinstance(week_start_day, int)
        or not 0 <= week_start_day <= 6
    ):
        raise ValidationError(
            "week_start_day", f"must be an integer in 0..6, got {week_start_day!r}"
        )
    return week_start_day


def _as_utc_datetime(value: datetime | date) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    raise ValidationError("date", f"expected date or datetime, got {type(value).__name__}")


def get_week_boundaries(value: datetime | date, week_start_day: int) -> WeekBoundaries:
    """
    Return the pay week containing ``value``.

    Args:
        value: Any instant.  Naive datetimes are read as UTC.
        week_start_day: 0 = Sunday ... 6 = Saturday.

    Raises:
        ValidationError: week_start_day outside 0..6.
    """
    validate_week_start_day(week_start_day)
    day = _as_utc_datetime(value).date()
    offset = (sunday_based_weekday(day) - week_start_day + DAYS_IN_WEEK) % DAYS_IN_WEEK
    start_day = day - timedelta(days=offset)
    week_start = datetime.combine(start_day, time.min, tzinfo=timezone.utc)
    return WeekBoundaries(week_start=week_start, week_end=week_start + _WEEK_SPAN)


def get_week_number_and_year(week_start: datetime | date) -> tuple[int, int]:
    """Calendar week number (Jan 1 week is 1) and year of ``week_start``."""
    day = _as_utc_datetime(week_start).date()
    jan1 = date(day.year, 1, 1)
    past_days = (day - jan1).days
    week_number = math.ceil((past_days + sunday_based_weekday(jan1) + 1) / DAYS_IN_WEEK)
    return week_number, day.year


def resolve_week(value: datetime | date, week_start_day: int) -> WeekKey:
    """Boundaries and numbering for the worker week containing ``value``."""
    bounds = get_week_boundaries(value, week_start_day)
    week_number, year = get_week_number_and_year(bounds.week_start)
    return WeekKey(
        week_start=bounds.week_start,
        week_end=bounds.week_end,
        week_number=week_number,
        year=year,
        week_start_day=week_start_day,
    )
