"""
Tests for week boundary resolution (``payroll_kernel.domain.week``).

Invariants tested:
- week_start is midnight UTC on the configured weekday (0 = Sunday).
- week_end is exactly 6 days 23:59:59.999 after week_start.
- Two instants in the same worker week produce identical keys.
- Week numbering follows the calendar count from January 1, not ISO-8601.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from payroll_kernel.domain.week import (
    WeekBoundaries,
    get_week_boundaries,
    get_week_number_and_year,
    resolve_week,
    sunday_based_weekday,
    validate_week_start_day,
)
from payroll_kernel.exceptions import ValidationError

UTC = timezone.utc


class TestSundayBasedWeekday:
    def test_sunday_is_zero(self):
        assert sunday_based_weekday(date(2024, 1, 7)) == 0

    def test_saturday_is_six(self):
        assert sunday_based_weekday(date(2024, 1, 6)) == 6

    def test_monday_is_one(self):
        assert sunday_based_weekday(date(2024, 1, 1)) == 1


class TestGetWeekBoundaries:
    def test_tuesday_week_contains_wednesday(self):
        bounds = get_week_boundaries(datetime(2024, 1, 3, 15, 30, tzinfo=UTC), 2)
        assert bounds.week_start == datetime(2024, 1, 2, tzinfo=UTC)
        assert bounds.week_end == datetime(2024, 1, 8, 23, 59, 59, 999000, tzinfo=UTC)

    def test_start_day_itself_begins_the_week(self):
        bounds = get_week_boundaries(date(2024, 1, 2), 2)
        assert bounds.week_start == datetime(2024, 1, 2, tzinfo=UTC)

    def test_day_before_start_day_belongs_to_previous_week(self):
        bounds = get_week_boundaries(date(2024, 1, 1), 2)
        assert bounds.week_start == datetime(2023, 12, 26, tzinfo=UTC)

    def test_sunday_start(self):
        bounds = get_week_boundaries(date(2024, 1, 10), 0)
        assert bounds.week_start == datetime(2024, 1, 7, tzinfo=UTC)

    def test_saturday_start_crosses_year(self):
        bounds = get_week_boundaries(date(2024, 1, 1), 6)
        assert bounds.week_start == datetime(2023, 12, 30, tzinfo=UTC)
        assert bounds.end_date == date(2024, 1, 5)

    def test_naive_datetime_read_as_utc(self):
        naive = get_week_boundaries(datetime(2024, 1, 3, 23, 0), 2)
        aware = get_week_boundaries(datetime(2024, 1, 3, 23, 0, tzinfo=UTC), 2)
        assert naive == aware

    def test_offset_datetime_is_converted_to_utc_first(self):
        # 2024-01-02 01:00 at +05:00 is Monday 2024-01-01 20:00 UTC
        plus_five = timezone(timedelta(hours=5))
        bounds = get_week_boundaries(datetime(2024, 1, 2, 1, 0, tzinfo=plus_five), 2)
        assert bounds.week_start == datetime(2023, 12, 26, tzinfo=UTC)

    def test_last_millisecond_is_inside(self):
        bounds = get_week_boundaries(date(2024, 1, 3), 2)
        assert bounds.contains(datetime(2024, 1, 8, 23, 59, 59, 999000, tzinfo=UTC))
        assert not bounds.contains(datetime(2024, 1, 9, tzinfo=UTC))

    def test_span_is_fixed(self):
        bounds = get_week_boundaries(date(2024, 6, 15), 4)
        assert bounds.week_end - bounds.week_start == timedelta(
            days=6, hours=23, minutes=59, seconds=59, milliseconds=999
        )

    @pytest.mark.parametrize("bad", [-1, 7, 2.0, "2", True, None])
    def test_rejects_bad_week_start_day(self, bad):
        with pytest.raises(ValidationError):
            get_week_boundaries(date(2024, 1, 3), bad)


class TestValidateWeekStartDay:
    @pytest.mark.parametrize("day", range(7))
    def test_accepts_zero_to_six(self, day):
        assert validate_week_start_day(day) == day

    def test_error_carries_field(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_week_start_day(9)
        assert exc_info.value.field == "week_start_day"


class TestWeekNumbering:
    def test_week_containing_jan_first_is_week_one(self):
        assert get_week_number_and_year(datetime(2024, 1, 1, tzinfo=UTC)) == (1, 2024)

    def test_second_calendar_week(self):
        # 2024-01-07 is the first Sunday after Jan 1 (a Monday)
        assert get_week_number_and_year(date(2024, 1, 7)) == (2, 2024)

    def test_week_start_in_previous_year_keeps_that_year(self):
        week_number, year = get_week_number_and_year(date(2023, 12, 26))
        assert year == 2023
        assert week_number == 52

    def test_year_end_can_reach_week_53(self):
        # 2023-12-31 is a Sunday; Jan 1 2023 was also a Sunday
        assert get_week_number_and_year(date(2023, 12, 31)) == (53, 2023)


class TestResolveWeek:
    def test_key_fields(self):
        key = resolve_week(datetime(2024, 1, 3, 12, tzinfo=UTC), 2)
        assert key.week_start == datetime(2024, 1, 2, tzinfo=UTC)
        assert key.week_number == 1
        assert key.year == 2024
        assert key.week_start_day == 2
        assert isinstance(key.boundaries, WeekBoundaries)

    def test_every_day_of_a_week_resolves_to_the_same_key(self):
        keys = {
            resolve_week(date(2024, 3, 5) + timedelta(days=i), 2) for i in range(7)
        }
        assert len(keys) == 1

    def test_different_start_days_give_different_keys(self):
        a = resolve_week(date(2024, 3, 6), 0)
        b = resolve_week(date(2024, 3, 6), 3)
        assert a.week_start != b.week_start
