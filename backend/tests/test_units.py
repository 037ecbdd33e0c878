"""Tests for unit conversions and calendar-day projections."""

from datetime import date, datetime, timedelta, timezone

import pytest

from app.services.units import (
    date_range_bounds,
    meters_to_km,
    pace_from_distance_and_time,
    parse_date_string,
    parse_strava_datetime,
    speed_to_pace,
    to_calendar_date,
    week_start,
)

UTC_PLUS_8 = timezone(timedelta(hours=8))


class TestPace:
    @pytest.mark.parametrize(
        "distance_m, moving_time_s, expected",
        [
            (1000, 300, 300.0),
            (10000, 3600, 360.0),
            (0, 100, None),
            (1000, 0, None),
            (-5, 100, None),
            (None, 100, None),
            (float("nan"), 100, None),
            (float("inf"), 100, None),
        ],
    )
    def test_pace_from_distance_and_time(self, distance_m, moving_time_s, expected):
        assert pace_from_distance_and_time(distance_m, moving_time_s) == expected

    def test_speed_to_pace(self):
        assert speed_to_pace(4.0) == 250.0
        assert speed_to_pace(0) is None
        assert speed_to_pace(None) is None

    def test_meters_to_km(self):
        assert meters_to_km(5000) == 5.0


class TestCalendarProjection:
    def test_naive_datetimes_are_treated_as_utc(self):
        assert to_calendar_date(datetime(2026, 1, 1, 23, 30), timezone.utc) == "2026-01-01"

    def test_offset_moves_late_runs_to_next_day(self):
        assert to_calendar_date(datetime(2026, 1, 1, 20, 0), UTC_PLUS_8) == "2026-01-02"

    def test_week_start_is_monday(self):
        # 2026-01-04 is a Sunday
        assert week_start(datetime(2026, 1, 4, 12, 0), timezone.utc) == "2025-12-29"
        assert week_start(datetime(2026, 1, 5, 0, 0), timezone.utc) == "2026-01-05"

    def test_date_range_bounds_are_half_open_in_utc(self):
        lower, upper = date_range_bounds(date(2026, 1, 1), date(2026, 1, 31), UTC_PLUS_8)
        assert lower == datetime(2025, 12, 31, 16, 0)
        assert upper == datetime(2026, 1, 31, 16, 0)

    def test_date_range_bounds_open_ends(self):
        assert date_range_bounds(None, None, timezone.utc) == (None, None)


class TestParsing:
    def test_parse_date_string(self):
        assert parse_date_string("2024-02-29") == date(2024, 2, 29)

    @pytest.mark.parametrize("value", ["2024-2-1", "2023-02-29", "20240101", "", "2024-01-01T00:00"])
    def test_parse_date_string_rejects_invalid(self, value):
        with pytest.raises(ValueError):
            parse_date_string(value)

    def test_parse_strava_datetime_returns_naive_utc(self):
        assert parse_strava_datetime("2026-01-01T08:00:00Z") == datetime(2026, 1, 1, 8, 0)
        assert parse_strava_datetime("2026-01-01T09:00:00+01:00") == datetime(2026, 1, 1, 8, 0)
