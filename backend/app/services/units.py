"""Unit conversions and calendar-day projections.

All calendar bucketing (summary filters, weekly grouping, the daily
calendar) goes through :func:`to_calendar_date` and :func:`week_start`
with the same fixed offset, so a run near midnight lands on the same day
everywhere.
"""

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

DATE_FORMAT = "%Y-%m-%d"


def _is_positive_number(value) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number > 0


def meters_to_km(meters: float) -> float:
    return meters / 1000


def pace_from_distance_and_time(distance_m, moving_time_s) -> Optional[float]:
    """
    Pace in seconds per kilometre from a distance and a duration.

    Returns None when either input is missing, non-finite or not positive.

    Example:
        >>> pace_from_distance_and_time(1000, 300)
        300.0
    """
    if not _is_positive_number(distance_m) or not _is_positive_number(moving_time_s):
        return None
    return float(moving_time_s) * 1000 / float(distance_m)


def speed_to_pace(speed_mps) -> Optional[float]:
    """Pace in seconds per kilometre from a speed in m/s, None if not positive."""
    if not _is_positive_number(speed_mps):
        return None
    return 1000 / float(speed_mps)


def as_utc(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_calendar_date(instant: datetime, tz: timezone) -> str:
    """Project an instant onto a YYYY-MM-DD calendar day in ``tz``."""
    return as_utc(instant).astimezone(tz).strftime(DATE_FORMAT)


def week_start(instant: datetime, tz: timezone) -> str:
    """Monday of the ISO week containing ``instant``, as YYYY-MM-DD in ``tz``."""
    local_day = as_utc(instant).astimezone(tz).date()
    return (local_day - timedelta(days=local_day.weekday())).strftime(DATE_FORMAT)


def parse_date_string(value: str) -> date:
    """
    Parse a strict YYYY-MM-DD string.

    Raises:
        ValueError: If the value is not a valid calendar date in that format
    """
    if not isinstance(value, str) or len(value) != 10:
        raise ValueError(f"Invalid date: {value!r}. Expected format YYYY-MM-DD.")
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}. Expected format YYYY-MM-DD.")


def day_start_utc(day: date, tz: timezone) -> datetime:
    """Naive UTC datetime of local midnight at the start of ``day``."""
    local_midnight = datetime.combine(day, time.min, tzinfo=tz)
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)


def date_range_bounds(
    from_date: Optional[date],
    to_date: Optional[date],
    tz: timezone,
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Convert an inclusive local date range into half-open naive UTC bounds.

    Returns:
        (lower, upper) where rows match ``lower <= start_date < upper``;
        either side is None when the range is open on that side.
    """
    lower = day_start_utc(from_date, tz) if from_date else None
    upper = day_start_utc(to_date + timedelta(days=1), tz) if to_date else None
    return lower, upper


def parse_strava_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp from Strava into a naive UTC datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return as_utc(parsed).replace(tzinfo=None)
