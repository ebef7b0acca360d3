"""Day-key normalisation in a fixed reference timezone.

Stored timestamps are naive wall-clock values in the configured reference
timezone. Aware values are converted first; naive values are taken as-is.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Asia/Kolkata"
MS_PER_DAY = 86_400_000


def local_now(tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Return the current wall time in *tz_name* as a naive datetime."""

    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


def to_local(value: datetime, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)


def day_key(value: date | datetime, tz_name: str = DEFAULT_TIMEZONE) -> date:
    """Truncate *value* to its calendar day in the reference timezone."""

    if isinstance(value, datetime):
        return to_local(value, tz_name).date()
    return value


def start_of_day(value: date | datetime, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    return datetime.combine(day_key(value, tz_name), time.min)


def end_of_day(value: date | datetime, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    return datetime.combine(day_key(value, tz_name), time.max)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_start(value: date | datetime) -> date:
    return date(value.year, value.month, 1)


def add_months(value: date, months: int) -> date:
    """Shift *value* by whole months, clamping the day to the month length."""

    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(value.day, days_in_month(year, month)))


def month_diff(start: date | datetime, end: date | datetime) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def same_month(a: date | datetime, b: date | datetime) -> bool:
    return a.year == b.year and a.month == b.month


def month_key(value: date | datetime) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def elapsed_days(start: datetime, end: datetime) -> int:
    """Whole days between two timestamps, floored like an epoch-millis diff."""

    delta = end - start
    millis = delta.days * MS_PER_DAY + delta.seconds * 1000 + delta.microseconds // 1000
    return millis // MS_PER_DAY
