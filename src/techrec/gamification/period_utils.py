"""Date helpers for monthly points periods and daily streaks."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def add_months(dt: datetime, months: int = 1) -> datetime:
    """Same wall-clock time ``months`` later, clamping the day to the month length."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def next_reset_after(reset_date: datetime | None, now: datetime) -> datetime:
    """Advance ``reset_date`` by whole months until it is after ``now``."""
    if reset_date is None:
        return add_months(now, 1)
    candidate = as_utc(reset_date)
    while candidate <= now:
        candidate = add_months(candidate, 1)
    return candidate


def is_reset_due(reset_date: datetime | None, now: datetime) -> bool:
    """True when the monthly points period has ended."""
    return reset_date is None or now >= as_utc(reset_date)


def days_between(earlier: date, later: date) -> int:
    return (later - earlier).days


def is_weekend(dt: datetime) -> bool:
    return dt.weekday() >= 5


def is_new_year_week(dt: datetime) -> bool:
    """First seven days of January."""
    return dt.month == 1 and dt.day <= 7
