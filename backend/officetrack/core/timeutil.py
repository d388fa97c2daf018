"""Minute arithmetic and calendar-day helpers used by the clock engine and ledger."""

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional

MS_PER_MINUTE = 60_000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite hands them back without tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from ``start`` to ``end``, rounded half up."""
    delta = as_utc(end) - as_utc(start)
    ms = delta // timedelta(milliseconds=1)
    return (ms + MS_PER_MINUTE // 2) // MS_PER_MINUTE


def day_string(moment: datetime) -> str:
    return as_utc(moment).date().isoformat()


def minute_of_day(moment: datetime) -> int:
    moment = as_utc(moment)
    return moment.hour * 60 + moment.minute


def parse_day(value: str) -> Optional[date]:
    """Parse a strict ``YYYY-MM-DD`` string, returning None when malformed."""
    if not isinstance(value, str) or len(value) != 10:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5
