from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Aware UTC datetime. Naive values are taken to already be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_day(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def local_day_bounds(start_day: str | date, end_day: str | date | None = None, tz: str = "UTC") -> tuple[datetime, datetime]:
    """
    Half-open [start, end) in UTC: local midnight starting start_day up to the
    local midnight after end_day, in the given IANA timezone.
    """
    zone = ZoneInfo(tz)
    first = parse_day(start_day)
    last = parse_day(end_day) if end_day is not None else first
    start = datetime.combine(first, time.min, tzinfo=zone)
    end = datetime.combine(last + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_hour(dt: datetime, tz: str = "UTC") -> int:
    return as_utc(dt).astimezone(ZoneInfo(tz)).hour


def local_today(tz: str = "UTC") -> date:
    return datetime.now(ZoneInfo(tz)).date()


def days_ago(n: int, now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(days=n)
