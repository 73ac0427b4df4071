from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

DEFAULT_TZ = "UTC"

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def reference_tz(tz_name: str = DEFAULT_TZ) -> ZoneInfo:
    return ZoneInfo(tz_name)


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def local_date(dt: datetime, tz_name: str = DEFAULT_TZ) -> date:
    """Calendar date of ``dt`` in the reference timezone. Naive values are taken as already local."""
    if dt.tzinfo is None:
        return dt.date()
    return dt.astimezone(ZoneInfo(tz_name)).date()


def start_of_day(day: date, tz_name: str = DEFAULT_TZ) -> datetime:
    return datetime.combine(day, time.min, tzinfo=ZoneInfo(tz_name))


def day_bounds(day: date, tz_name: str = DEFAULT_TZ) -> tuple[datetime, datetime]:
    start = start_of_day(day, tz_name)
    return start, start + timedelta(days=1)


def days_between(earlier: date, later: date) -> int:
    return (later - earlier).days


def parse_iso_date(raw: str) -> date | None:
    value = raw.strip()
    if not ISO_DATE_PATTERN.fullmatch(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"
