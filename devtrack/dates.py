"""
DevTrack - Date helpers

Every date-scoped store query goes through matches_date(). Two comparison
modes exist because entity types were historically matched differently and
the two are not equivalent around midnight in non-UTC timezones:

- PREFIX:   the UTC calendar date of the timestamp equals the requested day
- INTERVAL: the timestamp lies in [start_of_day, start_of_day + 1 day) where
            the day starts at midnight in the store's timezone
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from devtrack.exceptions import ConfigError, ValidationError


class DateMatch(str, Enum):
    """How a timestamp is compared against a YYYY-MM-DD day."""

    PREFIX = "prefix"
    INTERVAL = "interval"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_timezone(name: str) -> tzinfo:
    """Resolve an IANA timezone name."""
    if name.upper() in ("UTC", "Z"):
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown timezone '{name}'", {"error": str(e)})


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 string (a trailing Z is accepted) to an aware datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if not isinstance(value, str):
        raise ValidationError("Timestamp must be an ISO-8601 string", value=value)
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        return ensure_aware(datetime.fromisoformat(text))
    except ValueError:
        raise ValidationError(f"Invalid timestamp '{value}'", value=value)


def format_datetime(value: datetime | None) -> str | None:
    """Serialize as UTC ISO-8601 with millisecond precision, e.g. 2024-01-15T10:00:00.000Z."""
    if value is None:
        return None
    utc = ensure_aware(value).astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_date(value: str | date) -> date:
    """Parse a YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD", value=value)


def iso_date(value: datetime) -> str:
    """UTC calendar date of a timestamp as YYYY-MM-DD."""
    return ensure_aware(value).astimezone(timezone.utc).date().isoformat()


def today(tz: tzinfo = timezone.utc) -> str:
    """Today's date in the given timezone as YYYY-MM-DD."""
    return datetime.now(tz).date().isoformat()


def shift_date(day: str, days: int) -> str:
    """Add (or subtract) whole days to a YYYY-MM-DD string."""
    return (parse_date(day) + timedelta(days=days)).isoformat()


def day_bounds(day: str, tz: tzinfo = timezone.utc) -> tuple[datetime, datetime]:
    """Half-open [start, end) interval covering the day in the given timezone."""
    d = parse_date(day)
    start = datetime(d.year, d.month, d.day, tzinfo=tz)
    end = datetime.combine(d + timedelta(days=1), datetime.min.time(), tzinfo=tz)
    return start, end


def matches_date(
    value: datetime | None,
    day: str,
    mode: DateMatch,
    tz: tzinfo = timezone.utc,
) -> bool:
    """Check whether a timestamp falls on the given day under the given mode."""
    if value is None:
        return False
    if mode is DateMatch.PREFIX:
        return iso_date(value) == day
    start, end = day_bounds(day, tz)
    return start <= ensure_aware(value) < end


def in_date_range(value: datetime | None, start_day: str, end_day: str) -> bool:
    """Inclusive string comparison of the UTC date against [start_day, end_day]."""
    if value is None:
        return False
    d = iso_date(value)
    return start_day <= d <= end_day


def iter_days(start_day: str, end_day: str) -> Iterator[str]:
    """Yield every YYYY-MM-DD from start_day to end_day inclusive."""
    current = parse_date(start_day)
    last = parse_date(end_day)
    while current <= last:
        yield current.isoformat()
        current += timedelta(days=1)
