"""UTC-everywhere time handling, with the agency's business timezone at the edges."""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

BUSINESS_TIMEZONE = "Africa/Conakry"


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime, tz_name: str = BUSINESS_TIMEZONE) -> datetime:
    """
    Convert UTC datetime to a local timezone for display or calendar logic.

    Args:
        dt: UTC datetime
        tz_name: IANA timezone name, defaults to the agency's timezone

    Raises:
        ValueError: If datetime is naive or timezone name is invalid
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime. Datetime must be timezone-aware."
        )

    try:
        local_tz = ZoneInfo(tz_name)
    except KeyError:
        raise ValueError(f"Unknown timezone: {tz_name}")

    return dt.astimezone(local_tz)


def business_year(dt: datetime | None = None, tz_name: str = BUSINESS_TIMEZONE) -> int:
    """Calendar year of `dt` (default: now) as seen from the agency's office."""
    return to_local(dt or now_utc(), tz_name).year


def parse_due_date(value: str, tz_name: str = BUSINESS_TIMEZONE) -> datetime:
    """
    Parse a due date sent by the client.

    Accepts a plain ISO date ("2026-03-31"), which is pinned to midnight in the
    business timezone, or a full ISO 8601 datetime with offset.

    Raises:
        ValueError: If the string is neither, or is a naive datetime
    """
    text = value.strip()
    if len(text) == 10:
        day = date.fromisoformat(text)
        local = datetime.combine(day, time.min, tzinfo=ZoneInfo(tz_name))
        return to_utc(local)
    return parse_iso(text)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Raises ValueError if string has no timezone info.
    """
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)
