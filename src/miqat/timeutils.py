from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def parse_hhmm(value: str) -> time:
    value = value.strip()
    parts: list[str]
    if ":" in value:
        parts = value.split(":", 1)
    elif "." in value:
        parts = value.split(".", 1)
    else:
        raise ValueError(f"Unsupported time format: {value}")
    hour = int(parts[0])
    minute = int(parts[1])
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time value: {value}")
    return time(hour=hour, minute=minute)


def format_hhmm(value: time | datetime) -> str:
    return value.strftime("%H:%M")


def shift_minutes(moment: datetime, minutes: int) -> datetime:
    return moment + timedelta(minutes=minutes)


def at_local_time(day: date, moment: time, tz: tzinfo) -> datetime:
    """Combine a calendar day and wall clock time into an aware datetime."""
    return datetime.combine(day, moment, tzinfo=tz)


def from_unix(value: float, tz: tzinfo) -> datetime:
    return datetime.fromtimestamp(value, tz)


def to_unix(moment: datetime) -> int:
    return int(moment.timestamp())


def resolve_timezone(tz_name: str | None) -> tzinfo:
    if tz_name:
        try:
            return ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return datetime.now().astimezone().tzinfo or ZoneInfo("UTC")
