"""Shared timestamp parsing and calendar helpers."""
from __future__ import annotations

import calendar
from datetime import datetime, timezone
from typing import Any

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")


def parse_iso_ts(value: Any) -> datetime | None:
    """Parse a log timestamp into an aware UTC datetime, or None."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return None
        try:
            dt = datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso_to_epoch_ms(value: Any) -> float:
    parsed = parse_iso_ts(value)
    if not parsed:
        return 0.0
    return parsed.timestamp() * 1000.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def subtract_months(value: datetime, months: int) -> datetime:
    """Step back whole calendar months, clamping the day to the target month's length."""
    total = value.year * 12 + (value.month - 1) - months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def iso_week_key(value: datetime) -> str:
    iso_year, iso_week, _ = value.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def sunday_first_weekday(value: datetime) -> int:
    # datetime.weekday() is Monday=0; DAY_NAMES starts on Sunday.
    return (value.weekday() + 1) % 7


def format_duration(ms: float | None) -> str:
    if not ms or ms <= 0:
        return "0s"
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"
