"""Human readable renderings of durations and instants."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

MINUTES_PER_DAY = 24 * 60


def format_remaining_time(minutes: Optional[int]) -> str:
    """Render a remaining-minutes value as ``"2d 3h 5m"``."""

    if minutes is None:
        return "no coverage"
    if minutes <= 0:
        return "ended"

    days, rest = divmod(minutes, MINUTES_PER_DAY)
    hours, mins = divmod(rest, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if mins or not parts:
        parts.append(f"{mins}m")
    return " ".join(parts)


def format_threshold(minutes: int) -> str:
    """Render a reminder offset: ``in 1 day``, ``in 3 hours``, ``in 30 minutes``."""

    if minutes >= MINUTES_PER_DAY:
        value, unit = minutes / MINUTES_PER_DAY, "day"
    elif minutes >= 60:
        value, unit = minutes / 60, "hour"
    else:
        value, unit = minutes, "minute"
    number = f"{value:g}"
    suffix = "" if number == "1" else "s"
    return f"in {number} {unit}{suffix}"


def format_instant(instant: datetime, tz_name: str = "UTC") -> str:
    return instant.astimezone(ZoneInfo(tz_name)).strftime("%Y-%m-%d %H:%M %Z")


def mask_code(code: str) -> str:
    """Hide the middle of a code so reminders do not leak it in full."""

    if len(code) <= 4:
        return code
    return f"{code[:2]}***{code[-2:]}"
