"""Human-readable dates and times for Slack messages and emails."""

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

DISPLAY_TIMEZONE = ZoneInfo("America/New_York")

_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def format_date(value: str | None) -> str:
    """``2026-03-20`` -> ``Friday, March 20, 2026``; anything else is returned as-is."""

    if not value:
        return ""
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return value
    return f"{_WEEKDAYS[parsed.weekday()]}, {_MONTHS[parsed.month - 1]} {parsed.day}, {parsed.year}"


def format_time(value: str | None) -> str:
    """``18:00`` -> ``6:00 PM``; midnight and noon both render with hour 12."""

    if not value:
        return ""
    hours, sep, minutes = value.partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit() or len(minutes) != 2:
        return value

    hour = int(hours)
    if hour > 23 or int(minutes) > 59:
        return value
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minutes} {suffix}"


def format_timestamp(moment: datetime) -> str:
    """Render *moment* in New York time, e.g. ``Mar 20, 2025, 6:00 PM``."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    local = moment.astimezone(DISPLAY_TIMEZONE)
    clock = format_time(f"{local.hour:02d}:{local.minute:02d}")
    return f"{_MONTHS[local.month - 1][:3]} {local.day}, {local.year}, {clock}"


def format_date_time(date_value: str | None, time_value: str | None) -> str:
    date_text = format_date(date_value)
    time_text = format_time(time_value)
    if date_text and time_text:
        return f"{date_text} at {time_text}"
    return date_text or time_text or "_Not provided_"
