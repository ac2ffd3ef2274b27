"""Naive local date/time helpers — pure functions, no I/O.

Meetings store a calendar date plus wall-clock start/end strings with no
offset; every comparison here is done on naive datetimes.
"""

from __future__ import annotations

from datetime import date, datetime, time

from meetbook.data.models import WEEKDAYS


def parse_date(date_str: str) -> date:
    """Parse an ISO YYYY-MM-DD string. Raises ValueError on malformed input."""
    return date.fromisoformat(date_str.strip())


def parse_time(time_str: str) -> time:
    """Parse HH:MM (or HH:MM:SS). Raises ValueError on malformed input."""
    raw = time_str.strip()
    fmt = "%H:%M:%S" if raw.count(":") == 2 else "%H:%M"
    return datetime.strptime(raw, fmt).time()


def time_str_to_minutes(time_str: str) -> int | None:
    """Convert an HH:MM string to minutes from midnight; None if empty or invalid."""
    if not time_str:
        return None
    try:
        t = parse_time(time_str)
    except (ValueError, TypeError):
        return None
    return t.hour * 60 + t.minute


def combine(date_str: str, time_str: str) -> datetime:
    """Join a calendar date and a wall-clock time into one naive instant."""
    return datetime.combine(parse_date(date_str), parse_time(time_str))


def window(date_str: str, start_time: str, end_time: str) -> tuple[datetime, datetime]:
    """Return the [start, end) instants of a meeting-shaped window.

    Raises ValueError when either bound is malformed or start is not before end.
    """
    start = combine(date_str, start_time)
    end = combine(date_str, end_time)
    if start >= end:
        raise ValueError(f"start_time {start_time!r} must be before end_time {end_time!r}")
    return start, end


def overlaps(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime,
) -> bool:
    """Half-open overlap: [a) and [b) overlap iff each starts before the other ends."""
    return start_a < end_b and start_b < end_a


def weekday_name(date_str: str) -> str:
    """Canonical weekday name ("Monday".."Sunday") for an ISO date."""
    return WEEKDAYS[parse_date(date_str).weekday()]


def is_past(date_str: str, end_time: str, now: datetime) -> bool:
    """A meeting is past if its date is before today, or it is today and has ended."""
    meeting_date = parse_date(date_str)
    if meeting_date < now.date():
        return True
    return combine(date_str, end_time) < now
