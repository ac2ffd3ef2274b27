"""
meetbook — Interval Conflict Detector.

Decides whether a candidate [start, end) window on a date collides with a
user's existing commitments (meetings they host or have accepted), and
whether it fits inside the weekly availability they declared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from meetbook.core.time_utils import (
    overlaps,
    time_str_to_minutes,
    weekday_name,
    window,
)

if TYPE_CHECKING:
    from meetbook.data.db import MeetingDB
    from meetbook.data.models import Meeting, User
    from meetbook.ports.directory_port import UserDirectory

logger = logging.getLogger(__name__)


def resolve_user_id(directory: UserDirectory, user_ref: str) -> str | None:
    """Map a user id or an email alias to the canonical user id.

    Unknown emails resolve to None; ids are taken as-is.
    """
    if not user_ref:
        return None
    if "@" in user_ref:
        user = directory.find_user_by_email(user_ref)
        return user.id if user else None
    return user_ref


def find_conflict(
    directory: UserDirectory,
    meetings: MeetingDB,
    user_ref: str,
    date: str,
    start_time: str,
    end_time: str,
    exclude_meeting_id: str | None = None,
) -> Meeting | None:
    """Return the first commitment overlapping the window, or None.

    Candidates are the non-cancelled meetings on the same date that the user
    hosts or has accepted, compared in start-time order, so the earliest
    overlap wins.
    An unresolvable identity never conflicts.

    Raises ValueError if the candidate window itself is malformed.
    """
    new_start, new_end = window(date, start_time, end_time)

    user_id = resolve_user_id(directory, user_ref)
    if user_id is None:
        logger.debug("No user for %r, assuming no conflict", user_ref)
        return None

    for meeting in meetings.find_commitments_on(user_id, date, exclude_meeting_id):
        try:
            start, end = window(meeting.date, meeting.start_time, meeting.end_time)
        except ValueError as exc:
            logger.warning("Skipping meeting %s with unusable times: %s", meeting.id, exc)
            continue
        if overlaps(new_start, new_end, start, end):
            logger.info(
                "Conflict for %s on %s %s-%s with meeting %s",
                user_id, date, start_time, end_time, meeting.id,
            )
            return meeting
    return None


@dataclass
class AvailabilityCheck:
    """Outcome of checking a window against declared availability and meetings."""

    available: bool
    reason: str
    conflict: Meeting | None = None
    user: User | None = None


def fits_declared_slots(user: User, date: str, start_time: str, end_time: str) -> tuple[bool, str]:
    """Check the window against the user's weekly schedule only."""
    day = weekday_name(date)
    entry = user.get_day(day)
    if entry is None or not entry.is_available:
        return False, f"Not available on {day}s"

    bounded = [s for s in entry.slots if s.is_bounded]
    if not bounded:
        return True, "All day is available"

    req_start = time_str_to_minutes(start_time)
    req_end = time_str_to_minutes(end_time)
    for slot in bounded:
        slot_start = time_str_to_minutes(slot.start_time)
        slot_end = time_str_to_minutes(slot.end_time)
        if slot_start is None or slot_end is None:
            continue
        if slot_start <= req_start and req_end <= slot_end:
            return True, f"Time is available within slot {slot.start_time} - {slot.end_time}"
    return False, f"No available time slot on {day} for this meeting"


def check_availability(
    directory: UserDirectory,
    meetings: MeetingDB,
    user_ref: str,
    date: str,
    start_time: str,
    end_time: str,
) -> AvailabilityCheck:
    """Declared availability first; only a slot match goes on to the meeting check.

    Raises ValueError if the candidate window is malformed.
    """
    window(date, start_time, end_time)

    user = None
    user_id = resolve_user_id(directory, user_ref)
    if user_id is not None:
        user = directory.find_user_by_id(user_id)
    if user is None:
        return AvailabilityCheck(
            available=True,
            reason=f"User {user_ref} not found - assuming available",
        )

    fits, reason = fits_declared_slots(user, date, start_time, end_time)
    if not fits:
        return AvailabilityCheck(available=False, reason=reason, user=user)

    conflict = find_conflict(directory, meetings, user.id, date, start_time, end_time)
    if conflict is not None:
        return AvailabilityCheck(
            available=False,
            reason=f"Conflict with existing meeting \"{conflict.title}\"",
            conflict=conflict,
            user=user,
        )
    return AvailabilityCheck(available=True, reason=reason, user=user)
