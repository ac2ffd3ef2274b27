"""
meetbook — Booking Projection Engine.

Rebuilds a user's dashboard from scratch out of the meeting and invitation
records. The result replaces the stored Booking wholesale; nothing is ever
patched incrementally, so calling rebuild twice in a row is harmless.

Concurrent rebuilds for the same user are last-writer-wins: there is no
version check on the replace.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from meetbook.core.time_utils import is_past
from meetbook.data.models import (
    ACCEPTED,
    CANCELLED_STATUSES,
    PENDING,
    REJECTED,
    Booking,
    MeetingItem,
)

if TYPE_CHECKING:
    from meetbook.data.db import BookingDB, InvitationDB, MeetingDB
    from meetbook.data.models import Meeting
    from meetbook.ports.clock_port import Clock
    from meetbook.ports.directory_port import UserDirectory

logger = logging.getLogger(__name__)


def classify(
    past: bool, meeting_status: str, participant_status: str | None, is_host: bool,
) -> str | None:
    """Pick the bucket for one meeting. First matching rule wins; None drops it."""
    if past:
        return "past"
    if meeting_status in CANCELLED_STATUSES or participant_status == REJECTED:
        return "canceled"
    if participant_status == PENDING and not is_host:
        return "pending"
    if participant_status == ACCEPTED or is_host:
        return "upcoming"
    return None


def _item(meeting: Meeting, status: str, invitation_id: str | None = None) -> MeetingItem:
    return MeetingItem(
        meeting_id=meeting.id,
        title=meeting.title,
        date=meeting.date,
        start_time=meeting.start_time,
        end_time=meeting.end_time,
        status=status,
        host_id=meeting.host_id,
        is_active=meeting.is_active,
        invitation_id=invitation_id,
    )


def rebuild_booking(
    directory: UserDirectory,
    meetings: MeetingDB,
    invitations: InvitationDB,
    bookings: BookingDB,
    clock: Clock,
    user_id: str,
) -> Booking | None:
    """Recompute and store the user's four buckets.

    Returns None, leaving the stored booking untouched, if the user is unknown.
    """
    user = directory.find_user_by_id(user_id)
    if user is None:
        logger.warning("User %s not found for booking rebuild, skipping", user_id)
        return None

    now = clock.now()
    booking = Booking(user_id=user.id)

    for meeting in meetings.find_for_user(user.id):
        is_host = meeting.host_id == user.id
        participant = meeting.find_participant(user_id=user.id, email=user.email)
        if participant is None and not is_host:
            continue
        try:
            past = is_past(meeting.date, meeting.end_time, now)
        except ValueError as exc:
            logger.warning("Skipping meeting %s with unusable date/time: %s", meeting.id, exc)
            continue

        participant_status = participant.status if participant else None
        bucket = classify(past, meeting.status, participant_status, is_host)
        logger.debug("Meeting %s -> %s for user %s", meeting.id, bucket, user.id)
        if bucket is None:
            continue
        booking.bucket(bucket).append(_item(meeting, participant_status or ACCEPTED))

    # Pending invitations are listed in addition to participant-derived entries
    for invitation in invitations.find_for_user(user.id, user.email, status=PENDING):
        meeting = meetings.get_meeting(invitation.meeting_id)
        if meeting is None or meeting.host_id == user.id:
            continue
        try:
            if is_past(meeting.date, meeting.end_time, now):
                continue
        except ValueError as exc:
            logger.warning("Skipping invitation %s with unusable meeting times: %s", invitation.id, exc)
            continue
        booking.pending.append(_item(meeting, PENDING, invitation_id=invitation.id))

    bookings.replace_booking(booking)
    counts = booking.counts()
    logger.info(
        "Booking rebuilt for %s: upcoming=%d pending=%d canceled=%d past=%d",
        user.id, counts["upcoming"], counts["pending"], counts["canceled"], counts["past"],
    )
    return booking
