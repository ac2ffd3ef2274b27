"""
meetbook — Data Models.

Meetings, invitations and users are the source of truth. A Booking is the
per-user dashboard derived from them and can be discarded and rebuilt at any time.
"""

from __future__ import annotations

from dataclasses import dataclass, field

WEEKDAYS = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)

# Participant / invitation response states
PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"
RESPONSE_STATUSES = (ACCEPTED, REJECTED)

# Meeting-level status values (independent of participant status)
MEETING_STATUSES = (
    "upcoming", "pending", "cancelled", "past",
    "scheduled", "completed", "canceled",
)
CANCELLED_STATUSES = ("cancelled", "canceled")

BUCKETS = ("upcoming", "pending", "canceled", "past")


@dataclass
class Slot:
    """A time-of-day window. Empty bounds mean "unspecified"."""

    start_time: str = ""   # HH:MM local wall-clock
    end_time: str = ""

    @property
    def is_bounded(self) -> bool:
        return bool(self.start_time) and bool(self.end_time)


@dataclass
class DayAvailability:
    """One weekday of a user's weekly schedule."""

    day: str                 # one of WEEKDAYS
    is_available: bool = True
    slots: list[Slot] = field(default_factory=list)


@dataclass
class User:
    """A registered user and the availability they own."""

    id: str
    name: str
    email: str
    availability: list[DayAvailability] = field(default_factory=list)
    timezone: str = ""
    created_at: str = ""

    def get_day(self, day: str) -> DayAvailability | None:
        for entry in self.availability:
            if entry.day == day:
                return entry
        return None


@dataclass
class Participant:
    """One invitee's response state, embedded in its Meeting.

    Email is the stable key; user_id is attached once the invitee is resolved.
    """

    email: str
    status: str = PENDING
    user_id: str | None = None
    response_at: str | None = None    # ISO datetime


@dataclass
class Meeting:
    id: str
    host_id: str
    title: str
    date: str                          # ISO date YYYY-MM-DD, naive
    start_time: str                    # HH:MM
    end_time: str                      # HH:MM
    duration: int                      # minutes
    description: str = ""
    timezone: str = ""                 # advisory label only
    meeting_link: str = ""
    status: str = "upcoming"
    is_active: bool = True
    participants: list[Participant] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def find_participant(
        self, user_id: str | None = None, email: str | None = None,
    ) -> Participant | None:
        """First participant matching by user id or by email."""
        for p in self.participants:
            if user_id and p.user_id == user_id:
                return p
            if email and p.email == email:
                return p
        return None

    def is_participant(self, user_id: str) -> bool:
        return any(p.user_id == user_id for p in self.participants)


@dataclass
class Invitation:
    """Per-invitee mirror of a participant's decision, queryable across meetings."""

    id: str
    meeting_id: str
    email: str
    status: str = PENDING
    user_id: str | None = None
    created_at: str = ""
    updated_at: str = ""

    def is_owned_by(self, user_id: str, email: str) -> bool:
        return (self.user_id is not None and self.user_id == user_id) or self.email == email


@dataclass
class MeetingItem:
    """Denormalized meeting snapshot stored in a Booking bucket."""

    meeting_id: str
    title: str
    date: str
    start_time: str
    end_time: str
    status: str
    host_id: str
    is_active: bool = True
    invitation_id: str | None = None


@dataclass
class Booking:
    """A user's dashboard: four buckets, always replaced wholesale."""

    user_id: str
    upcoming: list[MeetingItem] = field(default_factory=list)
    pending: list[MeetingItem] = field(default_factory=list)
    canceled: list[MeetingItem] = field(default_factory=list)
    past: list[MeetingItem] = field(default_factory=list)
    updated_at: str = ""

    def bucket(self, name: str) -> list[MeetingItem]:
        if name not in BUCKETS:
            raise ValueError(f"Unknown booking bucket: {name!r}")
        return getattr(self, name)

    def counts(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in BUCKETS}
