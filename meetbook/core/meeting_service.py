"""
meetbook — Meeting Service.

The operations exposed to the transport layer: creating and editing
meetings, answering invitations, conflict and availability checks, and
booking rebuilds. Each returns a response object tagged with a ResultKind;
domain outcomes are never raised.

Any mutation that changes who is involved in a meeting, or when it happens,
rebuilds the booking of every affected user, one after the other inside the
same call. If the process dies mid-cascade some dashboards stay stale until
the next rebuild.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from meetbook.core.booking_projection import rebuild_booking
from meetbook.core.conflict_checker import check_availability, find_conflict
from meetbook.core.invitations import (
    TransitionError,
    apply_response,
    ensure_invitation,
    invite,
)
from meetbook.core.responses import (
    AvailabilityResponse,
    ConflictingParticipant,
    ConflictResponse,
    MeetingResponse,
    ResultKind,
    ServiceResponse,
    forbidden,
    invalid,
    not_found,
    ok,
    storage_guarded,
)
from meetbook.core.time_utils import window
from meetbook.core.user_locks import UserLocks
from meetbook.data.models import (
    ACCEPTED,
    MEETING_STATUSES,
    PENDING,
    RESPONSE_STATUSES,
    Meeting,
    Participant,
)

if TYPE_CHECKING:
    from meetbook.data.db import Storage
    from meetbook.data.models import Booking, User
    from meetbook.ports.clock_port import Clock

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {
    "title", "description", "date", "start_time", "end_time", "duration",
    "timezone", "meeting_link", "status", "is_active",
}
_TIME_FIELDS = ("date", "start_time", "end_time")
_STATUS_CYCLE = {"scheduled": "completed", "completed": "canceled"}
_TOGGLE_STATUSES = ("scheduled", "canceled", "completed")


def _minutes_between(date: str, start_time: str, end_time: str) -> int:
    start, end = window(date, start_time, end_time)
    return int((end - start).total_seconds() // 60)


class MeetingService:
    """Meeting lifecycle, invitation responses and booking maintenance."""

    def __init__(self, storage: Storage, clock: Clock, locks: UserLocks | None = None) -> None:
        self._storage = storage
        self._clock = clock
        if locks is None:
            from meetbook.config import settings
            locks = UserLocks(enabled=settings.SERIALIZE_USER_WRITES)
        self._locks = locks

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load_for_host(self, meeting_id: str, user_id: str, action: str) -> Meeting | ServiceResponse:
        """Fetch a meeting and confirm the caller hosts it."""
        meeting = self._storage.meetings.get_meeting(meeting_id)
        if meeting is None:
            return not_found("Meeting not found")
        if meeting.host_id != user_id:
            logger.warning("User %s tried to %s meeting %s", user_id, action, meeting_id)
            return forbidden(f"Not authorized to {action} this meeting")
        return meeting

    def _affected_user_ids(self, meeting: Meeting) -> list[str]:
        """Host, participants and registered invitees, in a stable order."""
        user_ids: list[str] = [meeting.host_id]
        emails: list[str] = []
        for p in meeting.participants:
            if p.user_id:
                user_ids.append(p.user_id)
            else:
                emails.append(p.email)
        for invitation in self._storage.invitations.list_for_meeting(meeting.id):
            if invitation.user_id:
                user_ids.append(invitation.user_id)
            else:
                emails.append(invitation.email)
        for email in emails:
            user = self._storage.users.find_user_by_email(email)
            if user is not None:
                user_ids.append(user.id)
        return list(dict.fromkeys(user_ids))

    def _rebuild_all(self, user_ids: list[str]) -> None:
        for user_id in dict.fromkeys(user_ids):
            self.rebuild_booking(user_id)

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    def rebuild_booking(self, user_id: str) -> Booking | None:
        """Recompute one user's dashboard. None (and no write) if the user is unknown."""
        return rebuild_booking(
            self._storage.users,
            self._storage.meetings,
            self._storage.invitations,
            self._storage.bookings,
            self._clock,
            user_id,
        )

    @storage_guarded
    def refresh_booking(self, user_id: str) -> ServiceResponse:
        """Explicit refresh requested by the user."""
        booking = self.rebuild_booking(user_id)
        if booking is None:
            return not_found("User not found")
        return ok("Booking refreshed", data=booking)

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    @storage_guarded
    def create_meeting(
        self,
        host_id: str,
        title: str,
        date: str,
        start_time: str,
        end_time: str,
        duration: int | None = None,
        description: str = "",
        timezone: str | None = None,
        meeting_link: str = "",
        invitees: list[str] | None = None,
    ) -> ServiceResponse:
        """Create a meeting with the host auto-accepted, then invite each email."""
        if not title or not title.strip():
            return invalid("Please provide a meeting title")
        if not date or not start_time or not end_time:
            return invalid("Please provide date, start_time and end_time")
        try:
            computed = _minutes_between(date, start_time, end_time)
        except ValueError as exc:
            return invalid(str(exc))

        host = self._storage.users.find_user_by_id(host_id)
        if host is None:
            return not_found("Host not found")

        if timezone is None:
            from meetbook.config import settings
            timezone = host.timezone or settings.DEFAULT_TIMEZONE

        meeting = Meeting(
            id="",
            host_id=host.id,
            title=title.strip(),
            description=description.strip(),
            date=date,
            start_time=start_time,
            end_time=end_time,
            duration=duration if duration is not None else computed,
            timezone=timezone,
            meeting_link=meeting_link,
            participants=[Participant(
                email=host.email,
                status=ACCEPTED,
                user_id=host.id,
                response_at=self._clock.now().isoformat(),
            )],
        )
        self._storage.meetings.add_meeting(meeting)

        outcomes = []
        invitee_ids: list[str] = []
        for email in invitees or []:
            if not email or not email.strip():
                continue
            result = invite(self._storage, meeting, email)
            outcomes.append(result.outcome)
            if result.invitee_user_id:
                invitee_ids.append(result.invitee_user_id)
        if outcomes:
            self._storage.meetings.save_meeting(meeting)

        self._rebuild_all([host.id, *invitee_ids])
        logger.info(
            "Meeting %s created by %s with %d invitee(s)", meeting.id, host.id, len(outcomes),
        )
        return MeetingResponse(
            kind=ResultKind.SUCCESS,
            message="Meeting created",
            data=meeting,
            invitations=outcomes,
        )

    @storage_guarded
    def get_meeting(self, meeting_id: str, user_id: str) -> ServiceResponse:
        meeting = self._storage.meetings.get_meeting(meeting_id)
        if meeting is None:
            return not_found("Meeting not found")
        user = self._storage.users.find_user_by_id(user_id)
        email = user.email if user else None
        if meeting.host_id != user_id and meeting.find_participant(user_id=user_id, email=email) is None:
            return forbidden("Not authorized to access this meeting")
        return ok("Meeting loaded", data=meeting)

    @storage_guarded
    def get_participants(self, meeting_id: str, user_id: str) -> ServiceResponse:
        """Embedded participants plus pending invitations not yet mirrored."""
        meeting = self._storage.meetings.get_meeting(meeting_id)
        if meeting is None:
            return not_found("Meeting not found")
        user = self._storage.users.find_user_by_id(user_id)
        email = user.email if user else None
        if meeting.host_id != user_id and meeting.find_participant(user_id=user_id, email=email) is None:
            return forbidden("Not authorized to view participants")

        participants = [replace(p) for p in meeting.participants]
        known = {p.email for p in participants}
        for invitation in self._storage.invitations.list_for_meeting(meeting.id):
            if invitation.status == PENDING and invitation.email not in known:
                participants.append(Participant(
                    email=invitation.email, status=PENDING, user_id=invitation.user_id,
                ))
                known.add(invitation.email)
        return ok(f"{len(participants)} participant(s)", data=participants)

    # ------------------------------------------------------------------
    # Host-only mutations
    # ------------------------------------------------------------------

    @storage_guarded
    def update_meeting(
        self,
        meeting_id: str,
        user_id: str,
        changes: dict[str, Any],
        invitees: list[str] | None = None,
    ) -> ServiceResponse:
        """Edit core fields. A time change is refused as a whole if any accepted
        participant (other than the host) would be double-booked.
        """
        loaded = self._load_for_host(meeting_id, user_id, "update")
        if not isinstance(loaded, Meeting):
            return loaded
        meeting = loaded

        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            return invalid(f"Unknown meeting field(s): {', '.join(sorted(unknown))}")
        if "title" in changes and not (changes["title"] or "").strip():
            return invalid("Please provide a meeting title")
        if "status" in changes and changes["status"] not in MEETING_STATUSES:
            return invalid(f"Unknown meeting status: {changes['status']!r}")

        new_date = changes.get("date") or meeting.date
        new_start = changes.get("start_time") or meeting.start_time
        new_end = changes.get("end_time") or meeting.end_time
        time_changed = (new_date, new_start, new_end) != (
            meeting.date, meeting.start_time, meeting.end_time,
        )
        try:
            computed = _minutes_between(new_date, new_start, new_end)
        except ValueError as exc:
            return invalid(str(exc))

        accepted_ids = [
            p.user_id for p in meeting.participants
            if p.status == ACCEPTED and p.user_id and p.user_id != meeting.host_id
        ]
        with self._locks.hold(*accepted_ids):
            if time_changed:
                conflicts = []
                for p in meeting.participants:
                    if p.status != ACCEPTED or not p.user_id or p.user_id == meeting.host_id:
                        continue
                    clash = find_conflict(
                        self._storage.users, self._storage.meetings, p.user_id,
                        new_date, new_start, new_end, exclude_meeting_id=meeting.id,
                    )
                    if clash is not None:
                        conflicts.append(ConflictingParticipant(
                            user_id=p.user_id, email=p.email, meeting_id=clash.id,
                        ))
                if conflicts:
                    logger.info(
                        "Update of meeting %s refused: %d participant conflict(s)",
                        meeting.id, len(conflicts),
                    )
                    return ConflictResponse(
                        kind=ResultKind.CONFLICT,
                        message="Time conflicts detected with some participants",
                        conflicts=conflicts,
                    )

            for field_name, value in changes.items():
                # None (or an empty time field) means "leave as is"
                if value is None or (field_name in _TIME_FIELDS and not value):
                    continue
                if field_name in ("title", "description") and isinstance(value, str):
                    value = value.strip()
                setattr(meeting, field_name, value)
            if time_changed and changes.get("duration") is None:
                meeting.duration = computed

            outcomes = []
            for email in invitees or []:
                if email and email.strip():
                    outcomes.append(invite(self._storage, meeting, email).outcome)
            self._storage.meetings.save_meeting(meeting)

        self._rebuild_all(self._affected_user_ids(meeting))
        logger.info("Meeting %s updated by host %s", meeting.id, user_id)
        return MeetingResponse(
            kind=ResultKind.SUCCESS,
            message="Meeting updated",
            data=meeting,
            invitations=outcomes,
        )

    @storage_guarded
    def cancel_meeting(self, meeting_id: str, user_id: str) -> ServiceResponse:
        loaded = self._load_for_host(meeting_id, user_id, "cancel")
        if not isinstance(loaded, Meeting):
            return loaded
        loaded.status = "cancelled"
        self._storage.meetings.save_meeting(loaded)
        self._rebuild_all(self._affected_user_ids(loaded))
        logger.info("Meeting %s cancelled", loaded.id)
        return ok("Meeting cancelled", data=loaded)

    @storage_guarded
    def delete_meeting(self, meeting_id: str, user_id: str) -> ServiceResponse:
        """Hard delete; invitations go with it, then every affected dashboard is rebuilt."""
        loaded = self._load_for_host(meeting_id, user_id, "delete")
        if not isinstance(loaded, Meeting):
            return loaded
        affected = self._affected_user_ids(loaded)
        self._storage.meetings.delete_meeting(loaded.id)
        self._rebuild_all(affected)
        return ok("Meeting deleted", data=None)

    @storage_guarded
    def toggle_status(
        self, meeting_id: str, user_id: str, status: str | None = None,
    ) -> ServiceResponse:
        """Set an explicit status or cycle scheduled -> completed -> canceled -> scheduled."""
        loaded = self._load_for_host(meeting_id, user_id, "update")
        if not isinstance(loaded, Meeting):
            return loaded
        if status in _TOGGLE_STATUSES:
            loaded.status = status
        else:
            loaded.status = _STATUS_CYCLE.get(loaded.status, "scheduled")
        self._storage.meetings.save_meeting(loaded)
        self._rebuild_all(self._affected_user_ids(loaded))
        return ok(f"Meeting status updated to {loaded.status}", data=loaded)

    @storage_guarded
    def toggle_active(
        self, meeting_id: str, user_id: str, is_active: bool | None = None,
    ) -> ServiceResponse:
        loaded = self._load_for_host(meeting_id, user_id, "update")
        if not isinstance(loaded, Meeting):
            return loaded
        loaded.is_active = (not loaded.is_active) if is_active is None else bool(is_active)
        self._storage.meetings.save_meeting(loaded)
        self._rebuild_all(self._affected_user_ids(loaded))
        state = "active" if loaded.is_active else "inactive"
        return ok(f"Meeting is now {state}", data=loaded)

    @storage_guarded
    def duplicate_meeting(
        self,
        meeting_id: str,
        user_id: str,
        title: str | None = None,
        date: str | None = None,
    ) -> ServiceResponse:
        """Copy the schedule fields into a new active meeting with only the host."""
        loaded = self._load_for_host(meeting_id, user_id, "duplicate")
        if not isinstance(loaded, Meeting):
            return loaded
        host = self._storage.users.find_user_by_id(user_id)
        if host is None:
            return not_found("Host not found")
        if date is not None:
            try:
                window(date, loaded.start_time, loaded.end_time)
            except ValueError as exc:
                return invalid(str(exc))

        copy = Meeting(
            id="",
            host_id=loaded.host_id,
            title=title.strip() if title and title.strip() else f"{loaded.title} (Copy)",
            description=loaded.description,
            date=date or loaded.date,
            start_time=loaded.start_time,
            end_time=loaded.end_time,
            duration=loaded.duration,
            timezone=loaded.timezone,
            meeting_link=loaded.meeting_link,
            is_active=True,
            participants=[Participant(
                email=host.email,
                status=ACCEPTED,
                user_id=host.id,
                response_at=self._clock.now().isoformat(),
            )],
        )
        self._storage.meetings.add_meeting(copy)
        self.rebuild_booking(host.id)
        return ok("Meeting duplicated successfully", data=copy)

    # ------------------------------------------------------------------
    # Invitation responses
    # ------------------------------------------------------------------

    @storage_guarded
    def respond_to_invitation(
        self, invitation_or_meeting_id: str, user_id: str, status: str,
    ) -> ServiceResponse:
        """Accept or reject an invitation, addressed by invitation id or meeting id.

        A meeting id with no matching invitation materializes a pending one for
        the caller first. Accepting re-checks the caller's calendar.
        """
        if status not in RESPONSE_STATUSES:
            return invalid("Please provide a valid status (accepted or rejected)")

        user = self._storage.users.find_user_by_id(user_id)
        if user is None:
            return not_found("User not found")

        invitation = self._storage.invitations.get_invitation(invitation_or_meeting_id)
        if invitation is None:
            meeting = self._storage.meetings.get_meeting(invitation_or_meeting_id)
            if meeting is None:
                return not_found("Neither invitation nor meeting found with this ID")
            invitation = ensure_invitation(self._storage, meeting, user)

        if not invitation.is_owned_by(user.id, user.email):
            return forbidden("Not authorized to respond to this invitation")

        with self._locks.hold(user.id):
            meeting = self._storage.meetings.get_meeting(invitation.meeting_id)
            if meeting is None:
                return not_found("Meeting not found")

            if invitation.status == status:
                logger.info("Invitation %s already %s, nothing to do", invitation.id, status)
            else:
                result = self._transition(meeting, invitation, user, status)
                if result is not None:
                    return result

        self._rebuild_all([user.id, meeting.host_id])
        return ok(f"Invitation {status}", data={"invitation": invitation, "meeting": meeting})

    def _transition(self, meeting: Meeting, invitation, user: User, status: str) -> ServiceResponse | None:
        if status == ACCEPTED and invitation.status == PENDING:
            try:
                clash = find_conflict(
                    self._storage.users, self._storage.meetings, user.id,
                    meeting.date, meeting.start_time, meeting.end_time,
                    exclude_meeting_id=meeting.id,
                )
            except ValueError as exc:
                return invalid(str(exc))
            if clash is not None:
                return ConflictResponse(
                    kind=ResultKind.CONFLICT,
                    message=f"You have a conflict with existing meeting \"{clash.title}\"",
                    conflicts=[ConflictingParticipant(user.id, user.email, clash.id)],
                )
        try:
            apply_response(meeting, invitation, user, status, self._clock.now())
        except TransitionError as exc:
            return ConflictResponse(kind=ResultKind.CONFLICT, message=str(exc))
        self._storage.meetings.record_response(meeting, invitation)
        return None

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @storage_guarded
    def check_time_conflict(
        self,
        user_ref: str,
        date: str,
        start_time: str,
        end_time: str,
        exclude_meeting_id: str | None = None,
    ) -> ServiceResponse:
        """data is the first conflicting Meeting, or None."""
        if not date or not start_time or not end_time:
            return invalid("Please provide date, start_time and end_time")
        try:
            clash = find_conflict(
                self._storage.users, self._storage.meetings, user_ref,
                date, start_time, end_time, exclude_meeting_id,
            )
        except ValueError as exc:
            return invalid(str(exc))
        if clash is None:
            return ok("No conflict", data=None)
        return ok(f"Conflict with existing meeting \"{clash.title}\"", data=clash)

    @storage_guarded
    def check_availability(
        self, user_ref: str, date: str, start_time: str, end_time: str,
    ) -> ServiceResponse:
        if not date or not start_time or not end_time:
            return invalid("Please provide date, start_time and end_time")
        try:
            result = check_availability(
                self._storage.users, self._storage.meetings, user_ref,
                date, start_time, end_time,
            )
        except ValueError as exc:
            return invalid(str(exc))
        return AvailabilityResponse(
            kind=ResultKind.SUCCESS,
            message=result.reason,
            available=result.available,
            conflict=result.conflict,
        )
