"""
meetbook — Invitation / participant state machine.

Each invitee's decision lives twice: as an Invitation (queryable per invitee)
and as a Participant embedded in the meeting (read with the meeting). The
helpers here change both sides together; callers persist them in one write.

    pending --accept--> accepted
    pending --reject--> rejected

accepted and rejected are terminal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from meetbook.core.conflict_checker import find_conflict
from meetbook.core.responses import InviteOutcome
from meetbook.data.db import normalize_email
from meetbook.data.models import ACCEPTED, PENDING, REJECTED, Participant

if TYPE_CHECKING:
    from meetbook.data.db import Storage
    from meetbook.data.models import Invitation, Meeting, User

logger = logging.getLogger(__name__)


class TransitionError(Exception):
    """Raised when a resolved invitation is asked to change its answer."""


@dataclass
class InviteResult:
    outcome: InviteOutcome
    invitee_user_id: str | None = None


def invite(storage: Storage, meeting: Meeting, email: str) -> InviteResult:
    """Create a pending Invitation and its mirrored pending Participant.

    The meeting object is modified in memory; the caller saves it. A conflict
    for a registered invitee is reported but never blocks the invitation.
    """
    email = normalize_email(email)
    if meeting.find_participant(email=email) is not None:
        return InviteResult(InviteOutcome(email=email, status="already invited"))

    invitee = storage.users.find_user_by_email(email)
    conflict = None
    if invitee is not None:
        conflict = find_conflict(
            storage.users, storage.meetings, invitee.id,
            meeting.date, meeting.start_time, meeting.end_time,
            exclude_meeting_id=meeting.id,
        )

    invitation = storage.invitations.add_invitation(
        meeting.id, email, user_id=invitee.id if invitee else None,
    )
    meeting.participants.append(Participant(email=email, status=PENDING))

    if conflict is not None:
        logger.info("Invitee %s has a conflict with meeting %s", email, conflict.id)
        outcome = InviteOutcome(
            email=email,
            status="conflict detected",
            invitation_id=invitation.id,
            conflicting_meeting_id=conflict.id,
        )
    else:
        outcome = InviteOutcome(email=email, status="invitation sent", invitation_id=invitation.id)
    return InviteResult(outcome, invitee_user_id=invitee.id if invitee else None)


def ensure_invitation(storage: Storage, meeting: Meeting, user: User) -> Invitation:
    """Return the user's invitation to the meeting, creating one if missing.

    A created invitation mirrors the user's participant status, so a host or an
    already-answered participant gets a resolved invitation rather than a pending one.
    """
    invitation = storage.invitations.find_for_meeting(meeting.id, user.id, user.email)
    if invitation is not None:
        return invitation

    participant = meeting.find_participant(user_id=user.id, email=user.email)
    status = participant.status if participant else PENDING
    if meeting.host_id == user.id:
        status = ACCEPTED
    logger.info("Materializing %s invitation for %s on meeting %s", status, user.email, meeting.id)
    return storage.invitations.add_invitation(
        meeting.id, user.email, user_id=user.id, status=status,
    )


def apply_response(
    meeting: Meeting, invitation: Invitation, user: User, status: str, now: datetime,
) -> None:
    """Move a pending invitation and its participant to accepted/rejected in memory.

    Raises TransitionError if the invitation or its mirrored participant is no
    longer pending, ValueError for an unknown status.
    """
    if status not in (ACCEPTED, REJECTED):
        raise ValueError(f"Invalid response status: {status!r}")
    if invitation.status != PENDING:
        raise TransitionError(f"Invitation already {invitation.status}")
    participant = meeting.find_participant(user_id=user.id, email=invitation.email)
    if participant is not None and participant.status != PENDING:
        raise TransitionError(f"Response already recorded as {participant.status}")

    invitation.status = status
    if invitation.user_id is None:
        invitation.user_id = user.id

    responded_at = now.isoformat()
    if participant is not None:
        participant.status = status
        participant.response_at = responded_at
        if participant.user_id is None:
            participant.user_id = user.id
    elif status == ACCEPTED:
        meeting.participants.append(Participant(
            email=invitation.email,
            status=ACCEPTED,
            user_id=user.id,
            response_at=responded_at,
        ))
