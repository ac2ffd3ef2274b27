"""
meetbook — Dashboard query layer.

Read-only search and pagination over already-computed bookings and over
the meetings a user is involved in. Nothing here mutates meetings.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from meetbook.core.responses import (
    PageResponse,
    Pagination,
    ResultKind,
    ServiceResponse,
    invalid,
    not_found,
    ok,
    storage_guarded,
)
from meetbook.data.models import BUCKETS, Booking

if TYPE_CHECKING:
    from meetbook.data.db import Storage
    from meetbook.data.models import Meeting

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _positive_int(value: int | str | None, default: int) -> int:
    try:
        parsed = int(value) if value is not None else default
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 1 else default


def paginate(items: Sequence[T], page: int | str | None = 1, limit: int | str | None = None) -> tuple[list[T], Pagination]:
    """Slice one page out of items; next/prev are set only when those pages exist."""
    from meetbook.config import settings

    page = _positive_int(page, 1)
    limit = _positive_int(limit, settings.DEFAULT_PAGE_SIZE)
    start = (page - 1) * limit
    end = page * limit
    total = len(items)

    pagination = Pagination(page=page, limit=limit, total=total)
    if end < total:
        pagination.next_page = page + 1
    if start > 0:
        pagination.prev_page = page - 1
    return list(items[start:end]), pagination


def search(items: Sequence[T], term: str | None, *fields: Callable[[T], str]) -> list[T]:
    """Case-insensitive substring filter over the given text fields."""
    if not term:
        return list(items)
    needle = term.lower()
    return [i for i in items if any(needle in (f(i) or "").lower() for f in fields)]


@dataclass
class MeetingView:
    """A meeting as seen by one user."""

    meeting: Meeting
    status_for_user: str | None
    invitation_id: str | None = None


class Dashboard:
    """Search/paginate reads over bookings and meetings."""

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    @storage_guarded
    def get_booking(self, user_id: str) -> ServiceResponse:
        """Return the stored booking, creating an empty one on first access."""
        booking = self._storage.bookings.get_booking(user_id)
        if booking is None:
            booking = self._storage.bookings.replace_booking(Booking(user_id=user_id))
            logger.info("Empty booking created for %s", user_id)
        return ok("Booking loaded", data=booking)

    @storage_guarded
    def get_bucket(
        self,
        user_id: str,
        bucket: str,
        search_term: str | None = None,
        page: int | str | None = 1,
        limit: int | str | None = None,
    ) -> ServiceResponse:
        if bucket not in BUCKETS:
            return invalid(f"Unknown booking bucket: {bucket!r}")
        booking = self._storage.bookings.get_booking(user_id)
        if booking is None:
            return not_found("Booking dashboard not found")

        items = search(booking.bucket(bucket), search_term, lambda i: i.title)
        data, pagination = paginate(items, page, limit)
        return PageResponse(
            kind=ResultKind.SUCCESS,
            message=f"{len(data)} {bucket} meeting(s)",
            data=data,
            pagination=pagination,
        )

    @storage_guarded
    def list_meetings(
        self,
        user_id: str,
        search_term: str | None = None,
        page: int | str | None = 1,
        limit: int | str | None = None,
    ) -> ServiceResponse:
        """Meetings the user hosts or participates in, annotated per user."""
        user = self._storage.users.find_user_by_id(user_id)
        if user is None:
            return not_found("User not found")

        meetings = search(
            self._storage.meetings.find_involving(user.id, user.email),
            search_term, lambda m: m.title, lambda m: m.description,
        )
        page_items, pagination = paginate(meetings, page, limit)

        invitation_ids = {
            inv.meeting_id: inv.id
            for inv in self._storage.invitations.find_for_user(user.id, user.email)
        }
        views = []
        for meeting in page_items:
            participant = meeting.find_participant(user_id=user.id, email=user.email)
            status = participant.status if participant else None
            if meeting.host_id == user.id and status == "pending":
                status = "accepted"
            views.append(MeetingView(meeting, status, invitation_ids.get(meeting.id)))

        return PageResponse(
            kind=ResultKind.SUCCESS,
            message=f"{len(views)} meeting(s)",
            data=views,
            pagination=pagination,
        )

    @storage_guarded
    def list_created_meetings(
        self,
        user_id: str,
        search_term: str | None = None,
        page: int | str | None = 1,
        limit: int | str | None = None,
    ) -> ServiceResponse:
        meetings = search(
            self._storage.meetings.find_hosted_by(user_id),
            search_term, lambda m: m.title, lambda m: m.description,
        )
        data, pagination = paginate(meetings, page, limit)
        return PageResponse(
            kind=ResultKind.SUCCESS,
            message=f"{len(data)} meeting(s)",
            data=data,
            pagination=pagination,
        )
