"""Tests for meetbook.core.dashboard — search and pagination over bookings and meetings."""

import pytest

from meetbook.core.dashboard import paginate, search
from meetbook.core.responses import PageResponse, ResultKind


def _create(service, host, title, invitees=None, start="09:00", end="10:00"):
    response = service.create_meeting(host.id, title, "2025-03-10", start, end, invitees=invitees)
    assert response.success, response.message
    return response


class TestPaginate:
    def test_first_page(self):
        data, p = paginate(list(range(25)), page=1, limit=10)
        assert data == list(range(10))
        assert (p.page, p.limit, p.total, p.next_page, p.prev_page) == (1, 10, 25, 2, None)

    def test_last_page(self):
        data, p = paginate(list(range(25)), page=3, limit=10)
        assert data == [20, 21, 22, 23, 24]
        assert p.next_page is None
        assert p.prev_page == 2

    def test_exact_fit_has_no_next(self):
        _, p = paginate(list(range(10)), page=1, limit=10)
        assert p.next_page is None

    def test_bad_values_fall_back(self):
        data, p = paginate(list(range(15)), page="abc", limit=0)
        assert p.page == 1
        assert p.limit == 10
        assert len(data) == 10

    def test_string_numbers(self):
        data, p = paginate(list(range(15)), page="2", limit="5")
        assert data == [5, 6, 7, 8, 9]


class TestSearch:
    def test_case_insensitive_substring(self):
        items = ["Weekly Sync", "Lunch", "sync-up"]
        assert search(items, "SYNC", lambda s: s) == ["Weekly Sync", "sync-up"]

    def test_empty_term_returns_all(self):
        assert search(["a", "b"], "", lambda s: s) == ["a", "b"]


class TestGetBooking:
    def test_creates_empty_on_first_access(self, dashboard, storage, alice):
        response = dashboard.get_booking(alice.id)
        assert response.success
        assert response.data.counts() == {"upcoming": 0, "pending": 0, "canceled": 0, "past": 0}
        assert storage.bookings.get_booking(alice.id) is not None


class TestGetBucket:
    def test_search_and_paginate(self, dashboard, service, alice):
        for i, title in enumerate(["Design review", "Standup", "Review retro"]):
            _create(service, alice, title, start=f"1{i}:00", end=f"1{i}:30")

        response = dashboard.get_bucket(alice.id, "upcoming", search_term="review", limit=1)
        assert isinstance(response, PageResponse)
        assert [i.title for i in response.data] == ["Design review"]
        assert response.pagination.total == 2
        assert response.pagination.next_page == 2

        page_two = dashboard.get_bucket(alice.id, "upcoming", search_term="review", page=2, limit=1)
        assert [i.title for i in page_two.data] == ["Review retro"]
        assert page_two.pagination.prev_page == 1

    def test_unknown_bucket(self, dashboard, alice):
        assert dashboard.get_bucket(alice.id, "archived").kind == ResultKind.INVALID_INPUT

    def test_missing_booking(self, dashboard, alice):
        assert dashboard.get_bucket(alice.id, "upcoming").kind == ResultKind.NOT_FOUND


class TestListMeetings:
    def test_annotates_status_and_invitation(self, dashboard, service, alice, bob):
        created = _create(service, alice, "Sync", invitees=["b@x.com"])

        response = dashboard.list_meetings(bob.id)
        assert response.count == 1
        view = response.data[0]
        assert view.meeting.id == created.data.id
        assert view.status_for_user == "pending"
        assert view.invitation_id == created.invitations[0].invitation_id

        host_view = dashboard.list_meetings(alice.id).data[0]
        assert host_view.status_for_user == "accepted"

    def test_search_matches_description(self, dashboard, service, storage, alice):
        meeting = _create(service, alice, "Sync").data
        meeting.description = "quarterly planning"
        storage.meetings.save_meeting(meeting)
        _create(service, alice, "Other", start="11:00", end="12:00")

        response = dashboard.list_meetings(alice.id, search_term="Planning")
        assert [v.meeting.title for v in response.data] == ["Sync"]

    def test_unknown_user(self, dashboard):
        assert dashboard.list_meetings("ghost").kind == ResultKind.NOT_FOUND


class TestListCreatedMeetings:
    def test_only_hosted_newest_first(self, dashboard, service, alice, bob):
        _create(service, alice, "First")
        _create(service, alice, "Second", start="11:00", end="12:00")
        _create(service, bob, "Not mine", invitees=["a@x.com"])

        response = dashboard.list_created_meetings(alice.id)
        assert [m.title for m in response.data] == ["Second", "First"]
