"""Tests for meetbook.data.db — MeetingDB, InvitationDB and BookingDB."""

import sqlite3
from unittest.mock import patch

import pytest

from meetbook.data.db import new_id, open_storage
from meetbook.data.models import Booking, Meeting, MeetingItem, Participant
from meetbook.ports.directory_port import StorageError


def _meeting(host_id, date="2025-03-10", start="09:00", end="10:00", **kwargs):
    return Meeting(
        id="", host_id=host_id, title=kwargs.pop("title", "Sync"), date=date,
        start_time=start, end_time=end, duration=60, **kwargs,
    )


class TestIds:
    def test_new_id_is_unique_hex(self):
        a, b = new_id(), new_id()
        assert a != b
        int(a, 16)


class TestMeetingDB:
    def test_add_and_get_with_participants(self, storage):
        m = storage.meetings.add_meeting(_meeting("u1", participants=[
            Participant(email="a@x.com", status="accepted", user_id="u1"),
            Participant(email="b@x.com"),
        ]))
        assert m.id
        assert m.created_at and m.updated_at

        fetched = storage.meetings.get_meeting(m.id)
        assert fetched.title == "Sync"
        assert fetched.is_active is True
        assert [p.email for p in fetched.participants] == ["a@x.com", "b@x.com"]
        assert fetched.participants[1].status == "pending"
        assert fetched.participants[1].user_id is None

    def test_get_missing(self, storage):
        assert storage.meetings.get_meeting("nope") is None

    def test_save_replaces_participants(self, storage):
        m = storage.meetings.add_meeting(_meeting("u1", participants=[
            Participant(email="a@x.com", status="accepted", user_id="u1"),
        ]))
        m.title = "Renamed"
        m.is_active = False
        m.participants.append(Participant(email="b@x.com"))
        storage.meetings.save_meeting(m)

        fetched = storage.meetings.get_meeting(m.id)
        assert fetched.title == "Renamed"
        assert fetched.is_active is False
        assert len(fetched.participants) == 2

    def test_delete_removes_invitations(self, storage):
        m = storage.meetings.add_meeting(_meeting("u1"))
        inv = storage.invitations.add_invitation(m.id, "b@x.com")
        assert storage.meetings.delete_meeting(m.id) is True
        assert storage.meetings.get_meeting(m.id) is None
        assert storage.invitations.get_invitation(inv.id) is None
        assert storage.meetings.delete_meeting(m.id) is False

    def test_find_for_user_matches_host_and_participant_ids(self, storage):
        hosted = storage.meetings.add_meeting(_meeting("u1", start="11:00", end="12:00"))
        joined = storage.meetings.add_meeting(_meeting("u2", participants=[
            Participant(email="a@x.com", status="accepted", user_id="u1"),
        ]))
        storage.meetings.add_meeting(_meeting("u2", participants=[
            Participant(email="a@x.com"),
        ]))
        found = storage.meetings.find_for_user("u1")
        assert [m.id for m in found] == [joined.id, hosted.id]

    def test_find_involving_matches_email(self, storage):
        m = storage.meetings.add_meeting(_meeting("u2", participants=[
            Participant(email="a@x.com"),
        ]))
        assert [x.id for x in storage.meetings.find_involving("u1", "A@x.com")] == [m.id]

    def test_find_commitments_on_only_hosted_or_accepted(self, storage):
        storage.meetings.add_meeting(_meeting("u1", start="13:00", end="14:00"))
        accepted = storage.meetings.add_meeting(_meeting("u2", participants=[
            Participant(email="a@x.com", status="accepted", user_id="u1"),
        ]))
        storage.meetings.add_meeting(_meeting("u2", participants=[
            Participant(email="a@x.com", status="rejected", user_id="u1"),
        ]))
        storage.meetings.add_meeting(_meeting("u1", date="2025-03-11"))

        found = storage.meetings.find_commitments_on("u1", "2025-03-10")
        assert [m.start_time for m in found] == ["09:00", "13:00"]

        found = storage.meetings.find_commitments_on(
            "u1", "2025-03-10", exclude_meeting_id=accepted.id,
        )
        assert [m.start_time for m in found] == ["13:00"]

    @pytest.mark.parametrize("status", ["cancelled", "canceled"])
    def test_find_commitments_on_skips_cancelled(self, storage, status):
        storage.meetings.add_meeting(_meeting("u1", status=status))
        storage.meetings.add_meeting(_meeting("u2", status=status, participants=[
            Participant(email="a@x.com", status="accepted", user_id="u1"),
        ]))
        kept = storage.meetings.add_meeting(_meeting("u1", start="13:00", end="14:00", status="completed"))
        assert [m.id for m in storage.meetings.find_commitments_on("u1", "2025-03-10")] == [kept.id]

    def test_record_response_updates_both_sides(self, storage):
        m = storage.meetings.add_meeting(_meeting("u1", participants=[
            Participant(email="b@x.com"),
        ]))
        inv = storage.invitations.add_invitation(m.id, "b@x.com")
        inv.status = "accepted"
        inv.user_id = "u2"
        m.participants[0].status = "accepted"
        m.participants[0].user_id = "u2"
        storage.meetings.record_response(m, inv)

        assert storage.invitations.get_invitation(inv.id).status == "accepted"
        assert storage.invitations.get_invitation(inv.id).user_id == "u2"
        assert storage.meetings.get_meeting(m.id).participants[0].status == "accepted"


class TestInvitationDB:
    def test_add_is_pending_and_normalized(self, storage):
        inv = storage.invitations.add_invitation("m1", " B@X.com")
        assert inv.status == "pending"
        assert inv.email == "b@x.com"
        assert storage.invitations.get_invitation(inv.id).meeting_id == "m1"

    def test_add_with_resolved_status(self, storage):
        inv = storage.invitations.add_invitation("m1", "b@x.com", user_id="u2", status="accepted")
        assert storage.invitations.get_invitation(inv.id).status == "accepted"

    def test_find_for_meeting_by_id_or_email(self, storage):
        inv = storage.invitations.add_invitation("m1", "b@x.com")
        assert storage.invitations.find_for_meeting("m1", "u2", "b@x.com").id == inv.id
        assert storage.invitations.find_for_meeting("m1", "u2", "z@x.com") is None

    def test_find_for_user_filters_status(self, storage):
        a = storage.invitations.add_invitation("m1", "b@x.com")
        storage.invitations.add_invitation("m2", "other@x.com", user_id="u2")
        storage.invitations.add_invitation("m3", "c@x.com")
        found = storage.invitations.find_for_user("u2", "b@x.com")
        assert {i.meeting_id for i in found} == {"m1", "m2"}
        assert storage.invitations.find_for_user("u2", "b@x.com", status="accepted") == []
        assert a.id in {i.id for i in storage.invitations.find_for_user("u2", "b@x.com", status="pending")}

    def test_list_for_meeting(self, storage):
        storage.invitations.add_invitation("m1", "b@x.com")
        storage.invitations.add_invitation("m1", "c@x.com")
        storage.invitations.add_invitation("m2", "d@x.com")
        assert [i.email for i in storage.invitations.list_for_meeting("m1")] == ["b@x.com", "c@x.com"]


class TestBookingDB:
    def test_missing_booking(self, storage):
        assert storage.bookings.get_booking("u1") is None

    def test_replace_is_wholesale(self, storage):
        item = MeetingItem("m1", "Sync", "2025-03-10", "09:00", "10:00", "accepted", "u1")
        storage.bookings.replace_booking(Booking(user_id="u1", upcoming=[item], past=[item]))
        storage.bookings.replace_booking(Booking(user_id="u1", pending=[item]))

        booking = storage.bookings.get_booking("u1")
        assert booking.upcoming == []
        assert booking.past == []
        assert booking.pending == [item]
        assert booking.updated_at != ""


class TestStorageErrors:
    def test_sqlite_error_is_wrapped(self, tmp_db_path):
        storage = open_storage(tmp_db_path)
        with patch("meetbook.data.db.sqlite3.connect", side_effect=sqlite3.OperationalError("disk I/O error")):
            with pytest.raises(StorageError):
                storage.meetings.get_meeting("m1")
