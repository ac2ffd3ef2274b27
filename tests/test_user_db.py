"""Tests for meetbook.data.db — UserDB (the user directory)."""

import pytest

from meetbook.data.db import UserDB
from meetbook.data.models import DayAvailability, Slot
from meetbook.ports.directory_port import StorageError


class TestUserDBAddAndGet:
    def test_add_user_and_get(self, user_db):
        user = user_db.add_user("Alice", "Alice@X.com ")
        assert user.id
        assert user.email == "alice@x.com"
        assert user.availability == []
        assert user.timezone == "Asia/Kolkata"
        assert user.created_at != ""

        fetched = user_db.find_user_by_id(user.id)
        assert fetched is not None
        assert fetched.name == "Alice"

    def test_add_user_with_explicit_id(self, user_db):
        user = user_db.add_user("Bob", "b@x.com", timezone="UTC", user_id="bob")
        assert user_db.find_user_by_id("bob").timezone == "UTC"

    def test_find_by_email_is_case_insensitive(self, user_db):
        user = user_db.add_user("Alice", "a@x.com")
        assert user_db.find_user_by_email("A@X.COM").id == user.id

    def test_get_user_not_found(self, user_db):
        assert user_db.find_user_by_id("missing") is None
        assert user_db.find_user_by_email("nobody@x.com") is None

    def test_duplicate_email_raises(self, user_db):
        user_db.add_user("Alice", "a@x.com")
        with pytest.raises(StorageError):
            user_db.add_user("Alice Again", "A@x.com")


class TestUserDBAvailability:
    def test_save_availability_round_trip(self, user_db):
        user = user_db.add_user("Alice", "a@x.com")
        user_db.save_availability(user.id, [
            DayAvailability("Monday", True, [Slot("09:00", "12:00"), Slot("14:00", "17:00")]),
            DayAvailability("Sunday", False, []),
        ])
        fetched = user_db.find_user_by_id(user.id)
        monday = fetched.get_day("Monday")
        assert [(s.start_time, s.end_time) for s in monday.slots] == [
            ("09:00", "12:00"), ("14:00", "17:00"),
        ]
        assert fetched.get_day("Sunday").is_available is False

    def test_set_timezone(self, user_db):
        user = user_db.add_user("Alice", "a@x.com")
        user_db.set_timezone(user.id, "Europe/Berlin")
        assert user_db.find_user_by_id(user.id).timezone == "Europe/Berlin"


class TestUserDBListUsers:
    def test_list_users_empty(self, user_db):
        assert user_db.list_users() == []

    def test_list_users_in_registration_order(self, user_db):
        user_db.add_user("Alice", "a@x.com")
        user_db.add_user("Bob", "b@x.com")
        assert [u.name for u in user_db.list_users()] == ["Alice", "Bob"]


class TestUserDBDefaults:
    def test_db_path_defaults_to_settings(self, tmp_path, monkeypatch):
        from meetbook.config import settings
        path = tmp_path / "nested" / "users.db"
        monkeypatch.setattr(settings, "DATABASE_PATH", str(path))
        UserDB()
        assert path.exists()
