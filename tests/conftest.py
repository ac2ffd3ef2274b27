"""Shared test fixtures and configuration.

Sets environment variables before any meetbook import so settings load
deterministically, and provides temp-file databases and a frozen clock.
"""

import os
import tempfile
from pathlib import Path

# Patch env vars BEFORE any meetbook imports
os.environ.setdefault("DATABASE_PATH", str(Path(tempfile.gettempdir()) / "meetbook-tests.db"))
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("DEFAULT_TIMEZONE", "Asia/Kolkata")
os.environ.setdefault("DEFAULT_PAGE_SIZE", "10")
os.environ.setdefault("SERIALIZE_USER_WRITES", "false")

import pytest
from datetime import datetime


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_meetbook.db")


@pytest.fixture
def storage(tmp_db_path):
    """All four stores on one temp database."""
    from meetbook.data.db import open_storage
    return open_storage(tmp_db_path)


@pytest.fixture
def user_db(tmp_path):
    """Return a UserDB instance backed by a temp file."""
    from meetbook.data.db import UserDB
    return UserDB(db_path=str(tmp_path / "test_users.db"))


@pytest.fixture
def clock():
    """Saturday 2025-03-01 08:00, before every meeting used in the tests."""
    from meetbook.adapters.clock import FixedClock
    return FixedClock(datetime(2025, 3, 1, 8, 0))


@pytest.fixture
def service(storage, clock):
    from meetbook.core.meeting_service import MeetingService
    from meetbook.core.user_locks import UserLocks
    return MeetingService(storage, clock, UserLocks(enabled=True))


@pytest.fixture
def unlocked_service(storage, clock):
    """The default configuration: no per-user serialisation."""
    from meetbook.core.meeting_service import MeetingService
    from meetbook.core.user_locks import UserLocks
    return MeetingService(storage, clock, UserLocks())


@pytest.fixture
def dashboard(storage):
    from meetbook.core.dashboard import Dashboard
    return Dashboard(storage)


@pytest.fixture
def alice(storage):
    return storage.users.add_user("Alice", "a@x.com")


@pytest.fixture
def bob(storage):
    return storage.users.add_user("Bob", "b@x.com")


@pytest.fixture
def carol(storage):
    return storage.users.add_user("Carol", "c@x.com")
