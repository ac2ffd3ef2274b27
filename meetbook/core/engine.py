"""Wires storage, clock and locks into the services the transport layer calls."""

from __future__ import annotations

from dataclasses import dataclass

from meetbook.adapters.clock import SystemClock
from meetbook.core.availability import AvailabilityStore
from meetbook.core.dashboard import Dashboard
from meetbook.core.meeting_service import MeetingService
from meetbook.core.user_locks import UserLocks
from meetbook.data.db import Storage, open_storage
from meetbook.ports.clock_port import Clock


@dataclass
class Engine:
    storage: Storage
    meetings: MeetingService
    availability: AvailabilityStore
    dashboard: Dashboard


def create_engine(db_path: str | None = None, clock: Clock | None = None) -> Engine:
    """Open the database (settings.DATABASE_PATH by default) and build the services."""
    from meetbook.config import settings

    storage = open_storage(db_path)
    locks = UserLocks(enabled=settings.SERIALIZE_USER_WRITES)
    return Engine(
        storage=storage,
        meetings=MeetingService(storage, clock or SystemClock(), locks),
        availability=AvailabilityStore(storage.users),
        dashboard=Dashboard(storage),
    )
