"""
meetbook — SQLite storage.

Users (with their weekly availability), meetings (with embedded participants),
invitations and bookings persist in SQLite. Every call opens its own
connection; multi-statement writes run inside one transaction.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path

from meetbook.data.models import (
    Booking,
    DayAvailability,
    Invitation,
    Meeting,
    MeetingItem,
    Participant,
    Slot,
    User,
    ACCEPTED,
    BUCKETS,
    CANCELLED_STATUSES,
    PENDING,
)
from meetbook.ports.directory_port import StorageError

logger = logging.getLogger(__name__)

_INVITATIONS_DDL = """
    CREATE TABLE IF NOT EXISTS invitations (
        id          TEXT PRIMARY KEY,
        meeting_id  TEXT NOT NULL,
        user_id     TEXT,
        email       TEXT NOT NULL,
        status      TEXT NOT NULL DEFAULT 'pending',
        created_at  TEXT NOT NULL,
        updated_at  TEXT NOT NULL
    )
"""


def new_id() -> str:
    """Opaque identifier shared by all record types (never collides across tables)."""
    return uuid.uuid4().hex


def _now_iso() -> str:
    return datetime.now().isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


class _SQLiteStore:
    """Connection handling shared by the storage classes."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from meetbook.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        with self._transaction() as conn:
            self._init_db(conn)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection whose statements commit (or roll back) together."""
        conn = None
        try:
            conn = self._connect()
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("SQLite error on %s: %s", self._db_path, exc)
            raise StorageError(str(exc)) from exc
        finally:
            if conn is not None:
                conn.close()

    def _init_db(self, conn: sqlite3.Connection) -> None:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def _availability_to_json(days: list[DayAvailability]) -> str:
    return json.dumps([asdict(d) for d in days])


def _availability_from_json(raw: str | None) -> list[DayAvailability]:
    if not raw:
        return []
    return [
        DayAvailability(
            day=d["day"],
            is_available=bool(d["is_available"]),
            slots=[Slot(**s) for s in d.get("slots", [])],
        )
        for d in json.loads(raw)
    ]


class UserDB(_SQLiteStore):
    """SQLite-backed user directory. Implements UserDirectory."""

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id            TEXT PRIMARY KEY,
                name          TEXT NOT NULL,
                email         TEXT NOT NULL UNIQUE,
                availability  TEXT NOT NULL DEFAULT '[]',
                timezone      TEXT NOT NULL DEFAULT '',
                created_at    TEXT NOT NULL
            )
        """)
        logger.debug("Users table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            availability=_availability_from_json(row["availability"]),
            timezone=row["timezone"],
            created_at=row["created_at"],
        )

    def add_user(
        self, name: str, email: str, timezone: str | None = None,
        user_id: str | None = None,
    ) -> User:
        """Register a new user. Emails are stored lower-cased and must be unique."""
        if timezone is None:
            from meetbook.config import settings
            timezone = settings.DEFAULT_TIMEZONE

        user = User(
            id=user_id or new_id(),
            name=name.strip(),
            email=normalize_email(email),
            timezone=timezone,
            created_at=_now_iso(),
        )
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO users (id, name, email, availability, timezone, created_at)
                VALUES (?, ?, ?, '[]', ?, ?)
                """,
                (user.id, user.name, user.email, user.timezone, user.created_at),
            )
        logger.info("User registered: %s <%s>", user.id, user.email)
        return user

    def find_user_by_id(self, user_id: str) -> User | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE id = ?", (user_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def find_user_by_email(self, email: str) -> User | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (normalize_email(email),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def save_availability(self, user_id: str, days: list[DayAvailability]) -> None:
        """Replace the user's whole weekly availability."""
        with self._transaction() as conn:
            conn.execute(
                "UPDATE users SET availability = ? WHERE id = ?",
                (_availability_to_json(days), user_id),
            )
        logger.debug("Availability saved for user %s (%d days)", user_id, len(days))

    def set_timezone(self, user_id: str, timezone: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE users SET timezone = ? WHERE id = ?", (timezone, user_id),
            )
        logger.info("Timezone set for user %s: %s", user_id, timezone)

    def list_users(self) -> list[User]:
        """Return all registered users."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM users ORDER BY created_at, rowid"
            ).fetchall()
        return [self._row_to_user(r) for r in rows]


# ---------------------------------------------------------------------------
# Meetings (participants live in their own table, always loaded with the meeting)
# ---------------------------------------------------------------------------


class MeetingDB(_SQLiteStore):
    """SQLite-backed storage for meetings and their embedded participants."""

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS meetings (
                id            TEXT PRIMARY KEY,
                host_id       TEXT NOT NULL,
                title         TEXT NOT NULL,
                description   TEXT NOT NULL DEFAULT '',
                date          TEXT NOT NULL,
                start_time    TEXT NOT NULL,
                end_time      TEXT NOT NULL,
                duration      INTEGER NOT NULL,
                timezone      TEXT NOT NULL DEFAULT '',
                meeting_link  TEXT NOT NULL DEFAULT '',
                status        TEXT NOT NULL DEFAULT 'upcoming',
                is_active     INTEGER NOT NULL DEFAULT 1,
                created_at    TEXT NOT NULL,
                updated_at    TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS participants (
                meeting_id   TEXT NOT NULL,
                position     INTEGER NOT NULL,
                email        TEXT NOT NULL,
                status       TEXT NOT NULL DEFAULT 'pending',
                user_id      TEXT,
                response_at  TEXT,
                PRIMARY KEY (meeting_id, position)
            )
        """)
        conn.execute(_INVITATIONS_DDL)
        logger.debug("Meetings tables initialized at %s", self._db_path)

    @staticmethod
    def _row_to_meeting(row: sqlite3.Row, participants: list[Participant]) -> Meeting:
        return Meeting(
            id=row["id"],
            host_id=row["host_id"],
            title=row["title"],
            description=row["description"],
            date=row["date"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            duration=row["duration"],
            timezone=row["timezone"],
            meeting_link=row["meeting_link"],
            status=row["status"],
            is_active=bool(row["is_active"]),
            participants=participants,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _load(self, conn: sqlite3.Connection, rows: list[sqlite3.Row]) -> list[Meeting]:
        """Attach participants to meeting rows, read on the same connection."""
        if not rows:
            return []
        ids = [r["id"] for r in rows]
        placeholders = ",".join("?" for _ in ids)
        by_meeting: dict[str, list[Participant]] = {mid: [] for mid in ids}
        for p in conn.execute(
            f"SELECT * FROM participants WHERE meeting_id IN ({placeholders}) "
            "ORDER BY meeting_id, position",
            ids,
        ).fetchall():
            by_meeting[p["meeting_id"]].append(Participant(
                email=p["email"],
                status=p["status"],
                user_id=p["user_id"],
                response_at=p["response_at"],
            ))
        return [self._row_to_meeting(r, by_meeting[r["id"]]) for r in rows]

    @staticmethod
    def _write_participants(conn: sqlite3.Connection, meeting: Meeting) -> None:
        conn.execute("DELETE FROM participants WHERE meeting_id = ?", (meeting.id,))
        conn.executemany(
            """
            INSERT INTO participants
                (meeting_id, position, email, status, user_id, response_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (meeting.id, i, p.email, p.status, p.user_id, p.response_at)
                for i, p in enumerate(meeting.participants)
            ],
        )

    @staticmethod
    def _write_meeting(conn: sqlite3.Connection, meeting: Meeting) -> None:
        conn.execute(
            """
            UPDATE meetings SET
                host_id = ?, title = ?, description = ?, date = ?,
                start_time = ?, end_time = ?, duration = ?, timezone = ?,
                meeting_link = ?, status = ?, is_active = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                meeting.host_id, meeting.title, meeting.description, meeting.date,
                meeting.start_time, meeting.end_time, meeting.duration,
                meeting.timezone, meeting.meeting_link, meeting.status,
                int(meeting.is_active), meeting.updated_at, meeting.id,
            ),
        )
        MeetingDB._write_participants(conn, meeting)

    def add_meeting(self, meeting: Meeting) -> Meeting:
        """Insert a meeting together with its participants."""
        if not meeting.id:
            meeting.id = new_id()
        now = _now_iso()
        meeting.created_at = meeting.created_at or now
        meeting.updated_at = now
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO meetings
                    (id, host_id, title, description, date, start_time, end_time,
                     duration, timezone, meeting_link, status, is_active,
                     created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    meeting.id, meeting.host_id, meeting.title, meeting.description,
                    meeting.date, meeting.start_time, meeting.end_time,
                    meeting.duration, meeting.timezone, meeting.meeting_link,
                    meeting.status, int(meeting.is_active),
                    meeting.created_at, meeting.updated_at,
                ),
            )
            self._write_participants(conn, meeting)
        logger.info("Meeting added: %s '%s' on %s", meeting.id, meeting.title, meeting.date)
        return meeting

    def get_meeting(self, meeting_id: str) -> Meeting | None:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM meetings WHERE id = ?", (meeting_id,),
            ).fetchall()
            meetings = self._load(conn, rows)
        return meetings[0] if meetings else None

    def save_meeting(self, meeting: Meeting) -> Meeting:
        """Replace the stored meeting and its participant list."""
        meeting.updated_at = _now_iso()
        with self._transaction() as conn:
            self._write_meeting(conn, meeting)
        return meeting

    def record_response(self, meeting: Meeting, invitation: Invitation) -> None:
        """Persist an invitation transition and its mirrored participant together."""
        now = _now_iso()
        meeting.updated_at = now
        invitation.updated_at = now
        with self._transaction() as conn:
            conn.execute(
                "UPDATE invitations SET status = ?, user_id = ?, updated_at = ? WHERE id = ?",
                (invitation.status, invitation.user_id, invitation.updated_at, invitation.id),
            )
            self._write_meeting(conn, meeting)
        logger.info(
            "Invitation %s %s (meeting %s)", invitation.id, invitation.status, meeting.id,
        )

    def delete_meeting(self, meeting_id: str) -> bool:
        """Hard-delete a meeting, its participants and all of its invitations."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM invitations WHERE meeting_id = ?", (meeting_id,))
            conn.execute("DELETE FROM participants WHERE meeting_id = ?", (meeting_id,))
            cursor = conn.execute("DELETE FROM meetings WHERE id = ?", (meeting_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Meeting %s deleted", meeting_id)
        return deleted

    def find_for_user(self, user_id: str) -> list[Meeting]:
        """Meetings the user hosts or appears in as a participant (by id)."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM meetings m
                WHERE m.host_id = ?
                   OR EXISTS (SELECT 1 FROM participants p
                              WHERE p.meeting_id = m.id AND p.user_id = ?)
                ORDER BY m.date, m.start_time, m.id
                """,
                (user_id, user_id),
            ).fetchall()
            return self._load(conn, rows)

    def find_involving(self, user_id: str, email: str) -> list[Meeting]:
        """Meetings the user hosts or is a participant in, by id or email. Newest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM meetings m
                WHERE m.host_id = ?
                   OR EXISTS (SELECT 1 FROM participants p
                              WHERE p.meeting_id = m.id
                                AND (p.user_id = ? OR p.email = ?))
                ORDER BY m.created_at DESC, m.rowid DESC
                """,
                (user_id, user_id, normalize_email(email)),
            ).fetchall()
            return self._load(conn, rows)

    def find_hosted_by(self, user_id: str) -> list[Meeting]:
        """Meetings the user hosts. Newest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM meetings WHERE host_id = ? ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
            return self._load(conn, rows)

    def find_commitments_on(
        self, user_id: str, date: str, exclude_meeting_id: str | None = None,
    ) -> list[Meeting]:
        """Meetings on a date the user hosts or has accepted, sorted by start time.

        Cancelled meetings are not commitments.
        """
        query = f"""
            SELECT * FROM meetings m
            WHERE m.date = ?
              AND m.status NOT IN ({",".join("?" for _ in CANCELLED_STATUSES)})
              AND (m.host_id = ?
                   OR EXISTS (SELECT 1 FROM participants p
                              WHERE p.meeting_id = m.id
                                AND p.user_id = ? AND p.status = ?))
        """
        params: list = [date, *CANCELLED_STATUSES, user_id, user_id, ACCEPTED]
        if exclude_meeting_id:
            query += " AND m.id != ?"
            params.append(exclude_meeting_id)
        query += " ORDER BY m.start_time, m.id"

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
            return self._load(conn, rows)


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


class InvitationDB(_SQLiteStore):
    """SQLite-backed storage for per-invitee invitation records."""

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.execute(_INVITATIONS_DDL)
        logger.debug("Invitations table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_invitation(row: sqlite3.Row) -> Invitation:
        return Invitation(
            id=row["id"],
            meeting_id=row["meeting_id"],
            email=row["email"],
            status=row["status"],
            user_id=row["user_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def add_invitation(
        self, meeting_id: str, email: str, user_id: str | None = None,
        status: str = PENDING,
    ) -> Invitation:
        """Insert an invitation, pending unless a status is given."""
        now = _now_iso()
        invitation = Invitation(
            id=new_id(),
            meeting_id=meeting_id,
            email=normalize_email(email),
            status=status,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO invitations
                    (id, meeting_id, user_id, email, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    invitation.id, invitation.meeting_id, invitation.user_id,
                    invitation.email, invitation.status,
                    invitation.created_at, invitation.updated_at,
                ),
            )
        logger.info("Invitation %s created for %s (meeting %s)", invitation.id, invitation.email, meeting_id)
        return invitation

    def get_invitation(self, invitation_id: str) -> Invitation | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM invitations WHERE id = ?", (invitation_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_invitation(row)

    def find_for_meeting(
        self, meeting_id: str, user_id: str, email: str,
    ) -> Invitation | None:
        """The user's invitation to a meeting, matched by user id or email."""
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT * FROM invitations
                WHERE meeting_id = ? AND (user_id = ? OR email = ?)
                ORDER BY rowid LIMIT 1
                """,
                (meeting_id, user_id, normalize_email(email)),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_invitation(row)

    def find_for_user(
        self, user_id: str, email: str, status: str | None = None,
    ) -> list[Invitation]:
        """All invitations addressed to the user (by id or email), oldest first."""
        query = "SELECT * FROM invitations WHERE (user_id = ? OR email = ?)"
        params: list = [user_id, normalize_email(email)]
        if status is not None:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY created_at, rowid"
        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_invitation(r) for r in rows]

    def list_for_meeting(self, meeting_id: str) -> list[Invitation]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM invitations WHERE meeting_id = ? ORDER BY created_at, rowid",
                (meeting_id,),
            ).fetchall()
        return [self._row_to_invitation(r) for r in rows]


# ---------------------------------------------------------------------------
# Bookings (materialized dashboards)
# ---------------------------------------------------------------------------


def _items_to_json(items: list[MeetingItem]) -> str:
    return json.dumps([asdict(i) for i in items])


def _items_from_json(raw: str) -> list[MeetingItem]:
    return [MeetingItem(**i) for i in json.loads(raw)]


class BookingDB(_SQLiteStore):
    """SQLite-backed storage for per-user booking dashboards."""

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS bookings (
                user_id     TEXT PRIMARY KEY,
                upcoming    TEXT NOT NULL DEFAULT '[]',
                pending     TEXT NOT NULL DEFAULT '[]',
                canceled    TEXT NOT NULL DEFAULT '[]',
                past        TEXT NOT NULL DEFAULT '[]',
                updated_at  TEXT NOT NULL
            )
        """)
        logger.debug("Bookings table initialized at %s", self._db_path)

    def get_booking(self, user_id: str) -> Booking | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM bookings WHERE user_id = ?", (user_id,),
            ).fetchone()
        if row is None:
            return None
        return Booking(
            user_id=row["user_id"],
            **{name: _items_from_json(row[name]) for name in BUCKETS},
            updated_at=row["updated_at"],
        )

    def replace_booking(self, booking: Booking) -> Booking:
        """Store the four buckets wholesale, replacing any previous document."""
        booking.updated_at = _now_iso()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO bookings
                    (user_id, upcoming, pending, canceled, past, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    booking.user_id,
                    _items_to_json(booking.upcoming),
                    _items_to_json(booking.pending),
                    _items_to_json(booking.canceled),
                    _items_to_json(booking.past),
                    booking.updated_at,
                ),
            )
        return booking


@dataclass
class Storage:
    """The four stores, sharing one database file."""

    users: UserDB
    meetings: MeetingDB
    invitations: InvitationDB
    bookings: BookingDB


def open_storage(db_path: str | None = None) -> Storage:
    return Storage(
        users=UserDB(db_path),
        meetings=MeetingDB(db_path),
        invitations=InvitationDB(db_path),
        bookings=BookingDB(db_path),
    )
