"""Clock adapters — implement Clock for production and for deterministic callers."""

from __future__ import annotations

from datetime import datetime, timedelta


class SystemClock:
    """Naive local wall-clock time."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    """A clock frozen at a given instant until moved explicitly."""

    def __init__(self, instant: datetime) -> None:
        self._instant = instant.replace(tzinfo=None)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = instant.replace(tzinfo=None)

    def advance(self, **kwargs: float) -> None:
        self._instant += timedelta(**kwargs)
