"""Optional per-user mutual exclusion around check-then-write sequences.

Disabled by default: a conflict check and the write that follows it are not
isolated, so two concurrent acceptances can double-book a user. Enabling it
(SERIALIZE_USER_WRITES) closes that window within a single process only.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager


class UserLocks:
    def __init__(self, enabled: bool = False) -> None:
        self.enabled = enabled
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(user_id, threading.Lock())

    @contextmanager
    def hold(self, *user_ids: str | None) -> Iterator[None]:
        """Hold every given user's lock; acquired in sorted order to avoid deadlock."""
        if not self.enabled:
            yield
            return
        with ExitStack() as stack:
            for user_id in sorted({u for u in user_ids if u}):
                stack.enter_context(self._lock_for(user_id))
            yield
