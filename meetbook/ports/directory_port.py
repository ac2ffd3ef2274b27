"""Directory port — identity resolution and the storage error type.

Core modules depend on this protocol, never on a specific user store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from meetbook.data.models import User


class StorageError(Exception):
    """Raised when any persistence operation fails."""


class UserDirectory(Protocol):
    """Looks users up by id or email. Returns None when absent, never raises."""

    def find_user_by_id(self, user_id: str) -> User | None: ...

    def find_user_by_email(self, email: str) -> User | None: ...
