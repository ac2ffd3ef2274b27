"""
meetbook — Response types.

Every operation exposed to the transport layer returns one of these
dataclasses, tagged with a machine-readable ResultKind. The caller maps
kinds to its own status codes.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from meetbook.ports.directory_port import StorageError

logger = logging.getLogger(__name__)


class ResultKind(Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    INVALID_INPUT = "invalid_input"
    INTERNAL = "internal"


@dataclass
class ConflictingParticipant:
    user_id: str | None
    email: str
    meeting_id: str | None = None     # the meeting they are already committed to


@dataclass
class InviteOutcome:
    """Advisory per-invitee result reported back to the host."""

    email: str
    status: str                      # "invitation sent" | "conflict detected" | "already invited"
    invitation_id: str | None = None
    conflicting_meeting_id: str | None = None


@dataclass
class Pagination:
    page: int
    limit: int
    total: int
    next_page: int | None = None
    prev_page: int | None = None


@dataclass
class ServiceResponse:
    kind: ResultKind
    message: str

    @property
    def success(self) -> bool:
        return self.kind is ResultKind.SUCCESS


@dataclass
class SuccessResponse(ServiceResponse):
    data: Any = None


@dataclass
class ErrorResponse(ServiceResponse):
    pass


@dataclass
class ConflictResponse(ServiceResponse):
    conflicts: list[ConflictingParticipant] = field(default_factory=list)


@dataclass
class MeetingResponse(ServiceResponse):
    data: Any = None
    invitations: list[InviteOutcome] = field(default_factory=list)


@dataclass
class AvailabilityResponse(ServiceResponse):
    available: bool = False
    conflict: Any = None             # the conflicting Meeting, if any


@dataclass
class PageResponse(ServiceResponse):
    data: list = field(default_factory=list)
    pagination: Pagination | None = None

    @property
    def count(self) -> int:
        return len(self.data)


def ok(message: str, data: Any = None) -> SuccessResponse:
    return SuccessResponse(kind=ResultKind.SUCCESS, message=message, data=data)


def not_found(message: str) -> ErrorResponse:
    return ErrorResponse(kind=ResultKind.NOT_FOUND, message=message)


def forbidden(message: str) -> ErrorResponse:
    return ErrorResponse(kind=ResultKind.FORBIDDEN, message=message)


def invalid(message: str) -> ErrorResponse:
    return ErrorResponse(kind=ResultKind.INVALID_INPUT, message=message)


def internal(message: str = "Storage failure, please retry later.") -> ErrorResponse:
    return ErrorResponse(kind=ResultKind.INTERNAL, message=message)


def storage_guarded(func: Callable[..., ServiceResponse]) -> Callable[..., ServiceResponse]:
    """Map StorageError raised by a public operation to an INTERNAL response.

    Nothing is retried here; retry policy belongs to the caller.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> ServiceResponse:
        try:
            return func(*args, **kwargs)
        except StorageError as exc:
            logger.error("%s failed on storage: %s", func.__name__, exc)
            return internal()

    return wrapper
