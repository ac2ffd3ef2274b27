"""
meetbook — Availability Store.

Each user owns a weekly schedule: one entry per weekday with an availability
flag and an ordered list of slots. Every mutation keeps two invariants:
an unavailable day has no slots, and an available day always has at least
one slot (an unbounded slot stands for "available all day").
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from meetbook.core.responses import (
    ServiceResponse,
    invalid,
    not_found,
    ok,
    storage_guarded,
)
from meetbook.data.models import WEEKDAYS, DayAvailability, Slot

if TYPE_CHECKING:
    from meetbook.data.db import UserDB

logger = logging.getLogger(__name__)


def all_day_slot() -> Slot:
    return Slot(start_time="", end_time="")


def validate_day(day: str) -> str:
    if day not in WEEKDAYS:
        raise ValueError(f"{day!r} is not a valid day")
    return day


def normalize_slots(slots: Iterable[Any]) -> list[Slot]:
    """Drop entries that are not slots; missing bounds become "" (unspecified)."""
    normalized: list[Slot] = []
    for raw in slots:
        if isinstance(raw, Slot):
            normalized.append(Slot(raw.start_time or "", raw.end_time or ""))
        elif isinstance(raw, dict):
            normalized.append(Slot(
                start_time=raw.get("start_time") or "",
                end_time=raw.get("end_time") or "",
            ))
    return normalized


def apply_day_update(
    days: list[DayAvailability],
    day: str,
    is_available: bool | None,
    slots: Iterable[Any] | None,
    default_available: bool = True,
) -> DayAvailability:
    """Update (or insert) one day in place and return it.

    is_available=None keeps the day's current flag (default_available for a
    new entry). slots=None keeps existing slots; an explicit empty list on an
    available day resets it to all day.
    """
    validate_day(day)
    entry = next((d for d in days if d.day == day), None)
    if entry is None:
        entry = DayAvailability(day=day, is_available=default_available, slots=[])
        days.append(entry)

    if is_available is not None:
        entry.is_available = bool(is_available)

    if not entry.is_available:
        entry.slots = []
    elif slots is not None:
        entry.slots = normalize_slots(slots) or [all_day_slot()]
    elif not entry.slots:
        entry.slots = [all_day_slot()]
    return entry


def copy_slots_into(
    days: list[DayAvailability], source_day: str, target_days: list[str],
) -> list[DayAvailability]:
    """Value-copy the source day's slots onto each target day.

    Missing targets are inserted as available; existing available targets are
    overwritten; existing unavailable targets are left untouched.
    Raises ValueError for bad day names and LookupError if the source is absent.
    """
    validate_day(source_day)
    if not target_days:
        raise ValueError("Please provide at least one target day")
    for day in target_days:
        validate_day(day)

    source = next((d for d in days if d.day == source_day), None)
    if source is None:
        raise LookupError(f"Source day {source_day} not found in availability")

    for target_day in target_days:
        if target_day == source_day:
            continue
        slots = copy.deepcopy(source.slots) or [all_day_slot()]
        target = next((d for d in days if d.day == target_day), None)
        if target is None:
            days.append(DayAvailability(day=target_day, is_available=True, slots=slots))
        elif target.is_available:
            target.slots = slots
    return days


def _coerce_day(raw: DayAvailability | dict) -> tuple[str, bool | None, Any]:
    if isinstance(raw, DayAvailability):
        return raw.day, raw.is_available, raw.slots
    if isinstance(raw, dict):
        return raw.get("day", ""), raw.get("is_available"), raw.get("slots")
    raise ValueError("Availability entries must be objects")


class AvailabilityStore:
    """Per-user weekly schedule, persisted on the user record."""

    def __init__(self, users: UserDB) -> None:
        self._users = users

    @storage_guarded
    def get(self, user_id: str) -> ServiceResponse:
        user = self._users.find_user_by_id(user_id)
        if user is None:
            return not_found("User not found")
        return ok("Availability loaded", data=user.availability)

    @storage_guarded
    def set_day(
        self,
        user_id: str,
        day: str,
        is_available: bool | None = None,
        slots: Iterable[Any] | None = None,
    ) -> ServiceResponse:
        if day not in WEEKDAYS:
            return invalid(f"{day!r} is not a valid day")
        user = self._users.find_user_by_id(user_id)
        if user is None:
            return not_found("User not found")

        entry = apply_day_update(user.availability, day, is_available, slots)
        self._users.save_availability(user.id, user.availability)
        logger.info(
            "Availability for %s on %s: available=%s, %d slot(s)",
            user_id, day, entry.is_available, len(entry.slots),
        )
        return ok(f"{day} updated", data=entry)

    @storage_guarded
    def set_weekend(
        self,
        user_id: str,
        saturday: dict | None = None,
        sunday: dict | None = None,
    ) -> ServiceResponse:
        """Update Saturday and/or Sunday. New weekend days default to unavailable."""
        user = self._users.find_user_by_id(user_id)
        if user is None:
            return not_found("User not found")

        for day, update in (("Saturday", saturday), ("Sunday", sunday)):
            if not update:
                continue
            apply_day_update(
                user.availability, day,
                update.get("is_available"), update.get("slots"),
                default_available=False,
            )
        self._users.save_availability(user.id, user.availability)
        logger.info("Weekend availability updated for %s", user_id)
        return ok("Weekend updated", data={
            "saturday": user.get_day("Saturday"),
            "sunday": user.get_day("Sunday"),
        })

    @storage_guarded
    def copy_slots(
        self, user_id: str, source_day: str, target_days: list[str],
    ) -> ServiceResponse:
        user = self._users.find_user_by_id(user_id)
        if user is None:
            return not_found("User not found")
        try:
            copy_slots_into(user.availability, source_day, list(target_days or []))
        except LookupError as exc:
            return not_found(str(exc))
        except ValueError as exc:
            return invalid(str(exc))

        self._users.save_availability(user.id, user.availability)
        logger.info("Copied %s slots to %s for %s", source_day, ", ".join(target_days), user_id)
        return ok("Slots copied", data=user.availability)

    @storage_guarded
    def replace_all(self, user_id: str, days: list[DayAvailability | dict]) -> ServiceResponse:
        """Replace the whole week; a repeated day keeps its last entry."""
        if not isinstance(days, list):
            return invalid("Please provide valid availability data")
        user = self._users.find_user_by_id(user_id)
        if user is None:
            return not_found("User not found")

        replacement: list[DayAvailability] = []
        try:
            for raw in days:
                day, is_available, slots = _coerce_day(raw)
                replacement = [d for d in replacement if d.day != day]
                apply_day_update(
                    replacement, day,
                    True if is_available is None else is_available, slots,
                )
        except ValueError as exc:
            return invalid(str(exc))

        self._users.save_availability(user.id, replacement)
        logger.info("Availability replaced for %s (%d days)", user_id, len(replacement))
        return ok("Availability updated", data=replacement)

    @storage_guarded
    def get_timezone(self, user_id: str) -> ServiceResponse:
        user = self._users.find_user_by_id(user_id)
        if user is None:
            return not_found("User not found")
        if user.timezone:
            return ok("Timezone loaded", data=user.timezone)
        from meetbook.config import settings
        return ok("Timezone loaded", data=settings.DEFAULT_TIMEZONE)

    @storage_guarded
    def set_timezone(self, user_id: str, timezone: str) -> ServiceResponse:
        if not timezone or not timezone.strip():
            return invalid("Please provide a valid timezone")
        user = self._users.find_user_by_id(user_id)
        if user is None:
            return not_found("User not found")
        self._users.set_timezone(user.id, timezone.strip())
        return ok("Timezone updated", data=timezone.strip())
