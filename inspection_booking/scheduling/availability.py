"""
Availability resolution: merge generated slots with confirmed bookings.

A slot is unavailable when a confirmed booking holds its time, or when the
date is today and the slot has already started. Only booking-blocked slots
carry a reference; past-today slots carry none.

The resolver is a pure function of its inputs and the ``now`` snapshot, so
a failed store read can never leave it half-updated.
"""

import logging
from collections.abc import Mapping
from datetime import date, datetime
from typing import Iterable, Union

from inspection_booking.schemas.calendar_schema import BOOKED_SENTINEL, TimeSlot
from inspection_booking.scheduling.slots import time_to_minutes

logger = logging.getLogger(__name__)

BookedTimes = Union[Mapping[str, str], Iterable[str]]


def is_slot_in_past(day: date, slot_time: str, now: datetime) -> bool:
    """Canonical past-slot rule: the slot's start timestamp is at or before now."""
    start = datetime.combine(day, datetime.strptime(slot_time, "%H:%M").time())
    return start <= now


def _booking_references(booked_times: BookedTimes) -> dict[str, str]:
    if isinstance(booked_times, Mapping):
        return {str(t): str(ref) for t, ref in booked_times.items()}
    return {str(t): BOOKED_SENTINEL for t in booked_times}


def resolve_availability(
    day: date,
    slots: Iterable[TimeSlot],
    booked_times: BookedTimes,
    now: datetime,
) -> list[TimeSlot]:
    """
    Mark each slot available or not, returned in ascending time order.

    Args:
        day: The date the slots belong to.
        slots: Candidate slots from the slot generator.
        booked_times: Times with a confirmed booking on ``day``. A mapping of
            time -> booking id attaches that id as the slot's reference; a
            plain collection attaches the ``"existing-booking"`` sentinel.
        now: The single clock snapshot for this evaluation.
    """
    references = _booking_references(booked_times)
    is_today = day == now.date()

    resolved: list[TimeSlot] = []
    for slot in sorted(slots, key=lambda s: time_to_minutes(s.time)):
        booking_id = references.get(slot.time)
        if booking_id is not None:
            resolved.append(TimeSlot(time=slot.time, available=False, booking_id=booking_id))
        elif is_today and is_slot_in_past(day, slot.time, now):
            resolved.append(TimeSlot(time=slot.time, available=False))
        else:
            resolved.append(TimeSlot(time=slot.time, available=True))
    return resolved


def available_times(slots: Iterable[TimeSlot]) -> list[str]:
    return [slot.time for slot in slots if slot.available]
