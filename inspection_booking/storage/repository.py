"""
Appointment store contract and the in-memory implementation.

The store is the only shared mutable resource. Reads take no locks; every
write that claims a slot goes through a conditional insert that fails with
``SlotConflictError`` when a confirmed booking already holds the
(date, time) pair. Check and write happen under one per-date lock, so two
concurrent attempts at the same slot cannot both succeed.
"""

import asyncio
import uuid
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Optional, Protocol

from inspection_booking.errors import (
    InvalidStatusTransitionError,
    NotFoundError,
    PersistenceUnavailableError,
    SlotConflictError,
)
from inspection_booking.logging_context import get_request_logger
from inspection_booking.schemas.booking_schema import BookingRecord, BookingStatus

logger = get_request_logger(__name__)


def generate_booking_id() -> str:
    """Opaque, unguessable record identifier."""
    return uuid.uuid4().hex[:20]


class AppointmentRepository(Protocol):
    """Persistence collaborator consumed by the booking service."""

    async def list_by_date_range(
        self, start: date, end: date, status: Optional[BookingStatus] = None
    ) -> list[BookingRecord]:
        """Records with ``start <= appointment_date <= end``, optionally by status."""
        ...

    async def find_confirmed(self, day: date, time: str) -> Optional[BookingRecord]:
        """The confirmed booking holding (day, time), if any."""
        ...

    async def insert_if_slot_free(self, fields: dict[str, Any]) -> str:
        """Atomically insert a confirmed booking; raise SlotConflictError if taken."""
        ...

    async def reschedule_if_slot_free(
        self, booking_id: str, day: date, time: str, updated_at: datetime
    ) -> BookingRecord:
        """Atomically move a confirmed booking to a free slot."""
        ...

    async def update(
        self,
        booking_id: str,
        fields: dict[str, Any],
        expected_status: Optional[BookingStatus] = None,
    ) -> BookingRecord:
        """Apply ``fields``; when ``expected_status`` is set, only if it still matches."""
        ...

    async def get(self, booking_id: str) -> Optional[BookingRecord]:
        ...

    async def delete(self, booking_id: str) -> bool:
        ...

    async def count_by_status(self, status: BookingStatus) -> int:
        ...


class InMemoryAppointmentRepository:
    """
    Dict-backed appointment store.

    Used by tests and the console entry point. ``fail_next(n)`` makes the
    next ``n`` store calls raise PersistenceUnavailableError so outage
    handling can be exercised.
    """

    def __init__(self, latency_seconds: float = 0.0) -> None:
        self._records: dict[str, BookingRecord] = {}
        self._date_locks: defaultdict[date, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._latency_seconds = latency_seconds
        self._pending_failures = 0

    def fail_next(self, count: int = 1) -> None:
        self._pending_failures = count

    async def _roundtrip(self) -> None:
        # Every call yields to the event loop like a real network hop would
        await asyncio.sleep(self._latency_seconds)
        if self._pending_failures > 0:
            self._pending_failures -= 1
            raise PersistenceUnavailableError()

    def _confirmed_at(self, day: date, time: str) -> Optional[BookingRecord]:
        for record in self._records.values():
            if (
                record.status == BookingStatus.CONFIRMED
                and record.appointment_date == day
                and record.appointment_time == time
            ):
                return record
        return None

    async def list_by_date_range(
        self, start: date, end: date, status: Optional[BookingStatus] = None
    ) -> list[BookingRecord]:
        await self._roundtrip()
        return [
            record.model_copy()
            for record in self._records.values()
            if start <= record.appointment_date <= end
            and (status is None or record.status == status)
        ]

    async def find_confirmed(self, day: date, time: str) -> Optional[BookingRecord]:
        await self._roundtrip()
        record = self._confirmed_at(day, time)
        return record.model_copy() if record else None

    async def insert_if_slot_free(self, fields: dict[str, Any]) -> str:
        day = fields["appointment_date"]
        time = fields["appointment_time"]
        async with self._date_locks[day]:
            await self._roundtrip()
            holder = self._confirmed_at(day, time)
            if holder is not None:
                logger.warning("Slot %s %s already held by %s", day.isoformat(), time, holder.id)
                raise SlotConflictError()
            await self._roundtrip()
            booking_id = generate_booking_id()
            self._records[booking_id] = BookingRecord(
                id=booking_id, **{**fields, "status": BookingStatus.CONFIRMED}
            )
        logger.debug("Inserted booking %s at %s %s", booking_id, day.isoformat(), time)
        return booking_id

    async def reschedule_if_slot_free(
        self, booking_id: str, day: date, time: str, updated_at: datetime
    ) -> BookingRecord:
        await self._roundtrip()
        while True:
            current = self._records.get(booking_id)
            if current is None:
                raise NotFoundError()
            # Lock both dates in a fixed order to avoid deadlocks between moves
            lock_days = sorted({current.appointment_date, day})
            locks = [self._date_locks[d] for d in lock_days]
            for lock in locks:
                await lock.acquire()
            try:
                await self._roundtrip()
                current = self._records.get(booking_id)
                if current is None:
                    raise NotFoundError()
                if current.appointment_date not in lock_days:
                    # Moved by someone else while we waited, lock its new date
                    continue
                return self._move(current, day, time, updated_at)
            finally:
                for lock in reversed(locks):
                    lock.release()

    def _move(
        self, current: BookingRecord, day: date, time: str, updated_at: datetime
    ) -> BookingRecord:
        if current.status != BookingStatus.CONFIRMED:
            raise InvalidStatusTransitionError(
                f"Only confirmed bookings can be rescheduled, this one is {current.status.value}."
            )
        holder = self._confirmed_at(day, time)
        if holder is not None and holder.id != current.id:
            raise SlotConflictError()
        updated = current.model_copy(update={
            "appointment_date": day,
            "appointment_time": time,
            "updated_at": updated_at,
        })
        self._records[current.id] = updated
        return updated.model_copy()

    async def update(
        self,
        booking_id: str,
        fields: dict[str, Any],
        expected_status: Optional[BookingStatus] = None,
    ) -> BookingRecord:
        await self._roundtrip()
        current = self._records.get(booking_id)
        if current is None:
            raise NotFoundError()
        if expected_status is not None and current.status != expected_status:
            raise InvalidStatusTransitionError(
                f"Booking is {current.status.value}, expected {expected_status.value}."
            )
        updated = current.model_copy(update=fields)
        self._records[booking_id] = updated
        return updated.model_copy()

    async def get(self, booking_id: str) -> Optional[BookingRecord]:
        await self._roundtrip()
        record = self._records.get(booking_id)
        return record.model_copy() if record else None

    async def delete(self, booking_id: str) -> bool:
        await self._roundtrip()
        return self._records.pop(booking_id, None) is not None

    async def count_by_status(self, status: BookingStatus) -> int:
        await self._roundtrip()
        return sum(1 for record in self._records.values() if record.status == status)

    def reset(self) -> None:
        """Clear all bookings. Used by test fixtures for isolation."""
        self._records.clear()
        self._date_locks.clear()
        self._pending_failures = 0
