"""
Booking service: the single entry point the UI layer calls.

Each public operation takes one clock snapshot, talks to the appointment
store through awaited calls, and returns a ``ServiceResult``. Booking errors
are converted into failed results here and never propagate further.

Usage:
    service = BookingService(InMemoryAppointmentRepository())
    result = await service.get_available_slots(date(2025, 7, 10))
    created = await service.create_booking(request)
    if created.success:
        print(created.data.confirmation_number)
"""

import asyncio
import re
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from pydantic import ValidationError

from inspection_booking.config import AppConfig, settings
from inspection_booking.errors import (
    BookingError,
    InvalidInputError,
    NotFoundError,
    PersistenceUnavailableError,
    SlotConflictError,
)
from inspection_booking.logging_context import get_request_logger, new_request_id
from inspection_booking.schemas.booking_schema import (
    BookingRecord,
    BookingRequest,
    BookingStatus,
    CreateBookingResponse,
    DashboardStats,
)
from inspection_booking.schemas.calendar_schema import CalendarDay, TimeSlot
from inspection_booking.schemas.result_schema import ServiceResult
from inspection_booking.scheduling.availability import is_slot_in_past, resolve_availability
from inspection_booking.scheduling.calendar_days import (
    generate_calendar_days,
    is_date_open_for_booking,
    max_booking_date,
)
from inspection_booking.scheduling.occupancy import count_appointments_by_date, count_in_range
from inspection_booking.scheduling.slots import (
    generate_slots_for_config,
    is_on_slot_grid,
    slots_per_day,
)
from inspection_booking.scheduling.status_machine import ensure_transition
from inspection_booking.storage.repository import AppointmentRepository
from inspection_booking.tools.pricing import calculate_price
from inspection_booking.utils import is_valid_plate, normalize_plate

logger = get_request_logger(__name__)

T = TypeVar("T")

CONFIRMATION_ID_SUFFIX_LENGTH = 6
_CONFIRMATION_PATTERN = re.compile(r"^(?P<prefix>[A-Z]+)(?P<date>\d{8})(?P<suffix>[A-Z0-9]{6})$")


def make_confirmation_number(day: date, booking_id: str, prefix: str = "AC") -> str:
    """Customer-facing reference: prefix + YYYYMMDD + last 6 chars of the id, uppercased."""
    return f"{prefix}{day.strftime('%Y%m%d')}{booking_id[-CONFIRMATION_ID_SUFFIX_LENGTH:].upper()}"


def _first_validation_error(exc: ValidationError) -> InvalidInputError:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ())) or None
    return InvalidInputError(f"Invalid {field or 'input'}: {error.get('msg')}", field=field)


class BookingService:
    """Slot availability queries and booking commits over an appointment store."""

    def __init__(
        self,
        repository: AppointmentRepository,
        config: AppConfig = settings,
        clock: Callable[[], datetime] = datetime.now,
        timeout_seconds: Optional[float] = 10.0,
    ) -> None:
        self._repository = repository
        self._config = config
        self._clock = clock
        self._timeout_seconds = timeout_seconds

    async def _call(self, operation: Awaitable[T]) -> T:
        """Await a store call, turning a timeout into PersistenceUnavailableError."""
        try:
            return await asyncio.wait_for(operation, timeout=self._timeout_seconds)
        except asyncio.TimeoutError:
            logger.error("Appointment store call timed out after %ss", self._timeout_seconds)
            raise PersistenceUnavailableError() from None

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_slot(self, day: date, slot_time: str, now: datetime) -> None:
        scheduling = self._config.scheduling
        if not is_date_open_for_booking(day, now, scheduling):
            raise InvalidInputError(
                f"{day.isoformat()} is not open for booking.", field="appointment_date"
            )
        if not is_on_slot_grid(slot_time, scheduling):
            raise InvalidInputError(
                f"{slot_time} is not a valid appointment time.", field="appointment_time"
            )
        if is_slot_in_past(day, slot_time, now):
            raise InvalidInputError(
                f"{slot_time} on {day.isoformat()} has already passed.", field="appointment_time"
            )

    def _parse_request(self, request: Union[BookingRequest, dict[str, Any]]) -> BookingRequest:
        if isinstance(request, BookingRequest):
            return request
        try:
            return BookingRequest.model_validate(request)
        except ValidationError as exc:
            raise _first_validation_error(exc) from None

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    async def get_available_slots(self, day: date) -> ServiceResult[list[TimeSlot]]:
        """Slots for ``day`` with booked and already-started slots marked unavailable."""
        now = self._clock()
        scheduling = self._config.scheduling
        if not is_date_open_for_booking(day, now, scheduling):
            return ServiceResult.ok([])

        candidates = generate_slots_for_config(day, now, scheduling)
        try:
            records = await self._call(
                self._repository.list_by_date_range(day, day, BookingStatus.CONFIRMED)
            )
        except BookingError as exc:
            logger.error("Could not load bookings for %s: %s", day.isoformat(), exc.message)
            return ServiceResult.fail(exc, data=[])

        booked = {record.appointment_time: record.id for record in records}
        return ServiceResult.ok(resolve_availability(day, candidates, booked, now))

    async def validate_booking_slot(self, day: date, slot_time: str) -> ServiceResult[bool]:
        """Pre-submit check that (day, time) is still free."""
        now = self._clock()
        try:
            self._validate_slot(day, slot_time, now)
            holder = await self._call(self._repository.find_confirmed(day, slot_time))
        except InvalidInputError as exc:
            return ServiceResult.fail(exc, data=False)
        except BookingError as exc:
            logger.error("Slot validation failed: %s", exc.message)
            return ServiceResult.fail(exc, data=False)

        if holder is not None:
            return ServiceResult.ok(False, message="The selected time is already booked.")
        return ServiceResult.ok(True, message="The selected time is free.")

    # ------------------------------------------------------------------
    # Booking commit
    # ------------------------------------------------------------------

    async def create_booking(
        self, request: Union[BookingRequest, dict[str, Any]]
    ) -> ServiceResult[CreateBookingResponse]:
        """
        Validate, price and atomically record a new confirmed booking.

        The availability re-check and the insert are one conditional write in
        the store, so of two concurrent attempts at the same slot exactly one
        succeeds and the other fails with ``slot_conflict``. Nothing is
        written on any failure path.
        """
        request_id = new_request_id()
        now = self._clock()
        rules = self._config.rules

        try:
            booking = self._parse_request(request)
            self._validate_slot(booking.appointment_date, booking.appointment_time, now)

            plate = normalize_plate(booking.registration_plate)
            if len(plate) > rules.plate_max_length or not is_valid_plate(plate):
                raise InvalidInputError(
                    f"Registration plate {booking.registration_plate!r} is not valid.",
                    field="registration_plate",
                )
            if booking.notes and len(booking.notes) > rules.notes_max_length:
                raise InvalidInputError(
                    f"Notes must be at most {rules.notes_max_length} characters.", field="notes"
                )

            price = calculate_price(booking.vehicle_type, self._config.pricing, booking.is_online)
            fields = {
                "customer_name": booking.customer_name,
                "phone": booking.phone,
                "email": str(booking.email) if booking.email else None,
                "registration_plate": plate,
                "vehicle_type": booking.vehicle_type,
                "vehicle_brand": booking.vehicle_brand,
                "is_4x4": booking.is_4x4,
                "appointment_date": booking.appointment_date,
                "appointment_time": booking.appointment_time,
                "price": price.final_price,
                "created_at": now,
                "notes": booking.notes,
            }
            booking_id = await self._call(self._repository.insert_if_slot_free(fields))
        except SlotConflictError as exc:
            logger.warning("Booking %s rejected: slot already taken", request_id)
            return ServiceResult.fail(exc)
        except InvalidInputError as exc:
            logger.info("Booking %s rejected: %s", request_id, exc.message)
            return ServiceResult.fail(exc)
        except BookingError as exc:
            logger.error("Booking %s failed: %s", request_id, exc.message)
            return ServiceResult.fail(exc)

        confirmation = make_confirmation_number(
            booking.appointment_date, booking_id, rules.confirmation_prefix
        )
        logger.info(
            "Booking %s created: %s on %s at %s",
            booking_id, confirmation, booking.appointment_date.isoformat(), booking.appointment_time,
        )
        return ServiceResult.ok(
            CreateBookingResponse(
                booking_id=booking_id,
                confirmation_number=confirmation,
                appointment_date=booking.appointment_date.strftime("%d.%m.%Y"),
                appointment_time=booking.appointment_time,
                price=price.final_price,
            ),
            message="Your booking has been created.",
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def get_booking(self, booking_id: str) -> ServiceResult[BookingRecord]:
        try:
            record = await self._call(self._repository.get(booking_id))
            if record is None:
                raise NotFoundError()
        except BookingError as exc:
            return ServiceResult.fail(exc)
        return ServiceResult.ok(record)

    async def find_by_confirmation_number(self, number: str) -> ServiceResult[BookingRecord]:
        """Resolve a customer-facing confirmation number back to its booking."""
        match = _CONFIRMATION_PATTERN.match(number.strip().upper())
        try:
            if match is None or match.group("prefix") != self._config.rules.confirmation_prefix:
                raise InvalidInputError(
                    f"{number!r} is not a valid confirmation number.", field="confirmation_number"
                )
            try:
                day = datetime.strptime(match.group("date"), "%Y%m%d").date()
            except ValueError:
                raise InvalidInputError(
                    f"{number!r} is not a valid confirmation number.", field="confirmation_number"
                ) from None

            records = await self._call(self._repository.list_by_date_range(day, day))
            suffix = match.group("suffix")
            for record in records:
                if record.id[-CONFIRMATION_ID_SUFFIX_LENGTH:].upper() == suffix:
                    return ServiceResult.ok(record)
            raise NotFoundError(f"No booking found for confirmation number {number}.")
        except BookingError as exc:
            return ServiceResult.fail(exc)

    async def get_bookings(
        self, start: date, end: date, status: Optional[BookingStatus] = None
    ) -> ServiceResult[list[BookingRecord]]:
        """Bookings in [start, end] ordered by date, then time."""
        try:
            records = await self._call(self._repository.list_by_date_range(start, end, status))
        except BookingError as exc:
            logger.error("Could not load bookings %s..%s: %s", start, end, exc.message)
            return ServiceResult.fail(exc, data=[])
        records.sort(key=lambda r: (r.appointment_date, r.appointment_time))
        return ServiceResult.ok(records)

    async def get_bookings_for_date(self, day: date) -> ServiceResult[list[BookingRecord]]:
        return await self.get_bookings(day, day, BookingStatus.CONFIRMED)

    # ------------------------------------------------------------------
    # Occupancy
    # ------------------------------------------------------------------

    async def get_appointment_counts(self, start: date, end: date) -> ServiceResult[dict[str, int]]:
        """Confirmed bookings per ``YYYY-MM-DD`` in [start, end]; empty days are absent."""
        try:
            records = await self._call(
                self._repository.list_by_date_range(start, end, BookingStatus.CONFIRMED)
            )
        except BookingError as exc:
            logger.error("Could not count appointments %s..%s: %s", start, end, exc.message)
            return ServiceResult.fail(exc, data={})
        return ServiceResult.ok(count_appointments_by_date(records, start, end))

    async def get_calendar_month(
        self, month: date, selected: Optional[date] = None
    ) -> ServiceResult[list[CalendarDay]]:
        """Month grid (Monday-first weeks) with occupancy counts."""
        now = self._clock()
        scheduling = self._config.scheduling
        grid = generate_calendar_days(month, now, scheduling, selected)
        counts = await self.get_appointment_counts(grid[0].day, grid[-1].day)
        if not counts.success:
            return ServiceResult(
                success=False,
                data=grid,
                error=counts.error,
                error_code=counts.error_code,
                retryable=counts.retryable,
            )
        return ServiceResult.ok(generate_calendar_days(
            month, now, scheduling, selected, counts.data, slots_per_day(scheduling)
        ))

    async def get_dashboard_stats(self) -> ServiceResult[DashboardStats]:
        """Confirmed bookings today, through Sunday, within the booking window, and overall."""
        now = self._clock()
        today = now.date()
        end_of_week = today + timedelta(days=6 - today.weekday())
        end_of_period = max_booking_date(now, self._config.scheduling.booking_window_weeks)

        try:
            # Wait for both calls so neither is left running with an unread error
            results = await asyncio.gather(
                self._call(self._repository.list_by_date_range(
                    today, end_of_period, BookingStatus.CONFIRMED
                )),
                self._call(self._repository.count_by_status(BookingStatus.CONFIRMED)),
                return_exceptions=True,
            )
            for outcome in results:
                if isinstance(outcome, BaseException):
                    raise outcome
            records, total = results
        except BookingError as exc:
            logger.error("Could not load dashboard stats: %s", exc.message)
            return ServiceResult.fail(exc, data=DashboardStats())

        return ServiceResult.ok(DashboardStats(
            today_appointments=count_in_range(records, today, today),
            week_appointments=count_in_range(records, today, end_of_week),
            period_appointments=count_in_range(records, today, end_of_period),
            total_appointments=total,
        ))

    # ------------------------------------------------------------------
    # Status changes and admin edits
    # ------------------------------------------------------------------

    async def update_booking_status(
        self, booking_id: str, status: BookingStatus, reason: Optional[str] = None
    ) -> ServiceResult[BookingRecord]:
        """Move a booking along confirmed -> cancelled | completed."""
        new_request_id()
        try:
            current = await self._call(self._repository.get(booking_id))
            if current is None:
                raise NotFoundError()
            ensure_transition(current.status, status)

            fields: dict[str, Any] = {"status": status, "updated_at": self._clock()}
            if status == BookingStatus.CANCELLED:
                fields["cancel_reason"] = reason or ""
            updated = await self._call(
                self._repository.update(booking_id, fields, expected_status=current.status)
            )
        except BookingError as exc:
            logger.warning("Status change of %s to %s failed: %s", booking_id, status.value, exc.message)
            return ServiceResult.fail(exc)

        logger.info("Booking %s is now %s", booking_id, status.value)
        return ServiceResult.ok(updated, message=f"Booking status changed to {status.value}.")

    async def cancel_booking(
        self, booking_id: str, reason: Optional[str] = None
    ) -> ServiceResult[BookingRecord]:
        return await self.update_booking_status(booking_id, BookingStatus.CANCELLED, reason)

    async def complete_booking(self, booking_id: str) -> ServiceResult[BookingRecord]:
        return await self.update_booking_status(booking_id, BookingStatus.COMPLETED)

    async def reschedule_booking(
        self, booking_id: str, new_date: date, new_time: str
    ) -> ServiceResult[BookingRecord]:
        """Admin edit: move a confirmed booking to another free slot."""
        new_request_id()
        now = self._clock()
        try:
            self._validate_slot(new_date, new_time, now)
            updated = await self._call(
                self._repository.reschedule_if_slot_free(booking_id, new_date, new_time, now)
            )
        except BookingError as exc:
            logger.warning("Reschedule of %s failed: %s", booking_id, exc.message)
            return ServiceResult.fail(exc)

        logger.info("Booking %s moved to %s %s", booking_id, new_date.isoformat(), new_time)
        return ServiceResult.ok(updated, message="The booking has been updated.")

    async def delete_booking(self, booking_id: str) -> ServiceResult[None]:
        """Admin purge. The only hard delete."""
        try:
            deleted = await self._call(self._repository.delete(booking_id))
            if not deleted:
                raise NotFoundError()
        except BookingError as exc:
            return ServiceResult.fail(exc)
        logger.info("Booking %s deleted", booking_id)
        return ServiceResult.ok(message="The booking has been deleted.")
