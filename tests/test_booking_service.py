"""Tests for the booking service: availability, commits, lookups and admin edits."""

import asyncio
from dataclasses import replace
from datetime import date, datetime

import pytest

from inspection_booking.logging_context import get_request_id
from inspection_booking.schemas.booking_schema import BookingRequest, BookingStatus, DashboardStats
from inspection_booking.services.booking_service import BookingService, make_confirmation_number
from inspection_booking.storage.repository import InMemoryAppointmentRepository
from tests.conftest import (
    MONDAY_MORNING,
    NEXT_MONDAY,
    SATURDAY,
    THURSDAY,
    FixedClock,
    make_config,
    make_request,
)


async def _book(service, **overrides):
    result = await service.create_booking(make_request(**overrides))
    assert result.success, result.error
    return result.data


class TestConfirmationNumber:
    def test_format(self):
        assert make_confirmation_number(THURSDAY, "0123456789abcdef0123") == "AC20250710EF0123"

    def test_custom_prefix(self):
        assert make_confirmation_number(THURSDAY, "xyz789", prefix="IN") == "IN20250710XYZ789"


class TestGetAvailableSlots:
    @pytest.mark.asyncio
    async def test_free_working_day(self, service):
        result = await service.get_available_slots(THURSDAY)
        assert result.success
        assert len(result.data) == 18
        assert all(slot.available for slot in result.data)

    @pytest.mark.asyncio
    async def test_weekend_is_empty(self, service):
        result = await service.get_available_slots(SATURDAY)
        assert result.success
        assert result.data == []

    @pytest.mark.asyncio
    async def test_past_date_is_empty(self, service):
        result = await service.get_available_slots(date(2025, 7, 4))
        assert result.success
        assert result.data == []

    @pytest.mark.asyncio
    async def test_beyond_booking_window_is_empty(self, service):
        result = await service.get_available_slots(date(2025, 9, 2))
        assert result.success
        assert result.data == []

    @pytest.mark.asyncio
    async def test_booked_slot_references_booking(self, service):
        created = await _book(service, appointment_time="10:30")

        result = await service.get_available_slots(THURSDAY)
        taken = [slot for slot in result.data if not slot.available]
        assert [slot.time for slot in taken] == ["10:30"]
        assert taken[0].booking_id == created.booking_id

    @pytest.mark.asyncio
    async def test_started_slots_today_unavailable(self, service, clock):
        clock.now = datetime(2025, 7, 10, 11, 0)
        result = await service.get_available_slots(THURSDAY)

        unavailable = [slot.time for slot in result.data if not slot.available]
        assert unavailable == ["08:30", "09:00", "09:30", "10:00", "10:30", "11:00"]
        assert all(slot.booking_id is None for slot in result.data)

    @pytest.mark.asyncio
    async def test_store_failure_returns_empty_retryable(self, service, repository):
        repository.fail_next()
        result = await service.get_available_slots(THURSDAY)
        assert not result.success
        assert result.data == []
        assert result.error_code == "persistence_unavailable"
        assert result.retryable

    @pytest.mark.asyncio
    async def test_store_timeout(self, clock):
        slow = InMemoryAppointmentRepository(latency_seconds=0.2)
        service = BookingService(slow, make_config(), clock=clock, timeout_seconds=0.01)
        result = await service.get_available_slots(THURSDAY)
        assert not result.success
        assert result.error_code == "persistence_unavailable"


class TestValidateBookingSlot:
    @pytest.mark.asyncio
    async def test_free_slot(self, service):
        result = await service.validate_booking_slot(THURSDAY, "10:30")
        assert result.success
        assert result.data is True

    @pytest.mark.asyncio
    async def test_taken_slot(self, service):
        await _book(service)
        result = await service.validate_booking_slot(THURSDAY, "10:30")
        assert result.success
        assert result.data is False

    @pytest.mark.asyncio
    async def test_closed_date(self, service):
        result = await service.validate_booking_slot(SATURDAY, "10:30")
        assert not result.success
        assert result.error_code == "invalid_input"
        assert result.data is False


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_successful_booking(self, service):
        result = await service.create_booking(make_request())

        assert result.success
        assert result.message == "Your booking has been created."
        data = result.data
        assert data.confirmation_number == f"AC20250710{data.booking_id[-6:].upper()}"
        assert data.appointment_date == "10.07.2025"
        assert data.appointment_time == "10:30"
        assert data.price == 41

    @pytest.mark.asyncio
    async def test_booking_round_trips(self, service):
        created = await _book(service)

        result = await service.get_booking(created.booking_id)
        record = result.data
        assert record.id == created.booking_id
        assert record.customer_name == "Ivan Petrov"
        assert record.phone == "0878559905"
        assert record.email == "ivan.petrov@autocheck.bg"
        assert record.registration_plate == "A1234BC"
        assert record.vehicle_brand == "Skoda"
        assert record.appointment_date == THURSDAY
        assert record.appointment_time == "10:30"
        assert record.status == BookingStatus.CONFIRMED
        assert record.created_at == MONDAY_MORNING
        assert record.price == 41

    @pytest.mark.asyncio
    async def test_accepts_request_model(self, service):
        request = BookingRequest.model_validate(make_request(appointment_time="14:00"))
        result = await service.create_booking(request)
        assert result.success

    @pytest.mark.asyncio
    async def test_offline_booking_pays_full_price(self, service):
        created = await _book(service, is_online=False)
        assert created.price == 46

    @pytest.mark.asyncio
    async def test_sets_request_id(self, service):
        await _book(service)
        assert get_request_id().startswith("REQ-")

    @pytest.mark.asyncio
    async def test_same_slot_twice_conflicts(self, service, repository):
        await _book(service)
        result = await service.create_booking(make_request(customer_name="Maria Ivanova"))

        assert not result.success
        assert result.error_code == "slot_conflict"
        assert "already booked" in result.error
        assert len(await repository.list_by_date_range(THURSDAY, THURSDAY)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_commits_for_one_slot(self, clock):
        repository = InMemoryAppointmentRepository(latency_seconds=0.01)
        service = BookingService(repository, make_config(), clock=clock)

        first, second = await asyncio.gather(
            service.create_booking(make_request(customer_name="Ivan Petrov")),
            service.create_booking(make_request(customer_name="Maria Ivanova")),
        )

        outcomes = sorted([first.success, second.success])
        assert outcomes == [False, True]
        failed = first if not first.success else second
        assert failed.error_code == "slot_conflict"
        assert len(await repository.list_by_date_range(THURSDAY, THURSDAY)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_commits_for_different_slots(self, service):
        results = await asyncio.gather(*[
            service.create_booking(make_request(appointment_time=t))
            for t in ("09:00", "09:30", "10:00")
        ])
        assert all(r.success for r in results)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"appointment_date": SATURDAY},
        {"appointment_date": date(2025, 7, 4)},
        {"appointment_date": date(2025, 9, 2)},
        {"appointment_time": "10:15"},
        {"appointment_time": "17:30"},
        {"registration_plate": "ABC"},
        {"registration_plate": "CA1234ABX"},
        {"phone": "12345"},
        {"customer_name": "I"},
        {"vehicle_type": "plane"},
    ])
    async def test_invalid_input_writes_nothing(self, service, repository, overrides):
        result = await service.create_booking(make_request(**overrides))

        assert not result.success
        assert result.error_code == "invalid_input"
        assert not result.retryable
        assert await repository.count_by_status(BookingStatus.CONFIRMED) == 0

    @pytest.mark.asyncio
    async def test_slot_already_started_today(self, service, clock):
        clock.now = datetime(2025, 7, 10, 11, 0)
        result = await service.create_booking(make_request(appointment_time="10:30"))
        assert result.error_code == "invalid_input"

        later = await service.create_booking(make_request(appointment_time="11:30"))
        assert later.success

    @pytest.mark.asyncio
    async def test_notes_limit_from_config(self, repository, clock):
        config = make_config()
        config = replace(config, rules=replace(config.rules, notes_max_length=10))
        service = BookingService(repository, config, clock=clock)
        result = await service.create_booking(make_request(notes="Check the brakes please"))
        assert result.error_code == "invalid_input"

    @pytest.mark.asyncio
    async def test_plate_limit_from_config(self, repository, clock):
        config = make_config()
        config = replace(config, rules=replace(config.rules, plate_max_length=6))
        service = BookingService(repository, config, clock=clock)

        result = await service.create_booking(make_request(registration_plate="CA 1234 AB"))

        assert result.error_code == "invalid_input"
        assert await repository.count_by_status(BookingStatus.CONFIRMED) == 0
        assert (await service.create_booking(make_request(registration_plate="PB1234"))).success

    @pytest.mark.asyncio
    async def test_store_outage_then_retry(self, service, repository):
        repository.fail_next()
        failed = await service.create_booking(make_request())
        assert not failed.success
        assert failed.error_code == "persistence_unavailable"
        assert failed.retryable
        assert await repository.count_by_status(BookingStatus.CONFIRMED) == 0

        retried = await service.create_booking(make_request())
        assert retried.success


class TestLookup:
    @pytest.mark.asyncio
    async def test_find_by_confirmation_number(self, service):
        created = await _book(service)
        result = await service.find_by_confirmation_number(created.confirmation_number)
        assert result.success
        assert result.data.id == created.booking_id

    @pytest.mark.asyncio
    async def test_confirmation_number_case_insensitive(self, service):
        created = await _book(service)
        result = await service.find_by_confirmation_number(f" {created.confirmation_number.lower()} ")
        assert result.success

    @pytest.mark.asyncio
    async def test_unknown_confirmation_number(self, service):
        result = await service.find_by_confirmation_number("AC20250710ABCDEF")
        assert result.error_code == "not_found"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("number", ["XYZ", "XX20250710ABCDEF", "AC20251340ABCDEF"])
    async def test_malformed_confirmation_number(self, service, number):
        result = await service.find_by_confirmation_number(number)
        assert result.error_code == "invalid_input"

    @pytest.mark.asyncio
    async def test_unknown_booking_id(self, service):
        result = await service.get_booking("missing")
        assert result.error_code == "not_found"

    @pytest.mark.asyncio
    async def test_bookings_are_ordered(self, service):
        await _book(service, appointment_time="14:00")
        await _book(service, appointment_date=NEXT_MONDAY, appointment_time="08:30")
        await _book(service, appointment_time="09:00")

        result = await service.get_bookings(THURSDAY, NEXT_MONDAY)
        assert [(r.appointment_date, r.appointment_time) for r in result.data] == [
            (THURSDAY, "09:00"), (THURSDAY, "14:00"), (NEXT_MONDAY, "08:30"),
        ]

    @pytest.mark.asyncio
    async def test_bookings_for_date_skip_cancelled(self, service):
        kept = await _book(service, appointment_time="09:00")
        dropped = await _book(service, appointment_time="09:30")
        await service.cancel_booking(dropped.booking_id)

        result = await service.get_bookings_for_date(THURSDAY)
        assert [r.id for r in result.data] == [kept.booking_id]


class TestOccupancy:
    @pytest.mark.asyncio
    async def test_appointment_counts(self, service):
        await _book(service, appointment_time="09:00")
        await _book(service, appointment_time="09:30")
        await _book(service, appointment_date=NEXT_MONDAY)

        result = await service.get_appointment_counts(date(2025, 7, 1), date(2025, 7, 31))
        assert result.data == {"2025-07-10": 2, "2025-07-14": 1}

    @pytest.mark.asyncio
    async def test_counts_failure_is_reported(self, service, repository):
        repository.fail_next()
        result = await service.get_appointment_counts(date(2025, 7, 1), date(2025, 7, 31))
        assert not result.success
        assert result.data == {}
        assert result.retryable

    @pytest.mark.asyncio
    async def test_calendar_month(self, service):
        await _book(service)

        result = await service.get_calendar_month(date(2025, 7, 1), selected=THURSDAY)
        days = {d.day: d for d in result.data}
        assert len(result.data) == 35
        assert days[THURSDAY].appointment_count == 1
        assert days[THURSDAY].is_selected
        assert not days[THURSDAY].is_fully_booked
        assert days[date(2025, 7, 7)].is_today

    @pytest.mark.asyncio
    async def test_calendar_month_without_counts(self, service, repository):
        repository.fail_next()
        result = await service.get_calendar_month(date(2025, 7, 1))
        assert not result.success
        assert len(result.data) == 35
        assert all(d.appointment_count == 0 for d in result.data)

    @pytest.mark.asyncio
    async def test_dashboard_stats(self, service):
        await _book(service, appointment_date=date(2025, 7, 7), appointment_time="10:00")
        await _book(service)
        await _book(service, appointment_date=NEXT_MONDAY)
        cancelled = await _book(service, appointment_date=date(2025, 7, 11))
        await service.cancel_booking(cancelled.booking_id)

        result = await service.get_dashboard_stats()
        stats = result.data
        assert stats.today_appointments == 1
        assert stats.week_appointments == 2
        assert stats.period_appointments == 3
        assert stats.total_appointments == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failures", [1, 2])
    async def test_dashboard_failure_is_reported(self, service, repository, failures):
        await _book(service)
        repository.fail_next(failures)

        failed = await service.get_dashboard_stats()
        assert not failed.success
        assert failed.error_code == "persistence_unavailable"
        assert failed.retryable
        assert failed.data == DashboardStats()

        recovered = await service.get_dashboard_stats()
        assert recovered.success
        assert recovered.data.total_appointments == 1


class TestStatusChanges:
    @pytest.mark.asyncio
    async def test_cancel_frees_slot(self, service):
        created = await _book(service)

        result = await service.cancel_booking(created.booking_id, reason="Customer request")
        assert result.success
        assert result.data.status == BookingStatus.CANCELLED
        assert result.data.cancel_reason == "Customer request"
        assert result.data.updated_at == MONDAY_MORNING

        slots = await service.get_available_slots(THURSDAY)
        assert all(slot.available for slot in slots.data)
        rebooked = await service.create_booking(make_request(customer_name="Maria Ivanova"))
        assert rebooked.success

    @pytest.mark.asyncio
    async def test_cancel_twice_rejected(self, service):
        created = await _book(service)
        await service.cancel_booking(created.booking_id)
        result = await service.cancel_booking(created.booking_id)
        assert result.error_code == "invalid_status_transition"

    @pytest.mark.asyncio
    async def test_completed_cannot_be_cancelled(self, service):
        created = await _book(service)
        completed = await service.complete_booking(created.booking_id)
        assert completed.data.status == BookingStatus.COMPLETED

        result = await service.cancel_booking(created.booking_id)
        assert result.error_code == "invalid_status_transition"

    @pytest.mark.asyncio
    async def test_cancel_unknown_booking(self, service):
        result = await service.cancel_booking("missing")
        assert result.error_code == "not_found"

    @pytest.mark.asyncio
    async def test_reschedule(self, service):
        created = await _book(service)

        result = await service.reschedule_booking(created.booking_id, NEXT_MONDAY, "11:00")
        assert result.success
        assert result.data.appointment_date == NEXT_MONDAY
        assert result.data.appointment_time == "11:00"

        old_day = await service.validate_booking_slot(THURSDAY, "10:30")
        new_day = await service.validate_booking_slot(NEXT_MONDAY, "11:00")
        assert old_day.data is True
        assert new_day.data is False

    @pytest.mark.asyncio
    async def test_reschedule_into_taken_slot(self, service):
        created = await _book(service)
        await _book(service, appointment_time="11:00")

        result = await service.reschedule_booking(created.booking_id, THURSDAY, "11:00")
        assert result.error_code == "slot_conflict"

    @pytest.mark.asyncio
    async def test_reschedule_to_closed_day(self, service):
        created = await _book(service)
        result = await service.reschedule_booking(created.booking_id, SATURDAY, "10:00")
        assert result.error_code == "invalid_input"

    @pytest.mark.asyncio
    async def test_reschedule_cancelled_booking(self, service):
        created = await _book(service)
        await service.cancel_booking(created.booking_id)
        result = await service.reschedule_booking(created.booking_id, NEXT_MONDAY, "11:00")
        assert result.error_code == "invalid_status_transition"

    @pytest.mark.asyncio
    async def test_delete_booking(self, service):
        created = await _book(service)

        deleted = await service.delete_booking(created.booking_id)
        assert deleted.success
        assert (await service.get_booking(created.booking_id)).error_code == "not_found"
        assert (await service.delete_booking(created.booking_id)).error_code == "not_found"


class TestClockSnapshot:
    @pytest.mark.asyncio
    async def test_service_uses_injected_clock(self, repository):
        service = BookingService(repository, make_config(), clock=FixedClock(datetime(2025, 7, 10, 17, 5)))
        result = await service.get_available_slots(THURSDAY)
        assert [slot.time for slot in result.data if slot.available] == []
