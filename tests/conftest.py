"""Shared test fixtures and helpers."""

from datetime import date, datetime
from typing import Any, Optional

import pytest

from inspection_booking.config import (
    DEFAULT_PRICES,
    AppConfig,
    BookingRulesConfig,
    PricingConfig,
    SchedulingConfig,
)
from inspection_booking.schemas.booking_schema import BookingRecord, BookingStatus, VehicleType
from inspection_booking.services.booking_service import BookingService
from inspection_booking.storage.repository import InMemoryAppointmentRepository

WORKING_DAYS = (1, 2, 3, 4, 5)

# Monday 2025-07-07, 09:00
MONDAY_MORNING = datetime(2025, 7, 7, 9, 0)
THURSDAY = date(2025, 7, 10)
SATURDAY = date(2025, 7, 12)
SUNDAY = date(2025, 7, 13)
NEXT_MONDAY = date(2025, 7, 14)


class FixedClock:
    """Callable clock whose time the test controls."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_scheduling(**overrides: Any) -> SchedulingConfig:
    values = {
        "business_start": "08:30",
        "business_end": "17:30",
        "working_days": WORKING_DAYS,
        "slot_duration_minutes": 30,
        "booking_window_weeks": 8,
        "closed_days": (),
    }
    values.update(overrides)
    return SchedulingConfig(**values)


def make_config(**scheduling_overrides: Any) -> AppConfig:
    return AppConfig(
        scheduling=make_scheduling(**scheduling_overrides),
        pricing=PricingConfig(prices=dict(DEFAULT_PRICES), online_discount=5),
        rules=BookingRulesConfig(plate_max_length=8, notes_max_length=500, confirmation_prefix="AC"),
        log_level="INFO",
        store_path=":memory:",
    )


def make_request(**overrides: Any) -> dict[str, Any]:
    """Booking form payload with sensible defaults."""
    payload: dict[str, Any] = {
        "customer_name": "Ivan Petrov",
        "phone": "0878 559 905",
        "email": "ivan.petrov@autocheck.bg",
        "registration_plate": "a 1234 bc",
        "vehicle_type": "car",
        "vehicle_brand": "Skoda",
        "is_4x4": False,
        "appointment_date": THURSDAY,
        "appointment_time": "10:30",
        "notes": None,
    }
    payload.update(overrides)
    return payload


def make_record(
    booking_id: str = "rec0000000000000001",
    day: date = THURSDAY,
    time: str = "10:30",
    status: BookingStatus = BookingStatus.CONFIRMED,
    vehicle_type: VehicleType = VehicleType.CAR,
    price: int = 41,
    notes: Optional[str] = None,
) -> BookingRecord:
    return BookingRecord(
        id=booking_id,
        customer_name="Maria Ivanova",
        phone="0888123456",
        registration_plate="CA1234AB",
        vehicle_type=vehicle_type,
        appointment_date=day,
        appointment_time=time,
        price=price,
        status=status,
        created_at=datetime(2025, 7, 1, 12, 0),
        notes=notes,
    )


def record_fields(day: date = THURSDAY, time: str = "10:30", **overrides: Any) -> dict[str, Any]:
    """Insert payload for repository-level tests."""
    fields: dict[str, Any] = {
        "customer_name": "Maria Ivanova",
        "phone": "0888123456",
        "email": None,
        "registration_plate": "CA1234AB",
        "vehicle_type": VehicleType.CAR,
        "vehicle_brand": None,
        "is_4x4": False,
        "appointment_date": day,
        "appointment_time": time,
        "price": 41,
        "created_at": datetime(2025, 7, 1, 12, 0),
        "notes": None,
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def scheduling():
    return make_scheduling()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def clock():
    return FixedClock(MONDAY_MORNING)


@pytest.fixture
def repository():
    return InMemoryAppointmentRepository()


@pytest.fixture
def service(repository, config, clock):
    return BookingService(repository, config, clock=clock)
