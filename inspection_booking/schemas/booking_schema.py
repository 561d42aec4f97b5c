"""Booking request, record and response data models."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from inspection_booking.utils import PHONE_PATTERN, normalize_phone

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50
MAX_NOTES_LENGTH = 500


class VehicleType(str, Enum):
    """Inspection categories offered at the station."""
    CAR = "car"
    BUS = "bus"
    MOTORCYCLE = "motorcycle"
    TAXI = "taxi"
    CARAVAN = "caravan"
    TRAILER = "trailer"
    LPG = "lpg"


class BookingStatus(str, Enum):
    """Lifecycle status of a persisted booking."""
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


def _parse_hhmm(value: str) -> str:
    try:
        parsed = datetime.strptime(value.strip(), "%H:%M")
    except ValueError:
        raise ValueError(f"time must be in HH:MM format, got {value!r}") from None
    return parsed.strftime("%H:%M")


class BookingRequest(BaseModel):
    """Validated customer booking input, as submitted by the booking form."""

    model_config = ConfigDict(str_strip_whitespace=True)

    customer_name: str = Field(min_length=MIN_NAME_LENGTH, max_length=MAX_NAME_LENGTH)
    phone: str
    email: Optional[EmailStr] = None
    registration_plate: str = Field(min_length=1)
    vehicle_type: VehicleType
    vehicle_brand: Optional[str] = None
    is_4x4: bool = False
    appointment_date: date
    appointment_time: str
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)
    is_online: bool = True

    @field_validator("email", mode="before")
    @classmethod
    def _blank_email_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("phone")
    @classmethod
    def _normalize_phone(cls, value: str) -> str:
        normalized = normalize_phone(value)
        if not PHONE_PATTERN.match(normalized):
            raise ValueError("phone must look like +359XXXXXXXXX or 0XXXXXXXXX")
        return normalized

    @field_validator("appointment_time")
    @classmethod
    def _normalize_time(cls, value: str) -> str:
        return _parse_hhmm(value)

    @field_validator("vehicle_brand", "notes")
    @classmethod
    def _blank_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class BookingRecord(BaseModel):
    """A booking as persisted in the appointment store."""

    id: str
    customer_name: str
    phone: str
    email: Optional[str] = None
    registration_plate: str
    vehicle_type: VehicleType
    vehicle_brand: Optional[str] = None
    is_4x4: bool = False
    appointment_date: date
    appointment_time: str
    price: int
    status: BookingStatus = BookingStatus.CONFIRMED
    created_at: datetime
    updated_at: Optional[datetime] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None

    @property
    def slot_key(self) -> tuple[date, str]:
        return (self.appointment_date, self.appointment_time)


class CreateBookingResponse(BaseModel):
    """What the customer sees after a successful booking."""

    booking_id: str
    confirmation_number: str
    appointment_date: str = Field(description="Display date, dd.MM.yyyy")
    appointment_time: str
    price: int


class DashboardStats(BaseModel):
    """Confirmed-booking counts for the admin dashboard."""

    today_appointments: int = 0
    week_appointments: int = 0
    period_appointments: int = 0
    total_appointments: int = 0
