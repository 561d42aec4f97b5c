"""Derived calendar and slot models. Always recomputed, never persisted."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Reference carried by a slot blocked by a booking whose id is unknown
BOOKED_SENTINEL = "existing-booking"


class TimeSlot(BaseModel):
    """A single bookable start time within business hours."""

    model_config = ConfigDict(frozen=True)

    time: str
    available: bool = True
    booking_id: Optional[str] = None


class CalendarDay(BaseModel):
    """One cell of the month calendar with its occupancy indicator."""

    day: date
    is_current_month: bool
    is_today: bool
    is_selected: bool = False
    is_working_day: bool
    is_past_date: bool
    is_closed_day: bool = False
    is_bookable: bool = False
    has_appointments: bool = False
    is_fully_booked: bool = False
    appointment_count: int = 0


class CalendarWeek(BaseModel):
    """Seven consecutive calendar days, Monday first."""

    days: list[CalendarDay] = Field(default_factory=list)
