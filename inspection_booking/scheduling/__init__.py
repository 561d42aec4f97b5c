from inspection_booking.scheduling.availability import is_slot_in_past, resolve_availability
from inspection_booking.scheduling.calendar_days import (
    generate_calendar_days,
    is_bookable_date,
    is_past_date,
    is_working_day,
)
from inspection_booking.scheduling.occupancy import count_appointments_by_date
from inspection_booking.scheduling.slots import generate_slots

__all__ = [
    "is_working_day",
    "is_past_date",
    "is_bookable_date",
    "generate_calendar_days",
    "generate_slots",
    "resolve_availability",
    "is_slot_in_past",
    "count_appointments_by_date",
]
