"""
Slot generation.

Produces the fixed grid of start times for a bookable date. Start times
follow the half-open convention [business_start, business_end): a slot
starting at or after closing time is never emitted.

Usage:
    slots = generate_slots(day, "08:30", "17:30", 30, now, working_days=(1, 2, 3, 4, 5))
    # -> [TimeSlot(time="08:30"), ..., TimeSlot(time="17:00")]
"""

import logging
from datetime import date, datetime
from typing import Iterable

from inspection_booking.config import SchedulingConfig
from inspection_booking.schemas.calendar_schema import TimeSlot
from inspection_booking.scheduling.calendar_days import is_bookable_date

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def time_to_minutes(value: str) -> int:
    """Parse ``HH:MM`` into minutes since midnight."""
    parsed = datetime.strptime(value.strip(), "%H:%M")
    return parsed.hour * 60 + parsed.minute


def minutes_to_time(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"minutes must be within one day, got {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def build_slot_grid(business_start: str, business_end: str, slot_minutes: int) -> list[str]:
    """All slot start times in [start, end), spaced ``slot_minutes`` apart."""
    if slot_minutes < 1:
        raise ValueError(f"slot_minutes must be >= 1, got {slot_minutes}")
    start = time_to_minutes(business_start)
    end = time_to_minutes(business_end)
    return [minutes_to_time(m) for m in range(start, end, slot_minutes)]


def slots_per_day(config: SchedulingConfig) -> int:
    return len(build_slot_grid(
        config.business_start, config.business_end, config.slot_duration_minutes
    ))


def is_on_slot_grid(time_value: str, config: SchedulingConfig) -> bool:
    """Whether ``time_value`` is one of the configured slot start times."""
    return time_value in build_slot_grid(
        config.business_start, config.business_end, config.slot_duration_minutes
    )


def generate_slots(
    day: date,
    business_start: str,
    business_end: str,
    slot_minutes: int,
    now: datetime,
    working_days: Iterable[int],
    closed_days: Iterable[date] = (),
) -> list[TimeSlot]:
    """
    Generate the candidate slots for ``day``, all marked available.

    Returns an empty list on non-working, closed or past days. Availability
    is finalized by ``resolve_availability``.
    """
    if not is_bookable_date(day, now, working_days, closed_days):
        logger.debug("No slots for non-bookable date %s", day.isoformat())
        return []

    return [
        TimeSlot(time=slot_time, available=True)
        for slot_time in build_slot_grid(business_start, business_end, slot_minutes)
    ]


def generate_slots_for_config(day: date, now: datetime, config: SchedulingConfig) -> list[TimeSlot]:
    """``generate_slots`` driven by a SchedulingConfig."""
    return generate_slots(
        day,
        config.business_start,
        config.business_end,
        config.slot_duration_minutes,
        now,
        config.working_days,
        config.closed_days,
    )
