"""
Calendar day classification: working days, past days and the booking window.

Every function takes an explicit ``now`` snapshot instead of reading the
clock, so one render pass (or one service call) classifies all of its days
against the same instant.

Weekday indices use Sunday=0, Monday=1 ... Saturday=6.
"""

import calendar
import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Mapping, Optional

from inspection_booking.config import SchedulingConfig
from inspection_booking.schemas.calendar_schema import CalendarDay, CalendarWeek

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


def weekday_index(day: date) -> int:
    """Weekday index with Sunday=0."""
    return day.isoweekday() % DAYS_PER_WEEK


def is_working_day(day: date, working_days: Iterable[int]) -> bool:
    return weekday_index(day) in set(working_days)


def is_past_date(day: date, now: datetime) -> bool:
    """True iff ``day`` is strictly before today's midnight."""
    return day < now.date()


def is_closed_day(day: date, closed_days: Iterable[date] = ()) -> bool:
    return day in set(closed_days)


def is_bookable_date(
    day: date,
    now: datetime,
    working_days: Iterable[int],
    closed_days: Iterable[date] = (),
) -> bool:
    """A working day that is not in the past and not closed by the admin."""
    return (
        is_working_day(day, working_days)
        and not is_past_date(day, now)
        and not is_closed_day(day, closed_days)
    )


def max_booking_date(now: datetime, booking_window_weeks: int) -> date:
    return now.date() + timedelta(weeks=booking_window_weeks)


def is_within_booking_window(day: date, now: datetime, booking_window_weeks: int) -> bool:
    """Not in the past and no later than the last day of the booking horizon."""
    return not is_past_date(day, now) and day <= max_booking_date(now, booking_window_weeks)


def is_date_open_for_booking(day: date, now: datetime, config: SchedulingConfig) -> bool:
    """Bookable and inside the booking horizon."""
    return is_bookable_date(
        day, now, config.working_days, config.closed_days
    ) and is_within_booking_window(day, now, config.booking_window_weeks)


def next_available_date(now: datetime, config: SchedulingConfig) -> Optional[date]:
    """
    First date a customer can still book.

    Today counts only while the current time is before closing; otherwise
    the search starts tomorrow. Returns None if nothing inside the booking
    window is open.
    """
    today = now.date()
    closing = datetime.combine(today, datetime.strptime(config.business_end, "%H:%M").time())
    candidate = today if now < closing else today + timedelta(days=1)
    last = max_booking_date(now, config.booking_window_weeks)

    while candidate <= last:
        if is_date_open_for_booking(candidate, now, config):
            return candidate
        candidate += timedelta(days=1)

    logger.warning("No open booking date found before %s", last.isoformat())
    return None


def _month_bounds(month: date) -> tuple[date, date]:
    first = month.replace(day=1)
    last = month.replace(day=calendar.monthrange(month.year, month.month)[1])
    return first, last


def generate_calendar_days(
    month: date,
    now: datetime,
    config: SchedulingConfig,
    selected: Optional[date] = None,
    appointment_counts: Optional[Mapping[str, int]] = None,
    slots_per_day: Optional[int] = None,
) -> list[CalendarDay]:
    """
    Build the Monday-first grid of days covering ``month``.

    ``appointment_counts`` is keyed by ``YYYY-MM-DD``; a missing key means
    zero. When ``slots_per_day`` is given, days whose count reaches it are
    flagged as fully booked.
    """
    counts = appointment_counts or {}
    first, last = _month_bounds(month)
    grid_start = first - timedelta(days=first.weekday())
    grid_end = last + timedelta(days=DAYS_PER_WEEK - 1 - last.weekday())

    days: list[CalendarDay] = []
    current = grid_start
    while current <= grid_end:
        count = counts.get(current.isoformat(), 0)
        days.append(CalendarDay(
            day=current,
            is_current_month=current.month == month.month and current.year == month.year,
            is_today=current == now.date(),
            is_selected=selected is not None and current == selected,
            is_working_day=is_working_day(current, config.working_days),
            is_past_date=is_past_date(current, now),
            is_closed_day=is_closed_day(current, config.closed_days),
            is_bookable=is_date_open_for_booking(current, now, config),
            has_appointments=count > 0,
            is_fully_booked=slots_per_day is not None and slots_per_day > 0 and count >= slots_per_day,
            appointment_count=count,
        ))
        current += timedelta(days=1)
    return days


def generate_calendar_weeks(days: list[CalendarDay]) -> list[CalendarWeek]:
    return [
        CalendarWeek(days=days[i:i + DAYS_PER_WEEK])
        for i in range(0, len(days), DAYS_PER_WEEK)
    ]


def is_month_within_booking_window(month: date, now: datetime, booking_window_weeks: int) -> bool:
    """Whether any day of ``month`` overlaps [today, max booking date]."""
    first, last = _month_bounds(month)
    return last >= now.date() and first <= max_booking_date(now, booking_window_weeks)
