"""Occupancy aggregation over booking records for calendar density indicators."""

from collections import Counter
from datetime import date
from typing import Iterable

from inspection_booking.schemas.booking_schema import BookingRecord, BookingStatus


def date_key(day: date) -> str:
    """Stable, sortable calendar key: ``YYYY-MM-DD``."""
    return day.isoformat()


def _confirmed_in_range(
    records: Iterable[BookingRecord], start: date, end: date
) -> Iterable[BookingRecord]:
    return (
        record for record in records
        if record.status == BookingStatus.CONFIRMED
        and start <= record.appointment_date <= end
    )


def count_appointments_by_date(
    records: Iterable[BookingRecord], start: date, end: date
) -> dict[str, int]:
    """
    Count confirmed bookings per date within [start, end].

    Dates without bookings are absent from the result; callers treat a
    missing key as zero.
    """
    counts = Counter(
        date_key(record.appointment_date)
        for record in _confirmed_in_range(records, start, end)
    )
    return dict(sorted(counts.items()))


def count_in_range(records: Iterable[BookingRecord], start: date, end: date) -> int:
    return sum(1 for _ in _confirmed_in_range(records, start, end))
