"""Booking error taxonomy.

Every error carries a stable ``code`` for callers and a user-facing
``message``. The booking service converts these into ``ServiceResult``
failures; they never escape past the service boundary.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for all booking-core failures."""

    code = "booking_error"
    retryable = False
    default_message = "The booking request could not be completed."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class SlotConflictError(BookingError):
    """The requested (date, time) already has a confirmed booking."""

    code = "slot_conflict"
    default_message = "The selected time is already booked. Please choose another time."


class InvalidInputError(BookingError):
    """Malformed input or a date outside the bookable window."""

    code = "invalid_input"
    default_message = "The booking details are invalid."

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class PersistenceUnavailableError(BookingError):
    """The appointment store failed or timed out."""

    code = "persistence_unavailable"
    retryable = True
    default_message = "The booking service is temporarily unavailable. Please try again."


class NotFoundError(BookingError):
    """No booking matches the given identifier or confirmation number."""

    code = "not_found"
    default_message = "The booking was not found."


class InvalidStatusTransitionError(BookingError):
    """A status change is not allowed from the booking's current status."""

    code = "invalid_status_transition"
    default_message = "The booking status cannot be changed."
