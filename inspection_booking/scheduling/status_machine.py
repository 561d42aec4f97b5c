"""
Booking status state machine.

    confirmed -> cancelled   (customer or admin cancel, optional reason)
    confirmed -> completed   (admin marks the inspection done)

Cancelled and completed are terminal.
"""

import logging
from dataclasses import dataclass

from inspection_booking.errors import InvalidStatusTransitionError
from inspection_booking.schemas.booking_schema import BookingStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusTransition:
    """A single valid status change."""
    from_status: BookingStatus
    to_status: BookingStatus


TRANSITIONS: list[StatusTransition] = [
    StatusTransition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
    StatusTransition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
]


def get_valid_targets(current: BookingStatus) -> list[BookingStatus]:
    """Return every status reachable from ``current``."""
    return [t.to_status for t in TRANSITIONS if t.from_status == current]


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in get_valid_targets(current)


def is_terminal(status: BookingStatus) -> bool:
    return not get_valid_targets(status)


def ensure_transition(current: BookingStatus, target: BookingStatus) -> None:
    """
    Raises:
        InvalidStatusTransitionError: If no transition leads from ``current`` to ``target``.
    """
    if can_transition(current, target):
        return
    valid = [s.value for s in get_valid_targets(current)]
    logger.warning("Rejected status change %s -> %s", current.value, target.value)
    raise InvalidStatusTransitionError(
        f"Cannot change a {current.value} booking to {target.value}. "
        f"Allowed: {valid or 'none'}"
    )
