from inspection_booking.storage.repository import (
    AppointmentRepository,
    InMemoryAppointmentRepository,
)
from inspection_booking.storage.sqlite_repository import SqliteAppointmentRepository

__all__ = [
    "AppointmentRepository",
    "InMemoryAppointmentRepository",
    "SqliteAppointmentRepository",
]
