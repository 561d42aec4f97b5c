"""SQLite appointment store.

The double-booking guard is a partial unique index on
(appointment_date, appointment_time) restricted to confirmed rows, so the
conditional insert is a single atomic statement. Cancelled and completed
rows do not hold their slot.

Writes commit only if their caller is still waiting. A write whose caller
timed out is rolled back by the worker thread.
"""

import asyncio
import sqlite3
import threading
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

from inspection_booking.errors import (
    InvalidStatusTransitionError,
    NotFoundError,
    PersistenceUnavailableError,
    SlotConflictError,
)
from inspection_booking.logging_context import get_request_logger
from inspection_booking.schemas.booking_schema import BookingRecord, BookingStatus
from inspection_booking.storage.repository import generate_booking_id

logger = get_request_logger(__name__)

T = TypeVar("T")

# SQLite reports a partial unique index violation by its column list
_SLOT_CONSTRAINT = "appointments.appointment_date, appointments.appointment_time"

_COLUMNS = (
    "id", "customer_name", "phone", "email", "registration_plate", "vehicle_type",
    "vehicle_brand", "is_4x4", "appointment_date", "appointment_time", "price",
    "status", "created_at", "updated_at", "notes", "cancel_reason",
)


def _to_db(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def _from_row(row: sqlite3.Row) -> BookingRecord:
    return BookingRecord(
        id=row["id"],
        customer_name=row["customer_name"],
        phone=row["phone"],
        email=row["email"],
        registration_plate=row["registration_plate"],
        vehicle_type=row["vehicle_type"],
        vehicle_brand=row["vehicle_brand"],
        is_4x4=bool(row["is_4x4"]),
        appointment_date=date.fromisoformat(row["appointment_date"]),
        appointment_time=row["appointment_time"],
        price=row["price"],
        status=row["status"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
        notes=row["notes"],
        cancel_reason=row["cancel_reason"],
    )


class SqliteAppointmentRepository:
    """SQLite-backed appointment store. Blocking calls run in a worker thread."""

    def __init__(self, db_path: str = ":memory:") -> None:
        """
        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory.
        """
        self.db_path = db_path
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        # Guards the commit-or-abandon decision of a write
        self._commit_gate = threading.Lock()

    def init_schema(self) -> None:
        """Create tables and the confirmed-slot uniqueness index if missing."""
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS appointments (
                id TEXT PRIMARY KEY,
                customer_name TEXT NOT NULL,
                phone TEXT NOT NULL,
                email TEXT,
                registration_plate TEXT NOT NULL,
                vehicle_type TEXT NOT NULL,
                vehicle_brand TEXT,
                is_4x4 INTEGER NOT NULL DEFAULT 0,
                appointment_date TEXT NOT NULL,
                appointment_time TEXT NOT NULL,
                price INTEGER NOT NULL,
                status TEXT NOT NULL DEFAULT 'confirmed'
                    CHECK(status IN ('confirmed', 'cancelled', 'completed')),
                created_at TEXT NOT NULL,
                updated_at TEXT,
                notes TEXT,
                cancel_reason TEXT
            );
            CREATE INDEX IF NOT EXISTS idx_appointments_date
                ON appointments(appointment_date);
            CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_confirmed_slot
                ON appointments(appointment_date, appointment_time)
                WHERE status = 'confirmed';
        """)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    async def _run(self, func: Callable[[], T], write: bool = False) -> T:
        """
        Run ``func`` on a worker thread under the connection lock.

        Writes are committed here, not by ``func``. If the awaiting caller is
        cancelled (for example by a timeout) before the commit, the worker
        rolls the write back when it gets to it, so a failed call never leaves
        a row behind. If the commit already happened, its result is returned.
        """
        abandoned = False
        committed: dict[str, T] = {}

        def locked() -> Optional[T]:
            with self._lock:
                try:
                    result = func()
                    if not write:
                        return result
                    with self._commit_gate:
                        if abandoned:
                            self.conn.rollback()
                            logger.warning("Rolled back a write abandoned by its caller")
                            return None
                        self.conn.commit()
                        committed["result"] = result
                    return result
                except sqlite3.Error:
                    self.conn.rollback()
                    raise

        try:
            return await asyncio.to_thread(locked)  # type: ignore[return-value]
        except asyncio.CancelledError:
            with self._commit_gate:
                abandoned = True
                if "result" in committed:
                    # Durable already, so report it as done
                    logger.warning("Write committed before its caller gave up")
                    return committed["result"]
            raise
        except sqlite3.IntegrityError as exc:
            if _SLOT_CONSTRAINT in str(exc):
                raise SlotConflictError() from None
            logger.exception("SQLite constraint violated")
            raise PersistenceUnavailableError() from exc
        except sqlite3.Error as exc:
            logger.exception("SQLite operation failed")
            raise PersistenceUnavailableError() from exc

    async def list_by_date_range(
        self, start: date, end: date, status: Optional[BookingStatus] = None
    ) -> list[BookingRecord]:
        query = "SELECT * FROM appointments WHERE appointment_date >= ? AND appointment_date <= ?"
        params: list = [start.isoformat(), end.isoformat()]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY appointment_date, appointment_time"

        rows = await self._run(lambda: self.conn.execute(query, params).fetchall())
        return [_from_row(row) for row in rows]

    async def find_confirmed(self, day: date, time: str) -> Optional[BookingRecord]:
        row = await self._run(lambda: self.conn.execute(
            """SELECT * FROM appointments
               WHERE appointment_date = ? AND appointment_time = ? AND status = 'confirmed'""",
            (day.isoformat(), time),
        ).fetchone())
        return _from_row(row) if row else None

    async def insert_if_slot_free(self, fields: dict[str, Any]) -> str:
        booking_id = generate_booking_id()
        values = {**fields, "id": booking_id, "status": BookingStatus.CONFIRMED}
        columns = [c for c in _COLUMNS if c in values]
        placeholders = ", ".join("?" for _ in columns)

        def insert() -> None:
            self.conn.execute(
                f"INSERT INTO appointments ({', '.join(columns)}) VALUES ({placeholders})",
                [_to_db(values[c]) for c in columns],
            )

        try:
            await self._run(insert, write=True)
        except SlotConflictError:
            logger.warning(
                "Slot %s %s already taken", fields["appointment_date"], fields["appointment_time"]
            )
            raise
        return booking_id

    async def reschedule_if_slot_free(
        self, booking_id: str, day: date, time: str, updated_at: datetime
    ) -> BookingRecord:
        def move() -> int:
            cursor = self.conn.execute(
                """UPDATE appointments
                   SET appointment_date = ?, appointment_time = ?, updated_at = ?
                   WHERE id = ? AND status = 'confirmed'""",
                (day.isoformat(), time, updated_at.isoformat(), booking_id),
            )
            return cursor.rowcount

        changed = await self._run(move, write=True)
        if changed == 0:
            existing = await self.get(booking_id)
            if existing is None:
                raise NotFoundError()
            raise InvalidStatusTransitionError(
                f"Only confirmed bookings can be rescheduled, this one is {existing.status.value}."
            )
        return await self._require(booking_id)

    async def update(
        self,
        booking_id: str,
        fields: dict[str, Any],
        expected_status: Optional[BookingStatus] = None,
    ) -> BookingRecord:
        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = [_to_db(value) for name, value in fields.items()]
        query = f"UPDATE appointments SET {assignments} WHERE id = ?"
        params.append(booking_id)
        if expected_status is not None:
            query += " AND status = ?"
            params.append(expected_status.value)

        def apply() -> int:
            cursor = self.conn.execute(query, params)
            return cursor.rowcount

        changed = await self._run(apply, write=True)
        if changed == 0:
            existing = await self.get(booking_id)
            if existing is None:
                raise NotFoundError()
            raise InvalidStatusTransitionError(
                f"Booking is {existing.status.value}, expected {expected_status.value}."  # type: ignore[union-attr]
            )
        return await self._require(booking_id)

    async def get(self, booking_id: str) -> Optional[BookingRecord]:
        row = await self._run(lambda: self.conn.execute(
            "SELECT * FROM appointments WHERE id = ?", (booking_id,)
        ).fetchone())
        return _from_row(row) if row else None

    async def _require(self, booking_id: str) -> BookingRecord:
        record = await self.get(booking_id)
        if record is None:
            raise NotFoundError()
        return record

    async def delete(self, booking_id: str) -> bool:
        def remove() -> int:
            cursor = self.conn.execute("DELETE FROM appointments WHERE id = ?", (booking_id,))
            return cursor.rowcount

        return await self._run(remove, write=True) > 0

    async def count_by_status(self, status: BookingStatus) -> int:
        row = await self._run(lambda: self.conn.execute(
            "SELECT COUNT(*) FROM appointments WHERE status = ?", (status.value,)
        ).fetchone())
        return int(row[0])
