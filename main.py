"""
Console entry point for exploring the booking core without a UI.

Uses the SQLite store at BOOKING_DB_PATH when set, otherwise an in-memory
store that lives for the duration of the command.

Usage:
    python main.py slots 2025-07-10
    python main.py calendar 2025-07
    python main.py counts 2025-07-01 2025-07-31
    python main.py book 2025-07-10 10:30 --name "Ivan Petrov" --phone 0878559905 \
        --plate CA1234AB --vehicle car
    python main.py lookup AC20250710A1B2C3
"""

import argparse
import asyncio
import sys
from datetime import date, datetime

from inspection_booking.config import settings
from inspection_booking.schemas.booking_schema import VehicleType
from inspection_booking.scheduling.calendar_days import generate_calendar_weeks
from inspection_booking.services.booking_service import BookingService
from inspection_booking.storage.repository import InMemoryAppointmentRepository
from inspection_booking.storage.sqlite_repository import SqliteAppointmentRepository


def _build_service() -> BookingService:
    if settings.store_path == ":memory:":
        return BookingService(InMemoryAppointmentRepository(), settings)
    store = SqliteAppointmentRepository(settings.store_path)
    store.init_schema()
    return BookingService(store, settings)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Vehicle inspection booking console.")
    commands = parser.add_subparsers(dest="command", required=True)

    slots = commands.add_parser("slots", help="List time slots for a date.")
    slots.add_argument("day", type=date.fromisoformat)

    cal = commands.add_parser("calendar", help="Show the month calendar with occupancy.")
    cal.add_argument("month", type=lambda v: datetime.strptime(v, "%Y-%m").date())

    counts = commands.add_parser("counts", help="Confirmed bookings per date in a range.")
    counts.add_argument("start", type=date.fromisoformat)
    counts.add_argument("end", type=date.fromisoformat)

    book = commands.add_parser("book", help="Create a booking.")
    book.add_argument("day", type=date.fromisoformat)
    book.add_argument("time")
    book.add_argument("--name", required=True)
    book.add_argument("--phone", required=True)
    book.add_argument("--plate", required=True)
    book.add_argument("--vehicle", choices=[v.value for v in VehicleType], default="car")
    book.add_argument("--email", default=None)

    lookup = commands.add_parser("lookup", help="Find a booking by confirmation number.")
    lookup.add_argument("confirmation_number")

    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    service = _build_service()

    if args.command == "slots":
        result = await service.get_available_slots(args.day)
        if not result.success:
            print(result.error)
            return 1
        if not result.data:
            print(f"No slots on {args.day.isoformat()}.")
        for slot in result.data or []:
            print(f"{slot.time}  {'free' if slot.available else 'taken'}")
        return 0

    if args.command == "calendar":
        result = await service.get_calendar_month(args.month)
        for week in generate_calendar_weeks(result.data or []):
            cells = []
            for day in week.days:
                label = f"{day.day.day:2d}" if day.is_current_month else "  "
                marker = "*" if day.has_appointments else ("." if day.is_bookable else " ")
                cells.append(f"{label}{marker}")
            print(" ".join(cells))
        return 0 if result.success else 1

    if args.command == "counts":
        result = await service.get_appointment_counts(args.start, args.end)
        for key, count in (result.data or {}).items():
            print(f"{key}: {count}")
        return 0 if result.success else 1

    if args.command == "book":
        result = await service.create_booking({
            "customer_name": args.name,
            "phone": args.phone,
            "email": args.email,
            "registration_plate": args.plate,
            "vehicle_type": args.vehicle,
            "appointment_date": args.day,
            "appointment_time": args.time,
        })
        if result.success and result.data:
            print(f"Booked. Confirmation number: {result.data.confirmation_number} "
                  f"(price {result.data.price})")
            return 0
        print(f"Booking failed: {result.error}")
        return 1

    if args.command == "lookup":
        result = await service.find_by_confirmation_number(args.confirmation_number)
        if result.success and result.data:
            record = result.data
            print(f"{record.customer_name} {record.registration_plate} "
                  f"{record.appointment_date.isoformat()} {record.appointment_time} "
                  f"[{record.status.value}]")
            return 0
        print(result.error)
        return 1

    return 2


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
