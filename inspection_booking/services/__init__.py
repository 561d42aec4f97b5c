from inspection_booking.services.booking_service import BookingService, make_confirmation_number

__all__ = ["BookingService", "make_confirmation_number"]
