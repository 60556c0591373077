"""Errors raised by the seat ledger and the booking store."""

from typing import Optional


class LedgerError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class SeatUnavailable(LedgerError):
    status_code = 409

    def __init__(self, seat_id: str, status: str):
        self.seat_id = seat_id
        self.status = status
        super().__init__(f"Seat {seat_id} is {status}. Please select different seats.")


class BookingNotFound(LedgerError):
    status_code = 404

    def __init__(self, booking_id: str, message: Optional[str] = None):
        self.booking_id = booking_id
        super().__init__(message or f"Booking {booking_id} not found")


class HoldExpired(BookingNotFound):
    """The draft's hold lapsed before the caller acted on it."""

    status_code = 410

    def __init__(self, booking_id: str):
        super().__init__(booking_id, f"Hold for booking {booking_id} has expired")


class Forbidden(LedgerError):
    status_code = 403

    def __init__(self, message: str = "Unauthorized access to booking"):
        super().__init__(message)


class AlreadyConfirmed(LedgerError):
    status_code = 409

    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} is already confirmed")


class InvalidSeatSelection(LedgerError, ValueError):
    status_code = 400


class PersistenceError(LedgerError):
    status_code = 503
