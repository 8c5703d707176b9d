"""
Error taxonomy for the booking and cancellation engine.

Every error raised by the engine derives from BookingError so callers can
catch the whole family. Abort paths never leave partially applied state.
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence


class BookingError(Exception):
    """Base class for all engine errors."""
    pass


class ValidationError(BookingError):
    """Malformed caller input (seat count, seat numbers). Recoverable locally."""
    pass


class InvalidSeatNumber(ValidationError):
    """A requested seat number lies outside [1, total_seats]."""

    def __init__(self, trip_id: int, seat_numbers: Sequence[int], total_seats: int):
        self.trip_id = trip_id
        self.seat_numbers = list(seat_numbers)
        self.total_seats = total_seats
        super().__init__(
            f"Seat number(s) {self.seat_numbers} out of range 1-{total_seats} on trip {trip_id}"
        )


class NotFoundError(BookingError):
    """Unknown trip or ticket, or a ticket owned by someone else."""
    pass


class CapacityError(BookingError):
    """Seats already held or not enough seats left on the trip."""

    def __init__(self, message: str, trip_id: Optional[int] = None):
        self.trip_id = trip_id
        super().__init__(message)


class SeatAlreadyReserved(CapacityError):
    def __init__(self, trip_id: int, seat_numbers: Iterable[int]):
        self.seat_numbers = sorted(seat_numbers)
        super().__init__(
            f"Seat(s) {self.seat_numbers} already reserved on trip {trip_id}", trip_id
        )


class InsufficientCapacity(CapacityError):
    def __init__(self, trip_id: int, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Trip {trip_id} has {available} seat(s) left, {requested} requested", trip_id
        )


class AllocationExhausted(BookingError):
    """No free ticket id found within the bounded number of draws."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"No free ticket id after {attempts} attempts")


class PersistenceError(BookingError):
    """
    A store could not be read, written or swapped into place.

    committed is True when the update already reached the commit journal:
    the stores will reflect it once recovery runs, so callers must not roll
    their in-memory state back.
    """

    def __init__(self, message: str, committed: bool = False):
        self.committed = committed
        super().__init__(message)


class ConcurrencyViolation(BookingError):
    """A concurrent writer invalidated this transaction; retry it as a whole."""
    pass


class RefundRequired(ConcurrencyViolation):
    """
    Payment was accepted but a leg's seats were taken before the commit.

    Nothing was written; the charged amount must be returned to the user.
    """

    def __init__(self, transaction_id: str, amount: Decimal, trip_id: int, seat_numbers: Iterable[int]):
        self.transaction_id = transaction_id
        self.amount = amount
        self.trip_id = trip_id
        self.seat_numbers = sorted(seat_numbers)
        super().__init__(
            f"Transaction {transaction_id} lost seat(s) {self.seat_numbers} on trip {trip_id} "
            f"after payment; refund {amount:.2f}"
        )


class TransactionStateError(BookingError):
    """An operation was issued against a transaction in the wrong state."""
    pass
