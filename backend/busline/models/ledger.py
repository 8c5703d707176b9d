"""
Reservation and cancellation ledger entries.

An active reservation is written once per committed leg. Cancelling moves
the entry, with its refund, into the cancellation ledger.
"""

from datetime import date
from decimal import Decimal
from typing import List
from pydantic import BaseModel, Field, ConfigDict

TICKET_ID_MIN = 100000
TICKET_ID_MAX = 999999


class ReservationLedgerEntry(BaseModel):
    """
    One committed leg in the active reservation ledger.

    The ticket id is unique among the entries currently in the active ledger.
    """
    model_config = ConfigDict(from_attributes=True, frozen=True)

    username: str = Field(..., min_length=1, description="Owning user")
    ticket_id: int = Field(..., ge=TICKET_ID_MIN, le=TICKET_ID_MAX, description="6-digit ticket number")
    trip_id: int = Field(..., ge=1, description="Booked trip")
    plate: str = Field(..., description="Bus number plate")
    booking_date: date = Field(..., description="Date the booking was made")
    seats: List[int] = Field(..., min_length=1, description="Booked seat numbers")
    amount: Decimal = Field(..., ge=0, decimal_places=2, description="Amount paid, tax inclusive")

    @property
    def seat_count(self) -> int:
        return len(self.seats)


class CancellationLedgerEntry(ReservationLedgerEntry):
    """A reservation migrated out of the active ledger, with its refund."""

    refund_amount: Decimal = Field(..., ge=0, decimal_places=2, description="Refunded amount")

    @classmethod
    def from_reservation(cls, entry: ReservationLedgerEntry, refund_amount: Decimal) -> "CancellationLedgerEntry":
        return cls(**entry.model_dump(), refund_amount=refund_amount)
