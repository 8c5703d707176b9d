"""
Booking transaction models.

A BookingTransactionModel lives only for one user interaction. It holds one
leg for a one-way booking and two for a round trip, and is discarded after
commit or abort.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from .enums import LegStatus, TransactionStatus, TripKind, CancellationStatus
from .ledger import ReservationLedgerEntry, CancellationLedgerEntry
from .seat import SeatHoldModel
from .trip import TripModel


class UserIdentity(BaseModel):
    """Read-only identity of the user on whose behalf the engine acts."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    username: str = Field(..., min_length=1, description="Login name")
    email: Optional[str] = Field(None, description="Email address for notifications")
    phone: Optional[str] = Field(None, description="Phone number for SMS notifications")


class FareBreakdown(BaseModel):
    """Fare of one leg: base = seats x unit fare, tax = base x rate."""
    model_config = ConfigDict(frozen=True)

    seat_count: int = Field(..., ge=1)
    unit_fare: Decimal = Field(..., ge=0)
    tax_rate: Decimal = Field(..., ge=0)
    base_fare: Decimal = Field(..., ge=0)
    tax: Decimal = Field(..., ge=0)
    amount: Decimal = Field(..., ge=0, description="Tax-inclusive amount")


class LegModel(BaseModel):
    """One directional trip reservation within a transaction."""
    model_config = ConfigDict(from_attributes=True)

    leg_index: int = Field(..., ge=0)
    trip: TripModel
    seats: List[int] = Field(..., min_length=1)
    status: LegStatus = LegStatus.SELECTING
    hold: Optional[SeatHoldModel] = None
    fare: Optional[FareBreakdown] = None
    ticket_id: Optional[int] = None


class BookingTransactionModel(BaseModel):
    """Transient one- or two-leg booking transaction."""
    model_config = ConfigDict(from_attributes=True)

    transaction_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user: UserIdentity
    kind: TripKind = TripKind.ONE_WAY
    expected_legs: int = Field(1, ge=1, le=2)
    legs: List[LegModel] = Field(default_factory=list)
    status: TransactionStatus = TransactionStatus.COLLECTING
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def total_amount(self) -> Decimal:
        return sum((leg.fare.amount for leg in self.legs if leg.fare), Decimal("0.00"))

    @property
    def is_finished(self) -> bool:
        return self.status in (TransactionStatus.COMMITTED, TransactionStatus.ABORTED)


class BookingReceipt(BaseModel):
    """Result of settling a booking transaction."""
    transaction_id: str
    status: TransactionStatus
    total_amount: Decimal
    tickets: List[ReservationLedgerEntry] = Field(default_factory=list)


class CancellationReceipt(BaseModel):
    """Result of a cancellation request."""
    ticket_id: int
    status: CancellationStatus
    refund_amount: Optional[Decimal] = None
    entry: Optional[CancellationLedgerEntry] = None


class FrequentRouteModel(BaseModel):
    """Route a user books often enough to be offered for quick rebooking."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    username: str
    plate: str
    source: str
    destination: str
