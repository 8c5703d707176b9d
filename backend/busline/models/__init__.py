"""
Busline Pydantic models package.

This package contains the Pydantic v2 models used throughout the booking
engine for validation, serialization and type safety.
"""

# Enums
from .enums import (
    LegStatus,
    TransactionStatus,
    TripKind,
    PaymentDecision,
    CancellationStatus,
    NotificationCategory,
    NotificationChannel,
)

# Trip and seat models
from .trip import TripModel

from .seat import (
    SeatHoldModel,
    SeatAvailabilityModel,
)

# Ledger models
from .ledger import (
    TICKET_ID_MIN,
    TICKET_ID_MAX,
    ReservationLedgerEntry,
    CancellationLedgerEntry,
)

# Transaction models
from .booking import (
    UserIdentity,
    FareBreakdown,
    LegModel,
    BookingTransactionModel,
    BookingReceipt,
    CancellationReceipt,
    FrequentRouteModel,
)

# Notification models
from .notification import (
    EmailRecipient,
    PhoneRecipient,
    Recipient,
    NotificationModel,
)

__all__ = [
    # Enums
    "LegStatus",
    "TransactionStatus",
    "TripKind",
    "PaymentDecision",
    "CancellationStatus",
    "NotificationCategory",
    "NotificationChannel",

    # Trip and seat models
    "TripModel",
    "SeatHoldModel",
    "SeatAvailabilityModel",

    # Ledger models
    "TICKET_ID_MIN",
    "TICKET_ID_MAX",
    "ReservationLedgerEntry",
    "CancellationLedgerEntry",

    # Transaction models
    "UserIdentity",
    "FareBreakdown",
    "LegModel",
    "BookingTransactionModel",
    "BookingReceipt",
    "CancellationReceipt",
    "FrequentRouteModel",

    # Notification models
    "EmailRecipient",
    "PhoneRecipient",
    "Recipient",
    "NotificationModel",
]
