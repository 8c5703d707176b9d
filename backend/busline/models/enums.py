"""
Enums for the booking engine.

This module contains the enumeration types used for transaction and leg
state machines, payment outcomes and notification routing.
"""

from enum import Enum


class LegStatus(str, Enum):
    """Per-leg state: Selecting -> ProvisionallyReserved -> Committed | Released."""
    SELECTING = "selecting"
    PROVISIONALLY_RESERVED = "provisionally_reserved"
    COMMITTED = "committed"
    RELEASED = "released"


class TransactionStatus(str, Enum):
    """Transaction state: Collecting -> AllLegsProvisioned -> AwaitingPayment -> Committed | Aborted."""
    COLLECTING = "collecting"
    ALL_LEGS_PROVISIONED = "all_legs_provisioned"
    AWAITING_PAYMENT = "awaiting_payment"
    COMMITTED = "committed"
    ABORTED = "aborted"


class TripKind(str, Enum):
    """Shape of a booking transaction."""
    ONE_WAY = "one_way"
    ROUND_TRIP = "round_trip"
    FREQUENT_ROUTE = "frequent_route"


class PaymentDecision(str, Enum):
    """Outcome reported by the payment collaborator."""
    ACCEPTED = "accepted"
    DECLINED = "declined"


class CancellationStatus(str, Enum):
    CANCELLED = "cancelled"
    ABORTED = "aborted"      # Caller declined the confirmation prompt


class NotificationCategory(str, Enum):
    CONFIRMATION = "Confirmation"
    CANCELLATION = "Cancellation"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
