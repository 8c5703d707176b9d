"""
Booking engine services: seat inventory, ticket allocation, booking and
cancellation coordinators, and the collaborators they call.
"""

from .lock_manager import LockManager, LocalLockManager, DistributedLockManager, LockInfo, create_lock_manager
from .seat_inventory import SeatInventory, validate_seat_request
from .ticket_allocator import TicketIDAllocator
from .fare import calculate_fare, DEFAULT_TAX_RATE
from .trip_catalog import TripCatalog, InventoryTripCatalog
from .payment import PaymentGateway, StaticPaymentGateway, CallbackPaymentGateway
from .notifications import NotificationDispatcher, FileNotificationDispatcher, recipients_for
from .frequent_routes import FrequentRouteTracker, FileFrequentRouteTracker
from .booking_coordinator import BookingCoordinator, SeatPrompt
from .cancellation_coordinator import CancellationCoordinator, ConfirmationPrompt

__all__ = [
    'LockManager',
    'LocalLockManager',
    'DistributedLockManager',
    'LockInfo',
    'create_lock_manager',
    'SeatInventory',
    'validate_seat_request',
    'TicketIDAllocator',
    'calculate_fare',
    'DEFAULT_TAX_RATE',
    'TripCatalog',
    'InventoryTripCatalog',
    'PaymentGateway',
    'StaticPaymentGateway',
    'CallbackPaymentGateway',
    'NotificationDispatcher',
    'FileNotificationDispatcher',
    'recipients_for',
    'FrequentRouteTracker',
    'FileFrequentRouteTracker',
    'BookingCoordinator',
    'SeatPrompt',
    'CancellationCoordinator',
    'ConfirmationPrompt',
]
