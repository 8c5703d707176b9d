"""
Engine assembly and entry point.
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional

from busline.cache.client import ValkeyClient
from busline.services.booking_coordinator import BookingCoordinator
from busline.services.cancellation_coordinator import CancellationCoordinator
from busline.services.frequent_routes import FileFrequentRouteTracker
from busline.services.lock_manager import LockManager, create_lock_manager
from busline.services.notifications import FileNotificationDispatcher
from busline.services.payment import PaymentGateway, StaticPaymentGateway
from busline.services.seat_inventory import SeatInventory
from busline.services.ticket_allocator import TicketIDAllocator
from busline.services.trip_catalog import InventoryTripCatalog
from busline.storage.synchronizer import PersistenceSynchronizer
from busline.utils.config import BookingConfig, configure_logging, get_config

logger = logging.getLogger(__name__)


@dataclass
class BookingEngine:
    """Wired components sharing one data directory and one lock manager."""
    config: BookingConfig
    lock_manager: LockManager
    synchronizer: PersistenceSynchronizer
    inventory: SeatInventory
    catalog: InventoryTripCatalog
    notifier: FileNotificationDispatcher
    frequent_routes: FileFrequentRouteTracker
    booking: BookingCoordinator
    cancellation: CancellationCoordinator


def build_engine(
    config: Optional[BookingConfig] = None,
    payment: Optional[PaymentGateway] = None,
    valkey_client: Optional[ValkeyClient] = None,
    rng: Optional[random.Random] = None,
) -> BookingEngine:
    """
    Recover the stores, load every trip and wire the coordinators.

    Args:
        config: Engine configuration, the global one when None
        payment: Payment gateway, accept-all when None
        valkey_client: Client for the 'valkey' lock backend
        rng: Random source for ticket ids

    Raises:
        PersistenceError: The stores are unreadable or disagree
    """
    config = config or get_config()

    synchronizer = PersistenceSynchronizer(config.data_path)
    if synchronizer.recover():
        logger.warning("Recovered an interrupted commit on startup")

    lock_manager = create_lock_manager(config, valkey_client)
    inventory = SeatInventory(lock_manager)
    inventory.load(synchronizer.load_trips().values())

    catalog = InventoryTripCatalog(inventory)
    notifier = FileNotificationDispatcher(config.data_path)
    frequent_routes = FileFrequentRouteTracker(
        config.data_path, synchronizer, catalog, threshold=config.frequent_route_threshold
    )
    allocator = TicketIDAllocator(
        config.ticket_id_min, config.ticket_id_max, config.ticket_id_max_attempts, rng=rng
    )

    booking = BookingCoordinator(
        inventory,
        synchronizer,
        allocator,
        catalog,
        payment or StaticPaymentGateway(),
        notifier=notifier,
        frequent_routes=frequent_routes,
        lock_manager=lock_manager,
        tax_rate=config.tax_rate,
        max_legs=config.max_legs,
        hold_ttl_seconds=config.hold_ttl_seconds,
    )
    cancellation = CancellationCoordinator(inventory, synchronizer, notifier=notifier, lock_manager=lock_manager)

    return BookingEngine(
        config=config,
        lock_manager=lock_manager,
        synchronizer=synchronizer,
        inventory=inventory,
        catalog=catalog,
        notifier=notifier,
        frequent_routes=frequent_routes,
        booking=booking,
        cancellation=cancellation,
    )


def main() -> int:
    """Check the stores and report the engine's state."""
    try:
        config = get_config()
        configure_logging(config.log_level)
        engine = build_engine(config)
    except Exception as e:
        print(f"Failed to start booking engine: {e}")
        return 1

    problems = engine.synchronizer.verify()
    for problem in problems:
        print(f"Inconsistency: {problem}")
    print(f"Loaded {len(engine.inventory.trips())} trip(s) from {config.data_path}")
    return 1 if problems else 0


if __name__ == "__main__":
    exit(main())
