"""
Trip lookup used by booking transactions.
"""

import logging
from datetime import date
from typing import List, Optional

from ..exceptions import NotFoundError
from ..models.booking import FrequentRouteModel
from ..models.trip import TripModel
from .seat_inventory import SeatInventory

logger = logging.getLogger(__name__)


class TripCatalog:
    """Read access to scheduled trips."""

    def lookup(self, trip_id: int) -> TripModel:
        raise NotImplementedError

    def list_trips(self) -> List[TripModel]:
        raise NotImplementedError

    def trips_on_route(self, plate: str, source: str, destination: str) -> List[TripModel]:
        """Trips run by one bus between two towns, earliest first."""
        return sorted(
            (
                trip for trip in self.list_trips()
                if trip.plate == plate and trip.source == source and trip.destination == destination
            ),
            key=lambda trip: (trip.travel_date, trip.trip_id),
        )

    def find_trip(self, route: FrequentRouteModel, travel_date: date) -> TripModel:
        """
        Resolve a saved route to the trip running on travel_date.

        Raises:
            NotFoundError: The bus does not run the route on that date
        """
        for trip in self.trips_on_route(route.plate, route.source, route.destination):
            if trip.travel_date == travel_date:
                return trip
        raise NotFoundError(
            f"No trip for bus {route.plate} ({route.source} -> {route.destination}) on {travel_date}"
        )

    def find_return(self, route: FrequentRouteModel, travel_date: Optional[date] = None) -> TripModel:
        """
        Resolve the return leg of a saved route: same bus, source and destination swapped.

        Args:
            route: Outbound route
            travel_date: Exact return date; the earliest return trip when None

        Raises:
            NotFoundError: No matching return trip
        """
        candidates = self.trips_on_route(route.plate, route.destination, route.source)
        if travel_date is not None:
            candidates = [trip for trip in candidates if trip.travel_date == travel_date]
        if not candidates:
            raise NotFoundError(
                f"No return trip for bus {route.plate} ({route.destination} -> {route.source})"
            )
        return candidates[0]


class InventoryTripCatalog(TripCatalog):
    """Catalog backed by the live seat inventory."""

    def __init__(self, inventory: SeatInventory):
        self.inventory = inventory

    def lookup(self, trip_id: int) -> TripModel:
        return self.inventory.get_trip(trip_id)

    def list_trips(self) -> List[TripModel]:
        return self.inventory.trips()
