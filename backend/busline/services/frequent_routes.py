"""
Frequent route tracking.

A route (bus plate, source, destination) is saved for a user once the
active ledger holds at least the threshold number of that user's bookings
on the same bus. Saved routes are offered for quick rebooking.
"""

import logging
from pathlib import Path
from typing import List, Optional

from ..exceptions import PersistenceError
from ..models.booking import FrequentRouteModel, UserIdentity
from ..storage.files import atomic_write_text, read_text
from ..storage.records import encode_rows, parse_rows
from ..storage.synchronizer import PersistenceSynchronizer
from .trip_catalog import TripCatalog

logger = logging.getLogger(__name__)


def route_from_record(row: List[str]) -> FrequentRouteModel:
    if len(row) != 4:
        raise ValueError(f"expected 4 fields, got {len(row)}")
    return FrequentRouteModel(username=row[0], plate=row[1], source=row[2], destination=row[3])


class FrequentRouteTracker:
    """Records committed legs and exposes the user's saved routes."""

    def record(self, user: UserIdentity, trip_id: int) -> Optional[FrequentRouteModel]:
        raise NotImplementedError

    def routes_for(self, username: str) -> List[FrequentRouteModel]:
        raise NotImplementedError


class FileFrequentRouteTracker(FrequentRouteTracker):
    """Keeps saved routes in frequent_bookings.txt as username,plate,source,destination."""

    FILE_NAME = "frequent_bookings.txt"

    def __init__(
        self,
        data_dir: Path,
        synchronizer: PersistenceSynchronizer,
        catalog: TripCatalog,
        threshold: int = 5,
    ):
        self.path = Path(data_dir) / self.FILE_NAME
        self.synchronizer = synchronizer
        self.catalog = catalog
        self.threshold = threshold

    def load(self) -> List[FrequentRouteModel]:
        return parse_rows(read_text(self.path), route_from_record, self.FILE_NAME)

    def routes_for(self, username: str) -> List[FrequentRouteModel]:
        return [route for route in self.load() if route.username == username]

    def record(self, user: UserIdentity, trip_id: int) -> Optional[FrequentRouteModel]:
        """
        Save the trip's route for user if the threshold is reached.

        Returns:
            The newly saved route, or None when nothing was saved
        """
        trip = self.catalog.lookup(trip_id)
        bookings = [
            entry for entry in self.synchronizer.entries_for(user.username)
            if entry.plate == trip.plate
        ]
        if len(bookings) < self.threshold:
            return None

        route = FrequentRouteModel(
            username=user.username,
            plate=trip.plate,
            source=trip.source,
            destination=trip.destination,
        )
        saved = self.load()
        if route in saved:
            return None

        rows = [[r.username, r.plate, r.source, r.destination] for r in [*saved, route]]
        try:
            atomic_write_text(self.path, encode_rows(rows))
        except PersistenceError:
            logger.error(f"Could not save frequent route for {user.username}")
            raise

        logger.info(
            f"Frequent route saved for {user.username}: bus {route.plate} "
            f"({route.source} -> {route.destination})"
        )
        return route
