"""
Persistence synchronizer for the trip, seat-occupancy and ledger stores.

The three stores are stored independently but depend on each other: the
trip store's available-seat counter, the seat-occupancy store and the
active ledger must always agree about which seats are occupied. Every
mutation goes through one journaled commit that rewrites all affected files
together, after re-reading and re-checking what is on disk.
"""

import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError as ModelValidationError

from ..exceptions import ConcurrencyViolation, NotFoundError, PersistenceError
from ..models.ledger import CancellationLedgerEntry, ReservationLedgerEntry
from ..models.trip import TripModel
from .files import read_text
from .journal import CommitJournal
from .records import (
    cancellation_from_record,
    cancellation_to_record,
    encode_rows,
    parse_rows,
    reservation_from_record,
    reservation_to_record,
    seats_from_record,
    seats_to_record,
    trip_from_record,
    trip_to_record,
)

logger = logging.getLogger(__name__)


class PersistenceSynchronizer:
    """
    Keeps the four store files mutually consistent.

    Callers serialize commits with the store-wide lock; the synchronizer
    itself is stateless between calls and always works from disk.
    """

    TRIPS_FILE = "trips.txt"
    SEATS_FILE = "seats.txt"
    RESERVATIONS_FILE = "reservation.txt"
    CANCELLATIONS_FILE = "cancellations.txt"

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.journal = CommitJournal(self.data_dir)

    def path(self, name: str) -> Path:
        return self.data_dir / name

    def recover(self) -> bool:
        """Roll forward or discard an interrupted commit. Returns True if one was rolled forward."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.journal.recover()

    # Reads

    def load_trips(self) -> Dict[int, TripModel]:
        """
        Join the trip store with the seat-occupancy store.

        Raises:
            PersistenceError: If a record is malformed or the two stores disagree
        """
        trip_rows = parse_rows(read_text(self.path(self.TRIPS_FILE)), trip_from_record, self.TRIPS_FILE)
        seat_rows = parse_rows(read_text(self.path(self.SEATS_FILE)), seats_from_record, self.SEATS_FILE)

        occupancy = dict(seat_rows)
        known = {row["trip_id"] for row in trip_rows}
        unknown = sorted(set(occupancy) - known)
        if unknown:
            raise PersistenceError(f"Seat store lists trips missing from the trip store: {unknown}")

        trips: Dict[int, TripModel] = {}
        for row in trip_rows:
            if row["trip_id"] in trips:
                raise PersistenceError(f"Trip {row['trip_id']} appears twice in {self.TRIPS_FILE}")
            try:
                trips[row["trip_id"]] = TripModel(**row, reserved_seats=occupancy.get(row["trip_id"], []))
            except ModelValidationError as e:
                raise PersistenceError(f"Trip and seat stores disagree for trip {row['trip_id']}: {e}") from e
        return trips

    def load_active_ledger(self) -> List[ReservationLedgerEntry]:
        return parse_rows(
            read_text(self.path(self.RESERVATIONS_FILE)), reservation_from_record, self.RESERVATIONS_FILE
        )

    def load_cancellation_ledger(self) -> List[CancellationLedgerEntry]:
        return parse_rows(
            read_text(self.path(self.CANCELLATIONS_FILE)), cancellation_from_record, self.CANCELLATIONS_FILE
        )

    def find_entry(self, ticket_id: int) -> Optional[ReservationLedgerEntry]:
        for entry in self.load_active_ledger():
            if entry.ticket_id == ticket_id:
                return entry
        return None

    def entries_for(self, username: str) -> List[ReservationLedgerEntry]:
        return [entry for entry in self.load_active_ledger() if entry.username == username]

    def verify(self) -> List[str]:
        """
        Cross-check the active ledger against the seat-occupancy store.

        Returns:
            Human readable problems; empty when the stores agree
        """
        problems: List[str] = []
        trips = self.load_trips()
        ledger = self.load_active_ledger()

        ticket_ids = [entry.ticket_id for entry in ledger]
        duplicates = sorted({t for t in ticket_ids if ticket_ids.count(t) > 1})
        if duplicates:
            problems.append(f"Duplicate active ticket ids: {duplicates}")

        booked: Dict[int, List[int]] = defaultdict(list)
        for entry in ledger:
            if entry.trip_id not in trips:
                problems.append(f"Ticket {entry.ticket_id} refers to unknown trip {entry.trip_id}")
                continue
            booked[entry.trip_id].extend(entry.seats)

        for trip_id, trip in trips.items():
            if sorted(booked.get(trip_id, [])) != sorted(trip.reserved_seats):
                problems.append(
                    f"Trip {trip_id}: ledger seats {sorted(booked.get(trip_id, []))} "
                    f"!= occupied seats {sorted(trip.reserved_seats)}"
                )
        return problems

    # Writes

    def write_trips(self, trips: Iterable[TripModel]) -> None:
        """Rewrite the trip and seat-occupancy stores together."""
        trips = sorted(trips, key=lambda t: t.trip_id)
        self._settle_pending()
        self.journal.commit(self._trip_changes(trips))
        logger.info(f"Flushed {len(trips)} trip(s) to {self.data_dir}")

    def commit_booking(
        self,
        legs: Sequence[Tuple[int, Sequence[int]]],
        entries: Sequence[ReservationLedgerEntry],
    ) -> Dict[int, TripModel]:
        """
        Durably record committed legs and their ledger entries.

        Args:
            legs: (trip_id, seats) per committed leg
            entries: One active ledger entry per leg

        Returns:
            The updated trips touched by the commit, keyed by trip id

        Raises:
            NotFoundError: A trip disappeared from the trip store
            ConcurrencyViolation: Another writer committed one of the seats or ticket ids
            PersistenceError: The stores could not be written
        """
        self._settle_pending()
        trips = self.load_trips()
        touched: Dict[int, TripModel] = {}

        for trip_id, seats in legs:
            trip = touched.get(trip_id) or trips.get(trip_id)
            if trip is None:
                raise NotFoundError(f"Trip {trip_id} no longer exists")
            taken = sorted(set(seats) & set(trip.reserved_seats))
            if taken:
                raise ConcurrencyViolation(f"Seat(s) {taken} on trip {trip_id} were committed by another writer")
            if len(seats) > trip.available_seats:
                raise ConcurrencyViolation(f"Trip {trip_id} no longer has {len(seats)} free seat(s)")
            touched[trip_id] = trip.model_copy(update={
                "reserved_seats": trip.reserved_seats + list(seats),
                "available_seats": trip.available_seats - len(seats),
            })

        ledger = self.load_active_ledger()
        active_ids = {entry.ticket_id for entry in ledger}
        clashes = sorted(active_ids & {entry.ticket_id for entry in entries})
        if clashes:
            raise ConcurrencyViolation(f"Ticket id(s) {clashes} were issued by another writer")

        trips.update(touched)
        changes = self._trip_changes(sorted(trips.values(), key=lambda t: t.trip_id))
        changes[self.RESERVATIONS_FILE] = encode_rows(
            reservation_to_record(entry) for entry in [*ledger, *entries]
        )
        self.journal.commit(changes)

        logger.info(
            f"Committed ticket(s) {[e.ticket_id for e in entries]} on trip(s) {sorted(touched)}"
        )
        return touched

    def commit_cancellation(
        self, entry: ReservationLedgerEntry, refund_amount
    ) -> Tuple[TripModel, CancellationLedgerEntry]:
        """
        Migrate an entry from the active ledger to the cancellation ledger and
        free its seats, in one journaled commit.

        Raises:
            NotFoundError: The entry is no longer in the active ledger
            PersistenceError: The stores could not be written
        """
        self._settle_pending()
        ledger = self.load_active_ledger()
        remaining = [
            e for e in ledger
            if not (e.ticket_id == entry.ticket_id and e.username == entry.username)
        ]
        if len(remaining) == len(ledger):
            raise NotFoundError(f"Ticket {entry.ticket_id} is not an active reservation")

        trips = self.load_trips()
        trip = trips.get(entry.trip_id)
        if trip is None:
            raise PersistenceError(f"Ticket {entry.ticket_id} refers to unknown trip {entry.trip_id}")

        freed = [seat for seat in trip.reserved_seats if seat in set(entry.seats)]
        trip = trip.model_copy(update={
            "reserved_seats": [seat for seat in trip.reserved_seats if seat not in set(entry.seats)],
            "available_seats": trip.available_seats + len(freed),
        })
        trips[trip.trip_id] = trip

        cancelled = CancellationLedgerEntry.from_reservation(entry, refund_amount)
        history = self.load_cancellation_ledger()

        changes = self._trip_changes(sorted(trips.values(), key=lambda t: t.trip_id))
        changes[self.RESERVATIONS_FILE] = encode_rows(reservation_to_record(e) for e in remaining)
        changes[self.CANCELLATIONS_FILE] = encode_rows(
            cancellation_to_record(e) for e in [*history, cancelled]
        )
        self.journal.commit(changes)

        logger.info(f"Migrated ticket {entry.ticket_id} to the cancellation ledger")
        return trip, cancelled

    def _settle_pending(self) -> None:
        # A commit that passed the commit point but was not applied must land first
        if self.journal.has_pending():
            logger.warning("Applying a journaled commit left over from a failed write")
            self.journal.recover()

    def _trip_changes(self, trips: Sequence[TripModel]) -> Dict[str, str]:
        return {
            self.TRIPS_FILE: encode_rows(trip_to_record(trip) for trip in trips),
            self.SEATS_FILE: encode_rows(seats_to_record(trip) for trip in trips),
        }
