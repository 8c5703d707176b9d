"""
In-memory seat inventory with provisional holds.

Every trip's occupied seats are the union of seats committed to the stores
and seats provisionally held by open booking transactions. Mutations of one
trip are serialized through the lock manager; callers that must keep a trip
locked across several steps use locked() with the *_locked methods.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..cache.utils import trip_lock_key
from ..exceptions import (
    InsufficientCapacity,
    InvalidSeatNumber,
    NotFoundError,
    SeatAlreadyReserved,
    ValidationError,
)
from ..models.seat import SeatAvailabilityModel, SeatHoldModel
from ..models.trip import TripModel
from .lock_manager import LocalLockManager, LockManager

logger = logging.getLogger(__name__)


def validate_seat_request(trip: TripModel, seat_numbers: Sequence[int]) -> List[int]:
    """
    Check a seat request against a trip without looking at occupancy.

    Raises:
        ValidationError: Empty request or duplicated seat numbers
        InvalidSeatNumber: A seat outside [1, total_seats]
    """
    seats = list(seat_numbers)
    if not seats:
        raise ValidationError("At least one seat must be requested")
    duplicates = sorted({s for s in seats if seats.count(s) > 1})
    if duplicates:
        raise ValidationError(f"Seat(s) {duplicates} requested more than once")
    out_of_range = [s for s in seats if s < 1 or s > trip.total_seats]
    if out_of_range:
        raise InvalidSeatNumber(trip.trip_id, out_of_range, trip.total_seats)
    return seats


class SeatInventory:
    """
    Authoritative in-process view of seat occupancy per trip.

    Features:
    - All-or-nothing reserve with capacity checks
    - Idempotent release
    - Holds tracked apart from committed seats so only committed seats are persisted
    - Optional expiry of stale holds
    """

    def __init__(
        self,
        lock_manager: Optional[LockManager] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.lock_manager = lock_manager or LocalLockManager()
        self.clock = clock
        self._trips: Dict[int, TripModel] = {}
        self._holds: Dict[str, SeatHoldModel] = {}

        logger.info("SeatInventory initialized")

    # Loading

    def load(self, trips: Iterable[TripModel]) -> None:
        """Replace the committed state of every trip given, keeping open holds."""
        count = 0
        for trip in trips:
            self.refresh(trip)
            count += 1
        logger.info(f"Loaded {count} trip(s) into the seat inventory")

    def refresh(self, committed: TripModel) -> TripModel:
        """
        Merge a trip's committed state from the stores with the local holds on it.

        A held seat that another writer has meanwhile committed is dropped from
        its hold; the owning transaction fails when it tries to commit.
        """
        held = self._held_seats(committed.trip_id)
        clashing = set(held) & set(committed.reserved_seats)
        if clashing:
            logger.warning(
                f"Held seat(s) {sorted(clashing)} on trip {committed.trip_id} were committed elsewhere"
            )
            self._drop_held_seats(committed.trip_id, clashing)
        extra = self._held_seats(committed.trip_id)
        trip = committed.model_copy(update={
            "reserved_seats": committed.reserved_seats + extra,
            "available_seats": committed.available_seats - len(extra),
        })
        self._trips[trip.trip_id] = trip
        return trip

    # Reads

    def get_trip(self, trip_id: int) -> TripModel:
        trip = self._trips.get(trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} does not exist")
        return trip

    def trips(self) -> List[TripModel]:
        return [self._trips[trip_id] for trip_id in sorted(self._trips)]

    def committed_view(self, trip_id: int) -> TripModel:
        """Return the trip as it may be persisted: without provisional holds."""
        trip = self.get_trip(trip_id)
        held = set(self._held_seats(trip_id))
        return trip.model_copy(update={
            "reserved_seats": [s for s in trip.reserved_seats if s not in held],
            "available_seats": trip.available_seats + len(held & set(trip.reserved_seats)),
        })

    def availability(self, trip_id: int) -> SeatAvailabilityModel:
        """
        Snapshot of occupied and free seats.

        Raises:
            NotFoundError: Unknown trip
        """
        trip = self.get_trip(trip_id)
        occupied = set(trip.reserved_seats)
        return SeatAvailabilityModel(
            trip_id=trip.trip_id,
            total_seats=trip.total_seats,
            available_seats=trip.available_seats,
            occupied_seats=sorted(occupied),
            held_seats=sorted(set(self._held_seats(trip_id)) & occupied),
            free_seats=[s for s in range(1, trip.total_seats + 1) if s not in occupied],
            taken_at=self.clock(),
        )

    def get_hold(self, hold_id: str) -> Optional[SeatHoldModel]:
        return self._holds.get(hold_id)

    def holds(self, trip_id: Optional[int] = None) -> List[SeatHoldModel]:
        return [h for h in self._holds.values() if trip_id is None or h.trip_id == trip_id]

    def is_expired(self, hold: SeatHoldModel, ttl_seconds: Optional[int]) -> bool:
        if ttl_seconds is None:
            return False
        return self.clock() - hold.created_at > timedelta(seconds=ttl_seconds)

    # Locked mutations

    @asynccontextmanager
    async def locked(self, trip_id: int):
        """Hold the trip's lock across several *_locked calls."""
        self.get_trip(trip_id)
        async with self.lock_manager.lock_context(trip_lock_key(trip_id)) as lock:
            yield lock

    async def reserve(self, trip_id: int, seat_numbers: Sequence[int]) -> SeatHoldModel:
        """
        Provisionally reserve seats, all or nothing.

        Args:
            trip_id: Trip to reserve on
            seat_numbers: Seat numbers requested

        Returns:
            SeatHoldModel: The new hold

        Raises:
            NotFoundError: Unknown trip
            ValidationError: Empty, duplicated or out-of-range seat numbers
            CapacityError: A seat is already reserved or too few seats remain
        """
        async with self.locked(trip_id):
            return self.reserve_locked(trip_id, seat_numbers)

    async def release(self, trip_id: int, seat_numbers: Sequence[int]) -> int:
        """
        Release seats; seats not currently reserved are ignored.

        Returns:
            Number of seats actually released
        """
        async with self.locked(trip_id):
            return self.release_locked(trip_id, seat_numbers)

    async def release_hold(self, hold: SeatHoldModel) -> int:
        """Release exactly the seats still covered by a hold."""
        current = self._holds.get(hold.hold_id)
        if current is None:
            return 0
        return await self.release(current.trip_id, current.seats)

    def reserve_locked(self, trip_id: int, seat_numbers: Sequence[int]) -> SeatHoldModel:
        trip = self.get_trip(trip_id)
        seats = validate_seat_request(trip, seat_numbers)

        taken = set(seats) & set(trip.reserved_seats)
        if taken:
            logger.warning(f"Rejected reservation on trip {trip_id}: seat(s) {sorted(taken)} taken")
            raise SeatAlreadyReserved(trip_id, taken)
        if len(seats) > trip.available_seats:
            logger.warning(
                f"Rejected reservation on trip {trip_id}: {len(seats)} requested, "
                f"{trip.available_seats} available"
            )
            raise InsufficientCapacity(trip_id, len(seats), trip.available_seats)

        self._trips[trip_id] = trip.model_copy(update={
            "reserved_seats": trip.reserved_seats + seats,
            "available_seats": trip.available_seats - len(seats),
        })
        hold = SeatHoldModel(
            hold_id=str(uuid.uuid4()),
            trip_id=trip_id,
            seats=seats,
            created_at=self.clock(),
        )
        self._holds[hold.hold_id] = hold

        logger.debug(f"Hold {hold.hold_id} on trip {trip_id}: seats {seats}")
        return hold

    def release_locked(self, trip_id: int, seat_numbers: Sequence[int]) -> int:
        trip = self.get_trip(trip_id)
        to_release = set(seat_numbers)
        remaining = [s for s in trip.reserved_seats if s not in to_release]
        released = len(trip.reserved_seats) - len(remaining)

        self._trips[trip_id] = trip.model_copy(update={
            "reserved_seats": remaining,
            "available_seats": trip.available_seats + released,
        })
        self._drop_held_seats(trip_id, to_release)

        if released:
            logger.debug(f"Released {released} seat(s) on trip {trip_id}")
        return released

    def restore_locked(self, trip_id: int, seat_numbers: Sequence[int]) -> int:
        """Put committed seats back after a failed release was not persisted."""
        trip = self.get_trip(trip_id)
        missing = [s for s in seat_numbers if s not in set(trip.reserved_seats)]
        self._trips[trip_id] = trip.model_copy(update={
            "reserved_seats": trip.reserved_seats + missing,
            "available_seats": trip.available_seats - len(missing),
        })
        if missing:
            logger.warning(f"Restored seat(s) {missing} on trip {trip_id}")
        return len(missing)

    # Hold lifecycle

    def confirm(self, hold: SeatHoldModel) -> None:
        """Mark a hold as committed: its seats stay occupied but are no longer provisional."""
        if self._holds.pop(hold.hold_id, None) is not None:
            logger.debug(f"Hold {hold.hold_id} confirmed on trip {hold.trip_id}")

    async def expire_holds(self, ttl_seconds: Optional[int]) -> List[SeatHoldModel]:
        """
        Release every hold older than ttl_seconds.

        Returns:
            The expired holds
        """
        if ttl_seconds is None:
            return []
        expired = [hold for hold in list(self._holds.values()) if self.is_expired(hold, ttl_seconds)]
        for hold in expired:
            await self.release_hold(hold)
        if expired:
            logger.info(f"Expired {len(expired)} provisional hold(s)")
        return expired

    def _held_seats(self, trip_id: int) -> List[int]:
        seats: List[int] = []
        for hold in self._holds.values():
            if hold.trip_id == trip_id:
                seats.extend(hold.seats)
        return seats

    def _drop_held_seats(self, trip_id: int, seats: set) -> None:
        for hold_id, hold in list(self._holds.items()):
            if hold.trip_id != trip_id:
                continue
            kept = [s for s in hold.seats if s not in seats]
            if not kept:
                del self._holds[hold_id]
            elif len(kept) != len(hold.seats):
                self._holds[hold_id] = hold.model_copy(update={"seats": kept})
