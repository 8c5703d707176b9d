"""
Booking transactions.

A transaction collects one leg (one-way) or two legs (round trip), holds the
seats of each leg provisionally, charges the aggregate fare and then either
commits every leg or releases every hold. A round trip never ends half
committed.

Commit runs under the store-wide lock: ticket ids are allocated against the
active ledger and the trip, seat and ledger stores are written in one
journaled commit before the holds are confirmed.
"""

import asyncio
import logging
from datetime import date
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, Union

from ..cache.utils import STORE_LOCK_KEY
from ..exceptions import (
    BookingError,
    CapacityError,
    ConcurrencyViolation,
    PersistenceError,
    RefundRequired,
    TransactionStateError,
    ValidationError,
)
from ..models.booking import (
    BookingReceipt,
    BookingTransactionModel,
    FrequentRouteModel,
    LegModel,
    UserIdentity,
)
from ..models.enums import (
    LegStatus,
    NotificationCategory,
    PaymentDecision,
    TransactionStatus,
    TripKind,
)
from ..models.ledger import ReservationLedgerEntry
from ..models.seat import SeatAvailabilityModel
from ..storage.synchronizer import PersistenceSynchronizer
from .fare import DEFAULT_TAX_RATE, calculate_fare
from .frequent_routes import FrequentRouteTracker
from .lock_manager import LockManager
from .notifications import NotificationDispatcher
from .payment import PaymentGateway
from .seat_inventory import SeatInventory, validate_seat_request
from .ticket_allocator import TicketIDAllocator
from .trip_catalog import TripCatalog

logger = logging.getLogger(__name__)

# Receives the current availability and the error that rejected the previous
# attempt (None on the first), returns the seat numbers to try.
SeatPrompt = Callable[
    [SeatAvailabilityModel, Optional[BookingError]],
    Union[Sequence[int], Awaitable[Sequence[int]]],
]


class BookingCoordinator:
    """
    Drives booking transactions from seat selection to commit or abort.

    Features:
    - Explicit transaction objects, no session state kept on the coordinator
    - Provisional holds per leg, released on decline or any commit failure
    - Ticket allocation and store commit serialized by the store-wide lock
    - Confirmation notification and frequent route tracking per committed leg
    """

    def __init__(
        self,
        inventory: SeatInventory,
        synchronizer: PersistenceSynchronizer,
        allocator: TicketIDAllocator,
        catalog: TripCatalog,
        payment: PaymentGateway,
        notifier: Optional[NotificationDispatcher] = None,
        frequent_routes: Optional[FrequentRouteTracker] = None,
        lock_manager: Optional[LockManager] = None,
        tax_rate=DEFAULT_TAX_RATE,
        max_legs: int = 2,
        hold_ttl_seconds: Optional[int] = None,
        today: Callable[[], date] = date.today,
    ):
        self.inventory = inventory
        self.synchronizer = synchronizer
        self.allocator = allocator
        self.catalog = catalog
        self.payment = payment
        self.notifier = notifier
        self.frequent_routes = frequent_routes
        # Trip locks and the store lock must come from the same manager
        self.lock_manager = lock_manager or inventory.lock_manager
        self.tax_rate = tax_rate
        self.max_legs = max_legs
        self.hold_ttl_seconds = hold_ttl_seconds
        self.today = today

        logger.info("BookingCoordinator initialized")

    # Transaction API

    def begin(self, user: UserIdentity, kind: TripKind = TripKind.ONE_WAY, legs: Optional[int] = None) -> BookingTransactionModel:
        """
        Open a booking transaction.

        Args:
            user: Booking user
            kind: ONE_WAY (1 leg), ROUND_TRIP (2 legs) or FREQUENT_ROUTE (1 or 2 legs)
            legs: Leg count for FREQUENT_ROUTE, defaults to 1

        Raises:
            ValidationError: Leg count not allowed for the kind or above max_legs
        """
        if kind == TripKind.ONE_WAY:
            expected = 1
        elif kind == TripKind.ROUND_TRIP:
            expected = 2
        else:
            expected = legs or 1

        if legs is not None and legs != expected:
            raise ValidationError(f"A {kind.value} booking has {expected} leg(s), not {legs}")
        if expected < 1 or expected > self.max_legs:
            raise ValidationError(f"A booking may have 1 to {self.max_legs} leg(s), not {expected}")

        txn = BookingTransactionModel(user=user, kind=kind, expected_legs=expected)
        logger.debug(f"Transaction {txn.transaction_id} opened for {user.username} ({kind.value})")
        return txn

    async def add_leg(self, txn: BookingTransactionModel, trip_id: int, seat_numbers: Sequence[int]) -> LegModel:
        """
        Provisionally reserve the seats of the next leg.

        On any error the transaction keeps collecting and nothing was held.

        Raises:
            TransactionStateError: The transaction is not collecting legs
            NotFoundError: Unknown trip
            ValidationError: Empty, duplicated or out-of-range seat numbers
            CapacityError: Seats taken or too few seats left
        """
        self._require(txn, TransactionStatus.COLLECTING)

        trip = self.catalog.lookup(trip_id)
        seats = validate_seat_request(trip, seat_numbers)
        hold = await self.inventory.reserve(trip_id, seats)

        leg = LegModel(
            leg_index=len(txn.legs),
            trip=trip,
            seats=seats,
            status=LegStatus.PROVISIONALLY_RESERVED,
            hold=hold,
            fare=calculate_fare(len(seats), trip.fare, self.tax_rate),
        )
        txn.legs.append(leg)

        if len(txn.legs) == txn.expected_legs:
            txn.status = TransactionStatus.ALL_LEGS_PROVISIONED

        logger.info(
            f"Transaction {txn.transaction_id}: leg {leg.leg_index} holds seats {seats} "
            f"on trip {trip_id} ({leg.fare.amount:.2f})"
        )
        return leg

    async def collect_leg(
        self,
        txn: BookingTransactionModel,
        trip_id: int,
        prompt: SeatPrompt,
        max_attempts: int = 3,
    ) -> LegModel:
        """
        Interactive add_leg: re-prompt on rejected seat selections.

        Raises:
            ValidationError: max_attempts is below 1
            The last ValidationError or CapacityError once max_attempts is used up
        """
        if max_attempts < 1:
            raise ValidationError(f"max_attempts must be at least 1, not {max_attempts}")

        error: Optional[BookingError] = None
        for attempt in range(1, max_attempts + 1):
            seats = prompt(self.inventory.availability(trip_id), error)
            if asyncio.iscoroutine(seats):
                seats = await seats
            try:
                return await self.add_leg(txn, trip_id, seats)
            except (ValidationError, CapacityError) as e:
                logger.warning(f"Seat selection {attempt}/{max_attempts} rejected: {e}")
                error = e
        raise error

    async def settle(self, txn: BookingTransactionModel) -> BookingReceipt:
        """
        Charge the aggregate fare and commit or abort the transaction.

        Returns:
            BookingReceipt: COMMITTED with one ledger entry per leg, or ABORTED on decline

        Raises:
            TransactionStateError: Legs still missing or the transaction is finished
            ConcurrencyViolation: A hold expired or a concurrent writer took a seat
            RefundRequired: Payment was accepted but a seat was lost before commit
            AllocationExhausted: No free ticket id
            PersistenceError: The stores could not be written
        """
        self._require(txn, TransactionStatus.ALL_LEGS_PROVISIONED)
        txn.status = TransactionStatus.AWAITING_PAYMENT

        try:
            self._check_holds(txn)
            decision = await self.payment.charge(txn.total_amount)
        except Exception:
            await self._rollback(txn)
            raise

        if decision != PaymentDecision.ACCEPTED:
            await self._rollback(txn)
            logger.info(f"Transaction {txn.transaction_id} aborted: payment declined")
            return self._receipt(txn)

        try:
            entries = await self._commit(txn)
        except BookingError as e:
            if isinstance(e, PersistenceError) and e.committed:
                raise
            if isinstance(e, RefundRequired):
                logger.error(f"Refund of {e.amount:.2f} owed to {txn.user.username}: {e}")
            else:
                logger.error(f"Transaction {txn.transaction_id} aborted during commit: {e}")
            await self._rollback(txn)
            if isinstance(e, ConcurrencyViolation):
                self._resync(txn)
            raise

        for leg, entry in zip(txn.legs, entries):
            self._after_commit(txn.user, leg, entry)

        logger.info(
            f"Transaction {txn.transaction_id} committed: ticket(s) {[e.ticket_id for e in entries]}, "
            f"total {txn.total_amount:.2f}"
        )
        return self._receipt(txn, entries)

    async def abort(self, txn: BookingTransactionModel) -> BookingReceipt:
        """
        Release every held seat and finish the transaction.

        Raises:
            TransactionStateError: The transaction already finished
        """
        if txn.is_finished:
            raise TransactionStateError(f"Transaction {txn.transaction_id} is already {txn.status.value}")
        await self._rollback(txn)
        logger.info(f"Transaction {txn.transaction_id} aborted by caller")
        return self._receipt(txn)

    # Convenience flows

    async def book_one_way(self, user: UserIdentity, trip_id: int, seat_numbers: Sequence[int]) -> BookingReceipt:
        txn = self.begin(user, TripKind.ONE_WAY)
        return await self._book(txn, [(trip_id, seat_numbers)])

    async def book_round_trip(
        self,
        user: UserIdentity,
        outbound_trip_id: int,
        outbound_seats: Sequence[int],
        return_trip_id: int,
        return_seats: Sequence[int],
    ) -> BookingReceipt:
        txn = self.begin(user, TripKind.ROUND_TRIP)
        return await self._book(txn, [(outbound_trip_id, outbound_seats), (return_trip_id, return_seats)])

    async def book_frequent_route(
        self,
        user: UserIdentity,
        route: FrequentRouteModel,
        travel_date: date,
        seat_numbers: Sequence[int],
        return_date: Optional[date] = None,
        return_seats: Optional[Sequence[int]] = None,
    ) -> BookingReceipt:
        """
        Book a saved route on travel_date, optionally with the return leg on
        the same bus with source and destination swapped.

        Raises:
            NotFoundError: The route has no trip on the requested date(s)
        """
        outbound = self.catalog.find_trip(route, travel_date)
        requests = [(outbound.trip_id, seat_numbers)]
        if return_seats:
            inbound = self.catalog.find_return(route, return_date)
            requests.append((inbound.trip_id, return_seats))

        txn = self.begin(user, TripKind.FREQUENT_ROUTE, legs=len(requests))
        return await self._book(txn, requests)

    # Internals

    async def _book(self, txn: BookingTransactionModel, requests: List[Tuple[int, Sequence[int]]]) -> BookingReceipt:
        try:
            for trip_id, seats in requests:
                await self.add_leg(txn, trip_id, seats)
        except BookingError:
            await self._rollback(txn)
            raise
        return await self.settle(txn)

    def _require(self, txn: BookingTransactionModel, status: TransactionStatus) -> None:
        if txn.status != status:
            raise TransactionStateError(
                f"Transaction {txn.transaction_id} is {txn.status.value}, expected {status.value}"
            )

    def _check_holds(self, txn: BookingTransactionModel) -> None:
        for leg in txn.legs:
            current = self.inventory.get_hold(leg.hold.hold_id)
            if current is None or current.seats != leg.seats:
                raise ConcurrencyViolation(
                    f"Hold on trip {leg.trip.trip_id} seats {leg.seats} is no longer intact"
                )
            if self.inventory.is_expired(current, self.hold_ttl_seconds):
                raise ConcurrencyViolation(
                    f"Hold on trip {leg.trip.trip_id} expired after {self.hold_ttl_seconds}s"
                )

    async def _reclaim_holds(self, txn: BookingTransactionModel) -> None:
        """
        Re-take seats whose hold lapsed while payment was pending.

        Runs under the store lock after an accepted charge. An intact hold is
        kept even past its TTL; a released or shrunk hold is reserved again.

        Raises:
            RefundRequired: Another transaction took one of the leg's seats
        """
        for leg in txn.legs:
            current = self.inventory.get_hold(leg.hold.hold_id)
            if current is not None and current.seats == leg.seats:
                continue
            if current is not None:
                await self.inventory.release_hold(current)

            try:
                leg.hold = await self.inventory.reserve(leg.trip.trip_id, leg.seats)
            except CapacityError as e:
                raise RefundRequired(txn.transaction_id, txn.total_amount, leg.trip.trip_id, leg.seats) from e
            logger.warning(
                f"Transaction {txn.transaction_id}: hold on trip {leg.trip.trip_id} lapsed during payment, "
                f"seats {leg.seats} reserved again"
            )

    async def _commit(self, txn: BookingTransactionModel) -> List[ReservationLedgerEntry]:
        async with self.lock_manager.lock_context(STORE_LOCK_KEY):
            await self._reclaim_holds(txn)
            active_ids = [entry.ticket_id for entry in self.synchronizer.load_active_ledger()]
            ticket_ids = self.allocator.allocate_many(len(txn.legs), active_ids)
            booking_date = self.today()

            entries = [
                ReservationLedgerEntry(
                    username=txn.user.username,
                    ticket_id=ticket_id,
                    trip_id=leg.trip.trip_id,
                    plate=leg.trip.plate,
                    booking_date=booking_date,
                    seats=leg.seats,
                    amount=leg.fare.amount,
                )
                for leg, ticket_id in zip(txn.legs, ticket_ids)
            ]

            try:
                touched = self.synchronizer.commit_booking(
                    [(leg.trip.trip_id, leg.seats) for leg in txn.legs], entries
                )
            except PersistenceError as e:
                if e.committed:
                    # Recovery will apply the journal; memory must match it
                    logger.error(f"Transaction {txn.transaction_id} journaled but not applied: {e}")
                    self._mark_committed(txn, entries)
                raise

            self._mark_committed(txn, entries)
            for trip in touched.values():
                self.inventory.refresh(trip)

        return entries

    def _mark_committed(self, txn: BookingTransactionModel, entries: List[ReservationLedgerEntry]) -> None:
        for leg, entry in zip(txn.legs, entries):
            self.inventory.confirm(leg.hold)
            leg.ticket_id = entry.ticket_id
            leg.status = LegStatus.COMMITTED
        txn.status = TransactionStatus.COMMITTED

    async def _rollback(self, txn: BookingTransactionModel) -> None:
        for leg in txn.legs:
            if leg.status == LegStatus.PROVISIONALLY_RESERVED:
                await self.inventory.release_hold(leg.hold)
                leg.status = LegStatus.RELEASED
        txn.status = TransactionStatus.ABORTED

    def _resync(self, txn: BookingTransactionModel) -> None:
        """Pull committed occupancy of the legs' trips from the stores after losing a race."""
        trips = self.synchronizer.load_trips()
        for leg in txn.legs:
            trip = trips.get(leg.trip.trip_id)
            if trip is not None:
                self.inventory.refresh(trip)

    def _after_commit(self, user: UserIdentity, leg: LegModel, entry: ReservationLedgerEntry) -> None:
        # The booking is durable at this point; follow-up failures are reported, not undone
        if self.notifier is not None:
            try:
                self.notifier.notify(user, entry.ticket_id, NotificationCategory.CONFIRMATION)
            except PersistenceError as e:
                logger.error(f"Confirmation for ticket {entry.ticket_id} not delivered: {e}")

        if self.frequent_routes is not None:
            try:
                self.frequent_routes.record(user, leg.trip.trip_id)
            except BookingError as e:
                logger.error(f"Frequent route for ticket {entry.ticket_id} not recorded: {e}")

    def _receipt(self, txn: BookingTransactionModel, entries: Optional[List[ReservationLedgerEntry]] = None) -> BookingReceipt:
        return BookingReceipt(
            transaction_id=txn.transaction_id,
            status=txn.status,
            total_amount=txn.total_amount,
            tickets=entries or [],
        )
