"""
Cancellation of committed reservations.

Cancelling refunds the full amount paid, frees the ticket's seats and moves
the ledger entry into the cancellation ledger. Seat release and ledger
migration land in one journaled commit; if that commit fails the seats are
put back in memory and the stores are left untouched.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Union

from ..cache.utils import STORE_LOCK_KEY
from ..exceptions import NotFoundError, PersistenceError
from ..models.booking import CancellationReceipt, UserIdentity
from ..models.enums import CancellationStatus, NotificationCategory
from ..models.ledger import CancellationLedgerEntry, ReservationLedgerEntry
from ..storage.synchronizer import PersistenceSynchronizer
from .lock_manager import LockManager
from .notifications import NotificationDispatcher
from .seat_inventory import SeatInventory

logger = logging.getLogger(__name__)

ConfirmationPrompt = Callable[[ReservationLedgerEntry], Union[bool, Awaitable[bool]]]


class CancellationCoordinator:
    """Reverses committed reservations and answers ticket queries."""

    def __init__(
        self,
        inventory: SeatInventory,
        synchronizer: PersistenceSynchronizer,
        notifier: Optional[NotificationDispatcher] = None,
        lock_manager: Optional[LockManager] = None,
    ):
        self.inventory = inventory
        self.synchronizer = synchronizer
        self.notifier = notifier
        self.lock_manager = lock_manager or inventory.lock_manager

        logger.info("CancellationCoordinator initialized")

    def get_ticket(self, user: UserIdentity, ticket_id: int) -> ReservationLedgerEntry:
        """
        Find one of the user's active tickets.

        Raises:
            NotFoundError: No active ticket with that id, or it belongs to someone else
        """
        entry = self.synchronizer.find_entry(ticket_id)
        if entry is None or entry.username != user.username:
            raise NotFoundError(f"Ticket {ticket_id} not found for {user.username}")
        return entry

    def history(self, user: UserIdentity) -> List[ReservationLedgerEntry]:
        """Active tickets of the user, in booking order."""
        return self.synchronizer.entries_for(user.username)

    def cancellations(self, user: UserIdentity) -> List[CancellationLedgerEntry]:
        return [e for e in self.synchronizer.load_cancellation_ledger() if e.username == user.username]

    async def cancel(
        self,
        user: UserIdentity,
        ticket_id: int,
        confirm: Optional[ConfirmationPrompt] = None,
    ) -> CancellationReceipt:
        """
        Cancel an active ticket and refund its full amount.

        Args:
            user: Ticket owner
            ticket_id: Ticket to cancel
            confirm: Asked with the ticket before anything changes; a false answer aborts

        Returns:
            CancellationReceipt: CANCELLED with the refund, or ABORTED when not confirmed

        Raises:
            NotFoundError: Unknown ticket or owned by another user
            PersistenceError: The stores could not be written; nothing changed
        """
        entry = self.get_ticket(user, ticket_id)

        if confirm is not None:
            answer = confirm(entry)
            if asyncio.iscoroutine(answer):
                answer = await answer
            if not answer:
                logger.info(f"Cancellation of ticket {ticket_id} not confirmed")
                return CancellationReceipt(ticket_id=ticket_id, status=CancellationStatus.ABORTED)

        async with self.lock_manager.lock_context(STORE_LOCK_KEY):
            # Re-read under the lock: a concurrent cancel may have won
            entry = self.get_ticket(user, ticket_id)
            refund_amount = entry.amount

            async with self.inventory.locked(entry.trip_id):
                self.inventory.release_locked(entry.trip_id, entry.seats)
                try:
                    trip, cancelled = self.synchronizer.commit_cancellation(entry, refund_amount)
                except PersistenceError as e:
                    if e.committed:
                        logger.error(f"Cancellation of ticket {ticket_id} journaled but not applied: {e}")
                    else:
                        logger.error(f"Cancellation of ticket {ticket_id} failed, seats restored: {e}")
                        self.inventory.restore_locked(entry.trip_id, entry.seats)
                    raise
                self.inventory.refresh(trip)

        if self.notifier is not None:
            try:
                self.notifier.notify(user, ticket_id, NotificationCategory.CANCELLATION)
            except PersistenceError as e:
                logger.error(f"Cancellation notice for ticket {ticket_id} not delivered: {e}")

        logger.info(f"Ticket {ticket_id} cancelled, refund {refund_amount:.2f}")
        return CancellationReceipt(
            ticket_id=ticket_id,
            status=CancellationStatus.CANCELLED,
            refund_amount=refund_amount,
            entry=cancelled,
        )
