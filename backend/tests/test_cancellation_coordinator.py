"""
Tests for cancelling committed reservations.
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from busline.exceptions import NotFoundError, PersistenceError
from busline.models import CancellationStatus


class TestCancel:
    """Test the cancellation flow."""

    @pytest.mark.asyncio
    async def test_cancel_refunds_and_migrates(self, engine, alice, stores, data_dir):
        receipt = await engine.booking.book_one_way(alice, 1, [1, 2, 3])
        ticket = receipt.tickets[0]

        result = await engine.cancellation.cancel(alice, ticket.ticket_id, confirm=lambda entry: True)

        assert result.status == CancellationStatus.CANCELLED
        assert result.refund_amount == Decimal("159.00")
        assert result.entry.seats == [1, 2, 3]
        assert engine.inventory.get_trip(1).available_seats == 40
        assert stores.load_trips()[1].available_seats == 40
        assert stores.load_active_ledger() == []
        assert [e.ticket_id for e in stores.load_cancellation_ledger()] == [ticket.ticket_id]
        assert stores.verify() == []

        email_lines = (data_dir / "email.txt").read_text().splitlines()
        assert email_lines[-1] == f"alice@example.com, email - Cancellation - {ticket.ticket_id}"

    @pytest.mark.asyncio
    async def test_cancel_twice(self, engine, alice, stores, data_dir):
        receipt = await engine.booking.book_one_way(alice, 1, [4])
        ticket_id = receipt.tickets[0].ticket_id
        await engine.cancellation.cancel(alice, ticket_id)
        before = {p.name: p.read_text() for p in data_dir.iterdir()}

        with pytest.raises(NotFoundError):
            await engine.cancellation.cancel(alice, ticket_id)

        assert {p.name: p.read_text() for p in data_dir.iterdir()} == before

    @pytest.mark.asyncio
    async def test_other_users_ticket(self, engine, alice, bob, stores):
        receipt = await engine.booking.book_one_way(alice, 1, [4])

        with pytest.raises(NotFoundError):
            await engine.cancellation.cancel(bob, receipt.tickets[0].ticket_id)

        assert len(stores.load_active_ledger()) == 1
        assert engine.inventory.get_trip(1).available_seats == 39

    @pytest.mark.asyncio
    async def test_not_confirmed(self, engine, alice, stores):
        receipt = await engine.booking.book_one_way(alice, 1, [4])
        ticket_id = receipt.tickets[0].ticket_id
        confirm = MagicMock(return_value=False)

        result = await engine.cancellation.cancel(alice, ticket_id, confirm=confirm)

        assert result.status == CancellationStatus.ABORTED
        assert result.refund_amount is None
        confirm.assert_called_once()
        assert confirm.call_args[0][0].ticket_id == ticket_id
        assert len(stores.load_active_ledger()) == 1

    @pytest.mark.asyncio
    async def test_async_confirmation(self, engine, alice):
        receipt = await engine.booking.book_one_way(alice, 1, [4])

        async def confirm(entry):
            return True

        result = await engine.cancellation.cancel(alice, receipt.tickets[0].ticket_id, confirm=confirm)
        assert result.status == CancellationStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_persistence_failure_restores_seats(self, engine, alice, stores, data_dir):
        receipt = await engine.booking.book_one_way(alice, 1, [1, 2, 3])
        ticket_id = receipt.tickets[0].ticket_id
        before = {p.name: p.read_text() for p in data_dir.iterdir()}

        with patch("busline.storage.journal.write_synced", side_effect=OSError("no space left")):
            with pytest.raises(PersistenceError):
                await engine.cancellation.cancel(alice, ticket_id)

        assert engine.inventory.get_trip(1).available_seats == 37
        assert sorted(engine.inventory.get_trip(1).reserved_seats) == [1, 2, 3]
        assert {p.name: p.read_text() for p in data_dir.iterdir()} == before

        # The ticket is still cancellable once the disk recovers
        result = await engine.cancellation.cancel(alice, ticket_id)
        assert result.status == CancellationStatus.CANCELLED


class TestQueries:
    """Test ticket lookups."""

    @pytest.mark.asyncio
    async def test_get_ticket_and_history(self, engine, alice, bob):
        first = await engine.booking.book_one_way(alice, 1, [1])
        await engine.booking.book_one_way(bob, 1, [2])
        second = await engine.booking.book_one_way(alice, 2, [3])

        assert engine.cancellation.get_ticket(alice, first.tickets[0].ticket_id) == first.tickets[0]
        assert [e.trip_id for e in engine.cancellation.history(alice)] == [1, 2]

        await engine.cancellation.cancel(alice, second.tickets[0].ticket_id)
        assert [e.trip_id for e in engine.cancellation.history(alice)] == [1]
        assert [e.trip_id for e in engine.cancellation.cancellations(alice)] == [2]
        assert engine.cancellation.cancellations(bob) == []
