"""
Tests for cross-store consistency of the persistence synchronizer.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from busline.exceptions import ConcurrencyViolation, NotFoundError, PersistenceError
from busline.models import ReservationLedgerEntry
from busline.storage.journal import CommitJournal
from busline.storage.synchronizer import PersistenceSynchronizer


def ledger_entry(ticket_id=482913, trip_id=1, seats=(1, 2, 3), username="alice", amount="159.00"):
    return ReservationLedgerEntry(
        username=username,
        ticket_id=ticket_id,
        trip_id=trip_id,
        plate="WXY1234",
        booking_date=date(2026, 10, 18),
        seats=list(seats),
        amount=Decimal(amount),
    )


def snapshot(data_dir):
    return {p.name: p.read_text() for p in sorted(data_dir.iterdir())}


class TestLoad:
    """Test loading and cross-checking the stores."""

    def test_round_trip_of_trips(self, stores, trips):
        loaded = stores.load_trips()
        assert sorted(loaded) == [1, 2, 3]
        assert loaded[3] == trips[2]

    def test_empty_directory(self, tmp_path):
        synchronizer = PersistenceSynchronizer(tmp_path / "fresh")
        assert synchronizer.recover() is False
        assert synchronizer.load_trips() == {}
        assert synchronizer.load_active_ledger() == []

    def test_stores_disagree(self, stores, data_dir):
        """Seat store lists occupied seats the trip store does not account for."""
        (data_dir / "seats.txt").write_text("1,2,5,6\n2,0\n3,0\n")
        with pytest.raises(PersistenceError, match="disagree"):
            stores.load_trips()

    def test_seat_store_names_unknown_trip(self, stores, data_dir):
        (data_dir / "seats.txt").write_text("1,0\n2,0\n3,0\n9,0\n")
        with pytest.raises(PersistenceError):
            stores.load_trips()

    def test_verify_detects_ledger_without_seats(self, stores, data_dir):
        (data_dir / "reservation.txt").write_text("alice,482913,1,WXY1234,2026-10-18,1,7,53.00\n")
        problems = stores.verify()
        assert len(problems) == 1
        assert "Trip 1" in problems[0]


class TestCommitBooking:
    """Test journaled booking commits."""

    def test_commit_updates_all_stores(self, stores):
        touched = stores.commit_booking([(1, [1, 2, 3])], [ledger_entry()])

        assert touched[1].available_seats == 37
        assert stores.load_trips()[1].reserved_seats == [1, 2, 3]
        assert [e.ticket_id for e in stores.load_active_ledger()] == [482913]
        assert stores.verify() == []

    def test_round_trip_commit(self, stores):
        stores.commit_booking(
            [(1, [5, 6]), (2, [7])],
            [ledger_entry(111111, 1, [5, 6]), ledger_entry(222222, 2, [7], amount="53.00")],
        )
        trips = stores.load_trips()
        assert trips[1].available_seats == 38
        assert trips[2].available_seats == 39
        assert len(stores.load_active_ledger()) == 2

    def test_seat_committed_by_another_writer(self, stores, data_dir):
        stores.commit_booking([(1, [4])], [ledger_entry(111111, 1, [4], username="bob")])
        before = snapshot(data_dir)

        with pytest.raises(ConcurrencyViolation):
            stores.commit_booking([(1, [3, 4])], [ledger_entry(222222, 1, [3, 4])])
        assert snapshot(data_dir) == before

    def test_ticket_id_already_active(self, stores, data_dir):
        stores.commit_booking([(1, [4])], [ledger_entry(111111, 1, [4], username="bob")])
        before = snapshot(data_dir)

        with pytest.raises(ConcurrencyViolation):
            stores.commit_booking([(1, [5])], [ledger_entry(111111, 1, [5])])
        assert snapshot(data_dir) == before

    def test_unknown_trip(self, stores):
        with pytest.raises(NotFoundError):
            stores.commit_booking([(99, [1])], [ledger_entry(trip_id=99, seats=[1])])

    def test_pending_journal_lands_before_next_commit(self, stores, data_dir):
        """A journaled but unapplied commit is applied, not overwritten."""
        with patch.object(CommitJournal, "_apply", side_effect=OSError("disk gone")):
            with pytest.raises(PersistenceError):
                stores.commit_booking([(1, [1])], [ledger_entry(111111, 1, [1], amount="53.00")])

        stores.commit_booking([(1, [2])], [ledger_entry(222222, 1, [2], amount="53.00")])
        assert [e.ticket_id for e in stores.load_active_ledger()] == [111111, 222222]
        assert stores.load_trips()[1].reserved_seats == [1, 2]


class TestCommitCancellation:
    """Test ledger migration on cancellation."""

    def test_migrates_entry_and_frees_seats(self, stores):
        entry = ledger_entry()
        stores.commit_booking([(1, [1, 2, 3])], [entry])

        trip, cancelled = stores.commit_cancellation(entry, Decimal("159.00"))

        assert trip.available_seats == 40
        assert stores.load_active_ledger() == []
        history = stores.load_cancellation_ledger()
        assert [e.ticket_id for e in history] == [482913]
        assert history[0].refund_amount == Decimal("159.00")
        assert cancelled == history[0]
        assert stores.verify() == []

    def test_other_entries_survive(self, stores):
        mine, theirs = ledger_entry(111111, 1, [1]), ledger_entry(222222, 1, [2], username="bob")
        stores.commit_booking([(1, [1]), (1, [2])], [mine, theirs])

        stores.commit_cancellation(mine, mine.amount)
        assert stores.load_active_ledger() == [theirs]
        assert stores.load_trips()[1].reserved_seats == [2]

    def test_entry_already_gone(self, stores, data_dir):
        before = snapshot(data_dir)
        with pytest.raises(NotFoundError):
            stores.commit_cancellation(ledger_entry(), Decimal("159.00"))
        assert snapshot(data_dir) == before
