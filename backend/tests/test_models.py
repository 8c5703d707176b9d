"""
Pytest tests for Pydantic models.
Run with: pytest backend/tests/test_models.py -v
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import TypeAdapter, ValidationError

from busline.models import *
from conftest import make_trip


class TestTripModel:
    """Test trip capacity invariant."""

    def test_valid_trip(self):
        """Test TripModel with reserved seats."""
        trip = make_trip(reserved=[3, 1])
        assert trip.available_seats == 38
        assert trip.reserved_seats == [3, 1]
        assert trip.route == ("Kuala Lumpur", "Penang")

    def test_counter_mismatch_rejected(self):
        """available + reserved must equal total."""
        with pytest.raises(ValidationError):
            TripModel(
                trip_id=1, plate="WXY1234", travel_date=date(2026, 11, 2),
                source="A", destination="B", departure="08:00 AM", arrival="09:00 AM",
                total_seats=40, available_seats=40, fare=Decimal("10.00"), reserved_seats=[1],
            )

    def test_duplicate_and_out_of_range_seats_rejected(self):
        with pytest.raises(ValidationError):
            make_trip(reserved=[1, 1])
        with pytest.raises(ValidationError):
            make_trip(total_seats=4, reserved=[5])


class TestLedgerModels:
    """Test ledger entries."""

    def entry(self, **overrides):
        fields = dict(
            username="alice", ticket_id=123456, trip_id=1, plate="WXY1234",
            booking_date=date(2026, 10, 18), seats=[1, 2, 3], amount=Decimal("159.00"),
        )
        fields.update(overrides)
        return ReservationLedgerEntry(**fields)

    def test_seat_count(self):
        assert self.entry().seat_count == 3

    @pytest.mark.parametrize("ticket_id", [99999, 1000000])
    def test_ticket_id_range(self, ticket_id):
        with pytest.raises(ValidationError):
            self.entry(ticket_id=ticket_id)

    def test_cancellation_from_reservation(self):
        """Cancellation entry keeps every reservation field and adds the refund."""
        entry = self.entry()
        cancelled = CancellationLedgerEntry.from_reservation(entry, Decimal("159.00"))
        assert cancelled.ticket_id == entry.ticket_id
        assert cancelled.seats == entry.seats
        assert cancelled.refund_amount == Decimal("159.00")

    def test_entries_are_frozen(self):
        with pytest.raises(ValidationError):
            self.entry().amount = Decimal("1.00")


class TestNotificationModels:
    """Test recipient variants and rendering."""

    def test_recipient_discriminator(self):
        recipient = TypeAdapter(Recipient).validate_python({"channel": "sms", "number": "0123456789"})
        assert isinstance(recipient, PhoneRecipient)
        assert recipient.target == "0123456789"

    def test_to_line(self):
        notification = NotificationModel(
            recipient=EmailRecipient(address="alice@example.com"),
            category=NotificationCategory.CONFIRMATION,
            ticket_id=654321,
        )
        assert notification.to_line() == "alice@example.com, email - Confirmation - 654321"


class TestBookingModels:
    """Test transient transaction models."""

    def test_total_amount_sums_leg_fares(self):
        fare = FareBreakdown(
            seat_count=1, unit_fare=Decimal("10.00"), tax_rate=Decimal("0.06"),
            base_fare=Decimal("10.00"), tax=Decimal("0.60"), amount=Decimal("10.60"),
        )
        txn = BookingTransactionModel(user=UserIdentity(username="alice"), expected_legs=2)
        txn.legs.append(LegModel(leg_index=0, trip=make_trip(1), seats=[1], fare=fare))
        txn.legs.append(LegModel(leg_index=1, trip=make_trip(2), seats=[2], fare=fare))
        assert txn.total_amount == Decimal("21.20")
        assert not txn.is_finished

    def test_expected_legs_bounded(self):
        with pytest.raises(ValidationError):
            BookingTransactionModel(user=UserIdentity(username="alice"), expected_legs=3)
