"""
Tests for fare calculation and ticket id allocation.
"""

import random
from decimal import Decimal

import pytest

from busline.exceptions import AllocationExhausted, ValidationError
from busline.services.fare import calculate_fare
from busline.services.ticket_allocator import TicketIDAllocator


class TestFare:
    """Test the fare law: seats x fare x 1.06, rounded half up to cents."""

    def test_three_seats_at_fifty(self):
        fare = calculate_fare(3, Decimal("50.00"))
        assert fare.base_fare == Decimal("150.00")
        assert fare.tax == Decimal("9.00")
        assert fare.amount == Decimal("159.00")

    def test_tax_rounds_half_up(self):
        # 12.25 x 0.06 = 0.735
        fare = calculate_fare(1, Decimal("12.25"))
        assert fare.tax == Decimal("0.74")
        assert fare.amount == Decimal("12.99")

    @pytest.mark.parametrize("seats,unit", [(1, "0.01"), (7, "33.33"), (40, "99.99")])
    def test_amount_within_a_cent_of_exact(self, seats, unit):
        exact = seats * Decimal(unit) * Decimal("1.06")
        assert abs(calculate_fare(seats, Decimal(unit)).amount - exact) <= Decimal("0.01")

    def test_zero_seats_rejected(self):
        with pytest.raises(ValidationError):
            calculate_fare(0, Decimal("10.00"))


class TestTicketIDAllocator:
    """Test ticket id draws."""

    def test_ids_in_range_and_distinct(self):
        allocator = TicketIDAllocator(rng=random.Random(1))
        ids = allocator.allocate_many(50, [])
        assert len(set(ids)) == 50
        assert all(100000 <= ticket_id <= 999999 for ticket_id in ids)

    def test_redraws_on_collision(self):
        allocator = TicketIDAllocator(100000, 100002, rng=random.Random(5))
        assert allocator.allocate({100000, 100001}) == 100002

    def test_allocate_many_avoids_its_own_ids(self):
        allocator = TicketIDAllocator(100000, 100001, rng=random.Random(5))
        assert sorted(allocator.allocate_many(2, [])) == [100000, 100001]

    def test_exhausted(self):
        allocator = TicketIDAllocator(100000, 100001, max_attempts=5, rng=random.Random(5))
        with pytest.raises(AllocationExhausted) as exc_info:
            allocator.allocate({100000, 100001})
        assert exc_info.value.attempts == 5

    def test_empty_range(self):
        with pytest.raises(ValueError):
            TicketIDAllocator(200000, 100000)
