"""
Tests for the in-memory seat inventory.

Covers:
- All-or-nothing reservation with capacity errors
- Idempotent release
- Committed view, confirm and refresh of provisional holds
- Hold expiry
"""

import random
from datetime import datetime, timedelta

import pytest

from busline.exceptions import (
    CapacityError,
    InvalidSeatNumber,
    NotFoundError,
    SeatAlreadyReserved,
    ValidationError,
)
from busline.services.seat_inventory import SeatInventory
from conftest import make_trip


@pytest.fixture
def inventory():
    inventory = SeatInventory()
    inventory.load([make_trip(1), make_trip(3, total_seats=4, reserved=[2])])
    return inventory


def assert_capacity(trip):
    assert trip.available_seats + len(trip.reserved_seats) == trip.total_seats
    assert len(set(trip.reserved_seats)) == len(trip.reserved_seats)


class TestReserve:
    """Test provisional reservation."""

    @pytest.mark.asyncio
    async def test_reserve_seats(self, inventory):
        hold = await inventory.reserve(1, [1, 2, 3])

        trip = inventory.get_trip(1)
        assert hold.trip_id == 1
        assert hold.seats == [1, 2, 3]
        assert trip.available_seats == 37
        assert trip.reserved_seats == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_taken_seat_rejects_whole_request(self, inventory):
        """A single taken seat leaves the trip unchanged."""
        with pytest.raises(SeatAlreadyReserved) as exc_info:
            await inventory.reserve(3, [1, 2])

        assert isinstance(exc_info.value, CapacityError)
        assert exc_info.value.seat_numbers == [2]
        trip = inventory.get_trip(3)
        assert trip.reserved_seats == [2]
        assert trip.available_seats == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seats", [[0], [41], [5, 41]])
    async def test_out_of_range(self, inventory, seats):
        with pytest.raises(InvalidSeatNumber):
            await inventory.reserve(1, seats)
        assert inventory.get_trip(1).available_seats == 40

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seats", [[], [4, 4]])
    async def test_malformed_request(self, inventory, seats):
        with pytest.raises(ValidationError):
            await inventory.reserve(1, seats)

    @pytest.mark.asyncio
    async def test_unknown_trip(self, inventory):
        with pytest.raises(NotFoundError):
            await inventory.reserve(99, [1])

    @pytest.mark.asyncio
    async def test_capacity_invariant_under_random_operations(self, inventory):
        """available + occupied == total after every reserve and release."""
        rng = random.Random(3)
        for _ in range(200):
            seats = rng.sample(range(1, 41), rng.randint(1, 4))
            if rng.random() < 0.6:
                try:
                    await inventory.reserve(1, seats)
                except CapacityError:
                    pass
            else:
                await inventory.release(1, seats)
            assert_capacity(inventory.get_trip(1))


class TestRelease:
    """Test idempotent release."""

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self, inventory):
        await inventory.reserve(1, [5, 6])

        assert await inventory.release(1, [5, 6, 7]) == 2
        assert await inventory.release(1, [5, 6]) == 0
        assert inventory.get_trip(1).available_seats == 40
        assert inventory.holds(1) == []

    @pytest.mark.asyncio
    async def test_release_hold_only_frees_held_seats(self, inventory):
        hold = await inventory.reserve(1, [5, 6])
        await inventory.reserve(1, [7])

        assert await inventory.release_hold(hold) == 2
        assert inventory.get_trip(1).reserved_seats == [7]
        assert await inventory.release_hold(hold) == 0


class TestHolds:
    """Test hold bookkeeping."""

    @pytest.mark.asyncio
    async def test_committed_view_excludes_holds(self, inventory):
        hold = await inventory.reserve(3, [1])

        view = inventory.committed_view(3)
        assert view.reserved_seats == [2]
        assert view.available_seats == 3

        inventory.confirm(hold)
        assert inventory.committed_view(3).reserved_seats == [2, 1]

    @pytest.mark.asyncio
    async def test_availability_snapshot(self, inventory):
        await inventory.reserve(3, [4])

        snapshot = inventory.availability(3)
        assert snapshot.occupied_seats == [2, 4]
        assert snapshot.held_seats == [4]
        assert snapshot.free_seats == [1, 3]
        assert snapshot.is_free(1)
        assert not snapshot.is_free(4)

    @pytest.mark.asyncio
    async def test_refresh_keeps_local_holds(self, inventory):
        await inventory.reserve(1, [10])

        trip = inventory.refresh(make_trip(1, reserved=[20]))
        assert trip.reserved_seats == [20, 10]
        assert trip.available_seats == 38

    @pytest.mark.asyncio
    async def test_refresh_drops_seats_committed_elsewhere(self, inventory):
        hold = await inventory.reserve(1, [10, 11])

        trip = inventory.refresh(make_trip(1, reserved=[10]))
        assert trip.reserved_seats == [10, 11]
        assert inventory.get_hold(hold.hold_id).seats == [11]

        # Releasing the shrunken hold must not free the seat another writer committed
        await inventory.release_hold(hold)
        assert inventory.get_trip(1).reserved_seats == [10]

    @pytest.mark.asyncio
    async def test_expire_holds(self):
        now = datetime(2026, 10, 18, 12, 0, 0)
        inventory = SeatInventory(clock=lambda: now)
        inventory.load([make_trip(1)])
        hold = await inventory.reserve(1, [1])

        assert await inventory.expire_holds(None) == []
        assert not inventory.is_expired(hold, 60)

        later = now + timedelta(seconds=61)
        inventory.clock = lambda: later
        expired = await inventory.expire_holds(60)

        assert [h.hold_id for h in expired] == [hold.hold_id]
        assert inventory.get_trip(1).available_seats == 40
