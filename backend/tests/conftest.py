"""
Shared fixtures for the booking engine tests.
"""

import random
from datetime import date
from decimal import Decimal

import pytest

from busline.main import build_engine
from busline.models import TripModel, UserIdentity
from busline.services.payment import StaticPaymentGateway
from busline.storage.synchronizer import PersistenceSynchronizer
from busline.utils.config import BookingConfig


def make_trip(
    trip_id=1,
    total_seats=40,
    reserved=None,
    fare="50.00",
    plate="WXY1234",
    source="Kuala Lumpur",
    destination="Penang",
    travel_date=date(2026, 11, 2),
):
    reserved = list(reserved or [])
    return TripModel(
        trip_id=trip_id,
        plate=plate,
        travel_date=travel_date,
        source=source,
        destination=destination,
        departure="08:00 AM",
        arrival="12:30 PM",
        total_seats=total_seats,
        available_seats=total_seats - len(reserved),
        fare=Decimal(fare),
        reserved_seats=reserved,
    )


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def trips():
    """Outbound trip 1, its return trip 2 on the same bus, and a small bus on trip 3."""
    return [
        make_trip(1),
        make_trip(2, source="Penang", destination="Kuala Lumpur", travel_date=date(2026, 11, 5)),
        make_trip(3, total_seats=4, fare="12.50", plate="JKL5678", source="Ipoh", destination="Melaka"),
    ]


@pytest.fixture
def stores(data_dir, trips):
    """Stores seeded with the trips fixture."""
    synchronizer = PersistenceSynchronizer(data_dir)
    synchronizer.recover()
    synchronizer.write_trips(trips)
    return synchronizer


@pytest.fixture
def config(data_dir):
    return BookingConfig(data_dir=str(data_dir))


@pytest.fixture
def payment():
    return StaticPaymentGateway()


@pytest.fixture
def engine(config, stores, payment):
    return build_engine(config, payment=payment, rng=random.Random(7))


@pytest.fixture
def alice():
    return UserIdentity(username="alice", email="alice@example.com", phone="0123456789")


@pytest.fixture
def bob():
    return UserIdentity(username="bob", email="bob@example.com")
