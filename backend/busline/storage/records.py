"""
Record codecs for the four stores.

Each store holds one comma-separated record per line:
- trips:         tripID,plate,date,source,destination,departure,arrival,totalSeats,availableSeats,fare
- seats:         tripID,reservedCount,seat1,seat2,...
- reservations:  username,ticketID,tripID,plate,date,seatCount,"seat seat seat",amount
- cancellations: the reservation shape plus the refund amount
"""

import csv
import io
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Callable, Dict, Iterable, List, Sequence, Tuple, TypeVar

from pydantic import ValidationError as ModelValidationError

from ..exceptions import PersistenceError
from ..models.ledger import ReservationLedgerEntry, CancellationLedgerEntry
from ..models.trip import TripModel

T = TypeVar("T")

CENT = Decimal("0.01")


def money(value: Any) -> Decimal:
    """Quantize to cents, rounding half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    return f"{money(value):.2f}"


def encode_rows(rows: Iterable[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for row in rows:
        writer.writerow([str(field) for field in row])
    return buffer.getvalue()


def decode_rows(text: str) -> List[List[str]]:
    """Parse store text into rows of stripped fields, skipping blank lines."""
    rows = []
    for row in csv.reader(io.StringIO(text)):
        fields = [field.strip() for field in row]
        if any(fields):
            rows.append(fields)
    return rows


def parse_rows(text: str, parser: Callable[[List[str]], T], store: str) -> List[T]:
    """
    Decode every row of a store with parser.

    Raises:
        PersistenceError: Naming the store and line of the first malformed record
    """
    records = []
    for line_number, row in enumerate(decode_rows(text), start=1):
        try:
            records.append(parser(row))
        except (ValueError, IndexError, InvalidOperation, ModelValidationError) as e:
            raise PersistenceError(f"Malformed record in {store} at line {line_number}: {e}") from e
    return records


# Trip store

def trip_to_record(trip: TripModel) -> List[Any]:
    return [
        trip.trip_id,
        trip.plate,
        trip.travel_date.isoformat(),
        trip.source,
        trip.destination,
        trip.departure,
        trip.arrival,
        trip.total_seats,
        trip.available_seats,
        format_money(trip.fare),
    ]


def trip_from_record(row: List[str]) -> Dict[str, Any]:
    """Decode a trip row. Reserved seats live in the seat store and are merged later."""
    if len(row) != 10:
        raise ValueError(f"expected 10 fields, got {len(row)}")
    return {
        "trip_id": int(row[0]),
        "plate": row[1],
        "travel_date": date.fromisoformat(row[2]),
        "source": row[3],
        "destination": row[4],
        "departure": row[5],
        "arrival": row[6],
        "total_seats": int(row[7]),
        "available_seats": int(row[8]),
        "fare": money(row[9]),
    }


# Seat-occupancy store

def seats_to_record(trip: TripModel) -> List[Any]:
    return [trip.trip_id, len(trip.reserved_seats), *trip.reserved_seats]


def seats_from_record(row: List[str]) -> Tuple[int, List[int]]:
    trip_id = int(row[0])
    count = int(row[1])
    seats = [int(field) for field in row[2:]]
    if count != len(seats):
        raise ValueError(f"trip {trip_id} declares {count} reserved seats but lists {len(seats)}")
    return trip_id, seats


# Ledgers

def _seat_field(seats: Sequence[int]) -> str:
    return " ".join(str(seat) for seat in seats)


def reservation_to_record(entry: ReservationLedgerEntry) -> List[Any]:
    return [
        entry.username,
        entry.ticket_id,
        entry.trip_id,
        entry.plate,
        entry.booking_date.isoformat(),
        entry.seat_count,
        _seat_field(entry.seats),
        format_money(entry.amount),
    ]


def _reservation_fields(row: List[str]) -> Dict[str, Any]:
    seats = [int(field) for field in row[6].split()]
    if int(row[5]) != len(seats):
        raise ValueError(f"ticket {row[1]} declares {row[5]} seats but lists {len(seats)}")
    return {
        "username": row[0],
        "ticket_id": int(row[1]),
        "trip_id": int(row[2]),
        "plate": row[3],
        "booking_date": date.fromisoformat(row[4]),
        "seats": seats,
        "amount": money(row[7]),
    }


def reservation_from_record(row: List[str]) -> ReservationLedgerEntry:
    if len(row) != 8:
        raise ValueError(f"expected 8 fields, got {len(row)}")
    return ReservationLedgerEntry(**_reservation_fields(row))


def cancellation_to_record(entry: CancellationLedgerEntry) -> List[Any]:
    return [*reservation_to_record(entry), format_money(entry.refund_amount)]


def cancellation_from_record(row: List[str]) -> CancellationLedgerEntry:
    if len(row) != 9:
        raise ValueError(f"expected 9 fields, got {len(row)}")
    return CancellationLedgerEntry(**_reservation_fields(row), refund_amount=money(row[8]))
