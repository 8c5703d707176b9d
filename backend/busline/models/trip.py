"""
Trip model for the booking engine.

A trip is a scheduled bus departure with a fixed seat capacity. Its seat
fields are only ever changed through SeatInventory.
"""

from datetime import date
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field, ConfigDict, model_validator


class TripModel(BaseModel):
    """
    Scheduled trip with its capacity counters and occupied seats.

    Invariant: available_seats + len(reserved_seats) == total_seats, and every
    reserved seat is unique and within [1, total_seats].
    """
    model_config = ConfigDict(from_attributes=True)

    trip_id: int = Field(..., ge=1, description="Trip identifier")
    plate: str = Field(..., min_length=1, max_length=20, description="Bus number plate")
    travel_date: date = Field(..., description="Date of travel")
    source: str = Field(..., min_length=1, description="Departure town")
    destination: str = Field(..., min_length=1, description="Arrival town")
    departure: str = Field(..., description="Departure time (e.g. '08:30 AM')")
    arrival: str = Field(..., description="Arrival time (e.g. '12:15 PM')")
    total_seats: int = Field(..., ge=1, description="Seat capacity of the bus")
    available_seats: int = Field(..., ge=0, description="Seats still free")
    fare: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Fare per seat")
    reserved_seats: List[int] = Field(default_factory=list, description="Occupied seat numbers in booking order")

    @model_validator(mode="after")
    def check_capacity(self) -> "TripModel":
        if len(set(self.reserved_seats)) != len(self.reserved_seats):
            raise ValueError(f"Trip {self.trip_id} has duplicate reserved seats")
        out_of_range = [s for s in self.reserved_seats if s < 1 or s > self.total_seats]
        if out_of_range:
            raise ValueError(f"Trip {self.trip_id} has reserved seats out of range: {out_of_range}")
        if self.available_seats + len(self.reserved_seats) != self.total_seats:
            raise ValueError(
                f"Trip {self.trip_id}: available ({self.available_seats}) + reserved "
                f"({len(self.reserved_seats)}) != total ({self.total_seats})"
            )
        return self

    @property
    def route(self) -> tuple:
        return (self.source, self.destination)
