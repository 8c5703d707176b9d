"""
Seat hold and availability models.

These models describe provisional seat holds taken by a booking transaction
and the read-only availability snapshot shown before seat selection.
"""

from datetime import datetime
from typing import List
from pydantic import BaseModel, Field, ConfigDict


class SeatHoldModel(BaseModel):
    """
    Provisional hold on a set of seats of one trip.

    Seats covered by a hold are unavailable to every other transaction but
    are not in any ledger until the owning transaction commits.
    """
    model_config = ConfigDict(from_attributes=True)

    hold_id: str = Field(..., description="Unique hold identifier")
    trip_id: int = Field(..., ge=1, description="Trip the seats belong to")
    seats: List[int] = Field(..., min_length=1, description="Held seat numbers")
    created_at: datetime = Field(default_factory=datetime.now, description="Hold timestamp")


class SeatAvailabilityModel(BaseModel):
    """Snapshot of occupied and free seats for display."""
    model_config = ConfigDict(from_attributes=True)

    trip_id: int = Field(..., description="Trip identifier")
    total_seats: int = Field(..., ge=1, description="Seat capacity")
    available_seats: int = Field(..., ge=0, description="Seats still free")
    occupied_seats: List[int] = Field(default_factory=list, description="Occupied seat numbers, sorted")
    held_seats: List[int] = Field(default_factory=list, description="Occupied seats that are only provisionally held")
    free_seats: List[int] = Field(default_factory=list, description="Free seat numbers, sorted")
    taken_at: datetime = Field(default_factory=datetime.now, description="Snapshot timestamp")

    def is_free(self, seat_number: int) -> bool:
        return seat_number in self.free_seats
