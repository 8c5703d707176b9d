"""
Fare calculation.

base = seats x unit fare, tax = base x rate, amount = base + tax, each
rounded half up to cents.
"""

from decimal import Decimal

from ..exceptions import ValidationError
from ..models.booking import FareBreakdown
from ..storage.records import money

DEFAULT_TAX_RATE = Decimal("0.06")


def calculate_fare(seat_count: int, unit_fare: Decimal, tax_rate: Decimal = DEFAULT_TAX_RATE) -> FareBreakdown:
    if seat_count < 1:
        raise ValidationError("A fare needs at least one seat")

    base_fare = money(Decimal(seat_count) * Decimal(unit_fare))
    tax = money(base_fare * Decimal(tax_rate))
    return FareBreakdown(
        seat_count=seat_count,
        unit_fare=money(unit_fare),
        tax_rate=Decimal(tax_rate),
        base_fare=base_fare,
        tax=tax,
        amount=base_fare + tax,
    )
