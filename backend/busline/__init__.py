"""
Busline: seat inventory and ticketed reservations for scheduled bus trips.

The package implements the booking and cancellation transaction engine:
1. Provisional seat holds with per-trip serialization
2. Collision-free 6-digit ticket allocation
3. Atomic one-way and round-trip commit/rollback
4. Crash-safe, journaled consistency across the trip, seat and ledger stores
"""

__version__ = "0.1.0"
