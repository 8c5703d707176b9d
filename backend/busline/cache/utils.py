"""
Key naming conventions for distributed locks.
"""

from enum import Enum
from typing import Any, Union


class LockKeyPrefix(str, Enum):
    """Standard lock key prefixes."""

    TRIP = "lock:trip"      # Per-trip seat mutations
    STORE = "lock:store"    # Ticket allocation and every store commit


class LockKeyBuilder:
    """Builds namespaced lock keys such as 'busline:lock:trip:7'."""

    def __init__(self, namespace: str = "busline"):
        self.namespace = namespace

    def build_key(self, prefix: Union[LockKeyPrefix, str], *parts: Any) -> str:
        prefix_str = prefix.value if isinstance(prefix, LockKeyPrefix) else str(prefix)
        key_parts = [self.namespace, prefix_str]
        key_parts.extend(str(part) for part in parts if part is not None)
        return ":".join(key_parts)


def trip_lock_key(trip_id: int) -> str:
    return f"{LockKeyPrefix.TRIP.value}:{trip_id}"


STORE_LOCK_KEY = f"{LockKeyPrefix.STORE.value}:ledger"
