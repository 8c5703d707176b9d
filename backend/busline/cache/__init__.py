"""
Valkey connectivity for the distributed lock backend.
"""

from .config import ValkeyConfig, ValkeyConnectionError
from .client import ValkeyClient
from .utils import LockKeyPrefix, LockKeyBuilder, trip_lock_key, STORE_LOCK_KEY

__all__ = [
    "ValkeyConfig",
    "ValkeyConnectionError",
    "ValkeyClient",
    "LockKeyPrefix",
    "LockKeyBuilder",
    "trip_lock_key",
    "STORE_LOCK_KEY",
]
