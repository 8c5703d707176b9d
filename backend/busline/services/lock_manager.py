"""
Lock managers for per-trip and store-wide mutual exclusion.

Two backends share one interface:
- LocalLockManager: per-key asyncio locks for a single process
- DistributedLockManager: Valkey SET with NX and EX plus an owner token,
  released through a compare-and-delete Lua script, for several processes
  sharing one data directory
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from dataclasses import dataclass
from contextlib import asynccontextmanager

from ..cache.client import ValkeyClient
from ..cache.utils import LockKeyBuilder
from ..exceptions import ConcurrencyViolation

logger = logging.getLogger(__name__)


@dataclass
class LockInfo:
    """Information about an acquired lock."""
    lock_key: str
    lock_value: str
    acquired_at: datetime
    owner_id: str
    ttl_seconds: Optional[int] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.ttl_seconds is None:
            return None
        return self.acquired_at + timedelta(seconds=self.ttl_seconds)

    @property
    def is_expired(self) -> bool:
        """Check if lock has expired."""
        expires_at = self.expires_at
        return expires_at is not None and datetime.now() > expires_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert lock info to dictionary."""
        return {
            "lock_key": self.lock_key,
            "lock_value": self.lock_value,
            "acquired_at": self.acquired_at.isoformat(),
            "ttl_seconds": self.ttl_seconds,
            "owner_id": self.owner_id,
            "is_expired": self.is_expired,
        }


class LockManager:
    """
    Base lock manager.

    Subclasses implement acquire_lock/release_lock; lock_context turns a
    failed acquisition into ConcurrencyViolation so callers retry the whole
    transaction.
    """

    def __init__(self, default_timeout_seconds: float = 5.0, default_ttl_seconds: int = 30):
        self.instance_id = str(uuid.uuid4())[:8]
        self.default_timeout_seconds = default_timeout_seconds
        self.default_lock_ttl = default_ttl_seconds
        self.active_locks: Dict[str, LockInfo] = {}

    async def acquire_lock(
        self,
        resource_key: str,
        ttl_seconds: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Optional[LockInfo]:
        raise NotImplementedError

    async def release_lock(self, lock_info: LockInfo) -> bool:
        raise NotImplementedError

    @asynccontextmanager
    async def lock_context(
        self,
        resource_key: str,
        ttl_seconds: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Context manager for automatic lock acquisition and release.

        Usage:
            async with lock_manager.lock_context("lock:trip:7") as lock:
                # Lock held, perform the protected mutation
                ...

        Raises:
            ConcurrencyViolation: If the lock cannot be acquired in time
        """
        lock_info = await self.acquire_lock(resource_key, ttl_seconds, timeout_seconds)
        if lock_info is None:
            raise ConcurrencyViolation(f"Could not acquire lock {resource_key}; retry the operation")

        try:
            yield lock_info
        finally:
            await self.release_lock(lock_info)


class LocalLockManager(LockManager):
    """In-process lock manager keyed by resource name."""

    def __init__(self, default_timeout_seconds: float = 5.0, default_ttl_seconds: int = 30):
        super().__init__(default_timeout_seconds, default_ttl_seconds)
        self._locks: Dict[str, asyncio.Lock] = {}
        logger.debug(f"LocalLockManager initialized with instance ID: {self.instance_id}")

    def _lock_for(self, resource_key: str) -> asyncio.Lock:
        lock = self._locks.get(resource_key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[resource_key] = lock
        return lock

    async def acquire_lock(
        self,
        resource_key: str,
        ttl_seconds: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Optional[LockInfo]:
        timeout = timeout_seconds or self.default_timeout_seconds
        lock = self._lock_for(resource_key)
        start_time = time.time()

        try:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Failed to acquire lock: {resource_key} (waited {timeout:.1f}s)")
            return None

        lock_info = LockInfo(
            lock_key=resource_key,
            lock_value=f"{self.instance_id}:{uuid.uuid4()}",
            acquired_at=datetime.now(),
            owner_id=self.instance_id,
        )
        self.active_locks[resource_key] = lock_info

        wait_time_ms = (time.time() - start_time) * 1000
        logger.debug(f"Lock acquired: {resource_key} (wait: {wait_time_ms:.1f}ms)")
        return lock_info

    async def release_lock(self, lock_info: LockInfo) -> bool:
        lock = self._locks.get(lock_info.lock_key)
        current = self.active_locks.get(lock_info.lock_key)
        if lock is None or current is None or current.lock_value != lock_info.lock_value:
            logger.warning(f"Lock release failed (not owner): {lock_info.lock_key}")
            return False

        del self.active_locks[lock_info.lock_key]
        lock.release()
        logger.debug(f"Lock released: {lock_info.lock_key}")
        return True

    def is_locked(self, resource_key: str) -> bool:
        lock = self._locks.get(resource_key)
        return lock is not None and lock.locked()


class DistributedLockManager(LockManager):
    """
    Distributed lock manager using Valkey SET with NX and EX options.

    Features:
    - Atomic lock acquisition with TTL, so a crashed holder cannot deadlock others
    - Owner-checked release through a Lua compare-and-delete script
    - Bounded polling while another process holds the lock
    """

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        valkey_client: ValkeyClient,
        default_timeout_seconds: float = 5.0,
        default_ttl_seconds: int = 30,
        retry_delay: float = 0.05,
    ):
        super().__init__(default_timeout_seconds, default_ttl_seconds)
        self.valkey = valkey_client
        self.key_builder = LockKeyBuilder(getattr(valkey_client.config, "key_prefix", "busline"))
        self.max_lock_ttl = 300
        self.lock_retry_delay = retry_delay

        logger.info(f"DistributedLockManager initialized with instance ID: {self.instance_id}")

    async def acquire_lock(
        self,
        resource_key: str,
        ttl_seconds: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Optional[LockInfo]:
        """
        Acquire a distributed lock for the given resource.

        Returns:
            LockInfo if lock acquired, None on timeout
        """
        ttl = min(ttl_seconds or self.default_lock_ttl, self.max_lock_ttl)
        timeout = timeout_seconds or self.default_timeout_seconds

        lock_key = self.key_builder.build_key(resource_key)
        lock_value = f"{self.instance_id}:{uuid.uuid4()}"

        start_time = time.time()
        attempts = 0

        await self.valkey.ensure_connection()

        while True:
            attempts += 1
            # SET NX EX: only set if the key does not exist, with expiration
            if self.valkey.client.set(lock_key, lock_value, nx=True, ex=ttl):
                lock_info = LockInfo(
                    lock_key=lock_key,
                    lock_value=lock_value,
                    acquired_at=datetime.now(),
                    owner_id=self.instance_id,
                    ttl_seconds=ttl,
                )
                self.active_locks[lock_key] = lock_info

                wait_time_ms = (time.time() - start_time) * 1000
                logger.debug(f"Lock acquired: {lock_key} (attempts: {attempts}, wait: {wait_time_ms:.1f}ms)")
                return lock_info

            if time.time() - start_time >= timeout:
                break
            await asyncio.sleep(self.lock_retry_delay)

        wait_time_ms = (time.time() - start_time) * 1000
        logger.warning(f"Failed to acquire lock: {lock_key} (attempts: {attempts}, wait: {wait_time_ms:.1f}ms)")
        return None

    async def release_lock(self, lock_info: LockInfo) -> bool:
        """
        Release a distributed lock if this instance still owns it.

        Returns:
            True if lock was released, False otherwise
        """
        await self.valkey.ensure_connection()

        result = self.valkey.client.eval(
            self.RELEASE_SCRIPT,
            1,
            lock_info.lock_key,
            lock_info.lock_value,
        )
        self.active_locks.pop(lock_info.lock_key, None)

        success = bool(result)
        if success:
            logger.debug(f"Lock released: {lock_info.lock_key}")
        else:
            logger.warning(f"Lock release failed (not owner or expired): {lock_info.lock_key}")
        return success


def create_lock_manager(config, valkey_client: Optional[ValkeyClient] = None) -> LockManager:
    """
    Build the lock manager selected by configuration.

    Args:
        config: BookingConfig with lock_backend, lock_timeout_seconds and lock_ttl_seconds
        valkey_client: Optional client for the 'valkey' backend
    """
    if config.lock_backend == "valkey":
        return DistributedLockManager(
            valkey_client or ValkeyClient(),
            default_timeout_seconds=config.lock_timeout_seconds,
            default_ttl_seconds=config.lock_ttl_seconds,
        )
    return LocalLockManager(
        default_timeout_seconds=config.lock_timeout_seconds,
        default_ttl_seconds=config.lock_ttl_seconds,
    )
