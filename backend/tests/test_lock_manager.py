"""
Tests for the local and Valkey-backed lock managers.
"""

import asyncio
from types import SimpleNamespace

import pytest

from busline.cache.utils import STORE_LOCK_KEY, LockKeyBuilder, trip_lock_key
from busline.exceptions import ConcurrencyViolation
from busline.services.lock_manager import (
    DistributedLockManager,
    LocalLockManager,
    create_lock_manager,
)
from busline.utils.config import BookingConfig


class MockValkeyClient:
    """Mock Valkey client for testing."""

    def __init__(self):
        self.data = {}
        self.client = self
        self.config = SimpleNamespace(key_prefix="test")
        self.connect_calls = 0

    async def ensure_connection(self):
        self.connect_calls += 1

    def set(self, key, value, nx=False, ex=None):
        """Mock SET operation."""
        if nx and key in self.data:
            return False
        self.data[key] = value
        return True

    def eval(self, script, num_keys, *args):
        """Mock EVAL of the compare-and-delete release script."""
        key, expected_value = args[0], args[1]
        if self.data.get(key) == expected_value:
            self.data.pop(key, None)
            return 1
        return 0


class TestLockKeys:
    """Test lock key naming."""

    def test_keys(self):
        assert trip_lock_key(7) == "lock:trip:7"
        assert STORE_LOCK_KEY == "lock:store:ledger"
        assert LockKeyBuilder("busline").build_key("lock:trip", 7) == "busline:lock:trip:7"


class TestLocalLockManager:
    """Test in-process locks."""

    @pytest.mark.asyncio
    async def test_acquire_and_release(self):
        manager = LocalLockManager()

        async with manager.lock_context("lock:trip:1") as lock:
            assert manager.is_locked("lock:trip:1")
            assert lock.lock_key == "lock:trip:1"

        assert not manager.is_locked("lock:trip:1")
        assert manager.active_locks == {}

    @pytest.mark.asyncio
    async def test_timeout_raises_concurrency_violation(self):
        manager = LocalLockManager(default_timeout_seconds=0.05)

        async with manager.lock_context("lock:trip:1"):
            assert await manager.acquire_lock("lock:trip:1") is None
            with pytest.raises(ConcurrencyViolation):
                async with manager.lock_context("lock:trip:1"):
                    pass

    @pytest.mark.asyncio
    async def test_waiter_gets_lock_after_release(self):
        manager = LocalLockManager(default_timeout_seconds=1.0)
        order = []

        async def worker(name):
            async with manager.lock_context("lock:store:ledger"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    @pytest.mark.asyncio
    async def test_release_by_non_owner(self):
        manager = LocalLockManager()
        lock = await manager.acquire_lock("lock:trip:1")
        stale = SimpleNamespace(lock_key="lock:trip:1", lock_value="someone-else")

        assert await manager.release_lock(stale) is False
        assert await manager.release_lock(lock) is True


class TestDistributedLockManager:
    """Test Valkey SET NX EX locks with a mock client."""

    @pytest.mark.asyncio
    async def test_acquire_sets_namespaced_key(self):
        valkey = MockValkeyClient()
        manager = DistributedLockManager(valkey, default_timeout_seconds=0.05, retry_delay=0.01)

        lock = await manager.acquire_lock("lock:trip:1", ttl_seconds=10)

        assert lock.lock_key == "test:lock:trip:1"
        assert valkey.data["test:lock:trip:1"] == lock.lock_value
        assert lock.ttl_seconds == 10
        assert not lock.is_expired

    @pytest.mark.asyncio
    async def test_contended_lock_times_out(self):
        valkey = MockValkeyClient()
        first = DistributedLockManager(valkey, default_timeout_seconds=0.05, retry_delay=0.01)
        second = DistributedLockManager(valkey, default_timeout_seconds=0.05, retry_delay=0.01)

        async with first.lock_context(STORE_LOCK_KEY):
            with pytest.raises(ConcurrencyViolation):
                async with second.lock_context(STORE_LOCK_KEY):
                    pass

        assert valkey.data == {}

    @pytest.mark.asyncio
    async def test_release_checks_owner(self):
        valkey = MockValkeyClient()
        manager = DistributedLockManager(valkey)
        lock = await manager.acquire_lock("lock:trip:2")

        # Lock expired and was taken over by another process
        valkey.data[lock.lock_key] = "other-owner"
        assert await manager.release_lock(lock) is False
        assert valkey.data[lock.lock_key] == "other-owner"

    def test_ttl_capped(self):
        manager = DistributedLockManager(MockValkeyClient(), default_ttl_seconds=30)
        assert manager.max_lock_ttl == 300


class TestFactory:
    """Test backend selection."""

    def test_local_default(self, tmp_path):
        manager = create_lock_manager(BookingConfig(data_dir=str(tmp_path), lock_timeout_seconds=2.5))
        assert isinstance(manager, LocalLockManager)
        assert manager.default_timeout_seconds == 2.5

    def test_valkey_backend(self, tmp_path):
        config = BookingConfig(data_dir=str(tmp_path), lock_backend="valkey", lock_ttl_seconds=45)
        manager = create_lock_manager(config, MockValkeyClient())
        assert isinstance(manager, DistributedLockManager)
        assert manager.default_lock_ttl == 45
