"""
Valkey client wrapper used by the distributed lock backend.

Connects lazily with bounded retries and exposes the raw client for the
SET NX / EVAL commands the lock manager issues.
"""

import asyncio
import logging
from typing import Optional

import valkey
from valkey.connection import ConnectionPool
from valkey.exceptions import ConnectionError, TimeoutError

from .config import ValkeyConfig, ValkeyConnectionError

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Valkey client with connection pooling and reconnection on demand.
    """

    def __init__(self, config: Optional[ValkeyConfig] = None):
        self.config = config or ValkeyConfig.from_env()
        self._client: Optional[valkey.Valkey] = None
        self._connection_pool: Optional[ConnectionPool] = None
        self._is_connected = False
        self._max_connection_attempts = 5
        self._reconnect_delay = 0.5

        logger.info(f"Initializing Valkey client: {self.config}")

    @property
    def client(self) -> valkey.Valkey:
        if self._client is None:
            raise ValkeyConnectionError("Valkey client is not connected")
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    async def connect(self) -> None:
        """
        Establish connection to the Valkey server with retry logic.

        Raises:
            ValkeyConnectionError: If connection cannot be established after max attempts
        """
        if self._is_connected and self._client:
            return

        for attempt in range(1, self._max_connection_attempts + 1):
            try:
                logger.info(f"Attempting Valkey connection (attempt {attempt})")
                self._connection_pool = ConnectionPool(**self.config.to_connection_pool_kwargs())
                self._client = valkey.Valkey(connection_pool=self._connection_pool)
                if not self._client.ping():
                    raise ValkeyConnectionError("Ping returned False")

                self._is_connected = True
                logger.info("Successfully connected to Valkey server")
                return

            except (ConnectionError, TimeoutError, OSError) as e:
                logger.warning(f"Valkey connection attempt {attempt} failed: {e}")
                if attempt >= self._max_connection_attempts:
                    error_msg = (
                        f"Failed to connect to Valkey after {self._max_connection_attempts} attempts. "
                        f"Last error: {e}"
                    )
                    logger.error(error_msg)
                    raise ValkeyConnectionError(error_msg) from e

                await asyncio.sleep(self._reconnect_delay * (2 ** (attempt - 1)))

    async def ensure_connection(self) -> None:
        if not self._is_connected:
            await self.connect()

    async def disconnect(self) -> None:
        """Gracefully disconnect from the Valkey server."""
        if self._connection_pool:
            try:
                self._connection_pool.disconnect()
                logger.info("Disconnected from Valkey server")
            finally:
                self._connection_pool = None
                self._client = None
                self._is_connected = False
