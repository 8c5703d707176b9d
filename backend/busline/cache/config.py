"""
Valkey settings for the distributed lock backend.

Only what the lock manager needs: where the server is, how long a command
may block, and the namespace lock keys live under.
"""

import os
from typing import Optional, Dict, Any
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass
class ValkeyConfig:
    """Lock server address and key namespace, read from VALKEY_* variables."""

    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    database: int = 0
    lock_command_timeout: float = 5.0
    key_prefix: str = "busline"

    @classmethod
    def from_env(cls) -> "ValkeyConfig":
        return cls(
            host=os.getenv("VALKEY_HOST", "localhost"),
            port=int(os.getenv("VALKEY_PORT", "6379")),
            password=os.getenv("VALKEY_PASSWORD") or None,
            database=int(os.getenv("VALKEY_DATABASE", "0")),
            lock_command_timeout=float(os.getenv("VALKEY_LOCK_COMMAND_TIMEOUT", "5.0")),
            key_prefix=os.getenv("VALKEY_KEY_PREFIX", "busline"),
        )

    def to_connection_pool_kwargs(self) -> Dict[str, Any]:
        """Pool arguments; lock values are compared as str, so responses are decoded."""
        kwargs = {
            "host": self.host,
            "port": self.port,
            "db": self.database,
            "socket_timeout": self.lock_command_timeout,
            "socket_connect_timeout": self.lock_command_timeout,
            "decode_responses": True,
        }
        if self.password:
            kwargs["password"] = self.password
        return kwargs

    def __str__(self) -> str:
        secret = "***" if self.password else "None"
        return f"ValkeyConfig({self.host}:{self.port}/{self.database}, password={secret}, prefix={self.key_prefix})"


class ValkeyConnectionError(Exception):
    """The lock server could not be reached."""
