"""
Environment configuration loader with validation for the booking engine.
"""

import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, validator
from dotenv import load_dotenv

from ..models.ledger import TICKET_ID_MIN, TICKET_ID_MAX

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "1", "yes", "on")


class BookingConfig(BaseModel):
    """Configuration model for the booking engine with validation."""

    # Storage
    data_dir: str = Field(default="data", description="Directory holding the store files")

    # Fares
    tax_rate: Decimal = Field(default=Decimal("0.06"), ge=0, description="Tax added to the base fare")

    # Ticket ids
    ticket_id_min: int = Field(default=TICKET_ID_MIN, ge=TICKET_ID_MIN, le=TICKET_ID_MAX)
    ticket_id_max: int = Field(default=TICKET_ID_MAX, ge=TICKET_ID_MIN, le=TICKET_ID_MAX)
    ticket_id_max_attempts: int = Field(
        default=1000, ge=1, description="Draws before giving up on a free ticket id"
    )

    # Transactions
    max_legs: int = Field(default=2, ge=1, le=2, description="Legs per booking transaction")
    hold_ttl_seconds: Optional[int] = Field(
        default=None, ge=1, description="Provisional hold lifetime, None for no expiry"
    )
    frequent_route_threshold: int = Field(
        default=5, ge=1, description="Bookings on one bus before the route is saved"
    )

    # Locking
    lock_backend: str = Field(default="local", description="'local' or 'valkey'")
    lock_timeout_seconds: float = Field(default=5.0, gt=0, description="Lock acquisition timeout")
    lock_ttl_seconds: int = Field(default=30, ge=1, le=300, description="Distributed lock TTL")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @validator("lock_backend")
    def validate_lock_backend(cls, v: str) -> str:
        if v.lower() not in ("local", "valkey"):
            raise ValueError("Lock backend must be 'local' or 'valkey'")
        return v.lower()

    @validator("ticket_id_max")
    def validate_ticket_range(cls, v: int, values: dict) -> int:
        """Ensure the ticket id range is not empty."""
        if "ticket_id_min" in values and v < values["ticket_id_min"]:
            raise ValueError("ticket_id_max must be greater than or equal to ticket_id_min")
        return v

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)


def load_config(env_file: Optional[str] = None) -> BookingConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Optional path to .env file. If None, looks for .env in current directory.

    Returns:
        BookingConfig: Validated configuration object

    Raises:
        ValueError: If configuration is invalid
    """
    if env_file is None:
        env_file = ".env"

    if os.path.exists(env_file):
        load_dotenv(env_file)

    hold_ttl = os.getenv("BUSLINE_HOLD_TTL_SECONDS")

    config_data: Dict[str, Any] = {
        "data_dir": os.getenv("BUSLINE_DATA_DIR", "data"),
        "tax_rate": Decimal(os.getenv("BUSLINE_TAX_RATE", "0.06")),
        "ticket_id_min": int(os.getenv("BUSLINE_TICKET_ID_MIN", str(TICKET_ID_MIN))),
        "ticket_id_max": int(os.getenv("BUSLINE_TICKET_ID_MAX", str(TICKET_ID_MAX))),
        "ticket_id_max_attempts": int(os.getenv("BUSLINE_TICKET_ID_MAX_ATTEMPTS", "1000")),
        "max_legs": int(os.getenv("BUSLINE_MAX_LEGS", "2")),
        "hold_ttl_seconds": int(hold_ttl) if hold_ttl else None,
        "frequent_route_threshold": int(os.getenv("BUSLINE_FREQUENT_ROUTE_THRESHOLD", "5")),
        "lock_backend": os.getenv("BUSLINE_LOCK_BACKEND", "local"),
        "lock_timeout_seconds": float(os.getenv("BUSLINE_LOCK_TIMEOUT_SECONDS", "5.0")),
        "lock_ttl_seconds": int(os.getenv("BUSLINE_LOCK_TTL_SECONDS", "30")),
        "log_level": os.getenv("BUSLINE_LOG_LEVEL", "INFO"),
    }

    try:
        return BookingConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")


def validate_required_settings(config: BookingConfig) -> None:
    """
    Validate that the data directory is usable.

    Raises:
        ValueError: If the data directory is missing and cannot be created
    """
    if not config.data_dir:
        raise ValueError("BUSLINE_DATA_DIR is required")

    try:
        config.data_path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ValueError(f"Data directory {config.data_dir} is not usable: {e}")

    logger.info("Configuration validated")
    logger.info("  Data directory: %s", config.data_path.resolve())
    logger.info("  Lock backend: %s", config.lock_backend)
    logger.info("  Hold TTL: %s", config.hold_ttl_seconds or "none")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for command line entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Global configuration instance
_config: Optional[BookingConfig] = None


def get_config() -> BookingConfig:
    """
    Get the global configuration instance, loading it if necessary.

    Returns:
        BookingConfig: The global configuration object
    """
    global _config
    if _config is None:
        _config = load_config()
        validate_required_settings(_config)
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    global _config
    _config = None
