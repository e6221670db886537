"""Application configuration settings.

This module provides centralized configuration management using environment
variables with sensible defaults.
"""

import logging
import os
from dataclasses import dataclass

import structlog

from src.relay.models import RelayMethod

logger = structlog.get_logger(__name__)


def _get_float_env(name: str, default: float) -> float:
    """Get a float value from environment variable.

    Args:
        name: Environment variable name.
        default: Default value if not set or empty.

    Returns:
        Float value from environment.
    """
    value = os.getenv(name, "").strip()
    if not value:
        return default
    return float(value)


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        WEBHOOK_TARGETS: Comma-separated list of downstream target URLs.
        RELAY_METHOD: HTTP method this deployment relays (GET or POST).
        RELAY_PATH: Path of the relay endpoint.
        RELAY_TIMEOUT_SECONDS: Per-target request timeout.
        LOG_LEVEL: Logging level.
    """

    # Targets
    WEBHOOK_TARGETS: str = ""

    # Relay variant
    RELAY_METHOD: RelayMethod = RelayMethod.GET
    RELAY_PATH: str = "/api/relay"
    RELAY_TIMEOUT_SECONDS: float = 5.0

    # Logging
    LOG_LEVEL: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables.

        Returns:
            Settings instance populated from environment.

        Raises:
            ValueError: If RELAY_METHOD or RELAY_TIMEOUT_SECONDS is invalid.
        """
        return cls(
            WEBHOOK_TARGETS=os.getenv("WEBHOOK_TARGETS", ""),
            RELAY_METHOD=RelayMethod.parse(os.getenv("RELAY_METHOD", "GET")),
            RELAY_PATH=os.getenv("RELAY_PATH", "/api/relay"),
            RELAY_TIMEOUT_SECONDS=_get_float_env("RELAY_TIMEOUT_SECONDS", 5.0),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        )


def get_settings() -> Settings:
    """Read settings fresh from the environment.

    Used as a FastAPI dependency so target changes apply without a restart.

    Raises:
        ValueError: If a relay variable holds an invalid value.
    """
    try:
        return Settings.from_env()
    except ValueError as e:
        logger.error("invalid_configuration", error=str(e))
        raise


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog output and filtering level.

    Args:
        level: Standard logging level name; unknown names fall back to INFO.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
        ),
        cache_logger_on_first_use=False,
    )
