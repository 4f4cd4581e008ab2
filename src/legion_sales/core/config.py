"""
Legion Sales Configuration

Environment-driven settings for the sale engine. Every value has a safe
default; invalid overrides raise ConfigurationError at import time so a
misconfigured deployment fails before any sale is created.
"""

from __future__ import annotations

import logging
import os

from .constants import (
    DEFAULT_MAX_VESTING_DURATION_SECONDS,
    DEFAULT_MAX_VESTING_LOCKUP_SECONDS,
)

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_int(env_var: str, default: int, minimum: int = 0) -> int:
    """Read an integer setting from the environment."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{env_var} must be >= {minimum}, got {value}")
    if value != default:
        logger.info(
            "Config override %s=%s",
            env_var,
            value,
            extra={"event": "config.override", "env_var": env_var},
        )
    return value


CHAIN_ID = _get_int("LEGION_SALES_CHAIN_ID", 1, minimum=1)
ENVIRONMENT = os.getenv("LEGION_SALES_ENVIRONMENT", "production").strip() or "production"
LOG_LEVEL = os.getenv("LEGION_SALES_LOG_LEVEL", "INFO").strip().upper() or "INFO"
LOG_FILE = os.getenv("LEGION_SALES_LOG_FILE", "").strip() or None

MAX_VESTING_DURATION_SECONDS = _get_int(
    "LEGION_SALES_MAX_VESTING_DURATION", DEFAULT_MAX_VESTING_DURATION_SECONDS, minimum=1
)
MAX_VESTING_LOCKUP_SECONDS = _get_int(
    "LEGION_SALES_MAX_VESTING_LOCKUP", DEFAULT_MAX_VESTING_LOCKUP_SECONDS, minimum=0
)

if LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
    raise ConfigurationError(f"LEGION_SALES_LOG_LEVEL is not a logging level: {LOG_LEVEL}")
