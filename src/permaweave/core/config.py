"""
permaweave Configuration

All settings are read from environment variables when the module is imported.
Protocol values that every reader must agree on live in
``permaweave.core.constants`` instead and are never configurable.
"""

from __future__ import annotations

import logging
import os

from permaweave.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _get_int(env_var: str, default: int, minimum: int = 0) -> int:
    """Read an integer setting, rejecting garbage and values below ``minimum``."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be an integer, got {raw!r}",
            details={"env_var": env_var},
        ) from exc
    if value < minimum:
        raise ConfigurationError(
            f"{env_var} must be >= {minimum}, got {value}",
            details={"env_var": env_var},
        )
    return value


def _get_float(env_var: str, default: float) -> float:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be a number, got {raw!r}",
            details={"env_var": env_var},
        ) from exc


def _get_flag(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


# Ledger gateway
GATEWAY_URL = os.getenv("PERMAWEAVE_GATEWAY_URL", "https://arweave.net").rstrip("/")
HTTP_TIMEOUT = _get_int("PERMAWEAVE_HTTP_TIMEOUT", 30, minimum=1)
HTTP_MAX_RETRIES = _get_int("PERMAWEAVE_HTTP_MAX_RETRIES", 3)
HTTP_BACKOFF_FACTOR = _get_float("PERMAWEAVE_HTTP_BACKOFF", 0.5)

# Logging
LOG_LEVEL = os.getenv("PERMAWEAVE_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("PERMAWEAVE_LOG_FILE", "").strip() or None
ENVIRONMENT = os.getenv("PERMAWEAVE_ENVIRONMENT", "production")

# Contracts
SANDBOX_UTILS_ENABLED = _get_flag("PERMAWEAVE_SANDBOX_UTILS", True)
CONTRACT_CACHE_ENABLED = _get_flag("PERMAWEAVE_CONTRACT_CACHE", True)

if LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
    raise ConfigurationError(
        f"PERMAWEAVE_LOG_LEVEL must be a logging level name, got {LOG_LEVEL!r}",
        details={"env_var": "PERMAWEAVE_LOG_LEVEL"},
    )
