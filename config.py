import os
from typing import Optional


def _get_bool_env(name: str, default: bool = False) -> bool:
    """Return a boolean configuration value based on an environment variable."""

    value = os.getenv(name)
    if value is None:
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Read an environment variable returning ``default`` when unset or empty."""

    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value


def _get_int_env(name: str, default: int) -> int:
    value = _get_env(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _get_float_env(name: str) -> Optional[float]:
    value = _get_env(name)
    if value is None:
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def _default_triggers() -> tuple[str, ...]:
    """Return the enabled trigger adapters.

    ``SYNC_TRIGGERS`` takes a comma separated list of ``http`` and ``timer``.
    Without it, local development gets the manual HTTP trigger and every
    other environment the scheduled one.
    """

    configured = _get_env("SYNC_TRIGGERS")
    if configured:
        names = [part.strip().lower() for part in configured.split(",")]
        return tuple(name for name in names if name in {"http", "timer"})
    if (_get_env("APP_ENV", "production") or "").lower() == "local":
        return ("http",)
    return ("timer",)


class Config:
    APP_ENV = _get_env("APP_ENV", "production")
    DEBUG = _get_bool_env("FLASK_DEBUG", False)
    DATABASE_URL = _get_env("DATABASE_URL")
    FEED_URL = _get_env("FEED_URL")
    FEED_TIMEOUT_SECONDS = _get_int_env("FEED_TIMEOUT_SECONDS", 10)
    STORE_COLLECTION = _get_env("STORE_COLLECTION", "feed_items")
    SYNC_DEADLINE_SECONDS = _get_float_env("SYNC_DEADLINE_SECONDS")
    SYNC_INTERVAL_SECONDS = _get_int_env("SYNC_INTERVAL_SECONDS", 3600)
    SYNC_TRIGGERS = _default_triggers()
    SCHEDULER_MAX_WORKERS = _get_int_env("SCHEDULER_MAX_WORKERS", 1)
