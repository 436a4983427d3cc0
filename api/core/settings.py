"""
Environment-driven settings.

Every value is read at call time so tests (and long-running workers) pick up
changes to the environment without a restart. Blank or malformed values fall
back to the default instead of failing at startup.
"""

from __future__ import annotations

import os

DEFAULT_WRITE_CONCURRENCY = 8


def env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def db_pool_min_size() -> int:
    return max(env_int("DB_POOL_MIN_SIZE", 1), 0)


def db_pool_max_size() -> int:
    return max(env_int("DB_POOL_MAX_SIZE", 5), 1)


def db_command_timeout_s() -> int:
    return env_int("DB_COMMAND_TIMEOUT_S", 30)


def write_concurrency() -> int:
    """
    Upper bound on simultaneous store calls issued by one aggregate write.
    """
    value = env_int("BADGE_WRITE_CONCURRENCY", DEFAULT_WRITE_CONCURRENCY)
    if value <= 0:
        return DEFAULT_WRITE_CONCURRENCY
    return value


def log_level() -> str:
    return env_str("LOG_LEVEL", "INFO").upper()


def cors_origins() -> list[str]:
    """
    Browser origins allowed to call the API; none unless configured.
    """
    raw = os.environ.get("CORS_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
