"""
Settings for the index planner, read from the process environment.

A `.env` file found in the working directory (or one of its parents) is
merged in once by `load_config()`; variables already set in the environment
win over the file.

    from tindex.config import load_config, get_units_per_year

    load_config()
    threshold = get_units_per_year()
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog
from dotenv import load_dotenv

from tindex.dates import UNITS_PER_YEAR

log = structlog.get_logger()

_config_loaded = False

_DOTENV_SEARCH_DEPTH = 10


def find_dotenv() -> Path | None:
    """Return the nearest `.env` at or above the working directory."""
    current = Path.cwd()
    for _ in range(_DOTENV_SEARCH_DEPTH):
        candidate = current / ".env"
        if candidate.exists():
            return candidate
        if current.parent == current:
            return None
        current = current.parent
    return None


def _dotenv_disabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return True
    return str(os.environ.get("TINDEX_DISABLE_DOTENV", "")).strip().lower() in {"1", "true", "yes", "on"}


def load_config() -> None:
    """
    Merge the nearest `.env` into the environment (first call only).

    Skipped under pytest and when TINDEX_DISABLE_DOTENV is set, so test runs
    only see the variables they set themselves.
    """
    global _config_loaded
    if _config_loaded:
        return
    _config_loaded = True

    if _dotenv_disabled():
        log.debug("config.dotenv_disabled")
        return

    dotenv_path = find_dotenv()
    if dotenv_path is None:
        log.debug("config.dotenv_missing", cwd=str(Path.cwd()))
        return
    load_dotenv(dotenv_path, override=False)
    log.debug("config.dotenv_loaded", path=str(dotenv_path))


def get_env(key: str, default: str | None = None, required: bool = False) -> str | None:
    """Environment lookup; `required` turns a missing/empty value into RuntimeError."""
    value = os.environ.get(key, default)
    if required and not value:
        raise RuntimeError(f"{key} is not set (export it or add it to .env)")
    return value


def env_int(key: str, default: int) -> int:
    """Read an integer environment variable with safe fallback."""
    load_config()
    raw = str(get_env(key, "") or "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        log.warning("config.invalid_int", key=key, value=raw, default=int(default))
        return int(default)


def env_bool(key: str, default: bool) -> bool:
    """Read a boolean environment variable with common truthy values."""
    load_config()
    raw = str(get_env(key, "1" if default else "0") or "").strip().lower()
    return raw in {"1", "true", "yes", "on"}


def get_dataset_dir() -> str | None:
    """Default dataset root (local path or filesystem URI)."""
    load_config()
    return get_env("TINDEX_DATASET_DIR") or None


def get_index_dir() -> str | None:
    """Default index root (local path or filesystem URI)."""
    load_config()
    return get_env("TINDEX_INDEX_DIR") or None


def get_units_per_year() -> int:
    """Yearly promotion threshold; must be positive."""
    n = env_int("TINDEX_UNITS_PER_YEAR", UNITS_PER_YEAR)
    if n <= 0:
        raise RuntimeError(f"Invalid TINDEX_UNITS_PER_YEAR: {n} (must be > 0)")
    return n


def is_leap_aware_february() -> bool:
    """Count 29 days for February in leap years (off by default)."""
    return env_bool("TINDEX_LEAP_AWARE_FEBRUARY", False)
