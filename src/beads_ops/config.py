# src/beads_ops/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing required at import time: every value has a default.
- Durations are seconds (floats) everywhere.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "BEADS"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path
    console_enabled: bool

    # ---- bd CLI ----
    bd_binary: str
    bd_timeout_seconds: float

    # ---- Result cache ----
    cache_enabled: bool
    cache_ttl_seconds: float

    # ---- Operation scheduler ----
    max_concurrent: int
    queue_enabled: bool
    default_timeout_seconds: float
    retry_enabled: bool
    retry_max_attempts: int
    retry_delay_seconds: float
    notify_on_complete: bool
    notify_on_error: bool

    # ---- Sync ----
    auto_sync_interval_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "beads-ops") or "beads-ops"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/beads-ops"))
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        bd_binary = _env(_k("BD_BINARY"), "bd").strip() or "bd"
        bd_timeout_seconds = max(1.0, _env_float(_k("BD_TIMEOUT_SECONDS"), 30.0))

        cache_enabled = _env_bool(_k("CACHE_ENABLED"), True)
        cache_ttl_seconds = max(0.0, _env_float(_k("CACHE_TTL_SECONDS"), 30.0))

        max_concurrent = max(1, _env_int(_k("MAX_CONCURRENT"), 3))
        queue_enabled = _env_bool(_k("QUEUE_ENABLED"), True)
        default_timeout_seconds = max(0.1, _env_float(_k("DEFAULT_TIMEOUT_SECONDS"), 30.0))
        retry_enabled = _env_bool(_k("RETRY_ENABLED"), False)
        retry_max_attempts = max(0, _env_int(_k("RETRY_MAX_ATTEMPTS"), 3))
        retry_delay_seconds = max(0.0, _env_float(_k("RETRY_DELAY_SECONDS"), 1.0))
        notify_on_complete = _env_bool(_k("NOTIFY_ON_COMPLETE"), True)
        notify_on_error = _env_bool(_k("NOTIFY_ON_ERROR"), True)

        auto_sync_interval_seconds = max(0.0, _env_float(_k("AUTO_SYNC_INTERVAL_SECONDS"), 0.0))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            console_enabled=console_enabled,
            bd_binary=bd_binary,
            bd_timeout_seconds=bd_timeout_seconds,
            cache_enabled=cache_enabled,
            cache_ttl_seconds=cache_ttl_seconds,
            max_concurrent=max_concurrent,
            queue_enabled=queue_enabled,
            default_timeout_seconds=default_timeout_seconds,
            retry_enabled=retry_enabled,
            retry_max_attempts=retry_max_attempts,
            retry_delay_seconds=retry_delay_seconds,
            notify_on_complete=notify_on_complete,
            notify_on_error=notify_on_error,
            auto_sync_interval_seconds=auto_sync_interval_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
