from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_DB_PATH_ENV = "SCALAR_STORE_DB_PATH"
_BUSY_TIMEOUT_ENV = "SCALAR_STORE_BUSY_TIMEOUT"
_MAX_RECORDS_ENV = "SCALAR_STORE_MAX_RECORDS"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    database_path: str
    busy_timeout: float
    default_max_records: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_busy_timeout(default: float) -> float:
    value = os.getenv(_BUSY_TIMEOUT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_max_records(default: int) -> int:
    value = os.getenv(_MAX_RECORDS_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_path=_read_str_env(_DB_PATH_ENV, "./tmp/scalar_sensors.db"),
        busy_timeout=_read_busy_timeout(5.0),
        default_max_records=_read_max_records(0),
        log_level=_read_log_level("INFO"),
    )
