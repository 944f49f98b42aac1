from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_READING_STORE_ENV = "READING_STORE_PATH"
_AUTOMATION_STORE_ENV = "AUTOMATION_STORE_PATH"
_SENSOR_SELECTION_ENV = "SENSOR_SELECTION_PATH"
_WRITE_WORKER_COUNT_ENV = "WRITE_WORKER_COUNT"
_LOG_PAGE_SIZE_ENV = "LOG_PAGE_SIZE"
_DISPLAY_TIMEZONE_ENV = "DISPLAY_TIMEZONE"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    reading_store_path: Optional[str]
    automation_store_path: Optional[str]
    sensor_selection_path: Optional[str]
    write_workers: int
    log_page_size: int
    display_timezone: str
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


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
        reading_store_path=_read_optional_env(_READING_STORE_ENV, "./tmp/readings.json"),
        automation_store_path=_read_optional_env(
            _AUTOMATION_STORE_ENV, "./tmp/automations.json"
        ),
        sensor_selection_path=_read_optional_env(
            _SENSOR_SELECTION_ENV, "./tmp/active_sensors.json"
        ),
        write_workers=_read_positive_int(_WRITE_WORKER_COUNT_ENV, 3),
        log_page_size=_read_positive_int(_LOG_PAGE_SIZE_ENV, 25),
        display_timezone=_read_str_env(_DISPLAY_TIMEZONE_ENV, "UTC"),
        log_level=_read_log_level("INFO"),
    )
