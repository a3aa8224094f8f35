from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_QUEUE_NAME_ENV = "AGRO_QUEUE_NAME"
_QUEUE_VISIBILITY_ENV = "AGRO_QUEUE_VISIBILITY_TIMEOUT"
_QUEUE_MAX_RECEIVE_ENV = "AGRO_QUEUE_MAX_RECEIVE_COUNT"
_HISTORY_NAME_ENV = "AGRO_HISTORY_COLLECTION"
_HISTORY_PATH_ENV = "AGRO_HISTORY_PERSISTENCE_PATH"
_HISTORY_UNIQUE_ENV = "AGRO_HISTORY_UNIQUE_IDS"
_CONSUMER_ENABLED_ENV = "AGRO_CONSUMER_ENABLED"
_BATCH_SIZE_ENV = "AGRO_CONSUMER_BATCH_SIZE"
_WAIT_SECONDS_ENV = "AGRO_CONSUMER_WAIT_SECONDS"
_BACKOFF_ENV = "AGRO_CONSUMER_BACKOFF_SECONDS"
_SERVICE_NAME_ENV = "AGRO_SERVICE_NAME"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    queue_name: str
    queue_visibility_timeout: float
    queue_max_receive_count: Optional[int]
    history_collection: str
    history_persistence_path: Optional[str]
    history_unique_ids: bool
    consumer_enabled: bool
    consumer_batch_size: int
    consumer_wait_seconds: int
    consumer_backoff_seconds: float
    service_name: str
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


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUE_VALUES:
        return True
    if candidate in _FALSE_VALUES:
        return False
    return default


def _read_int_env(name: str, default: int, minimum: int, maximum: int) -> int:
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
    return min(max(parsed, minimum), maximum)


def _read_positive_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
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


def _read_max_receive_count() -> Optional[int]:
    value = os.getenv(_QUEUE_MAX_RECEIVE_ENV)
    if value is None:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    try:
        parsed = int(candidate)
    except ValueError:
        return None
    return parsed if parsed > 0 else None


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
        queue_name=_read_str_env(_QUEUE_NAME_ENV, "sensor-readings"),
        queue_visibility_timeout=_read_positive_float_env(_QUEUE_VISIBILITY_ENV, 30.0),
        queue_max_receive_count=_read_max_receive_count(),
        history_collection=_read_str_env(_HISTORY_NAME_ENV, "SensorDataHistory"),
        history_persistence_path=_read_optional_env(
            _HISTORY_PATH_ENV, "./tmp/sensor_history.jsonl"
        ),
        history_unique_ids=_read_bool_env(_HISTORY_UNIQUE_ENV, False),
        consumer_enabled=_read_bool_env(_CONSUMER_ENABLED_ENV, True),
        consumer_batch_size=_read_int_env(_BATCH_SIZE_ENV, 10, minimum=1, maximum=10),
        consumer_wait_seconds=_read_int_env(_WAIT_SECONDS_ENV, 20, minimum=0, maximum=20),
        consumer_backoff_seconds=_read_positive_float_env(_BACKOFF_ENV, 1.0),
        service_name=_read_str_env(_SERVICE_NAME_ENV, "Analysis.Worker"),
        log_level=_read_log_level("INFO"),
    )
