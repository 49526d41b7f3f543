"""Application settings read from the environment.

Settings loading never fails: unparseable values fall back to defaults.
Request parameters are validated separately (see ``params``) and do fail.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from functools import lru_cache

from agroclimate.indices.models import DEFAULT_BASE_TEMP_C
from agroclimate.indices.policy import DEFAULT_ALLOWED_SOIL_SENSORS, SoilSensorPolicy

DEFAULT_FARMS = ("Casa_Olmo", "Finca_Antequera", "Valle_Hermoso", "Venta_la_Cuesta")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_env: str
    debug: bool
    log_level: str
    timezone: str
    farms: tuple[str, ...]
    allowed_soil_sensors: tuple[str, ...]
    gdd_base_temp_c: float
    chill_model: str
    utah_allow_negative: bool
    db_dir: str
    source_url: str | None
    source_timeout_s: float
    sensor_workers: int
    store_dir: str
    snapshot_ttl_minutes: int

    @property
    def soil_policy(self) -> SoilSensorPolicy:
        return SoilSensorPolicy.from_names(self.allowed_soil_sensors)


def _read_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip() or default


def _read_optional(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip() or None


def _read_csv(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUE_VALUES:
        return True
    if candidate in _FALSE_VALUES:
        return False
    return default


def _read_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if math.isfinite(parsed) else default


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


@lru_cache
def get_settings() -> Settings:
    return Settings(
        app_name=_read_str("AGRO_APP_NAME", "agroclimate-monitor"),
        app_env=_read_str("AGRO_APP_ENV", "development"),
        debug=_read_bool("AGRO_DEBUG", False),
        log_level=_read_str("LOG_LEVEL", "INFO").upper(),
        timezone=_read_str("AGRO_TIMEZONE", "Europe/Madrid"),
        farms=_read_csv("AGRO_FARMS", DEFAULT_FARMS),
        allowed_soil_sensors=_read_csv("HF_ALLOWED_SOIL_SENSORS", DEFAULT_ALLOWED_SOIL_SENSORS),
        gdd_base_temp_c=_read_float("AGRO_GDD_BASE_TEMP", DEFAULT_BASE_TEMP_C),
        chill_model=_read_str("AGRO_CHILL_MODEL", "delta").lower(),
        utah_allow_negative=_read_bool("AGRO_UTAH_ALLOW_NEGATIVE", False),
        db_dir=_read_str("AGRO_DB_DIR", "./data/db"),
        source_url=_read_optional("AGRO_SOURCE_URL"),
        source_timeout_s=_read_float("AGRO_SOURCE_TIMEOUT", 10.0),
        sensor_workers=_read_positive_int("AGRO_SENSOR_WORKERS", 4),
        store_dir=_read_str("AGRO_STORE_DIR", "./data"),
        snapshot_ttl_minutes=_read_positive_int("AGRO_SNAPSHOT_TTL", 60),
    )
