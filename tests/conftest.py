"""Shared fixtures for the test suite."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Iterator
from typing import Any

import pytest

from agroclimate import logging_config
from agroclimate.config import DEFAULT_FARMS, Settings, get_settings
from agroclimate.indices.policy import DEFAULT_ALLOWED_SOIL_SENSORS
from agroclimate.sources.memory import InMemoryReadingSource

AMBIENT_FIELDS = ["datetime", "temperature", "humidity"]
SOIL_FIELDS = ["datetime", "temperature", "conductivity"]

BASE_SETTINGS = Settings(
    app_name="agroclimate-monitor",
    app_env="test",
    debug=False,
    log_level="INFO",
    timezone="Europe/Madrid",
    farms=DEFAULT_FARMS,
    allowed_soil_sensors=DEFAULT_ALLOWED_SOIL_SENSORS,
    gdd_base_temp_c=7.0,
    chill_model="delta",
    utah_allow_negative=False,
    db_dir="./data/db",
    source_url=None,
    source_timeout_s=10.0,
    sensor_workers=4,
    store_dir="./data",
    snapshot_ttl_minutes=60,
)


def rows(*pairs: tuple[str, float | None]) -> list[dict[str, Any]]:
    """Build ambient rows from (datetime string, temperature) pairs."""
    return [{"datetime": ts, "temperature": temp, "humidity": 80.0} for ts, temp in pairs]


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _isolate_logging() -> Iterator[None]:
    """Undo configure_logging() so handlers bound to captured streams don't leak."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    configured = logging_config._configured
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging_config._configured = configured


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Factory for Settings with field overrides."""

    def _make(**overrides: Any) -> Settings:
        return dataclasses.replace(BASE_SETTINGS, **overrides)

    return _make


@pytest.fixture
def settings() -> Settings:
    return BASE_SETTINGS


@pytest.fixture
def chill_source() -> InMemoryReadingSource:
    """One farm with two ambient sensors, two soil probes and an unusable table."""
    source = InMemoryReadingSource()
    source.add_sensor(
        "Casa_Olmo",
        "Ambiente A",
        rows(
            ("2024-12-01 00:00:00", 3.0),
            ("2024-12-01 01:00:00", 3.0),
            ("2024-12-01 06:00:00", 3.0),
            ("2024-12-02 00:00:00", 5.0),
            ("2024-12-02 00:30:00", 5.0),
        ),
        fields=AMBIENT_FIELDS,
    )
    source.add_sensor(
        "Casa_Olmo",
        "Ambiente B",
        rows(("2024-12-01 00:00:00", 4.0), ("2024-12-01 00:30:00", 4.0)),
        fields=AMBIENT_FIELDS,
    )
    source.add_sensor(
        "Casa_Olmo",
        "Sonda Suelo",
        [{"datetime": "2024-12-01 00:00:00", "temperature": 1.0, "conductivity": 0.4}],
        fields=SOIL_FIELDS,
    )
    source.add_sensor(
        "Casa_Olmo",
        "Parcela 4.2",
        [
            {"datetime": "2024-12-01 00:00:00", "temperature": 2.0, "conductivity": 0.3},
            {"datetime": "2024-12-01 02:00:00", "temperature": 2.0, "conductivity": 0.3},
        ],
        fields=SOIL_FIELDS,
    )
    source.add_sensor(
        "Casa_Olmo",
        "Humedad",
        [{"datetime": "2024-12-01 00:00:00", "humidity": 90.0}],
        fields=["datetime", "humidity"],
    )
    return source


@pytest.fixture
def gdd_source() -> InMemoryReadingSource:
    """One farm with two ambient sensors reporting in early June."""
    source = InMemoryReadingSource()
    source.add_sensor(
        "Casa_Olmo",
        "Ambiente A",
        rows(
            ("2024-06-01 06:00:00", 10.0),
            ("2024-06-01 15:00:00", 20.0),
            ("2024-06-02 12:00:00", 12.0),
        ),
        fields=AMBIENT_FIELDS,
    )
    source.add_sensor(
        "Casa_Olmo",
        "Ambiente B",
        rows(("2024-06-01 06:00:00", 14.0), ("2024-06-01 15:00:00", 16.0)),
        fields=AMBIENT_FIELDS,
    )
    return source
