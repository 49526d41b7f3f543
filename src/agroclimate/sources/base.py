"""Storage collaborator interface and shared row coercion.

Sources own connections, identifier escaping and timeouts. They hand the
engine plain ``Reading`` objects with naive local timestamps, ordered
ascending and already restricted to the half-open query window.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time, tzinfo
from typing import TYPE_CHECKING, Any, Protocol

from agroclimate.indices.models import Reading

if TYPE_CHECKING:
    from agroclimate.indices.periods import QueryWindow

logger = logging.getLogger(__name__)

# Epoch heuristics: values above these are milliseconds / seconds
EPOCH_MS_THRESHOLD = 1_000_000_000_000
EPOCH_S_THRESHOLD = 1_000_000_000

IGNORED_TABLES = ("migrations",)
IGNORED_TABLE_PREFIXES = ("sqlite_",)


class SourceError(RuntimeError):
    """Storage or network failure while reading sensor data."""


class ReadingSource(Protocol):
    """What the engine needs from storage."""

    def list_sensors(self, farm_id: str) -> list[str]: ...

    def list_fields(self, farm_id: str, sensor: str) -> list[str]: ...

    def fetch_readings(
        self,
        farm_id: str,
        sensor: str,
        date_field: str,
        temp_field: str,
        window: QueryWindow,
    ) -> list[Reading]: ...


def filter_sensor_names(names: Iterable[str]) -> list[str]:
    """Drop housekeeping tables and sort names case-insensitively."""
    kept = [
        n
        for n in names
        if n
        and n.lower() not in IGNORED_TABLES
        and not n.lower().startswith(IGNORED_TABLE_PREFIXES)
    ]
    return sorted(kept, key=lambda n: (n.casefold(), n))


def coerce_timestamp(value: Any, tz: tzinfo | None = None) -> datetime | None:
    """Turn a stored date value into a naive local datetime.

    Accepts datetimes, dates, epoch numbers (seconds or milliseconds, also as
    digit strings) and ISO-8601 strings with ``T`` or space separator and an
    optional ``Z``. Aware values are converted to ``tz`` before the tzinfo is
    dropped; epoch values are interpreted in ``tz`` too.

    Returns:
        The naive local datetime, or None if the value is empty or unparseable.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, int | float):
        return _from_epoch(float(value), tz)
    elif isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        if candidate.isdigit():
            return _from_epoch(float(candidate), tz)
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        if tz is not None:
            parsed = parsed.astimezone(tz)
        parsed = parsed.replace(tzinfo=None)
    return parsed


def _from_epoch(number: float, tz: tzinfo | None) -> datetime | None:
    if not math.isfinite(number):
        return None
    if number > EPOCH_MS_THRESHOLD:
        number /= 1000
    elif number <= EPOCH_S_THRESHOLD:
        return None
    aware = datetime.fromtimestamp(number, tz=tz) if tz is not None else datetime.fromtimestamp(number)
    return aware.replace(tzinfo=None)


def coerce_number(value: Any) -> float | None:
    """Numeric cell value, or None for NULL/blank/non-finite/garbage."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def rows_to_readings(
    rows: Iterable[Mapping[str, Any]],
    date_field: str,
    temp_field: str,
    window: QueryWindow,
    tz: tzinfo | None = None,
) -> list[Reading]:
    """Build window-filtered, time-ordered readings from raw rows.

    Rows whose date cannot be interpreted are dropped, matching a SQL range
    filter that never matches NULL.
    """
    readings: list[Reading] = []
    dropped = 0
    for row in rows:
        ts = coerce_timestamp(row.get(date_field), tz)
        if ts is None:
            dropped += 1
            continue
        if not window.contains(ts):
            continue
        metrics = {
            key: coerce_number(val)
            for key, val in row.items()
            if key not in (date_field, temp_field)
        }
        readings.append(
            Reading(timestamp=ts, temperature=coerce_number(row.get(temp_field)), metrics=metrics)
        )

    if dropped:
        logger.debug("Dropped %d rows with unreadable dates", dropped, extra={"reason": "bad_date"})
    readings.sort(key=lambda r: r.timestamp)
    return readings
