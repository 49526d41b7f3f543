"""In-memory reading source, for fixtures and tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from agroclimate.sources.base import SourceError, filter_sensor_names, rows_to_readings

if TYPE_CHECKING:
    from datetime import tzinfo

    from agroclimate.indices.models import Reading
    from agroclimate.indices.periods import QueryWindow


@dataclass
class SensorTable:
    fields: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)


class InMemoryReadingSource:
    """Farm -> sensor -> table of rows, held in process memory."""

    def __init__(self, tz: tzinfo | None = None) -> None:
        self.tz = tz
        self._farms: dict[str, dict[str, SensorTable]] = {}

    def add_farm(self, farm_id: str) -> None:
        self._farms.setdefault(farm_id, {})

    def add_sensor(
        self,
        farm_id: str,
        sensor: str,
        rows: list[dict[str, Any]],
        fields: list[str] | None = None,
    ) -> None:
        """Register a sensor table; fields default to the keys seen in rows."""
        if fields is None:
            seen: dict[str, None] = {}
            for row in rows:
                for key in row:
                    seen.setdefault(key, None)
            fields = list(seen)
        self._farms.setdefault(farm_id, {})[sensor] = SensorTable(fields=fields, rows=list(rows))

    def list_sensors(self, farm_id: str) -> list[str]:
        return filter_sensor_names(self._farm(farm_id))

    def list_fields(self, farm_id: str, sensor: str) -> list[str]:
        return list(self._table(farm_id, sensor).fields)

    def fetch_readings(
        self,
        farm_id: str,
        sensor: str,
        date_field: str,
        temp_field: str,
        window: QueryWindow,
    ) -> list[Reading]:
        table = self._table(farm_id, sensor)
        return rows_to_readings(table.rows, date_field, temp_field, window, self.tz)

    def _farm(self, farm_id: str) -> dict[str, SensorTable]:
        try:
            return self._farms[farm_id]
        except KeyError:
            msg = f"Unknown farm {farm_id!r}"
            raise SourceError(msg) from None

    def _table(self, farm_id: str, sensor: str) -> SensorTable:
        try:
            return self._farm(farm_id)[sensor]
        except KeyError:
            msg = f"Unknown sensor {sensor!r} in farm {farm_id!r}"
            raise SourceError(msg) from None
