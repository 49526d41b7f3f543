"""Relational reading source over SQLite.

Layout: one database file per farm (``<db_dir>/<farm>.sqlite3``) and one
table per sensor, named after the sensor's display name. Date columns may
hold ISO text or epoch numbers. SQL narrows rows to the query window padded by
a day (timezone and epoch interpretation are not known to the database); the
exact half-open filter runs after coercion.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from contextlib import closing
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from agroclimate.sources.base import SourceError, filter_sensor_names, rows_to_readings

if TYPE_CHECKING:
    from datetime import datetime, tzinfo

    from agroclimate.indices.models import Reading
    from agroclimate.indices.periods import QueryWindow

logger = logging.getLogger(__name__)

EPOCH_NAME_HINTS = ("epoch", "unix")
PREFILTER_PADDING = timedelta(days=1)


def quote_identifier(name: str) -> str:
    """Quote a table/column name so spaces, dots and quotes are safe."""
    return '"' + str(name).replace('"', '""') + '"'


def looks_epoch(column: str) -> bool:
    """Date columns named like epoch counters may hold seconds or milliseconds."""
    name = column.lower()
    return name == "timestamp" or any(hint in name for hint in EPOCH_NAME_HINTS)


def _epoch_seconds(ts: datetime, tz: tzinfo | None) -> float:
    return ts.replace(tzinfo=tz).timestamp() if tz is not None else ts.timestamp()


def range_filter(date_field: str, window: QueryWindow, tz: tzinfo | None = None) -> tuple[str, list[object]]:
    """WHERE clause and parameters selecting rows near ``window``.

    Text columns are compared as ISO strings. Epoch-like columns also match
    numeric values in seconds or milliseconds, falling back to the ISO
    comparison for rows stored as text.
    """
    col = quote_identifier(date_field)
    lo = window.start - PREFILTER_PADDING
    hi = window.end + PREFILTER_PADDING
    text_clause = f"({col} >= ? AND {col} < ?)"
    text_params: list[object] = [lo.strftime("%Y-%m-%d"), hi.strftime("%Y-%m-%d")]
    if not looks_epoch(date_field):
        return text_clause, text_params

    lo_s, hi_s = _epoch_seconds(lo, tz), _epoch_seconds(hi, tz)
    number = f"CAST({col} AS REAL)"
    clause = f"(({number} >= ? AND {number} < ?) OR ({number} >= ? AND {number} < ?) OR {text_clause})"
    return clause, [lo_s, hi_s, lo_s * 1000, hi_s * 1000, *text_params]


class SqliteReadingSource:
    """Reads sensor tables from per-farm SQLite files."""

    def __init__(self, db_dir: Path, timeout_s: float = 10.0, tz: tzinfo | None = None) -> None:
        self.db_dir = db_dir
        self.timeout_s = timeout_s
        self.tz = tz

    def database_path(self, farm_id: str) -> Path:
        return self.db_dir / f"{farm_id}.sqlite3"

    def list_sensors(self, farm_id: str) -> list[str]:
        rows = self._query(farm_id, "SELECT name FROM sqlite_master WHERE type = 'table'")
        return filter_sensor_names(str(r["name"]) for r in rows)

    def list_fields(self, farm_id: str, sensor: str) -> list[str]:
        rows = self._query(farm_id, f"PRAGMA table_info({quote_identifier(sensor)})")
        if not rows:
            msg = f"Sensor table {sensor!r} not found in farm {farm_id!r}"
            raise SourceError(msg)
        return [str(r["name"]) for r in rows]

    def fetch_readings(
        self,
        farm_id: str,
        sensor: str,
        date_field: str,
        temp_field: str,
        window: QueryWindow,
    ) -> list[Reading]:
        if window.is_empty:
            return []
        where, params = range_filter(date_field, window, self.tz)
        sql = (
            f"SELECT * FROM {quote_identifier(sensor)} "
            f"WHERE {where} ORDER BY {quote_identifier(date_field)}"
        )
        rows = self._query(farm_id, sql, params)
        return rows_to_readings((dict(r) for r in rows), date_field, temp_field, window, self.tz)

    def _query(self, farm_id: str, sql: str, params: Sequence[object] = ()) -> list[sqlite3.Row]:
        path = self.database_path(farm_id)
        if not path.exists():
            msg = f"No database for farm {farm_id!r} at {path}"
            raise SourceError(msg)
        try:
            uri = f"{path.resolve().as_uri()}?mode=ro"
            conn = sqlite3.connect(uri, uri=True, timeout=self.timeout_s)
            with closing(conn):
                conn.row_factory = sqlite3.Row
                return conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as exc:
            logger.warning("SQLite query failed: %s", exc, extra={"farm_id": farm_id})
            msg = f"SQLite query failed for farm {farm_id!r}: {exc}"
            raise SourceError(msg) from exc
