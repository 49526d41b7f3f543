"""Storage collaborators that supply raw sensor readings.

  - base: ReadingSource protocol, SourceError, row/timestamp coercion
  - memory: InMemoryReadingSource (fixtures, tests)
  - sqlite: SqliteReadingSource (one database per farm, one table per sensor)
  - remote: RemoteReadingSource (dashboard sensor-data HTTP API)

``build_source`` picks the remote API when ``AGRO_SOURCE_URL`` is set and the
SQLite directory otherwise.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from agroclimate.sources.base import (
    ReadingSource,
    SourceError,
    coerce_number,
    coerce_timestamp,
    rows_to_readings,
)
from agroclimate.sources.memory import InMemoryReadingSource
from agroclimate.sources.remote import RemoteReadingSource
from agroclimate.sources.sqlite import SqliteReadingSource

if TYPE_CHECKING:
    from agroclimate.config import Settings


def build_source(settings: Settings) -> ReadingSource:
    """Create the configured reading source."""
    tz = ZoneInfo(settings.timezone)
    if settings.source_url:
        return RemoteReadingSource(settings.source_url, timeout=settings.source_timeout_s, tz=tz)
    return SqliteReadingSource(Path(settings.db_dir), timeout_s=settings.source_timeout_s, tz=tz)


__all__ = [
    "InMemoryReadingSource",
    "ReadingSource",
    "RemoteReadingSource",
    "SourceError",
    "SqliteReadingSource",
    "build_source",
    "coerce_number",
    "coerce_timestamp",
    "rows_to_readings",
]
