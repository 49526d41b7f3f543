"""Column classification for sensor tables.

Sensor tables do not share a schema: the date column may be ``datetime``,
``fecha`` or an epoch ``timestamp``, and soil probes expose conductivity or
moisture columns instead of (or next to) temperature. These helpers guess the
relevant fields from the field names alone so they can be tested without a
database.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

DATE_FIELD_CANDIDATES = ("datetime", "timestamp", "date", "fecha", "time")
TEMPERATURE_FIELD_CANDIDATES = ("temperature", "temperatura", "temp")

SOIL_SIGNALS = (
    "conductivity",
    "conductividad",
    "ec",
    "ece",
    "soil",
    "soil_moisture",
    "soilmoisture",
    "vwc",
    "smtc",
    "moisture",
    "humedad_suelo",
    "water_content",
)


@dataclass(frozen=True)
class ColumnClassification:
    """Fields picked for a sensor and whether it looks like a soil probe."""

    date_field: str | None
    temp_field: str | None
    is_soil: bool

    @property
    def kind(self) -> str:
        return "soil" if self.is_soil else "ambient"

    @property
    def is_usable(self) -> bool:
        """True when both a date and a temperature field were found."""
        return self.date_field is not None and self.temp_field is not None


def pick_field(fields: Sequence[str], candidates: Iterable[str]) -> str | None:
    """Pick the first field matching the candidate priority list.

    Exact (case-insensitive) matches win over substring matches; within each
    pass the candidate order decides.

    Args:
        fields: Field names as reported by storage (original casing kept).
        candidates: Lower-case candidate names in priority order.

    Returns:
        The matching field name with its original casing, or None.
    """
    lowered = [f.lower() for f in fields]
    ordered = [c.lower() for c in candidates]

    for cand in ordered:
        for original, low in zip(fields, lowered, strict=True):
            if low == cand:
                return original

    for cand in ordered:
        for original, low in zip(fields, lowered, strict=True):
            if cand in low:
                return original

    return None


def is_soil_sensor(fields: Iterable[str]) -> bool:
    """True if any field equals or contains one of the soil signal tokens.

    Matching is plain substring, so short tokens are broad: ``ec`` also
    matches ``fecha``.
    """
    lowered = [f.lower() for f in fields]
    return any(sig == name or sig in name for sig in SOIL_SIGNALS for name in lowered)


def classify_columns(fields: Sequence[str]) -> ColumnClassification:
    """Identify date/temperature fields and the sensor kind."""
    return ColumnClassification(
        date_field=pick_field(fields, DATE_FIELD_CANDIDATES),
        temp_field=pick_field(fields, TEMPERATURE_FIELD_CANDIDATES),
        is_soil=is_soil_sensor(fields),
    )
