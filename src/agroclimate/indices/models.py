"""Index data models and agronomic constants."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

# Chill band used by the hour-counting models (inclusive on both ends)
CHILL_BAND_MIN_C = 0.0
CHILL_BAND_MAX_C = 7.2

MAX_DAILY_HOURS = 24.0

DEFAULT_SAMPLE_MINUTES = 10
DEFAULT_MAX_GAP_MINUTES = 60
DEFAULT_BASE_TEMP_C = 7.0

CHILL_TARGET = 1000.0
GDD_MILESTONES = (450.0, 900.0)

FROST_RISK_THRESHOLD_C = 5.0


def round1(value: float) -> float:
    """Round to one decimal, halves rounding up (toward +infinity).

    Python's ``round`` uses banker's rounding; the dashboard figures have
    always been rounded half-up, and cumulative totals depend on it.
    """
    return math.floor(value * 10 + 0.5) / 10


def day_key(ts: datetime) -> str:
    """Local calendar day of a naive local timestamp, as ``YYYY-MM-DD``."""
    return ts.date().isoformat()


@dataclass
class Reading:
    """A single sensor observation.

    ``timestamp`` is a naive datetime in the farm's local time; sources are
    responsible for converting aware or epoch values before building these.
    """

    timestamp: datetime
    temperature: float | None = None
    metrics: dict[str, float | None] = field(default_factory=dict)


@dataclass
class DailyValue:
    """One per-day value of an index for one sensor (or a merged farm)."""

    date: str
    value: float


@dataclass
class DailyPoint:
    """A daily value plus its running total from the start of the period."""

    date: str
    daily_value: float
    cumulative: float


# =============================================================================
# Chill models
# =============================================================================


@dataclass(frozen=True)
class FixedChill:
    """Every in-band reading counts ``sample_minutes`` of chill."""

    sample_minutes: int = DEFAULT_SAMPLE_MINUTES

    @property
    def mode(self) -> str:
        return "fixed"

    @property
    def model_id(self) -> str:
        return "HF_0_7_2_fixed"

    @property
    def hours_per_sample(self) -> float:
        return self.sample_minutes / 60


@dataclass(frozen=True)
class DeltaChill:
    """In-band readings count the real time elapsed since the previous reading.

    Elapsed time is capped at ``max_gap_minutes`` so sensor dropouts are not
    credited as chill.
    """

    max_gap_minutes: int = DEFAULT_MAX_GAP_MINUTES

    @property
    def mode(self) -> str:
        return "delta"

    @property
    def model_id(self) -> str:
        return "HF_0_7_2_delta"

    @property
    def max_gap_seconds(self) -> int:
        return self.max_gap_minutes * 60


@dataclass(frozen=True)
class UtahChill:
    """Utah chill units, prorated by a fixed sampling interval."""

    sample_minutes: int = DEFAULT_SAMPLE_MINUTES
    allow_negative: bool = False

    @property
    def mode(self) -> str:
        return "utah"

    @property
    def model_id(self) -> str:
        return "UTAH_units_fixed"

    @property
    def hours_per_sample(self) -> float:
        return self.sample_minutes / 60


ChillModel = FixedChill | DeltaChill | UtahChill


@dataclass
class ChillAggregation:
    """Daily chill series for one sensor plus the audit counters."""

    daily: list[DailyValue] = field(default_factory=list)
    data_points: int = 0
    counted_points: int = 0
    capped_gaps: int = 0
    total_seconds: float = 0.0
