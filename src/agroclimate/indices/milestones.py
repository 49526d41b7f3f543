"""Milestones and headline figures derived from a cumulative series."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from agroclimate.indices.models import FROST_RISK_THRESHOLD_C, DailyPoint, Reading, round1

if TYPE_CHECKING:
    from datetime import date


@dataclass(frozen=True)
class Milestone:
    """First date the cumulative value reached ``threshold``."""

    threshold: float
    reached: bool
    date: str | None


def first_crossing(points: Iterable[DailyPoint], threshold: float) -> Milestone:
    """Scan ascending points for the first cumulative >= threshold."""
    for point in points:
        if point.cumulative >= threshold:
            return Milestone(threshold=threshold, reached=True, date=point.date)
    return Milestone(threshold=threshold, reached=False, date=None)


def milestone_key(prefix: str, threshold: float) -> str:
    """Stable output key for a threshold, e.g. ``gdd450``."""
    return f"{prefix}{threshold:g}"


def series_cumulative_total(points: Sequence[DailyPoint]) -> float:
    """Last cumulative value, 0 for an empty series."""
    return points[-1].cumulative if points else 0.0


def average_of_totals(totals: Sequence[float]) -> float:
    """Mean of per-sensor totals (not the merged farm total)."""
    if not totals:
        return 0.0
    return round1(sum(totals) / len(totals))


def remaining_to(threshold: float, total: float) -> float:
    return max(0.0, round1(threshold - total))


def today_point(points: Sequence[DailyPoint], today: date) -> DailyPoint | None:
    """Entry dated today, else the latest entry, else None."""
    if not points:
        return None
    key = today.isoformat()
    for point in points:
        if point.date == key:
            return point
    return points[-1]


def is_frost_risk(latest_temp_c: float | None, threshold_c: float = FROST_RISK_THRESHOLD_C) -> bool:
    """Frost warning from the latest temperature (strictly below the threshold)."""
    return latest_temp_c is not None and latest_temp_c < threshold_c


def latest_reading(readings: Iterable[Reading]) -> Reading | None:
    """Most recent reading that carries a temperature, or None."""
    latest: Reading | None = None
    for reading in readings:
        if reading.temperature is None:
            continue
        if latest is None or reading.timestamp > latest.timestamp:
            latest = reading
    return latest
