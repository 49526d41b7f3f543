"""Farm-level merge of per-sensor daily series."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import StrEnum

from agroclimate.indices.models import DailyPoint, DailyValue, round1


class MergeStrategy(StrEnum):
    """How per-sensor values for the same day are combined."""

    MEAN = "mean"
    SUM = "sum"


def merge_daily_series(
    series: Iterable[Sequence[DailyValue]],
    strategy: MergeStrategy = MergeStrategy.MEAN,
) -> list[DailyValue]:
    """Combine several sparse daily series into one.

    With MEAN, each day's value is averaged over the sensors that reported
    that day only, so partial coverage does not drag the farm figure down or
    push it up.

    Args:
        series: One daily series per sensor.
        strategy: MEAN (default) or SUM.

    Returns:
        Merged series sorted ascending by ``YYYY-MM-DD`` date.
    """
    buckets: dict[str, list[float]] = {}
    for sensor_series in series:
        for point in sensor_series:
            buckets.setdefault(point.date, []).append(point.value)

    merged: list[DailyValue] = []
    for day in sorted(buckets):
        values = buckets[day]
        total = sum(values)
        value = total / len(values) if strategy is MergeStrategy.MEAN else total
        merged.append(DailyValue(date=day, value=round1(value)))
    return merged


def accumulate(daily: Iterable[DailyValue]) -> list[DailyPoint]:
    """Attach a running total, rounding to one decimal at every step."""
    points: list[DailyPoint] = []
    cumulative = 0.0
    for entry in daily:
        cumulative = round1(cumulative + entry.value)
        points.append(DailyPoint(date=entry.date, daily_value=entry.value, cumulative=cumulative))
    return points


def series_total(daily: Iterable[DailyValue]) -> float:
    """Total of a single sensor's daily series, rounded once at the end."""
    return round1(sum(d.value for d in daily))
