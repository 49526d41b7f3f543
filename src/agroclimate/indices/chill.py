"""Chill accumulation models (pure functions, no I/O).

Three models share one aggregation loop:

    fixed:  each reading with 0 <= T <= 7.2 adds sample_minutes / 60 hours
    delta:  each reading with 0 <= T <= 7.2 adds the seconds elapsed since the
            previous reading, capped at max_gap_minutes; the first reading of
            the window adds nothing
    utah:   each reading adds utah_hourly_units(T) * sample_minutes / 60

Daily totals are clamped to at most 24 (hours or units) and rounded to one
decimal. Hour-based models never go below zero; Utah days only do when the
model allows negative units.
"""

from __future__ import annotations

from collections.abc import Iterable

from agroclimate.indices.models import (
    CHILL_BAND_MAX_C,
    CHILL_BAND_MIN_C,
    MAX_DAILY_HOURS,
    ChillAggregation,
    ChillModel,
    DailyValue,
    DeltaChill,
    FixedChill,
    Reading,
    UtahChill,
    day_key,
    round1,
)

# (upper bound exclusive, units per hour); anything >= 18.0 C is -1
UTAH_BANDS = (
    (1.4, 0.0),
    (2.4, 0.5),
    (9.1, 1.0),
    (12.4, 0.5),
    (15.9, 0.0),
    (18.0, -0.5),
)
UTAH_ABOVE_RATE = -1.0


def in_chill_band(temp_c: float) -> bool:
    return CHILL_BAND_MIN_C <= temp_c <= CHILL_BAND_MAX_C


def utah_hourly_units(temp_c: float) -> float:
    """Utah chill units per hour for an instantaneous temperature."""
    for upper, rate in UTAH_BANDS:
        if temp_c < upper:
            return rate
    return UTAH_ABOVE_RATE


def fixed_contribution(temp_c: float, sample_minutes: int) -> float:
    """Hours credited by one reading under the fixed-sample model."""
    return sample_minutes / 60 if in_chill_band(temp_c) else 0.0


def delta_contribution(temp_c: float, delta_seconds: float | None, max_gap_seconds: float) -> float:
    """Seconds credited by one reading under the real-delta model.

    Args:
        temp_c: Temperature of the current reading.
        delta_seconds: Seconds since the previous reading, None for the first.
        max_gap_seconds: Cap applied to the elapsed time.
    """
    if not in_chill_band(temp_c):
        return 0.0
    return min(max(delta_seconds or 0.0, 0.0), max_gap_seconds)


def utah_contribution(temp_c: float, sample_minutes: int) -> float:
    """Utah units credited by one reading sampled every ``sample_minutes``."""
    return utah_hourly_units(temp_c) * (sample_minutes / 60)


def _finalize_day(model: ChillModel, raw: float) -> float:
    if isinstance(model, DeltaChill):
        value = raw / 3600
    else:
        value = raw

    if isinstance(model, UtahChill) and model.allow_negative:
        lower = -MAX_DAILY_HOURS
    else:
        lower = 0.0
    return round1(max(lower, min(MAX_DAILY_HOURS, value)))


def aggregate_daily_chill(readings: Iterable[Reading], model: ChillModel) -> ChillAggregation:
    """Collapse one sensor's readings into one chill value per local day.

    Every day that has at least one reading appears in the output, even when
    nothing was credited. Readings without temperature still advance the
    previous-reading pointer used by the delta model.

    Args:
        readings: Readings of a single sensor within the query window.
        model: FixedChill, DeltaChill or UtahChill.

    Returns:
        ChillAggregation with the daily series sorted by date and audit counts.
    """
    ordered = sorted(readings, key=lambda r: r.timestamp)
    result = ChillAggregation(data_points=len(ordered))

    per_day: dict[str, float] = {}
    previous = None
    for reading in ordered:
        day = day_key(reading.timestamp)
        per_day.setdefault(day, 0.0)

        delta = None if previous is None else (reading.timestamp - previous).total_seconds()
        previous = reading.timestamp

        temp = reading.temperature
        if temp is None:
            continue

        if isinstance(model, FixedChill):
            amount = fixed_contribution(temp, model.sample_minutes)
            if amount > 0:
                result.counted_points += 1
        elif isinstance(model, DeltaChill):
            amount = delta_contribution(temp, delta, model.max_gap_seconds)
            if amount > 0:
                result.counted_points += 1
            if in_chill_band(temp) and (delta or 0.0) > model.max_gap_seconds:
                result.capped_gaps += 1
            result.total_seconds += amount
        elif isinstance(model, UtahChill):
            amount = utah_contribution(temp, model.sample_minutes)
            if amount > 0:
                result.counted_points += 1
        else:
            msg = f"Unsupported chill model: {model!r}"
            raise TypeError(msg)

        per_day[day] += amount

    result.daily = [
        DailyValue(date=day, value=_finalize_day(model, raw)) for day, raw in sorted(per_day.items())
    ]
    return result
