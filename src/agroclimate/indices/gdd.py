"""Growing Degree Days from raw readings (pure functions, no I/O).

Formula (simple average of the day's extremes, no cutoffs):

    GDD_daily = max(0, (T_min + T_max) / 2 - base_temp)

T_min and T_max are the lowest and highest temperature read during the local
day, so a day with a single reading uses that value for both.
"""

from __future__ import annotations

from collections.abc import Iterable

from agroclimate.indices.models import DEFAULT_BASE_TEMP_C, DailyValue, Reading, day_key, round1


def compute_daily_gdd(tmin_c: float, tmax_c: float, base_temp_c: float = DEFAULT_BASE_TEMP_C) -> float:
    """Compute unrounded GDD for a single day.

    Args:
        tmin_c: Daily minimum temperature in Celsius.
        tmax_c: Daily maximum temperature in Celsius.
        base_temp_c: Base development temperature.

    Returns:
        Growing degree days for the day (>= 0).
    """
    return max(0.0, (tmin_c + tmax_c) / 2 - base_temp_c)


def daily_extremes(readings: Iterable[Reading]) -> dict[str, tuple[float, float]]:
    """Map each local day with temperature data to its (tmin, tmax)."""
    extremes: dict[str, tuple[float, float]] = {}
    for reading in readings:
        temp = reading.temperature
        if temp is None:
            continue
        day = day_key(reading.timestamp)
        current = extremes.get(day)
        if current is None:
            extremes[day] = (temp, temp)
        else:
            extremes[day] = (min(current[0], temp), max(current[1], temp))
    return extremes


def aggregate_daily_gdd(
    readings: Iterable[Reading],
    base_temp_c: float = DEFAULT_BASE_TEMP_C,
) -> list[DailyValue]:
    """Daily GDD series for one sensor, sorted by date.

    Days without any temperature reading are left out rather than zero-filled.
    """
    extremes = daily_extremes(readings)
    return [
        DailyValue(date=day, value=round1(compute_daily_gdd(tmin, tmax, base_temp_c)))
        for day, (tmin, tmax) in sorted(extremes.items())
    ]
