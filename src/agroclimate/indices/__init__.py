"""Agronomic index computation (Chill and GDD) from sensor readings.

Everything in this package is pure: it takes readings already fetched from
storage and returns series and figures. No I/O, no clock access (callers
pass ``today`` explicitly).

Public API:
  - models: Reading, DailyValue, DailyPoint, FixedChill, DeltaChill, UtahChill
  - columns: classify_columns, pick_field, is_soil_sensor
  - periods: resolve_chill_range, resolve_gdd_range, QueryWindow, parse_ymd
  - chill: aggregate_daily_chill, utah_hourly_units, in_chill_band
  - gdd: aggregate_daily_gdd, compute_daily_gdd
  - merge: merge_daily_series, accumulate, MergeStrategy
  - milestones: first_crossing, today_point, average_of_totals, remaining_to,
    latest_reading, is_frost_risk
  - policy: SoilSensorPolicy
"""

from agroclimate.indices.chill import (
    aggregate_daily_chill,
    in_chill_band,
    utah_hourly_units,
)
from agroclimate.indices.columns import (
    ColumnClassification,
    classify_columns,
    is_soil_sensor,
    pick_field,
)
from agroclimate.indices.gdd import aggregate_daily_gdd, compute_daily_gdd
from agroclimate.indices.merge import (
    MergeStrategy,
    accumulate,
    merge_daily_series,
    series_total,
)
from agroclimate.indices.milestones import (
    Milestone,
    average_of_totals,
    first_crossing,
    is_frost_risk,
    latest_reading,
    remaining_to,
    today_point,
)
from agroclimate.indices.models import (
    CHILL_TARGET,
    DEFAULT_BASE_TEMP_C,
    GDD_MILESTONES,
    ChillAggregation,
    ChillModel,
    DailyPoint,
    DailyValue,
    DeltaChill,
    FixedChill,
    Reading,
    UtahChill,
    round1,
)
from agroclimate.indices.periods import (
    Period,
    QueryWindow,
    ResolvedRange,
    parse_ymd,
    resolve_chill_range,
    resolve_gdd_range,
)
from agroclimate.indices.policy import SoilSensorPolicy

__all__ = [
    "CHILL_TARGET",
    "DEFAULT_BASE_TEMP_C",
    "GDD_MILESTONES",
    "ChillAggregation",
    "ChillModel",
    "ColumnClassification",
    "DailyPoint",
    "DailyValue",
    "DeltaChill",
    "FixedChill",
    "MergeStrategy",
    "Milestone",
    "Period",
    "QueryWindow",
    "Reading",
    "ResolvedRange",
    "SoilSensorPolicy",
    "UtahChill",
    "accumulate",
    "aggregate_daily_chill",
    "aggregate_daily_gdd",
    "average_of_totals",
    "classify_columns",
    "compute_daily_gdd",
    "first_crossing",
    "in_chill_band",
    "is_frost_risk",
    "is_soil_sensor",
    "latest_reading",
    "merge_daily_series",
    "parse_ymd",
    "pick_field",
    "remaining_to",
    "resolve_chill_range",
    "resolve_gdd_range",
    "round1",
    "series_total",
    "today_point",
    "utah_hourly_units",
]
