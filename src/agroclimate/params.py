"""Request parameter parsing for the Chill and GDD queries.

Raw parameters arrive as strings (query string, CLI flags). Malformed dates,
unknown farms and non-finite numbers raise ``InvalidParameterError``; finite
numbers outside their allowed range are clamped, and unknown enum values fall
back to the default.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from agroclimate.indices.merge import MergeStrategy
from agroclimate.indices.models import (
    DEFAULT_MAX_GAP_MINUTES,
    DEFAULT_SAMPLE_MINUTES,
    ChillModel,
    DeltaChill,
    FixedChill,
    UtahChill,
)
from agroclimate.indices.periods import parse_ymd

if TYPE_CHECKING:
    from agroclimate.config import Settings

MAX_GAP_MINUTES_RANGE = (5, 240)
SAMPLE_MINUTES_RANGE = (1, 60)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class InvalidParameterError(ValueError):
    """A request parameter is invalid; the whole request is rejected."""

    def __init__(self, param: str, value: Any, message: str) -> None:
        super().__init__(message)
        self.param = param
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        return {"error": str(self), "param": self.param, "value": self.value}


class RangeMode(StrEnum):
    CAMPAIGN = "campaign"
    CUSTOM = "custom"


class ChillMode(StrEnum):
    DELTA = "delta"
    FIXED = "fixed"
    UTAH = "utah"


@dataclass(frozen=True)
class ChillQuery:
    farm_id: str
    model: ChillModel
    year: int | None = None
    sensor: str | None = None
    range_mode: RangeMode = RangeMode.CAMPAIGN
    start_date: date | None = None
    end_date: date | None = None
    merge: MergeStrategy = MergeStrategy.MEAN


@dataclass(frozen=True)
class GddQuery:
    farm_id: str
    base_temp_c: float
    year: int | None = None
    sensor: str | None = None
    range_mode: RangeMode = RangeMode.CAMPAIGN
    start_date: date | None = None
    end_date: date | None = None
    merge: MergeStrategy = MergeStrategy.MEAN


# =============================================================================
# Field parsers
# =============================================================================


def _raw(params: Mapping[str, Any], name: str) -> str | None:
    value = params.get(name)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_farm(farm_id: str, allowed: tuple[str, ...]) -> str:
    if farm_id not in allowed:
        raise InvalidParameterError(
            "farmId", farm_id, f"Unknown farm {farm_id!r}; expected one of {', '.join(allowed)}"
        )
    return farm_id


def parse_year(params: Mapping[str, Any]) -> int | None:
    raw = _raw(params, "year")
    if raw is None:
        return None
    try:
        year = int(raw)
    except ValueError:
        raise InvalidParameterError("year", raw, f"Invalid year {raw!r}") from None
    if not 1900 <= year <= 9999:
        raise InvalidParameterError("year", raw, f"Year out of range: {year}")
    return year


def parse_date(params: Mapping[str, Any], name: str) -> date | None:
    raw = _raw(params, name)
    if raw is None:
        return None
    try:
        return parse_ymd(raw)
    except ValueError:
        raise InvalidParameterError(name, raw, f"{name} must be YYYY-MM-DD, got {raw!r}") from None


def parse_finite(params: Mapping[str, Any], name: str, default: float) -> float:
    raw = _raw(params, name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise InvalidParameterError(name, raw, f"{name} must be a number, got {raw!r}") from None
    if not math.isfinite(value):
        raise InvalidParameterError(name, raw, f"{name} must be finite, got {raw!r}")
    return value


def parse_clamped_int(
    params: Mapping[str, Any], name: str, default: int, bounds: tuple[int, int]
) -> int:
    """Finite number truncated to int and clamped into ``bounds``."""
    value = parse_finite(params, name, float(default))
    low, high = bounds
    return max(low, min(high, math.trunc(value)))


def parse_bool(params: Mapping[str, Any], name: str, default: bool) -> bool:
    raw = _raw(params, name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise InvalidParameterError(name, raw, f"{name} must be a boolean, got {raw!r}")


def parse_range_mode(params: Mapping[str, Any]) -> RangeMode:
    raw = _raw(params, "range")
    if raw is None:
        return RangeMode.CAMPAIGN
    try:
        return RangeMode(raw.lower())
    except ValueError:
        raise InvalidParameterError("range", raw, "range must be 'campaign' or 'custom'") from None


def parse_chill_mode(params: Mapping[str, Any], default: str) -> ChillMode:
    raw = (_raw(params, "mode") or default).lower()
    try:
        return ChillMode(raw)
    except ValueError:
        return ChillMode.DELTA


def parse_merge(params: Mapping[str, Any]) -> MergeStrategy:
    raw = (_raw(params, "merge") or "").lower()
    try:
        return MergeStrategy(raw)
    except ValueError:
        return MergeStrategy.MEAN


def _custom_dates(params: Mapping[str, Any], range_mode: RangeMode) -> tuple[date | None, date | None]:
    # Explicit dates are only honoured in custom mode, but are always validated.
    start = parse_date(params, "startDate")
    end = parse_date(params, "endDate")
    if range_mode is not RangeMode.CUSTOM:
        return None, None
    return start, end


# =============================================================================
# Queries
# =============================================================================


def build_chill_model(params: Mapping[str, Any], settings: Settings) -> ChillModel:
    mode = parse_chill_mode(params, settings.chill_model)
    if mode is ChillMode.FIXED:
        return FixedChill(
            sample_minutes=parse_clamped_int(
                params, "sampleMinutes", DEFAULT_SAMPLE_MINUTES, SAMPLE_MINUTES_RANGE
            )
        )
    if mode is ChillMode.UTAH:
        return UtahChill(
            sample_minutes=parse_clamped_int(
                params, "sampleMinutes", DEFAULT_SAMPLE_MINUTES, SAMPLE_MINUTES_RANGE
            ),
            allow_negative=parse_bool(params, "allowNegative", settings.utah_allow_negative),
        )
    return DeltaChill(
        max_gap_minutes=parse_clamped_int(
            params, "maxGapMinutes", DEFAULT_MAX_GAP_MINUTES, MAX_GAP_MINUTES_RANGE
        )
    )


def parse_chill_query(farm_id: str, params: Mapping[str, Any], settings: Settings) -> ChillQuery:
    """Validate raw Chill request parameters.

    Raises:
        InvalidParameterError: On an unknown farm or malformed parameter.
    """
    range_mode = parse_range_mode(params)
    start, end = _custom_dates(params, range_mode)
    return ChillQuery(
        farm_id=parse_farm(farm_id, settings.farms),
        model=build_chill_model(params, settings),
        year=parse_year(params),
        sensor=_raw(params, "sensor"),
        range_mode=range_mode,
        start_date=start,
        end_date=end,
        merge=parse_merge(params),
    )


def parse_gdd_query(farm_id: str, params: Mapping[str, Any], settings: Settings) -> GddQuery:
    """Validate raw GDD request parameters.

    Raises:
        InvalidParameterError: On an unknown farm or malformed parameter.
    """
    range_mode = parse_range_mode(params)
    start, end = _custom_dates(params, range_mode)
    return GddQuery(
        farm_id=parse_farm(farm_id, settings.farms),
        base_temp_c=parse_finite(params, "baseTemp", settings.gdd_base_temp_c),
        year=parse_year(params),
        sensor=_raw(params, "sensor"),
        range_mode=range_mode,
        start_date=start,
        end_date=end,
        merge=parse_merge(params),
    )
