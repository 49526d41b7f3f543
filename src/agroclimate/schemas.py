"""
Response models for index results.

Pydantic models define the JSON handed to the KPI and chart consumers.
Field names are snake_case in Python and camelCase on the wire
(``model_dump(by_alias=True)``); ``to_payload`` does that conversion.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# =============================================================================
# Shared
# =============================================================================


class ApiModel(BaseModel):
    """Base model: camelCase aliases, construction by field name allowed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CampaignStatus(StrEnum):
    """Whether the index campaign has started."""

    ACTIVE = "active"
    OUT_OF_CAMPAIGN = "out_of_campaign"


class PeriodOut(ApiModel):
    start: str
    end: str


class CampaignOut(ApiModel):
    active: bool
    status: CampaignStatus


class DailyPointOut(ApiModel):
    date: str = Field(..., description="Local calendar day, YYYY-MM-DD")
    daily_value: float
    cumulative: float


class SeriesOut(ApiModel):
    daily: list[DailyPointOut] = Field(default_factory=list)


class MilestoneOut(ApiModel):
    threshold: float
    reached: bool
    date: str | None = None


class SensorResult(ApiModel):
    """Per-sensor row. ``skipped_reason`` set means it was not aggregated."""

    sensor: str
    period: PeriodOut
    data_points: int = Field(default=0, ge=0)
    skipped_reason: str | None = None
    is_soil_sensor: bool | None = None
    included_by_exception: bool | None = None


# =============================================================================
# Chill
# =============================================================================


class ChillSensorResult(SensorResult):
    chill_hours: float = 0.0
    counted_points: int = 0
    capped_gaps: int | None = None
    total_seconds: float | None = None
    mode: str
    max_gap_minutes: int | None = None
    sample_minutes: int | None = None


class ChillSummary(ApiModel):
    total: float = 0.0
    average: float = 0.0
    sensor_count: int = 0
    target: float
    remaining_to_target: float
    latest_temperature: float | None = None
    frost_risk: bool = False


class SamplingOut(ApiModel):
    mode: str
    sample_minutes: int | None = None
    max_gap_minutes: int | None = None
    hours_per_sample: float | None = None
    allow_negative: bool | None = None
    note: str


class ChillResult(ApiModel):
    farm_id: str
    period: PeriodOut
    query_range: PeriodOut
    campaign: CampaignOut
    sensors: list[ChillSensorResult] = Field(default_factory=list)
    series: SeriesOut = Field(default_factory=SeriesOut)
    summary: ChillSummary
    milestones: dict[str, MilestoneOut] = Field(default_factory=dict)
    today: DailyPointOut | None = None
    model: str
    sampling: SamplingOut
    rules: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# GDD
# =============================================================================


class GddSensorResult(SensorResult):
    gdd: float = 0.0
    days_with_data: int = 0


class GddSummary(ApiModel):
    total: float = 0.0
    average: float = 0.0
    sensor_count: int = 0
    remaining_to_450: float
    remaining_to_900: float
    window_450_to_900: bool
    latest_temperature: float | None = None
    frost_risk: bool = False


class GddResult(ApiModel):
    farm_id: str
    period: PeriodOut
    query_range: PeriodOut
    campaign: CampaignOut
    base_temp: float
    sensors: list[GddSensorResult] = Field(default_factory=list)
    series: SeriesOut = Field(default_factory=SeriesOut)
    summary: GddSummary
    thresholds: dict[str, float] = Field(default_factory=dict)
    milestones: dict[str, MilestoneOut] = Field(default_factory=dict)
    today: DailyPointOut | None = None
    model: str


def to_payload(result: BaseModel) -> dict[str, Any]:
    """JSON-ready dict with camelCase keys."""
    return result.model_dump(mode="json", by_alias=True)
