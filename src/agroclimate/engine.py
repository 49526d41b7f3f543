"""Request pipeline for the Chill and GDD indices.

For one farm (or a single sensor) and one date range:

    resolve range -> per sensor: classify columns, apply soil policy,
    fetch readings, aggregate per day -> merge sensors -> cumulative series
    -> milestones and summary

Sensors are processed independently (in a thread pool) and re-assembled in
their listing order before merging. A sensor that fails is reported with a
``skipped_reason`` instead of failing the request; only failing to list the
farm's sensors aborts it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from agroclimate.indices.chill import aggregate_daily_chill
from agroclimate.indices.columns import classify_columns
from agroclimate.indices.gdd import aggregate_daily_gdd
from agroclimate.indices.merge import accumulate, merge_daily_series, series_total
from agroclimate.indices.milestones import (
    average_of_totals,
    first_crossing,
    is_frost_risk,
    latest_reading,
    milestone_key,
    remaining_to,
    series_cumulative_total,
    today_point,
)
from agroclimate.indices.models import (
    CHILL_TARGET,
    GDD_MILESTONES,
    DailyPoint,
    DailyValue,
    DeltaChill,
    FixedChill,
    UtahChill,
)
from agroclimate.indices.periods import (
    ResolvedRange,
    local_today,
    resolve_chill_range,
    resolve_gdd_range,
)
from agroclimate.indices.policy import SoilSensorPolicy
from agroclimate.params import RangeMode
from agroclimate.schemas import (
    CampaignOut,
    CampaignStatus,
    ChillResult,
    ChillSensorResult,
    ChillSummary,
    DailyPointOut,
    GddResult,
    GddSensorResult,
    GddSummary,
    MilestoneOut,
    PeriodOut,
    SamplingOut,
    SensorResult,
    SeriesOut,
)
from agroclimate.sources.base import SourceError
if TYPE_CHECKING:
    from datetime import date

    from agroclimate.config import Settings
    from agroclimate.indices.milestones import Milestone
    from agroclimate.indices.models import ChillModel, Reading
    from agroclimate.indices.periods import Period
    from agroclimate.params import ChillQuery, GddQuery
    from agroclimate.sources.base import ReadingSource

logger = logging.getLogger(__name__)

SKIP_MISSING_COLUMNS = "missing_temp_or_date"
SKIP_ERROR = "error_processing_sensor"

GDD_MODEL_ID = "GDD_avg_min_max"

_SAMPLING_NOTES = {
    "delta": (
        "Chill hours sum the real time between readings while 0<=T<=7.2 C. "
        "The first reading counts 0. Gaps are capped to avoid inflation from dropouts."
    ),
    "fixed": (
        "Chill hours count sampleMinutes/60 hours for every reading with 0<=T<=7.2 C, "
        "assuming a perfectly regular sampling interval."
    ),
    "utah": (
        "Utah chill units per hour by temperature band, prorated by sampleMinutes/60 "
        "per reading. Warm readings subtract units."
    ),
}

T = TypeVar("T")


@dataclass
class SensorOutcome:
    """Per-sensor output row plus its daily series (None when skipped) and last reading."""

    result: SensorResult
    daily: list[DailyValue] | None = field(default=None)
    latest: Reading | None = None

    @property
    def is_valid(self) -> bool:
        return self.result.skipped_reason is None and self.daily is not None


def _period_out(period: Period) -> PeriodOut:
    return PeriodOut(**period.to_dict())


def _point_out(point: DailyPoint | None) -> DailyPointOut | None:
    if point is None:
        return None
    return DailyPointOut(date=point.date, daily_value=point.daily_value, cumulative=point.cumulative)


def _latest_temperature(outcomes: Sequence[SensorOutcome]) -> float | None:
    """Temperature of the most recent reading across the given sensors."""
    latest = latest_reading(o.latest for o in outcomes if o.latest is not None)
    return latest.temperature if latest is not None else None


def _milestone_out(milestone: Milestone) -> MilestoneOut:
    return MilestoneOut(threshold=milestone.threshold, reached=milestone.reached, date=milestone.date)


def _sampling_for(model: ChillModel) -> SamplingOut:
    if isinstance(model, DeltaChill):
        return SamplingOut(mode=model.mode, max_gap_minutes=model.max_gap_minutes, note=_SAMPLING_NOTES["delta"])
    if isinstance(model, FixedChill):
        return SamplingOut(
            mode=model.mode,
            sample_minutes=model.sample_minutes,
            hours_per_sample=model.hours_per_sample,
            note=_SAMPLING_NOTES["fixed"],
        )
    return SamplingOut(
        mode=model.mode,
        sample_minutes=model.sample_minutes,
        hours_per_sample=model.hours_per_sample,
        allow_negative=model.allow_negative,
        note=_SAMPLING_NOTES["utah"],
    )


class IndexEngine:
    """Computes farm-level Chill and GDD results from a reading source."""

    def __init__(
        self,
        source: ReadingSource,
        policy: SoilSensorPolicy | None = None,
        timezone: str = "Europe/Madrid",
        workers: int = 4,
    ) -> None:
        self.source = source
        self.policy = policy or SoilSensorPolicy()
        self.timezone = timezone
        self.workers = max(1, workers)

    @classmethod
    def from_settings(cls, settings: Settings, source: ReadingSource) -> IndexEngine:
        return cls(
            source=source,
            policy=settings.soil_policy,
            timezone=settings.timezone,
            workers=settings.sensor_workers,
        )

    # -------------------------------------------------------------------------
    # Chill
    # -------------------------------------------------------------------------

    def chill(self, query: ChillQuery, today: date | None = None) -> ChillResult:
        """Compute the Chill result for a validated query.

        Args:
            query: Parsed request parameters.
            today: Local calendar day; defaults to now in the engine timezone.

        Raises:
            SourceError: If the farm's sensor list cannot be read.
        """
        started = time.perf_counter()
        today = today or local_today(self.timezone)
        resolved = resolve_chill_range(
            today,
            year=query.year,
            start=query.start_date,
            end=query.end_date,
            custom=query.range_mode is RangeMode.CUSTOM,
        )

        sensors = self._sensors_for(query.farm_id, query.sensor)
        outcomes = self._map_sensors(
            lambda sensor: self._chill_sensor(query, sensor, resolved), sensors
        )

        valid = [o for o in outcomes if o.is_valid]
        points = accumulate(merge_daily_series((o.daily or [] for o in valid), query.merge))
        total = series_cumulative_total(points)
        latest_temp = _latest_temperature(valid)
        milestone = first_crossing(points, CHILL_TARGET)
        model = query.model

        rules: dict[str, object] = {
            "excluded": "soil_or_conductivity",
            "allowedSoilSensors": list(self.policy.allowed_sensors),
            "window": "campaign_1_nov_to_1_mar",
            "clampToToday": True,
            "rangeMode": query.range_mode.value,
            "dateFilter": "[start 00:00:00, end+1day 00:00:00)",
            "merge": query.merge.value,
        }
        if isinstance(model, DeltaChill):
            rules["deltaCap"] = f"cap_delta<={model.max_gap_minutes}min"

        result = ChillResult(
            farm_id=query.farm_id,
            period=_period_out(resolved.campaign),
            query_range=_period_out(resolved.query),
            campaign=CampaignOut(active=True, status=CampaignStatus.ACTIVE),
            sensors=[o.result for o in outcomes],  # type: ignore[misc]
            series=SeriesOut(daily=[_point_out(p) for p in points]),  # type: ignore[misc]
            summary=ChillSummary(
                total=total,
                average=average_of_totals([o.result.chill_hours for o in valid]),  # type: ignore[attr-defined]
                sensor_count=len(valid),
                target=CHILL_TARGET,
                remaining_to_target=remaining_to(CHILL_TARGET, total),
                latest_temperature=latest_temp,
                frost_risk=is_frost_risk(latest_temp),
            ),
            milestones={milestone_key("chill", CHILL_TARGET): _milestone_out(milestone)},
            today=_point_out(today_point(points, today)),
            model=model.model_id,
            sampling=_sampling_for(model),
            rules=rules,
        )

        logger.info(
            "Chill computed",
            extra={
                "farm_id": query.farm_id,
                "index": "chill",
                "mode": model.mode,
                "sensor_count": len(valid),
                "elapsed_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return result

    def _chill_sensor(self, query: ChillQuery, sensor: str, resolved: ResolvedRange) -> SensorOutcome:
        model = query.model
        base = {
            "sensor": sensor,
            "period": _period_out(resolved.campaign),
            "mode": model.mode,
            "max_gap_minutes": model.max_gap_minutes if isinstance(model, DeltaChill) else None,
            "sample_minutes": model.sample_minutes if isinstance(model, FixedChill | UtahChill) else None,
        }

        try:
            columns = classify_columns(self.source.list_fields(query.farm_id, sensor))
            decision = self.policy.evaluate(sensor, columns.is_soil)
            if not decision.include:
                self._log_skip(query.farm_id, sensor, decision.skipped_reason)
                return SensorOutcome(
                    ChillSensorResult(
                        **base,
                        skipped_reason=decision.skipped_reason,
                        is_soil_sensor=True,
                        included_by_exception=False,
                    )
                )
            if not columns.is_usable:
                self._log_skip(query.farm_id, sensor, SKIP_MISSING_COLUMNS)
                return SensorOutcome(
                    ChillSensorResult(
                        **base,
                        skipped_reason=SKIP_MISSING_COLUMNS,
                        is_soil_sensor=columns.is_soil,
                        included_by_exception=decision.included_by_exception,
                    )
                )

            readings = self.source.fetch_readings(
                query.farm_id,
                sensor,
                columns.date_field,  # type: ignore[arg-type]
                columns.temp_field,  # type: ignore[arg-type]
                resolved.window,
            )
            aggregation = aggregate_daily_chill(readings, model)
        except Exception as exc:  # noqa: BLE001 - per-sensor boundary
            return SensorOutcome(
                ChillSensorResult(**base, skipped_reason=self._log_failure(query.farm_id, sensor, exc))
            )

        is_delta = isinstance(model, DeltaChill)
        return SensorOutcome(
            ChillSensorResult(
                **base,
                chill_hours=series_total(aggregation.daily),
                data_points=aggregation.data_points,
                counted_points=aggregation.counted_points,
                capped_gaps=aggregation.capped_gaps if is_delta else None,
                total_seconds=aggregation.total_seconds if is_delta else None,
                is_soil_sensor=columns.is_soil,
                included_by_exception=decision.included_by_exception,
            ),
            daily=aggregation.daily,
            latest=latest_reading(readings),
        )

    # -------------------------------------------------------------------------
    # GDD
    # -------------------------------------------------------------------------

    def gdd(self, query: GddQuery, today: date | None = None) -> GddResult:
        """Compute the GDD result for a validated query.

        Before Apr 1 of the campaign year nothing is fetched and the result
        reports ``campaign.status == "out_of_campaign"`` with empty figures.

        Raises:
            SourceError: If the farm's sensor list cannot be read.
        """
        started = time.perf_counter()
        today = today or local_today(self.timezone)
        resolved = resolve_gdd_range(
            today,
            year=query.year,
            start=query.start_date,
            end=query.end_date,
            custom=query.range_mode is RangeMode.CUSTOM,
        )
        low, high = GDD_MILESTONES
        thresholds = {milestone_key("gdd", t): t for t in GDD_MILESTONES}

        if not resolved.active:
            logger.info(
                "GDD campaign has not started",
                extra={"farm_id": query.farm_id, "index": "gdd", "reason": "out_of_campaign"},
            )
            return GddResult(
                farm_id=query.farm_id,
                period=_period_out(resolved.campaign),
                query_range=_period_out(resolved.query),
                campaign=CampaignOut(active=False, status=CampaignStatus.OUT_OF_CAMPAIGN),
                base_temp=query.base_temp_c,
                summary=GddSummary(
                    remaining_to_450=low,
                    remaining_to_900=high,
                    window_450_to_900=False,
                ),
                thresholds=thresholds,
                milestones={
                    key: MilestoneOut(threshold=t, reached=False, date=None)
                    for key, t in thresholds.items()
                },
                model=GDD_MODEL_ID,
            )

        sensors = self._sensors_for(query.farm_id, query.sensor)
        outcomes = self._map_sensors(lambda sensor: self._gdd_sensor(query, sensor, resolved), sensors)

        valid = [o for o in outcomes if o.is_valid]
        points = accumulate(merge_daily_series((o.daily or [] for o in valid), query.merge))
        total = series_cumulative_total(points)
        latest_temp = _latest_temperature(valid)

        result = GddResult(
            farm_id=query.farm_id,
            period=_period_out(resolved.campaign),
            query_range=_period_out(resolved.query),
            campaign=CampaignOut(active=True, status=CampaignStatus.ACTIVE),
            base_temp=query.base_temp_c,
            sensors=[o.result for o in outcomes],  # type: ignore[misc]
            series=SeriesOut(daily=[_point_out(p) for p in points]),  # type: ignore[misc]
            summary=GddSummary(
                total=total,
                average=average_of_totals([o.result.gdd for o in valid]),  # type: ignore[attr-defined]
                sensor_count=len(valid),
                remaining_to_450=remaining_to(low, total),
                remaining_to_900=remaining_to(high, total),
                window_450_to_900=low <= total < high,
                latest_temperature=latest_temp,
                frost_risk=is_frost_risk(latest_temp),
            ),
            thresholds=thresholds,
            milestones={
                key: _milestone_out(first_crossing(points, t)) for key, t in thresholds.items()
            },
            today=_point_out(today_point(points, today)),
            model=GDD_MODEL_ID,
        )

        logger.info(
            "GDD computed",
            extra={
                "farm_id": query.farm_id,
                "index": "gdd",
                "sensor_count": len(valid),
                "elapsed_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return result

    def _gdd_sensor(self, query: GddQuery, sensor: str, resolved: ResolvedRange) -> SensorOutcome:
        period = _period_out(resolved.campaign)
        try:
            columns = classify_columns(self.source.list_fields(query.farm_id, sensor))
            if not columns.is_usable:
                self._log_skip(query.farm_id, sensor, SKIP_MISSING_COLUMNS)
                return SensorOutcome(
                    GddSensorResult(
                        sensor=sensor,
                        period=period,
                        skipped_reason=SKIP_MISSING_COLUMNS,
                        is_soil_sensor=columns.is_soil,
                    )
                )
            readings = self.source.fetch_readings(
                query.farm_id,
                sensor,
                columns.date_field,  # type: ignore[arg-type]
                columns.temp_field,  # type: ignore[arg-type]
                resolved.window,
            )
            daily = aggregate_daily_gdd(readings, query.base_temp_c)
        except Exception as exc:  # noqa: BLE001 - per-sensor boundary
            return SensorOutcome(
                GddSensorResult(
                    sensor=sensor,
                    period=period,
                    skipped_reason=self._log_failure(query.farm_id, sensor, exc),
                )
            )

        return SensorOutcome(
            GddSensorResult(
                sensor=sensor,
                period=period,
                gdd=series_total(daily),
                days_with_data=len(daily),
                data_points=len(readings),
                is_soil_sensor=columns.is_soil,
            ),
            daily=daily,
            latest=latest_reading(readings),
        )

    # -------------------------------------------------------------------------
    # Shared
    # -------------------------------------------------------------------------

    def _sensors_for(self, farm_id: str, sensor: str | None) -> list[str]:
        if sensor:
            return [sensor]
        return self.source.list_sensors(farm_id)

    def _map_sensors(self, fn: Callable[[str], T], sensors: Sequence[str]) -> list[T]:
        """Apply ``fn`` to every sensor, keeping the input order."""
        if self.workers == 1 or len(sensors) <= 1:
            return [fn(s) for s in sensors]
        with ThreadPoolExecutor(max_workers=min(self.workers, len(sensors))) as pool:
            return list(pool.map(fn, sensors))

    @staticmethod
    def _log_skip(farm_id: str, sensor: str, reason: str | None) -> None:
        logger.info("Sensor skipped", extra={"farm_id": farm_id, "sensor": sensor, "reason": reason})

    @staticmethod
    def _log_failure(farm_id: str, sensor: str, exc: Exception) -> str:
        logger.warning(
            "Error processing sensor: %s",
            exc,
            extra={"farm_id": farm_id, "sensor": sensor, "reason": SKIP_ERROR},
            exc_info=not isinstance(exc, SourceError),
        )
        return SKIP_ERROR
