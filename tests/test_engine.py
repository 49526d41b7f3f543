"""Tests for the Chill/GDD request pipeline."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any
from unittest.mock import Mock

import pytest

from agroclimate.config import Settings
from agroclimate.engine import SKIP_ERROR, SKIP_MISSING_COLUMNS, IndexEngine
from agroclimate.indices.merge import MergeStrategy
from agroclimate.indices.models import DeltaChill, FixedChill, Reading, UtahChill
from agroclimate.indices.periods import QueryWindow
from agroclimate.indices.policy import SKIP_SOIL_SENSOR, SoilSensorPolicy
from agroclimate.params import ChillQuery, GddQuery, RangeMode
from agroclimate.schemas import CampaignStatus, ChillResult, GddResult, to_payload
from agroclimate.sources.base import SourceError
from agroclimate.sources.memory import InMemoryReadingSource
from agroclimate.sources.remote import RemoteReadingSource

CHILL_TODAY = date(2024, 12, 10)
GDD_TODAY = date(2024, 6, 10)


class FailingSource(InMemoryReadingSource):
    """Memory source whose fetch fails for one sensor."""

    def __init__(self, exc: Exception | None = None) -> None:
        super().__init__()
        self.exc = exc or SourceError("connection reset")

    def fetch_readings(
        self, farm_id: str, sensor: str, date_field: str, temp_field: str, window: QueryWindow
    ) -> list[Reading]:
        if sensor == "Ambiente B":
            raise self.exc
        return super().fetch_readings(farm_id, sensor, date_field, temp_field, window)


def _chill(source: InMemoryReadingSource, **query: Any) -> ChillResult:
    engine = IndexEngine(source, workers=4)
    return engine.chill(ChillQuery(farm_id="Casa_Olmo", model=DeltaChill(), **query), today=CHILL_TODAY)


class TestChillPipeline:
    """Farm-level chill with delta model."""

    def test_series_and_summary(self, chill_source: InMemoryReadingSource) -> None:
        result = _chill(chill_source)

        assert [(p.date, p.daily_value, p.cumulative) for p in result.series.daily] == [
            ("2024-12-01", 1.2, 1.2),
            ("2024-12-02", 1.5, 2.7),
        ]
        assert result.summary.total == 2.7
        assert result.summary.sensor_count == 3
        assert result.summary.average == 1.7
        assert result.summary.target == 1000.0
        assert result.summary.remaining_to_target == pytest.approx(997.3)
        assert result.model == "HF_0_7_2_delta"

    def test_period_and_campaign(self, chill_source: InMemoryReadingSource) -> None:
        result = _chill(chill_source)
        assert result.period.start == "2024-11-01"
        assert result.period.end == "2024-12-10"
        assert result.query_range == result.period
        assert result.campaign.status is CampaignStatus.ACTIVE

    def test_sensor_rows_in_listing_order(self, chill_source: InMemoryReadingSource) -> None:
        result = _chill(chill_source)
        assert [s.sensor for s in result.sensors] == [
            "Ambiente A",
            "Ambiente B",
            "Humedad",
            "Parcela 4.2",
            "Sonda Suelo",
        ]

    def test_skip_reasons(self, chill_source: InMemoryReadingSource) -> None:
        by_name = {s.sensor: s for s in _chill(chill_source).sensors}

        assert by_name["Sonda Suelo"].skipped_reason == SKIP_SOIL_SENSOR
        assert by_name["Sonda Suelo"].is_soil_sensor is True
        assert by_name["Humedad"].skipped_reason == SKIP_MISSING_COLUMNS
        assert by_name["Parcela 4.2"].skipped_reason is None
        assert by_name["Parcela 4.2"].included_by_exception is True
        assert by_name["Parcela 4.2"].chill_hours == 1.0

    def test_delta_audit_fields(self, chill_source: InMemoryReadingSource) -> None:
        sensor = next(s for s in _chill(chill_source).sensors if s.sensor == "Ambiente A")
        assert sensor.chill_hours == 3.5
        assert sensor.data_points == 5
        assert sensor.counted_points == 4
        assert sensor.capped_gaps == 2
        assert sensor.total_seconds == 12600.0
        assert sensor.max_gap_minutes == 60
        assert sensor.mode == "delta"

    def test_milestone_and_today(self, chill_source: InMemoryReadingSource) -> None:
        result = _chill(chill_source)
        assert result.milestones["chill1000"].reached is False
        assert result.today is not None
        assert result.today.date == "2024-12-02"

    def test_rules(self, chill_source: InMemoryReadingSource) -> None:
        rules = _chill(chill_source).rules
        assert rules["excluded"] == "soil_or_conductivity"
        assert rules["allowedSoilSensors"] == ["Parcela 4.2"]
        assert rules["deltaCap"] == "cap_delta<=60min"
        assert rules["rangeMode"] == "campaign"

    def test_sum_merge(self, chill_source: InMemoryReadingSource) -> None:
        result = _chill(chill_source, merge=MergeStrategy.SUM)
        assert [p.daily_value for p in result.series.daily] == [3.5, 1.5]
        assert result.summary.total == 5.0

    def test_single_sensor(self, chill_source: InMemoryReadingSource) -> None:
        result = _chill(chill_source, sensor="Ambiente B")
        assert [s.sensor for s in result.sensors] == ["Ambiente B"]
        assert result.summary.total == 0.5

    def test_custom_range(self, chill_source: InMemoryReadingSource) -> None:
        result = _chill(
            chill_source,
            range_mode=RangeMode.CUSTOM,
            start_date=date(2024, 12, 2),
            end_date=date(2024, 12, 2),
        )
        assert result.query_range.start == "2024-12-02"
        assert [p.date for p in result.series.daily] == ["2024-12-02"]

    def test_empty_allowlist_excludes_all_soil(self, chill_source: InMemoryReadingSource) -> None:
        engine = IndexEngine(chill_source, policy=SoilSensorPolicy(allowed_sensors=()))
        result = engine.chill(ChillQuery(farm_id="Casa_Olmo", model=DeltaChill()), today=CHILL_TODAY)
        by_name = {s.sensor: s for s in result.sensors}
        assert by_name["Parcela 4.2"].skipped_reason == SKIP_SOIL_SENSOR
        assert result.summary.sensor_count == 2

    def test_sensor_failure_is_isolated(self, chill_source: InMemoryReadingSource) -> None:
        source = FailingSource()
        source._farms = chill_source._farms
        result = _chill(source)
        by_name = {s.sensor: s for s in result.sensors}
        assert by_name["Ambiente B"].skipped_reason == SKIP_ERROR
        assert result.summary.sensor_count == 2

    @pytest.mark.parametrize(
        "exc",
        [
            AttributeError("'list' object has no attribute 'get'"),
            ConnectionError("connection refused"),
            OSError("disk I/O error"),
            KeyError("temperature"),
        ],
    )
    def test_any_sensor_error_is_isolated(self, chill_source: InMemoryReadingSource, exc: Exception) -> None:
        """Unexpected exceptions from a source mark only that sensor as failed."""
        source = FailingSource(exc)
        source._farms = chill_source._farms
        result = _chill(source)
        by_name = {s.sensor: s for s in result.sensors}
        assert by_name["Ambiente B"].skipped_reason == SKIP_ERROR
        assert by_name["Ambiente A"].skipped_reason is None
        assert result.summary.sensor_count == 2

    def test_malformed_remote_rows_skip_the_sensor(self) -> None:
        response = Mock()
        response.json.return_value = {
            "columns": ["datetime", "temperature"],
            "data": [["2024-11-02 01:00:00", 5.0]],
        }
        session = Mock()
        session.get.return_value = response
        source = RemoteReadingSource("https://dashboard.example.com/api", session=session)

        result = IndexEngine(source).chill(
            ChillQuery(farm_id="Casa_Olmo", model=DeltaChill(), sensor="Ambiente A"), today=CHILL_TODAY
        )

        assert result.sensors[0].skipped_reason == SKIP_ERROR
        assert result.summary.sensor_count == 0

    def test_frost_risk_from_latest_reading(self, chill_source: InMemoryReadingSource) -> None:
        """Latest valid reading is Ambiente A at 5.0 C on Dec 2, not below 5."""
        result = _chill(chill_source)
        assert result.summary.latest_temperature == 5.0
        assert result.summary.frost_risk is False

    def test_frost_risk_ignores_excluded_sensors(self, chill_source: InMemoryReadingSource) -> None:
        chill_source.add_sensor(
            "Casa_Olmo",
            "Sonda Fria",
            [{"datetime": "2024-12-03 00:00:00", "temperature": -2.0, "conductivity": 0.4}],
            fields=["datetime", "temperature", "conductivity"],
        )
        chill_source.add_sensor(
            "Casa_Olmo",
            "Ambiente C",
            [{"datetime": "2024-12-02 23:00:00", "temperature": 1.5, "humidity": 80.0}],
            fields=["datetime", "temperature", "humidity"],
        )
        result = _chill(chill_source)
        assert result.summary.latest_temperature == 1.5
        assert result.summary.frost_risk is True
        assert to_payload(result)["summary"]["frostRisk"] is True

    def test_listing_failure_propagates(self) -> None:
        with pytest.raises(SourceError):
            _chill(InMemoryReadingSource())

    def test_no_sensors(self) -> None:
        source = InMemoryReadingSource()
        source.add_farm("Casa_Olmo")
        result = _chill(source)
        assert result.sensors == []
        assert result.series.daily == []
        assert result.summary.total == 0.0
        assert result.today is None

    def test_probe_without_temperature_reported_as_soil(self) -> None:
        source = InMemoryReadingSource()
        source.add_sensor(
            "Casa_Olmo",
            "Sonda EC",
            [{"datetime": "2024-12-01 00:00:00", "conductivity": 0.4, "soil_moisture": 31.0}],
        )
        result = _chill(source)
        assert result.sensors[0].skipped_reason == SKIP_SOIL_SENSOR
        assert result.summary.sensor_count == 0

    def test_identical_input_identical_output(self, chill_source: InMemoryReadingSource) -> None:
        assert to_payload(_chill(chill_source)) == to_payload(_chill(chill_source))

    def test_serial_and_parallel_agree(self, chill_source: InMemoryReadingSource) -> None:
        query = ChillQuery(farm_id="Casa_Olmo", model=DeltaChill())
        serial = IndexEngine(chill_source, workers=1).chill(query, today=CHILL_TODAY)
        parallel = IndexEngine(chill_source, workers=8).chill(query, today=CHILL_TODAY)
        assert to_payload(serial) == to_payload(parallel)


class TestChillModels:
    """Alternative chill models through the pipeline."""

    def test_fixed(self, chill_source: InMemoryReadingSource) -> None:
        engine = IndexEngine(chill_source)
        result = engine.chill(
            ChillQuery(farm_id="Casa_Olmo", model=FixedChill(sample_minutes=30), sensor="Ambiente B"),
            today=CHILL_TODAY,
        )
        assert result.summary.total == 1.0
        assert result.sampling.mode == "fixed"
        assert result.sampling.hours_per_sample == 0.5
        assert result.sensors[0].capped_gaps is None
        assert "deltaCap" not in result.rules

    def test_utah(self, chill_source: InMemoryReadingSource) -> None:
        engine = IndexEngine(chill_source)
        result = engine.chill(
            ChillQuery(farm_id="Casa_Olmo", model=UtahChill(sample_minutes=60), sensor="Ambiente B"),
            today=CHILL_TODAY,
        )
        assert result.model == "UTAH_units_fixed"
        assert result.summary.total == 2.0
        assert result.sampling.allow_negative is False


class TestGddPipeline:
    """Farm-level GDD."""

    def _gdd(self, source: InMemoryReadingSource, today: date = GDD_TODAY, **query: Any) -> GddResult:
        engine = IndexEngine(source)
        return engine.gdd(GddQuery(farm_id="Casa_Olmo", base_temp_c=7.0, **query), today=today)

    def test_series_and_summary(self, gdd_source: InMemoryReadingSource) -> None:
        result = self._gdd(gdd_source)

        assert [(p.date, p.daily_value, p.cumulative) for p in result.series.daily] == [
            ("2024-06-01", 8.0, 8.0),
            ("2024-06-02", 5.0, 13.0),
        ]
        assert result.summary.total == 13.0
        assert result.summary.average == 10.5
        assert result.summary.remaining_to_450 == 437.0
        assert result.summary.remaining_to_900 == 887.0
        assert result.summary.window_450_to_900 is False
        assert result.base_temp == 7.0
        assert result.thresholds == {"gdd450": 450.0, "gdd900": 900.0}
        assert result.milestones["gdd450"].reached is False
        assert result.summary.latest_temperature == 12.0
        assert result.summary.frost_risk is False

    def test_sensor_rows(self, gdd_source: InMemoryReadingSource) -> None:
        by_name = {s.sensor: s for s in self._gdd(gdd_source).sensors}
        assert by_name["Ambiente A"].gdd == 13.0
        assert by_name["Ambiente A"].days_with_data == 2
        assert by_name["Ambiente A"].data_points == 3
        assert by_name["Ambiente B"].gdd == 8.0

    def test_soil_sensors_not_excluded(self, gdd_source: InMemoryReadingSource) -> None:
        gdd_source.add_sensor(
            "Casa_Olmo",
            "Sonda Suelo",
            [{"datetime": "2024-06-01 12:00:00", "temperature": 17.0, "conductivity": 0.3}],
        )
        by_name = {s.sensor: s for s in self._gdd(gdd_source).sensors}
        assert by_name["Sonda Suelo"].skipped_reason is None
        assert by_name["Sonda Suelo"].is_soil_sensor is True
        assert by_name["Sonda Suelo"].gdd == 10.0

    def test_out_of_campaign(self) -> None:
        source = Mock()
        result = self._gdd(source, today=date(2025, 3, 1))

        assert result.campaign.active is False
        assert result.campaign.status is CampaignStatus.OUT_OF_CAMPAIGN
        assert result.sensors == []
        assert result.series.daily == []
        assert result.summary.remaining_to_450 == 450.0
        assert result.summary.latest_temperature is None
        source.list_sensors.assert_not_called()

    def test_full_bloom_start(self, gdd_source: InMemoryReadingSource) -> None:
        result = self._gdd(gdd_source, range_mode=RangeMode.CUSTOM, start_date=date(2024, 6, 2))
        assert result.query_range.start == "2024-06-02"
        assert result.period.start == "2024-04-01"
        assert [p.date for p in result.series.daily] == ["2024-06-02"]

    def test_milestones_crossed(self) -> None:
        source = InMemoryReadingSource()
        hot_days = [
            {"datetime": f"2024-05-{day:02d} 12:00:00", "temperature": 37.0} for day in range(1, 31)
        ]
        source.add_sensor("Casa_Olmo", "Ambiente", hot_days)
        result = self._gdd(source)
        # 30 GDD per day: 450 reached on day 15, 900 on day 30
        assert result.milestones["gdd450"].date == "2024-05-15"
        assert result.milestones["gdd900"].date == "2024-05-30"
        assert result.summary.total == 900.0
        assert result.summary.window_450_to_900 is False

    def test_payload_is_camel_case(self, gdd_source: InMemoryReadingSource) -> None:
        payload = to_payload(self._gdd(gdd_source))
        assert payload["farmId"] == "Casa_Olmo"
        assert payload["queryRange"] == {"start": "2024-04-01", "end": "2024-06-10"}
        assert payload["summary"]["remainingTo450"] == 437.0
        assert payload["sensors"][0]["daysWithData"] == 2
        assert payload["series"]["daily"][0] == {"date": "2024-06-01", "dailyValue": 8.0, "cumulative": 8.0}
        assert payload["campaign"] == {"active": True, "status": "active"}


class TestFromSettings:
    """Engine construction from settings."""

    def test_from_settings(self, make_settings: Callable[..., Settings]) -> None:
        settings = make_settings(allowed_soil_sensors=("Sonda Suelo",), sensor_workers=2)
        engine = IndexEngine.from_settings(settings, InMemoryReadingSource())
        assert engine.policy.is_allowed("Sonda Suelo") is True
        assert engine.workers == 2
        assert engine.timezone == "Europe/Madrid"
