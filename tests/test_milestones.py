"""Tests for milestone detection and headline figures."""

from __future__ import annotations

from datetime import date, datetime

import pytest

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
from agroclimate.indices.models import DailyPoint, Reading


def _points(*cumulative: float) -> list[DailyPoint]:
    return [
        DailyPoint(date=f"2024-06-{i + 1:02d}", daily_value=0.0, cumulative=c)
        for i, c in enumerate(cumulative)
    ]


class TestFirstCrossing:
    """First date at or above a threshold."""

    def test_crossing(self) -> None:
        milestone = first_crossing(_points(100, 300, 460, 500), 450)
        assert milestone.reached is True
        assert milestone.date == "2024-06-03"

    def test_exact_threshold_counts(self) -> None:
        assert first_crossing(_points(100, 450), 450).date == "2024-06-02"

    def test_not_reached(self) -> None:
        milestone = first_crossing(_points(100, 300), 450)
        assert milestone.reached is False
        assert milestone.date is None

    def test_empty_series(self) -> None:
        assert first_crossing([], 1000).reached is False


class TestHeadlineFigures:
    """Totals, averages and remaining amounts."""

    def test_milestone_key(self) -> None:
        assert milestone_key("gdd", 450.0) == "gdd450"
        assert milestone_key("chill", 1000.0) == "chill1000"

    def test_cumulative_total(self) -> None:
        assert series_cumulative_total(_points(1, 5, 9.5)) == 9.5
        assert series_cumulative_total([]) == 0.0

    def test_average_of_totals(self) -> None:
        assert average_of_totals([3.5, 0.5, 1.0]) == 1.7
        assert average_of_totals([]) == 0.0

    def test_remaining(self) -> None:
        assert remaining_to(450, 100.3) == pytest.approx(349.7)

    def test_remaining_never_negative(self) -> None:
        assert remaining_to(450, 460) == 0.0


class TestTodayPoint:
    """Series entry used for the 'today' card."""

    def test_exact_date(self) -> None:
        point = today_point(_points(1, 2, 3), date(2024, 6, 2))
        assert point is not None
        assert point.cumulative == 2

    def test_falls_back_to_latest(self) -> None:
        point = today_point(_points(1, 2, 3), date(2024, 6, 30))
        assert point is not None
        assert point.date == "2024-06-03"

    def test_empty(self) -> None:
        assert today_point([], date(2024, 6, 2)) is None


class TestFrostRisk:
    """Latest temperature below 5 C."""

    def test_below_threshold(self) -> None:
        assert is_frost_risk(4.9) is True

    def test_at_threshold(self) -> None:
        assert is_frost_risk(5.0) is False

    def test_no_reading(self) -> None:
        assert is_frost_risk(None) is False


class TestLatestReading:
    """Most recent reading with a temperature."""

    def test_latest_by_timestamp(self) -> None:
        readings = [
            Reading(timestamp=datetime(2024, 12, 2, 8), temperature=3.0),
            Reading(timestamp=datetime(2024, 12, 2, 9), temperature=None),
            Reading(timestamp=datetime(2024, 12, 1, 23), temperature=-1.0),
        ]
        latest = latest_reading(readings)
        assert latest is not None
        assert latest.temperature == 3.0

    def test_no_temperatures(self) -> None:
        assert latest_reading([Reading(timestamp=datetime(2024, 12, 2), temperature=None)]) is None
