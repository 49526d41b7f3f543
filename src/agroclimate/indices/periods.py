"""Campaign windows and query-range resolution.

Chill campaign: Nov 1 -> Mar 1. GDD campaign: Apr 1 -> Sep 30.
Open-ended windows are clamped to the local "today", and every inclusive
``[start, end]`` day range is queried as ``[start 00:00, end+1 00:00)`` so the
last day's intraday readings are kept.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

_YMD_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class Period:
    """Inclusive calendar-day bounds."""

    start: date
    end: date

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class QueryWindow:
    """Half-open datetime interval ``[start, end)`` used to filter readings."""

    start: datetime
    end: datetime

    @classmethod
    def from_period(cls, period: Period) -> QueryWindow:
        return cls(
            start=datetime.combine(period.start, time.min),
            end=datetime.combine(period.end + timedelta(days=1), time.min),
        )

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts < self.end


@dataclass(frozen=True)
class ResolvedRange:
    """A campaign plus the effective range that will actually be queried.

    ``campaign.end`` is already clamped to today. ``active`` is only ever
    False for GDD campaigns that have not started yet.
    """

    campaign: Period
    query: Period
    custom: bool = False
    active: bool = True

    @property
    def window(self) -> QueryWindow:
        return QueryWindow.from_period(self.query)


def local_today(tz_name: str) -> date:
    """Current calendar day in the given IANA timezone."""
    return datetime.now(ZoneInfo(tz_name)).date()


def parse_ymd(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string.

    Raises:
        ValueError: If the format or the date itself is invalid.
    """
    candidate = value.strip()
    if not _YMD_RE.match(candidate):
        msg = f"Expected YYYY-MM-DD, got {value!r}"
        raise ValueError(msg)
    return date.fromisoformat(candidate)


def clamp_to_today(day: date, today: date) -> date:
    return today if day > today else day


def chill_campaign(today: date, year: int | None = None) -> Period:
    """Chill campaign (Nov 1 -> Mar 1) for a reference year, unclamped.

    The campaign starts in the reference year once November has arrived,
    otherwise in the year before.
    """
    ref_year = year if year is not None else today.year
    start_year = ref_year if today.month >= 11 else ref_year - 1
    return Period(start=date(start_year, 11, 1), end=date(start_year + 1, 3, 1))


def gdd_campaign(today: date, year: int | None = None) -> Period:
    """GDD campaign (Apr 1 -> Sep 30) for a year, unclamped."""
    ref_year = year if year is not None else today.year
    return Period(start=date(ref_year, 4, 1), end=date(ref_year, 9, 30))


def resolve_chill_range(
    today: date,
    year: int | None = None,
    start: date | None = None,
    end: date | None = None,
    custom: bool = False,
) -> ResolvedRange:
    """Resolve the chill query range.

    With ``custom`` False the whole campaign (clamped to today) is used and
    ``start``/``end`` are ignored. Custom bounds outside the campaign fall
    back to the campaign bounds.
    """
    raw = chill_campaign(today, year)
    campaign = Period(start=raw.start, end=clamp_to_today(raw.end, today))

    if not custom:
        return ResolvedRange(campaign=campaign, query=campaign)

    q_start = start if start is not None and start >= campaign.start else campaign.start
    q_end = end if end is not None and end <= campaign.end else campaign.end
    return ResolvedRange(campaign=campaign, query=Period(q_start, q_end), custom=True)


def resolve_gdd_range(
    today: date,
    year: int | None = None,
    start: date | None = None,
    end: date | None = None,
    custom: bool = False,
) -> ResolvedRange:
    """Resolve the GDD query range.

    The campaign is inactive until Apr 1 of its year has been reached. A
    custom start (typically the full-bloom date) is clamped into
    ``[campaign.start, campaign.end]``.
    """
    raw = gdd_campaign(today, year)
    active = today >= raw.start
    campaign = Period(start=raw.start, end=clamp_to_today(raw.end, today))

    if not custom:
        return ResolvedRange(campaign=campaign, query=campaign, active=active)

    q_start = start if start is not None else campaign.start
    q_start = min(max(q_start, campaign.start), campaign.end)
    q_end = end if end is not None and end <= campaign.end else campaign.end
    return ResolvedRange(
        campaign=campaign, query=Period(q_start, q_end), custom=True, active=active
    )
