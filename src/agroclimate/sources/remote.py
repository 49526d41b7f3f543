"""Reading source backed by the dashboard's sensor-data HTTP API.

Endpoints used:

    GET {base}/farms/{farm}/sensors
        -> {"farmId": ..., "sensors": [{"id": ..., "name": ...}]}
    GET {base}/farms/{farm}/sensors/{sensor}/data?startDate&endDate&order&limit&metrics
        -> {"columns": [...], "dateColumn": ..., "data": [{...}, ...]}

The data endpoint filters with an inclusive BETWEEN, so the half-open upper
bound is re-applied locally. Responses are capped at ``limit`` rows, so long
windows are fetched in several pages.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import requests

from agroclimate.sources.base import (
    SourceError,
    coerce_timestamp,
    filter_sensor_names,
    rows_to_readings,
)
from agroclimate.sources.http import DEFAULT_TIMEOUT, create_session

if TYPE_CHECKING:
    from datetime import datetime, tzinfo

    from agroclimate.indices.models import Reading
    from agroclimate.indices.periods import QueryWindow

logger = logging.getLogger(__name__)

DEFAULT_ROW_LIMIT = 10_000


def _format_bound(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S")


class RemoteReadingSource:
    """Fetches sensor schemas and rows from a remote dashboard API."""

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        row_limit: int = DEFAULT_ROW_LIMIT,
        tz: tzinfo | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or create_session(timeout=timeout)
        self.row_limit = row_limit
        self.tz = tz

    def list_sensors(self, farm_id: str) -> list[str]:
        payload = self._get(f"/farms/{quote(farm_id, safe='')}/sensors")
        entries = payload.get("sensors", []) if isinstance(payload, dict) else payload
        names: list[str] = []
        for entry in entries or []:
            if isinstance(entry, dict):
                name = entry.get("id") or entry.get("name")
            else:
                name = entry
            if name:
                names.append(str(name))
        return filter_sensor_names(names)

    def list_fields(self, farm_id: str, sensor: str) -> list[str]:
        payload = self._get(self._data_path(farm_id, sensor), params={"limit": 1})
        columns = payload.get("columns") if isinstance(payload, dict) else None
        if not isinstance(columns, list):
            msg = f"Sensor {sensor!r} returned no column list"
            raise SourceError(msg)
        return [str(c) for c in columns]

    def fetch_readings(
        self,
        farm_id: str,
        sensor: str,
        date_field: str,
        temp_field: str,
        window: QueryWindow,
    ) -> list[Reading]:
        """Fetch the window page by page.

        The endpoint caps every response at ``row_limit`` rows, so a full page
        means there may be more: the next request starts at the last timestamp
        received. ``startDate`` is inclusive, so the rows already seen at that
        timestamp are skipped from the next page.

        Raises:
            SourceError: On transport errors, malformed payloads, or a full
                page that cannot advance (more than ``row_limit`` rows sharing
                one timestamp).
        """
        if window.is_empty:
            return []

        rows: list[dict[str, Any]] = []
        cursor = window.start
        already_seen = 0
        pages = 0
        while True:
            page = self._fetch_page(farm_id, sensor, temp_field, cursor, window.end)
            pages += 1
            rows.extend(page[already_seen:])
            if len(page) < self.row_limit:
                break

            last = self._row_second(page[-1], date_field)
            if last is None or last <= cursor:
                msg = f"Cannot page past {_format_bound(cursor)} for sensor {sensor!r}"
                raise SourceError(msg)
            cursor = last
            already_seen = sum(1 for row in page if self._row_second(row, date_field) == last)

        if pages > 1:
            logger.debug(
                "Fetched %d pages",
                pages,
                extra={"farm_id": farm_id, "sensor": sensor, "data_points": len(rows)},
            )
        return rows_to_readings(rows, date_field, temp_field, window, self.tz)

    def _fetch_page(
        self, farm_id: str, sensor: str, temp_field: str, start: datetime, end: datetime
    ) -> list[dict[str, Any]]:
        params = {
            "startDate": _format_bound(start),
            "endDate": _format_bound(end),
            "order": "asc",
            "limit": self.row_limit,
            "metrics": temp_field,
        }
        payload = self._get(self._data_path(farm_id, sensor), params=params)
        data = payload.get("data", []) if isinstance(payload, dict) else None
        if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
            msg = f"Sensor {sensor!r} returned malformed data rows"
            raise SourceError(msg)
        return data

    def _row_second(self, row: dict[str, Any], date_field: str) -> datetime | None:
        ts = coerce_timestamp(row.get(date_field), self.tz)
        return ts.replace(microsecond=0) if ts is not None else None

    def _data_path(self, farm_id: str, sensor: str) -> str:
        return f"/farms/{quote(farm_id, safe='')}/sensors/{quote(sensor, safe='')}/data"

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as exc:
            msg = f"Request to {url} failed: {exc}"
            raise SourceError(msg) from exc
