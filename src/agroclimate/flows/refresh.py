"""
Prefect flow that precomputes Chill and GDD snapshots for every farm.

For each configured farm and each index the flow checks the snapshot store;
fresh snapshots are skipped unless ``force`` is set, stale or missing ones
are recomputed for the default (campaign) query and written back.

Run locally:
    python -m agroclimate.flows.refresh
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any

from prefect import flow, task
from prefect.cache_policies import NO_CACHE

from agroclimate.config import Settings, get_settings
from agroclimate.engine import IndexEngine
from agroclimate.params import parse_chill_query, parse_gdd_query
from agroclimate.schemas import to_payload
from agroclimate.sources import build_source
from agroclimate.sources.base import SourceError
from agroclimate.store import INDEX_NAMES, SnapshotStore


def source_label(settings: Settings) -> str:
    """Identifier recorded as the snapshot ``source``."""
    if settings.source_url:
        return settings.source_url
    return f"sqlite:{settings.db_dir}"


@task(name="compute-index", cache_policy=NO_CACHE)
def compute_index(engine: IndexEngine, settings: Settings, farm_id: str, index: str) -> dict[str, Any]:
    """Compute the default campaign result for one farm and index."""
    if index == "chill":
        return to_payload(engine.chill(parse_chill_query(farm_id, {}, settings)))
    return to_payload(engine.gdd(parse_gdd_query(farm_id, {}, settings)))


@task(name="save-snapshot", cache_policy=NO_CACHE)
def save_snapshot(
    store: SnapshotStore, farm_id: str, index: str, payload: dict[str, Any], source: str
) -> Path:
    """Write a result payload via the snapshot store."""
    return store.save(farm_id, index, payload, source=source)


@flow(name="refresh-indices", log_prints=True)
def refresh_all(farms: list[str] | None = None, force: bool = False) -> dict[str, Any]:
    """
    Refresh index snapshots for the given farms (default: all configured).

    A farm whose sensors cannot be listed is reported under ``failed`` and
    does not stop the remaining farms.
    """
    settings = get_settings()
    store = SnapshotStore(
        Path(settings.store_dir), ttl=timedelta(minutes=settings.snapshot_ttl_minutes)
    )
    engine = IndexEngine.from_settings(settings, build_source(settings))
    source = source_label(settings)

    results: dict[str, Any] = {"refreshed": [], "skipped": [], "failed": []}

    for farm_id in farms or list(settings.farms):
        for index in INDEX_NAMES:
            label = f"{farm_id}/{index}"
            if not force and store.is_fresh(store.snapshot_path(farm_id, index)):
                print(f"{label} snapshot is fresh, skipping.")
                results["skipped"].append(label)
                continue

            try:
                payload = compute_index(engine, settings, farm_id, index)
            except SourceError as exc:
                print(f"{label} failed: {exc}")
                results["failed"].append(label)
                continue

            path = save_snapshot(store, farm_id, index, payload, source)
            print(f"Saved {label} snapshot to {path}")
            results["refreshed"].append(label)

    return results


if __name__ == "__main__":
    result = refresh_all()
    print(f"Flow complete: {result}")
