"""Agroclimate Monitor - chill hours and growing degree days per farm.

Architecture::

    indices/       Pure computation (periods, column classification, chill
                   and GDD aggregation, merge, milestones, soil policy)
    sources/       Reading sources (SQLite per farm, remote sensor API, memory)
    params.py      Request parameter validation -> ChillQuery / GddQuery
    engine.py      Per-request pipeline: sensors -> daily series -> result
    schemas.py     Pydantic result models (camelCase JSON)
    store.py       Snapshot store with TTL for precomputed results
    flows/         Prefect orchestration (refresh snapshots for every farm)

Data flow: source rows -> readings -> daily values per sensor -> merged
farm series -> cumulative points -> milestones/summary -> JSON.
"""

__version__ = "0.1.0"

from agroclimate.config import Settings, get_settings

__all__ = ["Settings", "__version__", "get_settings"]
