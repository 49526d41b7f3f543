"""Snapshot store for precomputed index results.

Campaign-to-date Chill and GDD results are expensive to recompute for every
dashboard view, so the refresh flow writes them here:

    <base>/derived/<farm_id>/<index>.json

Each file is a metadata envelope::

    {"meta": {"source": ..., "fetched_at": ..., "valid_until": ..., ...},
     "data": {...camelCase result payload...}}

``is_fresh`` compares ``valid_until`` with the current UTC time so the flow
can skip farms whose snapshot has not expired yet.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DERIVED_DIR = "derived"
INDEX_NAMES = ("chill", "gdd")


class SnapshotStore:
    """Reads and writes enveloped JSON snapshots with a TTL."""

    def __init__(self, base_dir: Path, ttl: timedelta = timedelta(minutes=60)) -> None:
        self.base = base_dir
        self.derived = base_dir / DERIVED_DIR
        self.ttl = ttl

    @staticmethod
    def snapshot_path(farm_id: str, index: str) -> Path:
        """Relative path of a farm/index snapshot.

        Raises:
            ValueError: For an unknown index name.
        """
        if index not in INDEX_NAMES:
            msg = f"Unknown index {index!r}; expected one of {', '.join(INDEX_NAMES)}"
            raise ValueError(msg)
        return Path(DERIVED_DIR) / farm_id / f"{index}.json"

    def save(self, farm_id: str, index: str, payload: dict[str, Any], source: str) -> Path:
        """Write a result payload for ``farm_id``/``index`` valid for ``ttl``."""
        valid_until = datetime.now(UTC) + self.ttl
        return self.write(
            self.snapshot_path(farm_id, index),
            payload,
            source=source,
            valid_until=valid_until,
            farm_id=farm_id,
            index=index,
        )

    def load(self, farm_id: str, index: str) -> dict[str, Any] | None:
        """Stored payload for ``farm_id``/``index``, fresh or not."""
        return self.read(self.snapshot_path(farm_id, index))

    def read(self, path: Path) -> dict[str, Any] | None:
        """Return the ``data`` part of an envelope, or None if missing."""
        envelope = self.read_raw(path)
        if envelope is None:
            return None
        return envelope.get("data", envelope)

    def read_raw(self, path: Path) -> dict[str, Any] | None:
        """Return the whole envelope (meta + data)."""
        full = self._resolve(path)
        if not full.exists():
            return None
        with full.open(encoding="utf-8") as f:
            envelope: dict[str, Any] = json.load(f)
        return envelope

    def write(
        self,
        path: Path,
        data: Any,
        source: str,
        valid_until: datetime | None = None,
        **params: Any,
    ) -> Path:
        """Write ``data`` wrapped in a metadata envelope.

        Args:
            path: Path relative to the store base.
            data: JSON-serializable payload stored under ``data``.
            source: Producer identifier, e.g. the reading source in use.
            valid_until: Expiry; None means the snapshot is never fresh.
            **params: Extra metadata (farm, index, query parameters).

        Returns:
            Absolute path of the written file.
        """
        full = self._resolve(path)
        full.parent.mkdir(parents=True, exist_ok=True)

        meta: dict[str, Any] = {
            "source": source,
            "fetched_at": datetime.now(UTC).isoformat(),
        }
        if valid_until is not None:
            meta["valid_until"] = valid_until.isoformat()
        meta.update(params)

        with full.open("w", encoding="utf-8") as f:
            json.dump({"meta": meta, "data": data}, f, indent=2, ensure_ascii=False)
        logger.debug("Snapshot written", extra={"reason": str(full)})
        return full

    def is_fresh(self, path: Path) -> bool:
        """True if the file exists and its ``valid_until`` is in the future.

        A missing file, missing ``valid_until`` or unreadable timestamp all
        count as stale.
        """
        envelope = self.read_raw(path)
        if envelope is None:
            return False
        valid_until = envelope.get("meta", {}).get("valid_until")
        if valid_until is None:
            return False
        try:
            expiry = datetime.fromisoformat(valid_until)
        except (TypeError, ValueError):
            return False
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=UTC)
        return datetime.now(UTC) < expiry

    def _resolve(self, path: Path) -> Path:
        full = path if path.is_absolute() else self.base / path
        try:
            full.resolve().relative_to(self.base.resolve())
        except ValueError:
            msg = f"Path escapes store base directory: {path}"
            raise ValueError(msg) from None
        return full
