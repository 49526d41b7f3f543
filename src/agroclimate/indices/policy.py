"""Which soil probes still count towards chill.

Soil/conductivity sensors are not a valid proxy for the air temperature the
buds are exposed to, so they are excluded from chill unless explicitly
allowlisted (some probes are mounted where they track ambient well enough).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

DEFAULT_ALLOWED_SOIL_SENSORS = ("Parcela 4.2",)

SKIP_SOIL_SENSOR = "sensor_soil_or_conductivity"


@dataclass(frozen=True)
class SoilDecision:
    include: bool
    included_by_exception: bool
    skipped_reason: str | None = None


@dataclass(frozen=True)
class SoilSensorPolicy:
    """Allowlist of soil sensors included in chill computation."""

    allowed_sensors: tuple[str, ...] = DEFAULT_ALLOWED_SOIL_SENSORS

    @classmethod
    def from_names(cls, names: Iterable[str]) -> SoilSensorPolicy:
        cleaned = tuple(n.strip() for n in names if n and n.strip())
        return cls(allowed_sensors=cleaned)

    def is_allowed(self, sensor: str) -> bool:
        """Case-insensitive, whitespace-trimmed name match."""
        wanted = str(sensor).strip().lower()
        return any(a.strip().lower() == wanted for a in self.allowed_sensors)

    def evaluate(self, sensor: str, is_soil: bool) -> SoilDecision:
        if not is_soil:
            return SoilDecision(include=True, included_by_exception=False)
        if self.is_allowed(sensor):
            return SoilDecision(include=True, included_by_exception=True)
        return SoilDecision(
            include=False, included_by_exception=False, skipped_reason=SKIP_SOIL_SENSOR
        )
