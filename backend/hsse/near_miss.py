"""Near-miss to incident ratio health check (Heinrich-style leading indicator)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

HealthBand = Literal["healthy", "warning", "poor"]
Trend = Literal["up", "down", "stable"]

HEALTHY_RATIO = 10
WARNING_RATIO = 5


@dataclass(frozen=True)
class NearMissHealth:
    ratio: float
    health_band: HealthBand
    trend: Trend


def classify_near_miss_ratio(
    near_miss_count: int,
    incident_count: int,
    previous_near_miss_count: int | None = None,
) -> NearMissHealth:
    near_misses = max(0, near_miss_count or 0)
    incidents = max(0, incident_count or 0)
    ratio = near_misses / incidents if incidents > 0 else float(near_misses)

    if ratio >= HEALTHY_RATIO:
        band: HealthBand = "healthy"
    elif ratio >= WARNING_RATIO:
        band = "warning"
    else:
        band = "poor"

    if previous_near_miss_count is None or near_misses == previous_near_miss_count:
        trend: Trend = "stable"
    elif near_misses > previous_near_miss_count:
        trend = "up"
    else:
        trend = "down"

    return NearMissHealth(ratio=ratio, health_band=band, trend=trend)
