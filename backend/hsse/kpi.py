"""
KPI Threshold Evaluation — tri-state classification of safety KPIs.

Each KPI target carries a warning and a critical threshold. The critical
check always runs first, so a misordered config (warning > critical) still
fires critical for values past the critical bound.

Comparison direction:
  - greater_is_worse: lagging rates (TRIR, LTIFR, DART, severity rate)
  - lower_is_worse:   completion percentages, leading indicators
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

KPIStatus = Literal["success", "warning", "critical", "neutral"]
Comparison = Literal["greater_is_worse", "lower_is_worse"]

GREATER_IS_WORSE: Comparison = "greater_is_worse"
LOWER_IS_WORSE: Comparison = "lower_is_worse"

# Persisted comparison_type values describe what "good" looks like
_COMPARISON_BY_TYPE: dict[str, Comparison] = {
    "less_than": GREATER_IS_WORSE,
    "greater_than": LOWER_IS_WORSE,
}

KPI_METADATA: dict[str, dict[str, str]] = {
    "trir": {"name": "TRIR", "comparison_type": "less_than"},
    "ltifr": {"name": "LTIFR", "comparison_type": "less_than"},
    "dart_rate": {"name": "DART Rate", "comparison_type": "less_than"},
    "severity_rate": {"name": "Severity Rate", "comparison_type": "less_than"},
    "near_miss_ratio": {"name": "Near-Miss Ratio", "comparison_type": "greater_than"},
    "action_closure_rate": {"name": "Action Closure Rate", "comparison_type": "greater_than"},
    "training_compliance": {"name": "Training Compliance", "comparison_type": "greater_than"},
    "inspection_completion": {"name": "Inspection Completion", "comparison_type": "greater_than"},
}


@dataclass(frozen=True)
class ThresholdConfig:
    target_value: float
    warning_threshold: float
    critical_threshold: float
    comparison: Comparison = GREATER_IS_WORSE


@dataclass(frozen=True)
class KPIAlert:
    code: str
    label: str
    value: float
    threshold: float
    severity: Literal["warning", "critical"]


def get_kpi_status(value: float, target: ThresholdConfig | None = None) -> KPIStatus:
    """Classify a KPI value against its target thresholds."""
    if target is None:
        return "neutral"

    if target.comparison == LOWER_IS_WORSE:
        if value <= target.critical_threshold:
            return "critical"
        if value <= target.warning_threshold:
            return "warning"
        return "success"

    if value >= target.critical_threshold:
        return "critical"
    if value >= target.warning_threshold:
        return "warning"
    return "success"


def comparison_for(kpi_code: str, comparison_type: str | None = None) -> Comparison:
    """Resolve comparison direction: explicit row value, then catalog, then greater-is-worse."""
    if comparison_type in _COMPARISON_BY_TYPE:
        return _COMPARISON_BY_TYPE[comparison_type]
    meta = KPI_METADATA.get(kpi_code)
    if meta:
        return _COMPARISON_BY_TYPE[meta["comparison_type"]]
    return GREATER_IS_WORSE


def _field(row: Any, name: str) -> Any:
    if isinstance(row, dict):
        return row.get(name)
    return getattr(row, name, None)


def threshold_from_target(row: Any) -> ThresholdConfig | None:
    """
    Build a ThresholdConfig from a KPI target row (ORM object or dict).

    Missing thresholds default to the target value, so an incomplete row
    still classifies instead of raising.
    """
    if row is None:
        return None
    target_value = _field(row, "target_value")
    if target_value is None:
        return None
    warning = _field(row, "warning_threshold")
    critical = _field(row, "critical_threshold")
    return ThresholdConfig(
        target_value=float(target_value),
        warning_threshold=float(warning if warning is not None else target_value),
        critical_threshold=float(critical if critical is not None else target_value),
        comparison=comparison_for(_field(row, "kpi_code") or "", _field(row, "comparison_type")),
    )


def evaluate_kpi_alerts(
    indicators: dict[str, float | None],
    targets: list[Any],
) -> list[KPIAlert]:
    """
    Raise warning/critical alerts for indicators that breach their target.

    Indicators without a target, or without a value, are skipped.
    """
    by_code = {_field(t, "kpi_code"): t for t in targets}
    alerts: list[KPIAlert] = []
    for code, value in indicators.items():
        if value is None:
            continue
        target = threshold_from_target(by_code.get(code))
        if target is None:
            continue

        label = KPI_METADATA.get(code, {}).get("name", code)
        status = get_kpi_status(float(value), target)
        if status == "warning":
            alerts.append(KPIAlert(code, label, float(value), target.warning_threshold, "warning"))
        elif status == "critical":
            alerts.append(KPIAlert(code, label, float(value), target.critical_threshold, "critical"))
    return alerts
