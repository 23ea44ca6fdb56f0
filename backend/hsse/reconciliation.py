"""
Dashboard Reconciliation — cross-check two independently fetched views.

Compares authoritative KPI values against the dashboard aggregate and
reports mismatches, staleness and missing sections, then folds those
findings into a 0-100 data-quality score. Report-only: nothing is
corrected or merged.

Quality score dimensions:
  - completeness: share of QUALITY_FIELDS present and non-empty
  - consistency:  100 - 10 per mismatch/inconsistent issue (floor 0)
  - timeliness:   100, or 70 when the dashboard snapshot is stale
  - overall:      rounded mean of the three
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from hsse.timestamps import parse_utc

IssueType = Literal["mismatch", "missing", "stale", "inconsistent"]
IssueSeverity = Literal["info", "warning", "error"]

MISMATCH_TOLERANCE = 0.01
STALE_AFTER = timedelta(hours=24)
REQUIRED_SECTIONS: tuple[str, ...] = ("incidents", "actions", "observations")
QUALITY_FIELDS: tuple[str, ...] = ("incidents", "actions", "observations", "kpi_indicators", "last_updated")

STALE_TIMELINESS = 70
CONSISTENCY_PENALTY = 10

# Dashboard payloads arrive from JS clients in camelCase
_ALIASES = {
    "kpi_indicators": "kpiIndicators",
    "last_updated": "lastUpdated",
    "total_incidents": "totalIncidents",
}


@dataclass(frozen=True)
class ReconciliationIssue:
    id: str
    type: IssueType
    severity: IssueSeverity
    source: str
    target: str
    field: str
    source_value: Any
    target_value: Any
    description: str


@dataclass(frozen=True)
class DataQualityScore:
    overall: int
    completeness: int
    consistency: int
    timeliness: int


@dataclass(frozen=True)
class ReconciliationReport:
    issues: tuple[ReconciliationIssue, ...]
    quality_score: DataQualityScore
    error_issues: tuple[ReconciliationIssue, ...] = field(default=())
    warning_issues: tuple[ReconciliationIssue, ...] = field(default=())
    info_issues: tuple[ReconciliationIssue, ...] = field(default=())

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    @property
    def has_errors(self) -> bool:
        return bool(self.error_issues)


def _get(data: Mapping[str, Any] | None, key: str) -> Any:
    if not data or not isinstance(data, Mapping):
        return None
    if key in data:
        return data[key]
    alias = _ALIASES.get(key)
    return data.get(alias) if alias else None


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, Sequence, Mapping)):
        return len(value) > 0
    return True


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _issue(
    issue_type: IssueType,
    severity: IssueSeverity,
    source: str,
    target: str,
    field_name: str,
    source_value: Any,
    target_value: Any,
    description: str,
) -> ReconciliationIssue:
    return ReconciliationIssue(
        id=f"{issue_type}:{source}:{target}:{field_name}",
        type=issue_type,
        severity=severity,
        source=source,
        target=target,
        field=field_name,
        source_value=source_value,
        target_value=target_value,
        description=description,
    )


def find_mismatches(
    kpi_values: Mapping[str, Any] | None,
    dashboard_data: Mapping[str, Any] | None,
    tolerance: float = MISMATCH_TOLERANCE,
) -> list[ReconciliationIssue]:
    indicators = _get(dashboard_data, "kpi_indicators")
    if not isinstance(indicators, Mapping):
        indicators = {}
    if not isinstance(kpi_values, Mapping):
        return []
    issues = []
    for code, value in kpi_values.items():
        if code not in indicators:
            continue
        source_value = _as_number(value)
        target_value = _as_number(indicators[code])
        if source_value is None or target_value is None:
            continue
        if abs(source_value - target_value) > tolerance:
            issues.append(
                _issue(
                    "mismatch",
                    "warning",
                    "kpi_targets",
                    "dashboard",
                    code,
                    value,
                    indicators[code],
                    f"KPI '{code}' differs between KPI targets ({value}) and dashboard ({indicators[code]})",
                )
            )
    return issues


def find_staleness(
    dashboard_data: Mapping[str, Any] | None,
    now: datetime,
    stale_after: timedelta = STALE_AFTER,
) -> list[ReconciliationIssue]:
    last_updated = parse_utc(_get(dashboard_data, "last_updated"))
    if last_updated is None or now - last_updated <= stale_after:
        return []
    age_hours = round((now - last_updated).total_seconds() / 3600, 1)
    return [
        _issue(
            "stale",
            "info",
            "dashboard",
            "dashboard",
            "last_updated",
            last_updated.isoformat(),
            now.isoformat(),
            f"Dashboard data is {age_hours} hours old",
        )
    ]


def find_missing_sections(
    dashboard_data: Mapping[str, Any] | None,
    sections: Sequence[str] = REQUIRED_SECTIONS,
) -> list[ReconciliationIssue]:
    issues = []
    for section in sections:
        if not _is_present(_get(dashboard_data, section)):
            issues.append(
                _issue(
                    "missing",
                    "info",
                    "dashboard",
                    "dashboard",
                    section,
                    None,
                    None,
                    f"No {section} data in dashboard snapshot",
                )
            )
    return issues


def find_executive_inconsistencies(
    executive_data: Mapping[str, Any] | None,
    dashboard_data: Mapping[str, Any] | None,
) -> list[ReconciliationIssue]:
    """Executive incident total must agree with the dashboard incident list."""
    total = _as_number(_get(executive_data, "total_incidents"))
    incidents = _get(dashboard_data, "incidents")
    if total is None or not isinstance(incidents, Sequence) or isinstance(incidents, str):
        return []
    if int(total) == len(incidents):
        return []
    return [
        _issue(
            "inconsistent",
            "error",
            "executive",
            "dashboard",
            "total_incidents",
            int(total),
            len(incidents),
            f"Executive summary reports {int(total)} incidents but dashboard lists {len(incidents)}",
        )
    ]


def compute_quality_score(
    dashboard_data: Mapping[str, Any] | None,
    issues: Sequence[ReconciliationIssue],
    fields: Sequence[str] = QUALITY_FIELDS,
) -> DataQualityScore:
    present = sum(1 for f in fields if _is_present(_get(dashboard_data, f)))
    completeness = round(present / len(fields) * 100) if fields else 100

    conflicts = sum(1 for i in issues if i.type in ("mismatch", "inconsistent"))
    consistency = max(0, 100 - CONSISTENCY_PENALTY * conflicts)

    timeliness = STALE_TIMELINESS if any(i.type == "stale" for i in issues) else 100

    overall = round((completeness + consistency + timeliness) / 3)
    return DataQualityScore(
        overall=overall,
        completeness=completeness,
        consistency=consistency,
        timeliness=timeliness,
    )


def reconcile_dashboard(
    dashboard_data: Mapping[str, Any] | None = None,
    kpi_values: Mapping[str, Any] | None = None,
    executive_data: Mapping[str, Any] | None = None,
    now: datetime | None = None,
    tolerance: float = MISMATCH_TOLERANCE,
    stale_after: timedelta = STALE_AFTER,
) -> ReconciliationReport:
    """
    Run every check and score the dashboard snapshot.

    Pure for a fixed ``now``: identical inputs yield an identical report.
    """
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)

    issues = [
        *find_mismatches(kpi_values, dashboard_data, tolerance),
        *find_staleness(dashboard_data, current, stale_after),
        *find_missing_sections(dashboard_data),
        *find_executive_inconsistencies(executive_data, dashboard_data),
    ]

    return ReconciliationReport(
        issues=tuple(issues),
        quality_score=compute_quality_score(dashboard_data, issues),
        error_issues=tuple(i for i in issues if i.severity == "error"),
        warning_issues=tuple(i for i in issues if i.severity == "warning"),
        info_issues=tuple(i for i in issues if i.severity == "info"),
    )
