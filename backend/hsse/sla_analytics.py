"""
Corrective-action SLA compliance analytics.

Rolls action rows up into monthly compliance trends, department and
priority breakdowns, and escalation-level distribution. An action is
"breached" when it was closed after its due date, or is still open
past it.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

import pandas as pd

COMPLETED_STATUSES = ("completed", "verified", "closed")
PRIORITIES = ("critical", "high", "medium", "low")
TREND_MONTHS = 12

_COLUMNS = [
    "id",
    "priority",
    "due_date",
    "status",
    "escalation_level",
    "created_at",
    "updated_at",
    "department_id",
]


def _round(value: float) -> int:
    """Round half up, matching how dashboards display percentages."""
    return int(math.floor(value + 0.5))


def _rate(numerator: int, denominator: int, empty: int = 100) -> int:
    return _round(numerator / denominator * 100) if denominator > 0 else empty


def _empty_analytics() -> dict[str, Any]:
    return {
        "monthly_trends": [],
        "department_performance": [],
        "priority_metrics": [],
        "escalation_metrics": {"level0": 0, "level1": 0, "level2": 0, "escalation_rate": 0},
        "overall_compliance_rate": 0,
        "avg_resolution_time": 0,
        "total_actions": 0,
        "active_actions": 0,
    }


def build_action_frame(actions: Iterable[Mapping[str, Any]], now: pd.Timestamp) -> pd.DataFrame:
    df = pd.DataFrame(list(actions), columns=_COLUMNS)
    for col in ("due_date", "created_at", "updated_at"):
        df[col] = pd.to_datetime(df[col], errors="coerce", utc=True)
    df["escalation_level"] = pd.to_numeric(df["escalation_level"], errors="coerce").fillna(0).astype(int)
    df["priority"] = df["priority"].fillna("medium")
    df["department_id"] = df["department_id"].fillna("unknown").astype(str)

    df["completed"] = df["status"].isin(COMPLETED_STATUSES)
    # Completed actions are judged at their last update; open ones against now
    closed_at = df["updated_at"].where(df["completed"] & df["updated_at"].notna())
    df["check_date"] = closed_at.fillna(now)
    df["breached"] = df["due_date"].notna() & (df["check_date"] > df["due_date"])
    df["on_time"] = (
        df["completed"] & df["updated_at"].notna() & df["due_date"].notna() & (df["updated_at"] <= df["due_date"])
    )
    resolution = (df["updated_at"] - df["created_at"]).dt.days
    df["resolution_days"] = resolution.clip(lower=0)
    return df


def _monthly_trends(df: pd.DataFrame, now: pd.Timestamp) -> list[dict[str, Any]]:
    months = df["created_at"].dt.strftime("%Y-%m")
    end = pd.Period(now.strftime("%Y-%m"), freq="M")
    trends = []
    for period in pd.period_range(end=end, periods=TREND_MONTHS, freq="M"):
        in_month = df[months == str(period)]
        completed = int(in_month["on_time"].sum())
        breached = int(in_month["breached"].sum())
        trends.append(
            {
                "month": period.strftime("%b %Y"),
                "completed": completed,
                "breached": breached,
                "compliance_rate": _rate(completed, completed + breached),
            }
        )
    return trends


def _department_performance(df: pd.DataFrame, departments: Mapping[str, str]) -> list[dict[str, Any]]:
    results = []
    for dept_id, group in df.groupby("department_id", sort=False):
        with_due = group[group["due_date"].notna()]
        done = with_due[with_due["completed"]]
        on_time = int((done["check_date"] <= done["due_date"]).sum())
        breached = int(with_due["breached"].sum())
        resolved = done[done["updated_at"].notna()]
        results.append(
            {
                "department_id": dept_id,
                "department_name": departments.get(dept_id, "Unassigned"),
                "total_actions": len(group),
                "completed_on_time": on_time,
                "breached": breached,
                "compliance_rate": _rate(on_time, on_time + breached),
                "avg_resolution_days": _round(resolved["resolution_days"].fillna(0).mean()) if len(resolved) else 0,
            }
        )
    return results


def _priority_metrics(df: pd.DataFrame) -> list[dict[str, Any]]:
    order = list(PRIORITIES) + [p for p in df["priority"].unique() if p not in PRIORITIES]
    metrics = []
    for priority in order:
        group = df[df["priority"] == priority]
        done_days = group.loc[group["completed"], "resolution_days"].dropna()
        metrics.append(
            {
                "priority": priority,
                "total": len(group),
                "completed": int(group["completed"].sum()),
                "breached": int(group["breached"].sum()),
                "avg_days_to_complete": _round(done_days.mean()) if len(done_days) else 0,
            }
        )
    return metrics


def _escalation_metrics(df: pd.DataFrame) -> dict[str, int]:
    level0 = int((df["escalation_level"] == 0).sum())
    level1 = int((df["escalation_level"] == 1).sum())
    level2 = int((df["escalation_level"] >= 2).sum())
    return {
        "level0": level0,
        "level1": level1,
        "level2": level2,
        "escalation_rate": _rate(level1 + level2, len(df), empty=0),
    }


def compute_sla_analytics(
    actions: Iterable[Mapping[str, Any]],
    departments: Mapping[str, str] | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Summarise corrective-action SLA compliance for a tenant."""
    current = pd.Timestamp(now or datetime.now(timezone.utc))
    current = current.tz_localize("UTC") if current.tzinfo is None else current.tz_convert("UTC")

    df = build_action_frame(actions, current)
    if df.empty:
        return _empty_analytics()

    completed = df[df["completed"]]
    # Completed rows without both dates count as on time
    completed_on_time = completed["updated_at"].isna() | completed["due_date"].isna()
    completed_on_time |= completed["updated_at"] <= completed["due_date"]
    resolution_days = completed["resolution_days"].dropna()

    return {
        "monthly_trends": _monthly_trends(df, current),
        "department_performance": _department_performance(df, {str(k): v for k, v in (departments or {}).items()}),
        "priority_metrics": _priority_metrics(df),
        "escalation_metrics": _escalation_metrics(df),
        "overall_compliance_rate": _rate(int(completed_on_time.sum()), len(completed)),
        "avg_resolution_time": _round(resolution_days.mean()) if len(resolution_days) else 0,
        "total_actions": len(df),
        "active_actions": int((~df["completed"]).sum()),
    }
