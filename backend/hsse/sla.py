"""
Screening SLA Clock — how far an incident is into its SLA windows.

Status is a label computed on read against wall-clock time; nothing here
schedules or fires. The escalation sweep (alerts.engine) is the only
caller that persists the outcome.

Config resolution order for a severity level:
  1. Tenant row from sla_severity_configs
  2. SLA_CONFIG_OVERRIDES env payload
  3. DEFAULT_SLA_BY_SEVERITY
  4. FALLBACK_SLA (unknown level)
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Literal

from core.config import get_settings
from hsse.timestamps import parse_utc

SLAState = Literal["ok", "warning", "escalated"]

DEFAULT_SEVERITY = "Level 2"

# (max_hours, warning_hours_before, escalation_hours)
DEFAULT_SLA_BY_SEVERITY: dict[str, tuple[float, float, float]] = {
    "Level 1": (24, 4, 8),
    "Level 2": (12, 2, 4),
    "Level 3": (8, 2, 4),
    "Level 4": (4, 1, 2),
    "Level 5": (2, 1, 1),
}
FALLBACK_SLA: tuple[float, float, float] = (8, 2, 4)


@dataclass(frozen=True)
class SLASeverityConfig:
    severity_level: str
    max_hours: float
    warning_hours_before: float
    escalation_hours: float


@dataclass(frozen=True)
class SLAStatus:
    incident_id: str
    hours_waiting: float
    max_hours: float
    warning_threshold: float
    escalation_threshold: float
    status: SLAState
    escalation_level: int


def _hours(value: Any, default: float) -> float:
    """Missing, zero, non-numeric or non-finite hours fall back to the default."""
    if isinstance(value, bool):
        return float(default)
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return float(default)
    if not math.isfinite(hours) or hours <= 0:
        return float(default)
    return hours


def _complete(level: str, entry: Any, base: tuple[float, float, float]) -> SLASeverityConfig:
    if isinstance(entry, dict):
        get = entry.get
    else:
        def get(name):
            return getattr(entry, name, None)

    return SLASeverityConfig(
        severity_level=level,
        max_hours=_hours(get("max_hours"), base[0]),
        warning_hours_before=_hours(get("warning_hours_before"), base[1]),
        escalation_hours=_hours(get("escalation_hours"), base[2]),
    )


def _table_entry(level: str) -> tuple[float, float, float]:
    return DEFAULT_SLA_BY_SEVERITY.get(level, FALLBACK_SLA)


@lru_cache
def _load_override_policy() -> dict[str, SLASeverityConfig]:
    """
    Optional override payload from env:
      SLA_CONFIG_OVERRIDES='{"Level 1":{"max_hours":36,"warning_hours_before":6,"escalation_hours":12}}'
    Partial entries are completed from the default table.
    """
    raw = get_settings().sla_config_overrides
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if not isinstance(payload, dict):
        return {}

    return {
        level: _complete(level, entry, _table_entry(level))
        for level, entry in payload.items()
        if isinstance(entry, dict)
    }


def _base_config(level: str) -> SLASeverityConfig:
    """Env override for the level, else the default table, else the fallback."""
    override = _load_override_policy().get(level)
    if override is not None:
        return override
    max_hours, warning, escalation = _table_entry(level)
    return SLASeverityConfig(
        severity_level=level,
        max_hours=float(max_hours),
        warning_hours_before=float(warning),
        escalation_hours=float(escalation),
    )


def _row_level(row: Any) -> Any:
    if isinstance(row, dict):
        return row.get("severity_level")
    return getattr(row, "severity_level", None)


def default_sla_configs() -> list[SLASeverityConfig]:
    """Default table with env overrides applied, one entry per severity level."""
    return [_base_config(level) for level in DEFAULT_SLA_BY_SEVERITY]


def resolve_sla_config(
    severity: str | None,
    configs: Iterable[Any] | None = None,
) -> SLASeverityConfig:
    """
    Pick the SLA timing config for a severity level.

    Only the row matching the level is read; its missing or unusable fields
    are completed from the override/default entry for that level.
    """
    level = severity or DEFAULT_SEVERITY
    base = _base_config(level)
    for row in configs or ():
        if _row_level(row) != level:
            continue
        if isinstance(row, SLASeverityConfig):
            return row
        return _complete(level, row, (base.max_hours, base.warning_hours_before, base.escalation_hours))
    return base


def evaluate_sla_status(
    incident_id: Any,
    created_at: datetime | str | None,
    severity: str | None = None,
    configs: Iterable[Any] | None = None,
    now: datetime | None = None,
) -> SLAStatus | None:
    """
    Derive an incident's screening SLA status.

    Returns None when the incident id or creation time is missing or
    unparsable. Naive datetimes are treated as UTC.
    """
    created = parse_utc(created_at)
    if not incident_id or created is None:
        return None

    config = resolve_sla_config(severity, configs)
    current = parse_utc(now) or datetime.now(timezone.utc)

    hours_waiting = (current - created).total_seconds() / 3600
    warning_threshold = config.max_hours - config.warning_hours_before
    escalation_threshold = config.max_hours + config.escalation_hours

    if hours_waiting >= escalation_threshold:
        status: SLAState = "escalated"
        second_threshold = config.max_hours + 2 * config.escalation_hours
        escalation_level = 2 if hours_waiting >= second_threshold else 1
    elif hours_waiting >= warning_threshold:
        status = "warning"
        escalation_level = 0
    else:
        status = "ok"
        escalation_level = 0

    return SLAStatus(
        incident_id=str(incident_id),
        hours_waiting=hours_waiting,
        max_hours=config.max_hours,
        warning_threshold=warning_threshold,
        escalation_threshold=escalation_threshold,
        status=status,
        escalation_level=escalation_level,
    )
