"""
Corrective-Action SLA — due-date warnings and overdue escalation.

Counts whole days against an action's due date (partial days round up):
  - warning:   due within warning_days_before days (and not yet due)
  - level 1:   at least escalation_days_after days overdue
  - level 2:   at least second_escalation_days_after days overdue (if set)

Config resolution for a priority:
  1. Tenant row for the priority
  2. Tenant row for "medium"
  3. DEFAULT_ACTION_SLA_BY_PRIORITY
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from hsse.sla_analytics import COMPLETED_STATUSES
from hsse.timestamps import parse_utc

ActionSLAState = Literal["ok", "warning", "overdue", "escalated"]

DEFAULT_PRIORITY = "medium"

# (warning_days_before, escalation_days_after, second_escalation_days_after)
DEFAULT_ACTION_SLA_BY_PRIORITY: dict[str, tuple[int, int, int | None]] = {
    "critical": (1, 1, 3),
    "high": (2, 2, 5),
    "medium": (3, 2, 7),
    "low": (5, 5, 14),
}

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class ActionSLAConfig:
    priority: str
    warning_days_before: int
    escalation_days_after: int
    second_escalation_days_after: int | None = None


@dataclass(frozen=True)
class ActionSLAStatus:
    action_id: str
    days_until_due: int
    days_overdue: int
    status: ActionSLAState
    escalation_level: int


def _field(row: Any, name: str) -> Any:
    if isinstance(row, dict):
        return row.get(name)
    return getattr(row, name, None)


def _days(value: Any, default: int | None) -> int | None:
    if isinstance(value, bool) or value is None:
        return default
    try:
        days = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(days) or days <= 0:
        return default
    return int(days)


def _default_config(priority: str) -> ActionSLAConfig:
    warning, escalation, second = DEFAULT_ACTION_SLA_BY_PRIORITY.get(
        priority, DEFAULT_ACTION_SLA_BY_PRIORITY[DEFAULT_PRIORITY]
    )
    return ActionSLAConfig(priority, warning, escalation, second)


def _from_row(priority: str, row: Any) -> ActionSLAConfig:
    if isinstance(row, ActionSLAConfig):
        return row
    base = _default_config(priority)
    escalation = _days(_field(row, "escalation_days_after"), base.escalation_days_after)
    second = _days(_field(row, "second_escalation_days_after"), None)
    if second is not None and second <= escalation:
        second = None
    return ActionSLAConfig(
        priority=priority,
        warning_days_before=_days(_field(row, "warning_days_before"), base.warning_days_before),
        escalation_days_after=escalation,
        second_escalation_days_after=second,
    )


def default_action_sla_configs() -> list[ActionSLAConfig]:
    return [_default_config(priority) for priority in DEFAULT_ACTION_SLA_BY_PRIORITY]


def resolve_action_sla_config(
    priority: str | None,
    configs: Iterable[Any] | None = None,
) -> ActionSLAConfig:
    """Pick the action SLA config for a priority; missing priority means medium."""
    level = priority or DEFAULT_PRIORITY
    by_priority = {_field(row, "priority"): row for row in configs or ()}
    if level in by_priority:
        return _from_row(level, by_priority[level])
    if DEFAULT_PRIORITY in by_priority:
        return _from_row(DEFAULT_PRIORITY, by_priority[DEFAULT_PRIORITY])
    return _default_config(level)


def evaluate_action_sla(
    action_id: Any,
    due_date: datetime | str | None,
    status: str | None = None,
    priority: str | None = None,
    configs: Iterable[Any] | None = None,
    now: datetime | None = None,
) -> ActionSLAStatus | None:
    """
    Derive a corrective action's SLA status.

    Returns None for completed actions and for actions without a usable
    due date. Naive datetimes are treated as UTC.
    """
    due = parse_utc(due_date)
    if not action_id or due is None or status in COMPLETED_STATUSES:
        return None

    config = resolve_action_sla_config(priority, configs)
    current = parse_utc(now) or datetime.now(timezone.utc)

    days_until_due = math.ceil((due - current).total_seconds() / SECONDS_PER_DAY)
    days_overdue = -days_until_due

    second = config.second_escalation_days_after
    if second and days_overdue >= second:
        state: ActionSLAState = "escalated"
        escalation_level = 2
    elif days_overdue >= config.escalation_days_after:
        state = "escalated"
        escalation_level = 1
    elif days_until_due <= 0:
        state = "overdue"
        escalation_level = 0
    elif days_until_due <= config.warning_days_before:
        state = "warning"
        escalation_level = 0
    else:
        state = "ok"
        escalation_level = 0

    return ActionSLAStatus(
        action_id=str(action_id),
        days_until_due=days_until_due,
        days_overdue=days_overdue,
        status=state,
        escalation_level=escalation_level,
    )


def plan_action_transition(
    sla: ActionSLAStatus,
    current_level: int | None,
    warning_sent: bool,
) -> dict[str, Any] | None:
    """
    Decide the single transition an action should take this sweep.

    Escalations outrank the due-soon warning; None when nothing changes.
    """
    level = current_level or 0
    if sla.escalation_level >= 2 and level < 2:
        return {"alert_type": "action_sla_escalated", "escalation_level": 2}
    if sla.escalation_level >= 1 and level < 1:
        return {"alert_type": "action_sla_escalated", "escalation_level": 1}
    if sla.status == "warning" and not warning_sent:
        return {"alert_type": "action_sla_warning", "escalation_level": 0}
    return None
