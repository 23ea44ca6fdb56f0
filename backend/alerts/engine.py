"""
Alert Engine — SLA escalation sweeps and alert lifecycle.

Alert Types:
  - sla_warning:          incident pending screening is inside its warning window
  - sla_escalated:        incident pending screening is past max + escalation hours
  - action_sla_warning:   open corrective action is due within its warning window
  - action_sla_escalated: open corrective action is overdue past its escalation days
  - kpi_breach:           KPI crossed its warning/critical threshold

One transition per incident (or action) per sweep, highest first:
  level 2 (if current < 2) > level 1 (if current < 1) > warning (if not yet sent)
"""

import json
from datetime import datetime, timezone
from typing import Any

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from db.models import ActionSLAConfig, Alert, CorrectiveAction, Incident, SLASeverityConfig
from hsse.action_sla import evaluate_action_sla, plan_action_transition
from hsse.kpi import KPIAlert
from hsse.sla import SLAStatus, evaluate_sla_status
from hsse.sla_analytics import COMPLETED_STATUSES

logger = structlog.get_logger()

PENDING_SCREENING_STATUSES = ("submitted", "pending_dept_rep_incident_review")
SLA_ALERT_TYPES = ("sla_warning", "sla_escalated", "action_sla_warning", "action_sla_escalated")

ESCALATION_SEVERITY = {
    0: "medium",  # warning window
    1: "high",
    2: "critical",
}

KPI_SEVERITY = {
    "warning": "medium",
    "critical": "critical",
}


def classify_alert_severity(escalation_level: int) -> str:
    """Map an escalation level to an alert severity."""
    return ESCALATION_SEVERITY.get(min(max(escalation_level, 0), 2), "medium")


def plan_transition(
    sla: SLAStatus,
    current_level: int,
    warning_sent: bool,
) -> dict[str, Any] | None:
    """
    Decide the single transition an incident should take this sweep.

    Returns None when the incident is already at (or past) its computed state.
    """
    level = current_level or 0
    if sla.status == "escalated" and sla.escalation_level >= 2 and level < 2:
        return {"alert_type": "sla_escalated", "escalation_level": 2}
    if sla.status == "escalated" and level < 1:
        return {"alert_type": "sla_escalated", "escalation_level": 1}
    if sla.status in ("warning", "escalated") and not warning_sent and level == 0:
        return {"alert_type": "sla_warning", "escalation_level": 0}
    return None


# ──────────────────────────────────────────────────────────────────────────
# Detection
# ──────────────────────────────────────────────────────────────────────────


async def detect_sla_transitions(
    db: AsyncSession,
    tenant_id: str,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Evaluate every incident pending screening and return planned transitions."""
    current = now or datetime.now(timezone.utc)

    config_result = await db.execute(select(SLASeverityConfig).where(SLASeverityConfig.tenant_id == tenant_id))
    configs = config_result.scalars().all()

    incident_result = await db.execute(
        select(Incident)
        .where(
            Incident.tenant_id == tenant_id,
            Incident.status.in_(PENDING_SCREENING_STATUSES),
        )
        .order_by(Incident.created_at)
    )

    transitions = []
    for incident in incident_result.scalars().all():
        sla = evaluate_sla_status(incident.incident_id, incident.created_at, incident.severity_level, configs, current)
        if sla is None:
            continue
        plan = plan_transition(
            sla,
            incident.screening_escalation_level,
            incident.screening_sla_warning_sent_at is not None,
        )
        if plan is None:
            continue

        ref = incident.reference_id or str(incident.incident_id)[:8]
        if plan["alert_type"] == "sla_warning":
            message = f"{ref} is approaching its screening SLA ({sla.hours_waiting:.1f}h of {sla.max_hours:g}h)"
        else:
            message = (
                f"{ref} escalated to level {plan['escalation_level']}: "
                f"waiting {sla.hours_waiting:.1f}h for screening (SLA {sla.max_hours:g}h)"
            )
        transitions.append(
            {
                "tenant_id": tenant_id,
                "incident": incident,
                "incident_id": incident.incident_id,
                "action_id": None,
                "alert_type": plan["alert_type"],
                "escalation_level": plan["escalation_level"],
                "severity": classify_alert_severity(plan["escalation_level"]),
                "message": message,
                "metadata": {
                    "severity_level": incident.severity_level,
                    "hours_waiting": round(sla.hours_waiting, 2),
                    "max_hours": sla.max_hours,
                    "warning_threshold": sla.warning_threshold,
                    "escalation_threshold": sla.escalation_threshold,
                    "escalation_level": plan["escalation_level"],
                },
            }
        )
    return transitions


async def detect_action_sla_transitions(
    db: AsyncSession,
    tenant_id: str,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Evaluate every open corrective action with a due date and return planned transitions."""
    current = now or datetime.now(timezone.utc)

    config_result = await db.execute(select(ActionSLAConfig).where(ActionSLAConfig.tenant_id == tenant_id))
    configs = config_result.scalars().all()

    action_result = await db.execute(
        select(CorrectiveAction)
        .where(
            CorrectiveAction.tenant_id == tenant_id,
            CorrectiveAction.status.notin_(COMPLETED_STATUSES),
            CorrectiveAction.due_date.is_not(None),
        )
        .order_by(CorrectiveAction.due_date)
    )

    transitions = []
    for action in action_result.scalars().all():
        sla = evaluate_action_sla(action.action_id, action.due_date, action.status, action.priority, configs, current)
        if sla is None:
            continue
        plan = plan_action_transition(sla, action.escalation_level, action.sla_warning_sent_at is not None)
        if plan is None:
            continue

        if plan["alert_type"] == "action_sla_warning":
            message = f'Action "{action.title}" is due in {sla.days_until_due} day(s)'
        else:
            message = (
                f'Action "{action.title}" escalated to level {plan["escalation_level"]}: '
                f"{sla.days_overdue} day(s) overdue"
            )
        transitions.append(
            {
                "tenant_id": tenant_id,
                "action": action,
                "incident_id": action.incident_id,
                "action_id": action.action_id,
                "alert_type": plan["alert_type"],
                "escalation_level": plan["escalation_level"],
                "severity": classify_alert_severity(plan["escalation_level"]),
                "message": message,
                "metadata": {
                    "priority": action.priority or "medium",
                    "days_until_due": sla.days_until_due,
                    "days_overdue": sla.days_overdue,
                    "escalation_level": plan["escalation_level"],
                },
            }
        )
    return transitions


# ──────────────────────────────────────────────────────────────────────────
# Deduplication
# ──────────────────────────────────────────────────────────────────────────


def _subject_key(incident_id: Any, action_id: Any) -> tuple[str | None, str | None]:
    return (
        str(incident_id) if incident_id is not None else None,
        str(action_id) if action_id is not None else None,
    )


async def deduplicate_alerts(
    db: AsyncSession,
    transitions: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """
    Drop alerts that already exist as open for the same incident or action,
    type and escalation level. Markers are still advanced by the caller.
    """
    if not transitions:
        return []

    existing = await db.execute(
        select(Alert.incident_id, Alert.action_id, Alert.alert_type, Alert.alert_metadata).where(
            Alert.status.in_(["open", "acknowledged"]),
            Alert.alert_type.in_(SLA_ALERT_TYPES),
        )
    )
    existing_keys = {
        (
            *_subject_key(row.incident_id, row.action_id),
            row.alert_type,
            (row.alert_metadata or {}).get("escalation_level"),
        )
        for row in existing.all()
    }

    return [
        t
        for t in transitions
        if (*_subject_key(t["incident_id"], t["action_id"]), t["alert_type"], t["escalation_level"])
        not in existing_keys
    ]


async def deduplicate_kpi_alerts(
    db: AsyncSession,
    tenant_id: str,
    kpi_alerts: list[KPIAlert],
) -> list[KPIAlert]:
    """Drop KPI breaches already open for the same KPI code and severity."""
    if not kpi_alerts:
        return []

    existing = await db.execute(
        select(Alert.alert_metadata).where(
            Alert.tenant_id == tenant_id,
            Alert.status.in_(["open", "acknowledged"]),
            Alert.alert_type == "kpi_breach",
        )
    )
    existing_keys = {
        ((meta or {}).get("kpi_code"), (meta or {}).get("severity")) for (meta,) in existing.all()
    }
    return [a for a in kpi_alerts if (a.code, a.severity) not in existing_keys]


# ──────────────────────────────────────────────────────────────────────────
# Persistence + Publishing
# ──────────────────────────────────────────────────────────────────────────


def _stamp(now: datetime) -> datetime:
    return now.astimezone(timezone.utc).replace(tzinfo=None)


def apply_transition(incident: Incident, transition: dict[str, Any], now: datetime) -> None:
    """Advance the incident's screening SLA markers."""
    stamp = _stamp(now)
    if transition["alert_type"] == "sla_warning":
        incident.screening_sla_warning_sent_at = stamp
    else:
        incident.screening_escalation_level = transition["escalation_level"]
        incident.screening_escalated_at = stamp


def apply_action_transition(action: CorrectiveAction, transition: dict[str, Any], now: datetime) -> None:
    """Advance the corrective action's SLA markers."""
    stamp = _stamp(now)
    if transition["alert_type"] == "action_sla_warning":
        action.sla_warning_sent_at = stamp
    else:
        action.escalation_level = transition["escalation_level"]
        action.sla_escalation_sent_at = stamp


async def create_alerts(
    db: AsyncSession,
    transitions: list[dict[str, Any]],
) -> list[Alert]:
    """Persist alerts to database and return created records."""
    created = []
    for transition in transitions:
        alert = Alert(
            tenant_id=transition["tenant_id"],
            incident_id=transition.get("incident_id"),
            action_id=transition.get("action_id"),
            alert_type=transition["alert_type"],
            severity=transition["severity"],
            message=transition["message"],
            alert_metadata=transition.get("metadata", {}),
        )
        db.add(alert)
        created.append(alert)
    return created


def _optional_id(value: Any) -> str | None:
    return str(value) if value is not None else None


async def publish_alerts(alerts: list[Alert]) -> int:
    """
    Publish new alerts to Redis pub/sub for real-time WebSocket delivery.
    Returns number of subscribers notified.
    """
    if not alerts:
        return 0

    redis = aioredis.from_url(get_settings().redis_url)
    try:
        total_subs = 0
        for alert in alerts:
            payload = json.dumps(
                {
                    "type": "alert",
                    "payload": {
                        "alert_id": str(alert.alert_id),
                        "alert_type": alert.alert_type,
                        "severity": alert.severity,
                        "message": alert.message,
                        "incident_id": _optional_id(alert.incident_id),
                        "action_id": _optional_id(alert.action_id),
                        "created_at": alert.created_at.isoformat(),
                    },
                }
            )
            channel = f"alerts:{alert.tenant_id}"
            total_subs += await redis.publish(channel, payload)
        return total_subs
    finally:
        await redis.aclose()


async def _publish_best_effort(created: list[Alert], event: str, tenant_id: str) -> None:
    try:
        await publish_alerts(created)
    except RedisError as exc:
        logger.warning(event, tenant_id=tenant_id, error=str(exc))


# ──────────────────────────────────────────────────────────────────────────
# Master Escalation Pipelines (run periodically)
# ──────────────────────────────────────────────────────────────────────────


async def run_escalation_sweep(
    db: AsyncSession,
    tenant_id: str,
    now: datetime | None = None,
) -> dict[str, int]:
    """
    Full sweep:
    1. Evaluate SLA status of incidents pending screening
    2. Advance incident markers
    3. Deduplicate + persist alerts
    4. Publish via Redis (best effort)

    Returns counts by transition type.
    """
    current = now or datetime.now(timezone.utc)

    transitions = await detect_sla_transitions(db, tenant_id, current)
    for transition in transitions:
        apply_transition(transition["incident"], transition, current)

    unique = await deduplicate_alerts(db, transitions)
    created = await create_alerts(db, unique)
    await db.commit()

    await _publish_best_effort(created, "sla_sweep.publish_failed", tenant_id)

    summary = {
        "warnings": sum(1 for t in transitions if t["alert_type"] == "sla_warning"),
        "escalations": sum(1 for t in transitions if t["alert_type"] == "sla_escalated"),
        "alerts_created": len(created),
    }
    logger.info("sla_sweep.complete", tenant_id=tenant_id, **summary)
    return summary


async def run_action_sla_sweep(
    db: AsyncSession,
    tenant_id: str,
    now: datetime | None = None,
) -> dict[str, int]:
    """
    Corrective-action sweep: due-soon warnings, then overdue escalation to
    level 1 and level 2. Same persist/publish pipeline as the screening sweep.
    """
    current = now or datetime.now(timezone.utc)

    transitions = await detect_action_sla_transitions(db, tenant_id, current)
    for transition in transitions:
        apply_action_transition(transition["action"], transition, current)

    unique = await deduplicate_alerts(db, transitions)
    created = await create_alerts(db, unique)
    await db.commit()

    await _publish_best_effort(created, "action_sla_sweep.publish_failed", tenant_id)

    summary = {
        "warnings": sum(1 for t in transitions if t["alert_type"] == "action_sla_warning"),
        "escalations": sum(1 for t in transitions if t["alert_type"] == "action_sla_escalated"),
        "alerts_created": len(created),
    }
    logger.info("action_sla_sweep.complete", tenant_id=tenant_id, **summary)
    return summary


async def raise_kpi_alerts(
    db: AsyncSession,
    tenant_id: str,
    kpi_alerts: list[KPIAlert],
) -> list[Alert]:
    """Persist kpi_breach alerts for new KPI breaches and publish them."""
    fresh = await deduplicate_kpi_alerts(db, tenant_id, kpi_alerts)
    created = await create_alerts(
        db,
        [
            {
                "tenant_id": tenant_id,
                "alert_type": "kpi_breach",
                "severity": KPI_SEVERITY[a.severity],
                "message": f"{a.label} at {a.value:g} breached its {a.severity} threshold ({a.threshold:g})",
                "metadata": {
                    "kpi_code": a.code,
                    "value": a.value,
                    "threshold": a.threshold,
                    "severity": a.severity,
                },
            }
            for a in fresh
        ],
    )
    await db.commit()

    await _publish_best_effort(created, "kpi_alerts.publish_failed", tenant_id)

    logger.info("kpi_alerts.raised", tenant_id=tenant_id, breaches=len(kpi_alerts), alerts_created=len(created))
    return created
