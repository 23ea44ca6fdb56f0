"""
SLA Router — screening and corrective-action SLA configs, live SLA status, and
corrective-action compliance analytics.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alerts.engine import PENDING_SCREENING_STATUSES
from api.deps import get_tenant_db, get_tenant_id
from db.models import ActionSLAConfig, CorrectiveAction, Department, Incident, SLASeverityConfig
from hsse.action_sla import default_action_sla_configs, evaluate_action_sla
from hsse.sla import default_sla_configs, evaluate_sla_status
from hsse.sla_analytics import COMPLETED_STATUSES, compute_sla_analytics

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/sla", tags=["sla"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class SLAConfigResponse(BaseModel):
    severity_level: str
    max_hours: float
    warning_hours_before: float
    escalation_hours: float
    source: str


class SLAConfigUpdate(BaseModel):
    max_hours: float = Field(gt=0)
    warning_hours_before: float = Field(gt=0)
    escalation_hours: float = Field(gt=0)


class IncidentSLAResponse(BaseModel):
    incident_id: UUID
    reference_id: str | None
    title: str
    severity_level: str | None
    status: str
    created_at: datetime
    hours_waiting: float
    max_hours: float
    warning_threshold: float
    escalation_threshold: float
    sla_status: str
    escalation_level: int
    persisted_escalation_level: int


class ActionSLAConfigResponse(BaseModel):
    priority: str
    warning_days_before: int
    escalation_days_after: int
    second_escalation_days_after: int | None
    source: str


class ActionSLAConfigUpdate(BaseModel):
    warning_days_before: int = Field(ge=1, le=30)
    escalation_days_after: int = Field(ge=1, le=60)
    second_escalation_days_after: int | None = Field(default=None, ge=1, le=90)

    @model_validator(mode="after")
    def _second_after_first(self):
        second = self.second_escalation_days_after
        if second is not None and second <= self.escalation_days_after:
            raise ValueError("second_escalation_days_after must be greater than escalation_days_after")
        return self


class ActionSLAResponse(BaseModel):
    action_id: UUID
    title: str
    priority: str | None
    status: str
    due_date: datetime
    days_until_due: int
    days_overdue: int
    sla_status: str
    escalation_level: int
    persisted_escalation_level: int


def _incident_sla(incident: Incident, configs, now: datetime) -> IncidentSLAResponse | None:
    sla = evaluate_sla_status(incident.incident_id, incident.created_at, incident.severity_level, configs, now)
    if sla is None:
        return None
    return IncidentSLAResponse(
        incident_id=incident.incident_id,
        reference_id=incident.reference_id,
        title=incident.title,
        severity_level=incident.severity_level,
        status=incident.status,
        created_at=incident.created_at,
        hours_waiting=round(sla.hours_waiting, 2),
        max_hours=sla.max_hours,
        warning_threshold=sla.warning_threshold,
        escalation_threshold=sla.escalation_threshold,
        sla_status=sla.status,
        escalation_level=sla.escalation_level,
        persisted_escalation_level=incident.screening_escalation_level or 0,
    )


async def _tenant_configs(db: AsyncSession, tenant_id: str) -> list[SLASeverityConfig]:
    result = await db.execute(select(SLASeverityConfig).where(SLASeverityConfig.tenant_id == tenant_id))
    return list(result.scalars().all())


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/configs", response_model=list[SLAConfigResponse])
async def list_sla_configs(
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """Effective SLA config per severity: tenant rows over defaults."""
    tenant_rows = {c.severity_level: c for c in await _tenant_configs(db, tenant_id)}
    effective = []
    for default in default_sla_configs():
        row = tenant_rows.pop(default.severity_level, None)
        source = row if row is not None else default
        effective.append(
            SLAConfigResponse(
                severity_level=source.severity_level,
                max_hours=source.max_hours,
                warning_hours_before=source.warning_hours_before,
                escalation_hours=source.escalation_hours,
                source="tenant" if row is not None else "default",
            )
        )
    # Tenant-defined levels outside the default table
    for row in sorted(tenant_rows.values(), key=lambda r: r.severity_level):
        effective.append(
            SLAConfigResponse(
                severity_level=row.severity_level,
                max_hours=row.max_hours,
                warning_hours_before=row.warning_hours_before,
                escalation_hours=row.escalation_hours,
                source="tenant",
            )
        )
    return effective


@router.put("/configs/{severity_level}", response_model=SLAConfigResponse)
async def upsert_sla_config(
    body: SLAConfigUpdate,
    severity_level: str = Path(..., max_length=20),
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """Create or update the tenant's SLA timing for a severity level."""
    result = await db.execute(
        select(SLASeverityConfig).where(
            SLASeverityConfig.tenant_id == tenant_id,
            SLASeverityConfig.severity_level == severity_level,
        )
    )
    config = result.scalar_one_or_none()
    if config is None:
        config = SLASeverityConfig(tenant_id=tenant_id, severity_level=severity_level, **body.model_dump())
        db.add(config)
    else:
        for key, value in body.model_dump().items():
            setattr(config, key, value)
    await db.commit()

    logger.info("sla.config_updated", tenant_id=tenant_id, severity_level=severity_level)
    return SLAConfigResponse(
        severity_level=severity_level,
        source="tenant",
        **body.model_dump(),
    )


@router.get("/incidents", response_model=list[IncidentSLAResponse])
async def list_incident_sla(
    sla_status: str | None = Query(None, pattern="^(ok|warning|escalated)$"),
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """Live SLA status of every incident pending screening, most overdue first."""
    configs = await _tenant_configs(db, tenant_id)
    result = await db.execute(
        select(Incident)
        .where(Incident.tenant_id == tenant_id, Incident.status.in_(PENDING_SCREENING_STATUSES))
        .order_by(Incident.created_at)
    )
    now = datetime.now(timezone.utc)
    rows = [r for r in (_incident_sla(i, configs, now) for i in result.scalars().all()) if r is not None]
    if sla_status:
        rows = [r for r in rows if r.sla_status == sla_status]
    return rows


@router.get("/incidents/{incident_id}", response_model=IncidentSLAResponse)
async def get_incident_sla(
    incident_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """SLA status of a single incident."""
    result = await db.execute(
        select(Incident).where(Incident.tenant_id == tenant_id, Incident.incident_id == incident_id)
    )
    incident = result.scalar_one_or_none()
    if incident is None:
        raise HTTPException(status_code=404, detail="Incident not found")

    row = _incident_sla(incident, await _tenant_configs(db, tenant_id), datetime.now(timezone.utc))
    if row is None:
        raise HTTPException(status_code=404, detail="Incident has no SLA clock")
    return row


async def _tenant_action_configs(db: AsyncSession, tenant_id: str) -> list[ActionSLAConfig]:
    result = await db.execute(select(ActionSLAConfig).where(ActionSLAConfig.tenant_id == tenant_id))
    return list(result.scalars().all())


@router.get("/action-configs", response_model=list[ActionSLAConfigResponse])
async def list_action_sla_configs(
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """Effective corrective-action SLA config per priority: tenant rows over defaults."""
    tenant_rows = {c.priority: c for c in await _tenant_action_configs(db, tenant_id)}
    effective = []
    for default in default_action_sla_configs():
        row = tenant_rows.get(default.priority)
        source = row if row is not None else default
        effective.append(
            ActionSLAConfigResponse(
                priority=default.priority,
                warning_days_before=source.warning_days_before,
                escalation_days_after=source.escalation_days_after,
                second_escalation_days_after=source.second_escalation_days_after,
                source="tenant" if row is not None else "default",
            )
        )
    return effective


@router.put("/action-configs/{priority}", response_model=ActionSLAConfigResponse)
async def upsert_action_sla_config(
    body: ActionSLAConfigUpdate,
    priority: str = Path(..., pattern="^(critical|high|medium|low)$"),
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """Create or update the tenant's corrective-action SLA timing for a priority."""
    result = await db.execute(
        select(ActionSLAConfig).where(ActionSLAConfig.tenant_id == tenant_id, ActionSLAConfig.priority == priority)
    )
    config = result.scalar_one_or_none()
    if config is None:
        config = ActionSLAConfig(tenant_id=tenant_id, priority=priority, **body.model_dump())
        db.add(config)
    else:
        for key, value in body.model_dump().items():
            setattr(config, key, value)
    await db.commit()

    logger.info("sla.action_config_updated", tenant_id=tenant_id, priority=priority)
    return ActionSLAConfigResponse(priority=priority, source="tenant", **body.model_dump())


@router.get("/actions", response_model=list[ActionSLAResponse])
async def list_action_sla(
    sla_status: str | None = Query(None, pattern="^(ok|warning|overdue|escalated)$"),
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """Live SLA status of every open corrective action with a due date, soonest due first."""
    configs = await _tenant_action_configs(db, tenant_id)
    result = await db.execute(
        select(CorrectiveAction)
        .where(
            CorrectiveAction.tenant_id == tenant_id,
            CorrectiveAction.status.notin_(COMPLETED_STATUSES),
            CorrectiveAction.due_date.is_not(None),
        )
        .order_by(CorrectiveAction.due_date)
    )
    now = datetime.now(timezone.utc)
    rows = []
    for action in result.scalars().all():
        sla = evaluate_action_sla(action.action_id, action.due_date, action.status, action.priority, configs, now)
        if sla is None or (sla_status and sla.status != sla_status):
            continue
        rows.append(
            ActionSLAResponse(
                action_id=action.action_id,
                title=action.title,
                priority=action.priority,
                status=action.status,
                due_date=action.due_date,
                days_until_due=sla.days_until_due,
                days_overdue=sla.days_overdue,
                sla_status=sla.status,
                escalation_level=sla.escalation_level,
                persisted_escalation_level=action.escalation_level or 0,
            )
        )
    return rows


@router.get("/analytics")
async def get_sla_analytics(
    days: int = Query(365, ge=1, le=730),
    priority: str | None = Query(None, pattern="^(critical|high|medium|low)$"),
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """Corrective-action SLA compliance over the lookback window."""
    cutoff = datetime.utcnow() - timedelta(days=days)
    query = select(CorrectiveAction).where(
        CorrectiveAction.tenant_id == tenant_id,
        CorrectiveAction.created_at >= cutoff,
    )
    if priority:
        query = query.where(CorrectiveAction.priority == priority)
    actions = (await db.execute(query.order_by(CorrectiveAction.created_at.desc()))).scalars().all()

    dept_result = await db.execute(select(Department).where(Department.tenant_id == tenant_id))
    departments = {str(d.department_id): d.name for d in dept_result.scalars().all()}

    return compute_sla_analytics(
        [
            {
                "id": str(a.action_id),
                "priority": a.priority,
                "due_date": a.due_date,
                "status": a.status,
                "escalation_level": a.escalation_level,
                "created_at": a.created_at,
                "updated_at": a.updated_at,
                "department_id": str(a.department_id) if a.department_id else None,
            }
            for a in actions
        ],
        departments,
    )
