"""
Alerts Router — SLA and KPI alert management endpoints.
"""

from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_tenant_db, get_tenant_id
from db.models import Alert

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class AlertResponse(BaseModel):
    alert_id: UUID
    tenant_id: UUID
    incident_id: UUID | None
    action_id: UUID | None = None
    alert_type: str
    severity: str
    message: str
    alert_metadata: dict | None
    status: str
    created_at: datetime
    acknowledged_at: datetime | None
    resolved_at: datetime | None

    model_config = {"from_attributes": True}


class AlertSummary(BaseModel):
    total: int
    open: int
    acknowledged: int
    resolved: int
    critical: int
    high: int


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/", response_model=list[AlertResponse])
async def list_alerts(
    status: str | None = None,
    severity: str | None = None,
    alert_type: str | None = None,
    incident_id: UUID | None = None,
    action_id: UUID | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """List alerts with filters."""
    query = select(Alert).where(Alert.tenant_id == tenant_id)
    if status:
        query = query.where(Alert.status == status)
    if severity:
        query = query.where(Alert.severity == severity)
    if alert_type:
        query = query.where(Alert.alert_type == alert_type)
    if incident_id:
        query = query.where(Alert.incident_id == incident_id)
    if action_id:
        query = query.where(Alert.action_id == action_id)
    query = query.order_by(Alert.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/summary", response_model=AlertSummary)
async def get_alert_summary(
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """Get alert summary counts."""
    result = await db.execute(
        select(Alert.status, Alert.severity, func.count()).where(Alert.tenant_id == tenant_id).group_by(
            Alert.status, Alert.severity
        )
    )
    by_status: dict[str, int] = {}
    by_severity: dict[str, int] = {}
    for status, severity, count in result.all():
        by_status[status] = by_status.get(status, 0) + count
        by_severity[severity] = by_severity.get(severity, 0) + count

    return AlertSummary(
        total=sum(by_status.values()),
        open=by_status.get("open", 0),
        acknowledged=by_status.get("acknowledged", 0),
        resolved=by_status.get("resolved", 0),
        critical=by_severity.get("critical", 0),
        high=by_severity.get("high", 0),
    )


async def _get_alert(db: AsyncSession, tenant_id: str, alert_id: UUID) -> Alert:
    result = await db.execute(select(Alert).where(Alert.tenant_id == tenant_id, Alert.alert_id == alert_id))
    alert = result.scalar_one_or_none()
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    return alert


@router.patch("/{alert_id}/acknowledge", response_model=AlertResponse)
async def acknowledge_alert(
    alert_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
    user: dict = Depends(get_current_user),
):
    """Acknowledge an alert."""
    alert = await _get_alert(db, tenant_id, alert_id)
    if alert.status != "open":
        raise HTTPException(
            status_code=400,
            detail=f"Cannot acknowledge alert in '{alert.status}' status. Must be 'open'.",
        )

    alert.status = "acknowledged"
    alert.acknowledged_at = datetime.utcnow()
    await db.commit()
    await db.refresh(alert)

    logger.info("alert.acknowledged", alert_id=str(alert_id), by=user.get("email", "unknown"))
    return alert


@router.patch("/{alert_id}/resolve", response_model=AlertResponse)
async def resolve_alert(
    alert_id: UUID,
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
    user: dict = Depends(get_current_user),
):
    """Resolve an alert."""
    alert = await _get_alert(db, tenant_id, alert_id)
    if alert.status not in ("open", "acknowledged"):
        raise HTTPException(
            status_code=400,
            detail=f"Cannot resolve alert in '{alert.status}' status. Must be 'open' or 'acknowledged'.",
        )

    alert.status = "resolved"
    alert.resolved_at = datetime.utcnow()
    await db.commit()
    await db.refresh(alert)

    logger.info("alert.resolved", alert_id=str(alert_id), by=user.get("email", "unknown"))
    return alert
