"""
Dashboard Router — near-miss ratio health and dashboard reconciliation.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_tenant_db, get_tenant_id
from core.config import get_settings
from db.models import Incident
from hsse.near_miss import classify_near_miss_ratio
from hsse.reconciliation import reconcile_dashboard

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class NearMissRatioResponse(BaseModel):
    window_days: int
    near_miss_count: int
    incident_count: int
    previous_near_miss_count: int
    ratio: float
    health_band: str
    trend: str


class ReconciliationRequest(BaseModel):
    dashboard_data: dict[str, Any] | None = None
    kpi_values: dict[str, Any] | None = None
    executive_data: dict[str, Any] | None = None


class ReconciliationIssueResponse(BaseModel):
    id: str
    type: str
    severity: str
    source: str
    target: str
    field: str
    source_value: Any = None
    target_value: Any = None
    description: str


class DataQualityScoreResponse(BaseModel):
    overall: int
    completeness: int
    consistency: int
    timeliness: int


class ReconciliationResponse(BaseModel):
    issues: list[ReconciliationIssueResponse]
    quality_score: DataQualityScoreResponse
    error_issues: list[ReconciliationIssueResponse]
    warning_issues: list[ReconciliationIssueResponse]
    info_issues: list[ReconciliationIssueResponse]
    has_issues: bool
    has_errors: bool


async def _count_events(db: AsyncSession, tenant_id: str, event_type: str, start: datetime, end: datetime) -> int:
    result = await db.execute(
        select(func.count(Incident.incident_id)).where(
            Incident.tenant_id == tenant_id,
            Incident.event_type == event_type,
            Incident.created_at >= start,
            Incident.created_at < end,
        )
    )
    return int(result.scalar() or 0)


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/near-miss-ratio", response_model=NearMissRatioResponse)
async def get_near_miss_ratio(
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """Near-miss to incident ratio for the window, trended against the prior window."""
    end = datetime.utcnow()
    start = end - timedelta(days=days)
    previous_start = start - timedelta(days=days)

    near_misses = await _count_events(db, tenant_id, "near_miss", start, end)
    incidents = await _count_events(db, tenant_id, "incident", start, end)
    previous_near_misses = await _count_events(db, tenant_id, "near_miss", previous_start, start)

    health = classify_near_miss_ratio(near_misses, incidents, previous_near_misses)
    return NearMissRatioResponse(
        window_days=days,
        near_miss_count=near_misses,
        incident_count=incidents,
        previous_near_miss_count=previous_near_misses,
        ratio=round(health.ratio, 2),
        health_band=health.health_band,
        trend=health.trend,
    )


@router.post("/reconciliation", response_model=ReconciliationResponse)
async def reconcile(
    body: ReconciliationRequest,
    tenant_id: str = Depends(get_tenant_id),
):
    """Cross-check a dashboard snapshot against authoritative KPI values."""
    settings = get_settings()
    report = reconcile_dashboard(
        dashboard_data=body.dashboard_data,
        kpi_values=body.kpi_values,
        executive_data=body.executive_data,
        now=datetime.now(timezone.utc),
        tolerance=settings.reconciliation_tolerance,
        stale_after=timedelta(hours=settings.reconciliation_stale_hours),
    )

    def _issues(items):
        return [ReconciliationIssueResponse(**vars(i)) for i in items]

    return ReconciliationResponse(
        issues=_issues(report.issues),
        quality_score=DataQualityScoreResponse(**vars(report.quality_score)),
        error_issues=_issues(report.error_issues),
        warning_issues=_issues(report.warning_issues),
        info_issues=_issues(report.info_issues),
        has_issues=report.has_issues,
        has_errors=report.has_errors,
    )
