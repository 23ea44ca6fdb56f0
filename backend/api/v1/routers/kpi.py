"""
KPI Router — tenant KPI targets and threshold evaluation.
"""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alerts.engine import raise_kpi_alerts
from api.deps import get_tenant_db, get_tenant_id
from db.models import KPITarget
from hsse.kpi import KPI_METADATA, evaluate_kpi_alerts, get_kpi_status, threshold_from_target

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/kpi", tags=["kpi"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class KPITargetResponse(BaseModel):
    kpi_code: str
    name: str
    target_value: float
    warning_threshold: float | None
    critical_threshold: float | None
    comparison_type: str | None
    updated_at: datetime | None


class KPITargetUpdate(BaseModel):
    target_value: float
    warning_threshold: float | None = None
    critical_threshold: float | None = None
    comparison_type: str | None = Field(default=None, pattern="^(less_than|greater_than)$")


class KPIEvaluationRequest(BaseModel):
    indicators: dict[str, float | None]


class KPIStatusResult(BaseModel):
    kpi_code: str
    value: float | None
    status: str


class KPIAlertResult(BaseModel):
    code: str
    label: str
    value: float
    threshold: float
    severity: str


class KPIEvaluationResponse(BaseModel):
    statuses: list[KPIStatusResult]
    alerts: list[KPIAlertResult]
    alerts_created: int = 0


def _to_response(target: KPITarget) -> KPITargetResponse:
    return KPITargetResponse(
        kpi_code=target.kpi_code,
        name=KPI_METADATA.get(target.kpi_code, {}).get("name", target.kpi_code),
        target_value=target.target_value,
        warning_threshold=target.warning_threshold,
        critical_threshold=target.critical_threshold,
        comparison_type=target.comparison_type or KPI_METADATA.get(target.kpi_code, {}).get("comparison_type"),
        updated_at=target.updated_at,
    )


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("/targets", response_model=list[KPITargetResponse])
async def list_kpi_targets(
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """List the tenant's KPI targets."""
    result = await db.execute(select(KPITarget).where(KPITarget.tenant_id == tenant_id).order_by(KPITarget.kpi_code))
    return [_to_response(t) for t in result.scalars().all()]


@router.put("/targets/{kpi_code}", response_model=KPITargetResponse)
async def upsert_kpi_target(
    kpi_code: str,
    body: KPITargetUpdate,
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """Create or update a KPI target."""
    if kpi_code not in KPI_METADATA:
        raise HTTPException(status_code=404, detail=f"Unknown KPI code '{kpi_code}'")

    result = await db.execute(
        select(KPITarget).where(KPITarget.tenant_id == tenant_id, KPITarget.kpi_code == kpi_code)
    )
    target = result.scalar_one_or_none()
    if target is None:
        target = KPITarget(tenant_id=tenant_id, kpi_code=kpi_code, target_value=body.target_value)
        db.add(target)

    target.target_value = body.target_value
    target.warning_threshold = body.warning_threshold
    target.critical_threshold = body.critical_threshold
    target.comparison_type = body.comparison_type
    await db.commit()
    await db.refresh(target)

    logger.info("kpi.target_updated", tenant_id=tenant_id, kpi_code=kpi_code)
    return _to_response(target)


@router.post("/evaluate", response_model=KPIEvaluationResponse)
async def evaluate_kpis(
    body: KPIEvaluationRequest,
    db: AsyncSession = Depends(get_tenant_db),
    tenant_id: str = Depends(get_tenant_id),
):
    """
    Classify indicator values against the tenant's targets.

    Breaches are persisted as kpi_breach alerts; a breach already open for
    the same KPI and severity is not raised again.
    """
    result = await db.execute(select(KPITarget).where(KPITarget.tenant_id == tenant_id))
    targets = result.scalars().all()
    by_code = {t.kpi_code: t for t in targets}

    statuses = []
    for code, value in body.indicators.items():
        if value is None:
            statuses.append(KPIStatusResult(kpi_code=code, value=None, status="neutral"))
            continue
        statuses.append(
            KPIStatusResult(
                kpi_code=code,
                value=value,
                status=get_kpi_status(value, threshold_from_target(by_code.get(code))),
            )
        )

    breaches = evaluate_kpi_alerts(body.indicators, targets)
    created = await raise_kpi_alerts(db, tenant_id, breaches)
    return KPIEvaluationResponse(
        statuses=statuses,
        alerts=[KPIAlertResult(**vars(a)) for a in breaches],
        alerts_created=len(created),
    )
