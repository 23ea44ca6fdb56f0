"""
SLA Escalation Worker — periodic SLA sweeps per tenant.

  - run_screening_sla_sweep: incidents pending screening (every 15 minutes)
  - run_action_sla_sweep:    open corrective actions against due dates (hourly)

Schedule: See celery_app.py beat_schedule
"""

import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workers.celery_app import celery_app

logger = structlog.get_logger()


async def _run_tenant_sweep(sweep, tenant_id: str, run_id: str) -> dict:
    from core.config import get_settings
    from db.session import set_tenant_context

    settings = get_settings()
    engine = create_async_engine(settings.database_url)
    try:
        async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with async_session() as db:
            # Session-wide: the sweep commits before publishing
            await set_tenant_context(db, tenant_id, local=False)
            result = await sweep(db, tenant_id)
            return {"status": "success", "tenant_id": tenant_id, "run_id": run_id, **result}
    finally:
        await engine.dispose()


@celery_app.task(
    name="workers.sla_escalation.run_screening_sla_sweep",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
    acks_late=True,
)
def run_screening_sla_sweep(self, tenant_id: str):
    """
    Evaluate incidents pending screening, advance escalation markers,
    and raise SLA alerts.
    """
    from alerts.engine import run_escalation_sweep

    run_id = self.request.id or "manual"
    logger.info("sla_sweep.started", tenant_id=tenant_id, run_id=run_id)

    try:
        return asyncio.run(_run_tenant_sweep(run_escalation_sweep, tenant_id, run_id))
    except Exception as exc:  # noqa: BLE001
        logger.error("sla_sweep.failed", tenant_id=tenant_id, error=str(exc), exc_info=True)
        raise self.retry(exc=exc)


@celery_app.task(
    name="workers.sla_escalation.run_action_sla_sweep",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
    acks_late=True,
)
def run_action_sla_sweep(self, tenant_id: str):
    """Warn on corrective actions nearing their due date and escalate overdue ones."""
    from alerts.engine import run_action_sla_sweep as sweep

    run_id = self.request.id or "manual"
    logger.info("action_sla_sweep.started", tenant_id=tenant_id, run_id=run_id)

    try:
        return asyncio.run(_run_tenant_sweep(sweep, tenant_id, run_id))
    except Exception as exc:  # noqa: BLE001
        logger.error("action_sla_sweep.failed", tenant_id=tenant_id, error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
