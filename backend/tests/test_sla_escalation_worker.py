import asyncio
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from structlog.testing import capture_logs

from db.session import Base
from workers.sla_escalation import run_action_sla_sweep, run_screening_sla_sweep

TENANT_ID = "00000000-0000-0000-0000-000000000201"


class RetryRequested(Exception):
    pass


@pytest.fixture
def worker_db(tmp_path, monkeypatch):
    from db.models import CorrectiveAction, Incident, Tenant

    db_path = tmp_path / "sweep.db"
    db_url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_async_engine(db_url, echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    now = datetime.utcnow()

    async def _seed() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with session_factory() as db:
            db.add(Tenant(tenant_id=TENANT_ID, name="Worker Tenant", email="worker@example.com", status="active"))
            await db.flush()
            db.add_all(
                [
                    Incident(
                        tenant_id=TENANT_ID,
                        reference_id="INC-900",
                        title="Dropped object",
                        severity_level="Level 2",
                        status="submitted",
                        created_at=now - timedelta(hours=30),
                    ),
                    CorrectiveAction(
                        tenant_id=TENANT_ID,
                        title="Install toe boards",
                        priority="high",
                        due_date=now - timedelta(days=3),
                    ),
                ]
            )
            await db.commit()
        await engine.dispose()

    asyncio.run(_seed())
    monkeypatch.setattr("core.config.get_settings", lambda: SimpleNamespace(database_url=db_url))

    return db_url


def _fail_retry(task, monkeypatch):
    calls = []

    def _retry(exc=None, **kwargs):
        calls.append(exc)
        return RetryRequested(str(exc))

    monkeypatch.setattr(task, "retry", _retry)
    return calls


def test_screening_sweep_task_returns_success_payload(worker_db, published_alerts):
    from db.models import Incident

    result = run_screening_sla_sweep.run(tenant_id=TENANT_ID)

    assert result == {
        "status": "success",
        "tenant_id": TENANT_ID,
        "run_id": "manual",
        "warnings": 0,
        "escalations": 1,
        "alerts_created": 1,
    }
    assert len(published_alerts) == 1

    async def _level() -> int:
        engine = create_async_engine(worker_db)
        try:
            async with async_sessionmaker(engine, class_=AsyncSession)() as db:
                incident = (await db.execute(select(Incident))).scalar_one()
                return incident.screening_escalation_level
        finally:
            await engine.dispose()

    assert asyncio.run(_level()) == 2


def test_action_sweep_task_returns_success_payload(worker_db):
    result = run_action_sla_sweep.run(tenant_id=TENANT_ID)

    assert result["status"] == "success"
    assert result["run_id"] == "manual"
    assert (result["warnings"], result["escalations"], result["alerts_created"]) == (0, 1, 1)


def test_screening_sweep_failure_logs_and_retries(worker_db, monkeypatch):
    async def broken_sweep(db, tenant_id, now=None):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr("alerts.engine.run_escalation_sweep", broken_sweep)
    retries = _fail_retry(run_screening_sla_sweep, monkeypatch)

    with capture_logs() as logs:
        with pytest.raises(RetryRequested, match="database unavailable"):
            run_screening_sla_sweep.run(tenant_id=TENANT_ID)

    assert len(retries) == 1
    assert isinstance(retries[0], RuntimeError)
    failed = [entry for entry in logs if entry["event"] == "sla_sweep.failed"]
    assert len(failed) == 1
    assert failed[0]["log_level"] == "error"
    assert failed[0]["exc_info"] is True
    assert failed[0]["tenant_id"] == TENANT_ID


def test_action_sweep_failure_logs_and_retries(worker_db, monkeypatch):
    async def broken_sweep(db, tenant_id, now=None):
        raise RuntimeError("lock timeout")

    monkeypatch.setattr("alerts.engine.run_action_sla_sweep", broken_sweep)
    retries = _fail_retry(run_action_sla_sweep, monkeypatch)

    with capture_logs() as logs:
        with pytest.raises(RetryRequested):
            run_action_sla_sweep.run(tenant_id=TENANT_ID)

    assert len(retries) == 1
    assert any(entry["event"] == "action_sla_sweep.failed" and entry["exc_info"] is True for entry in logs)
