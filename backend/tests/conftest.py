"""
Test Configuration — Fixtures for async DB, test client, and seeded tenants.

Uses per-test transactions with SAVEPOINT/rollback so each test gets a
clean database state on a fresh in-memory schema.
"""

import uuid
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from api.deps import get_current_user, get_db, get_tenant_db
from api.main import app
from db.session import Base

# In-memory SQLite (no RLS). StaticPool keeps one connection so every
# session sees the same database.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TENANT_ID = "00000000-0000-0000-0000-000000000001"
OTHER_TENANT_ID = "00000000-0000-0000-0000-000000000002"


@pytest.fixture
async def test_engine():
    """Create a test database engine and build all tables."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    """Create a test session wrapped in a transaction that rolls back after each test."""
    async with test_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)

        # Use SAVEPOINT so nested commits inside app code don't end our transaction
        @event.listens_for(session.sync_session, "after_transaction_end")
        def restart_savepoint(db_session, transaction):
            if transaction.nested and not transaction._parent.nested:
                session.sync_session.begin_nested()

        await conn.begin_nested()  # SAVEPOINT

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture
def mock_user():
    """Mock authenticated user."""
    return {
        "sub": "auth0|test-user-id",
        "email": "test@hsseops.local",
        "tenant_id": TENANT_ID,
    }


@pytest.fixture
async def client(test_db, mock_user):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    def override_get_current_user():
        return mock_user

    async def override_get_tenant_db():
        """Skip set_config (SQLite doesn't support it), return session directly."""
        return test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_tenant_db] = override_get_tenant_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def seeded_db(test_db):
    """Seed two tenants, a department and incidents at known SLA ages."""
    from db.models import Department, Incident, Tenant

    tenant_id = uuid.UUID(TENANT_ID)
    other_tenant_id = uuid.UUID(OTHER_TENANT_ID)
    now = datetime.utcnow()

    test_db.add_all(
        [
            Tenant(tenant_id=tenant_id, name="Gulf Refining", email="hsse@gulfrefining.test", plan="professional"),
            Tenant(tenant_id=other_tenant_id, name="Other Co", email="hsse@other.test", status="trial"),
        ]
    )
    await test_db.flush()

    department = Department(tenant_id=tenant_id, name="Operations")
    test_db.add(department)

    # Level 2 defaults: warning at 10h, escalation at 16h, level 2 at 20h
    incidents = {
        "fresh": Incident(
            tenant_id=tenant_id,
            reference_id="INC-001",
            title="Slip in warehouse",
            severity_level="Level 2",
            status="submitted",
            created_at=now - timedelta(hours=9),
        ),
        "warning": Incident(
            tenant_id=tenant_id,
            reference_id="INC-002",
            title="Forklift contact",
            severity_level="Level 2",
            status="submitted",
            created_at=now - timedelta(hours=11),
        ),
        "escalated": Incident(
            tenant_id=tenant_id,
            reference_id="INC-003",
            title="Chemical splash",
            severity_level="Level 2",
            status="pending_dept_rep_incident_review",
            created_at=now - timedelta(hours=17),
        ),
        "critical": Incident(
            tenant_id=tenant_id,
            reference_id="INC-004",
            title="Scaffold collapse",
            severity_level="Level 2",
            status="submitted",
            created_at=now - timedelta(hours=30),
        ),
        "screened": Incident(
            tenant_id=tenant_id,
            reference_id="INC-005",
            title="Already screened",
            severity_level="Level 1",
            status="under_investigation",
            created_at=now - timedelta(hours=100),
        ),
        "other_tenant": Incident(
            tenant_id=other_tenant_id,
            reference_id="OTH-001",
            title="Other tenant incident",
            severity_level="Level 2",
            status="submitted",
            created_at=now - timedelta(hours=30),
        ),
    }
    test_db.add_all(incidents.values())
    await test_db.flush()
    await test_db.commit()

    return {
        "tenant_id": tenant_id,
        "other_tenant_id": other_tenant_id,
        "department": department,
        "incidents": incidents,
        "now": now,
    }


@pytest.fixture(autouse=True)
def published_alerts(monkeypatch):
    """Record alerts instead of publishing them to Redis."""
    sent = []

    async def fake_publish(alerts):
        sent.extend(alerts)
        return len(alerts)

    monkeypatch.setattr("alerts.engine.publish_alerts", fake_publish)
    return sent
