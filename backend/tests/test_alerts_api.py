"""
API Integration Tests — Alert endpoints with seeded data.
"""

import uuid

import pytest
from httpx import AsyncClient


@pytest.fixture
async def seeded_alerts(test_db, seeded_db):
    """Seed alerts for testing."""
    from db.models import Alert

    incidents = seeded_db["incidents"]
    tenant_id = seeded_db["tenant_id"]

    alerts = []
    configs = [
        ("sla_escalated", "critical", "open", incidents["critical"]),
        ("sla_escalated", "high", "open", incidents["escalated"]),
        ("sla_warning", "medium", "acknowledged", incidents["warning"]),
        ("kpi_breach", "low", "resolved", None),
    ]

    for alert_type, severity, status, incident in configs:
        alert = Alert(
            tenant_id=tenant_id,
            incident_id=incident.incident_id if incident else None,
            alert_type=alert_type,
            severity=severity,
            message=f"Test {alert_type} alert",
            status=status,
        )
        test_db.add(alert)
        alerts.append(alert)

    other = Alert(
        tenant_id=seeded_db["other_tenant_id"],
        incident_id=incidents["other_tenant"].incident_id,
        alert_type="sla_escalated",
        severity="critical",
        message="Other tenant alert",
    )
    test_db.add(other)

    await test_db.flush()
    await test_db.commit()
    return {"alerts": alerts, "other_alert": other, **seeded_db}


@pytest.mark.asyncio
class TestAlertsIntegration:
    async def test_list_alerts_is_tenant_scoped(self, client: AsyncClient, seeded_alerts):
        resp = await client.get("/api/v1/alerts/")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 4
        assert all(a["tenant_id"] == str(seeded_alerts["tenant_id"]) for a in data)

    async def test_filter_by_status(self, client: AsyncClient, seeded_alerts):
        resp = await client.get("/api/v1/alerts/?status=open")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 2
        assert all(a["status"] == "open" for a in data)

    async def test_filter_by_alert_type(self, client: AsyncClient, seeded_alerts):
        resp = await client.get("/api/v1/alerts/?alert_type=sla_warning")
        assert resp.status_code == 200
        data = resp.json()
        assert [a["severity"] for a in data] == ["medium"]

    async def test_filter_by_incident(self, client: AsyncClient, seeded_alerts):
        incident_id = str(seeded_alerts["incidents"]["critical"].incident_id)
        resp = await client.get(f"/api/v1/alerts/?incident_id={incident_id}")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 1
        assert data[0]["incident_id"] == incident_id

    async def test_summary(self, client: AsyncClient, seeded_alerts):
        resp = await client.get("/api/v1/alerts/summary")
        assert resp.status_code == 200
        assert resp.json() == {
            "total": 4,
            "open": 2,
            "acknowledged": 1,
            "resolved": 1,
            "critical": 1,
            "high": 1,
        }


@pytest.mark.asyncio
class TestAlertLifecycle:
    async def test_acknowledge_then_resolve(self, client: AsyncClient, seeded_alerts):
        alert_id = str(seeded_alerts["alerts"][0].alert_id)

        resp = await client.patch(f"/api/v1/alerts/{alert_id}/acknowledge")
        assert resp.status_code == 200
        assert resp.json()["status"] == "acknowledged"
        assert resp.json()["acknowledged_at"] is not None

        resp = await client.patch(f"/api/v1/alerts/{alert_id}/resolve")
        assert resp.status_code == 200
        assert resp.json()["status"] == "resolved"

    async def test_cannot_acknowledge_twice(self, client: AsyncClient, seeded_alerts):
        alert_id = str(seeded_alerts["alerts"][2].alert_id)
        resp = await client.patch(f"/api/v1/alerts/{alert_id}/acknowledge")
        assert resp.status_code == 400

    async def test_cannot_resolve_resolved(self, client: AsyncClient, seeded_alerts):
        alert_id = str(seeded_alerts["alerts"][3].alert_id)
        resp = await client.patch(f"/api/v1/alerts/{alert_id}/resolve")
        assert resp.status_code == 400

    async def test_other_tenant_alert_not_found(self, client: AsyncClient, seeded_alerts):
        alert_id = str(seeded_alerts["other_alert"].alert_id)
        resp = await client.patch(f"/api/v1/alerts/{alert_id}/acknowledge")
        assert resp.status_code == 404

    async def test_unknown_alert_not_found(self, client: AsyncClient, seeded_alerts):
        resp = await client.patch(f"/api/v1/alerts/{uuid.uuid4()}/resolve")
        assert resp.status_code == 404
