"""
API Tests — Smoke tests for all routes.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
class TestHealthCheck:
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"


@pytest.mark.asyncio
class TestEmptyTenant:
    async def test_list_alerts_empty(self, client: AsyncClient):
        response = await client.get("/api/v1/alerts/")
        assert response.status_code == 200
        assert response.json() == []

    async def test_alert_summary_empty(self, client: AsyncClient):
        response = await client.get("/api/v1/alerts/summary")
        assert response.status_code == 200
        assert response.json()["total"] == 0

    async def test_kpi_targets_empty(self, client: AsyncClient):
        response = await client.get("/api/v1/kpi/targets")
        assert response.status_code == 200
        assert response.json() == []

    async def test_sla_incidents_empty(self, client: AsyncClient):
        response = await client.get("/api/v1/sla/incidents")
        assert response.status_code == 200
        assert response.json() == []

    async def test_sla_analytics_empty(self, client: AsyncClient):
        response = await client.get("/api/v1/sla/analytics")
        assert response.status_code == 200
        data = response.json()
        assert data["total_actions"] == 0
        assert data["overall_compliance_rate"] == 0


@pytest.mark.asyncio
class TestTenantContext:
    async def test_missing_tenant_claim_is_forbidden(self, client: AsyncClient, mock_user):
        mock_user.pop("tenant_id")
        response = await client.get("/api/v1/alerts/")
        assert response.status_code == 403
        assert response.json()["detail"] == "No tenant context"
