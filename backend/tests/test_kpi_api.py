"""
API Integration Tests — KPI targets and evaluation.
"""

import pytest
from httpx import AsyncClient


@pytest.fixture
async def seeded_targets(client: AsyncClient, seeded_db):
    await client.put(
        "/api/v1/kpi/targets/trir",
        json={"target_value": 1.0, "warning_threshold": 1.5, "critical_threshold": 2.0},
    )
    await client.put(
        "/api/v1/kpi/targets/training_compliance",
        json={
            "target_value": 95,
            "warning_threshold": 90,
            "critical_threshold": 80,
            "comparison_type": "greater_than",
        },
    )
    return seeded_db


@pytest.mark.asyncio
class TestKPITargets:
    async def test_upsert_uses_catalog_direction(self, client: AsyncClient, seeded_db):
        resp = await client.put(
            "/api/v1/kpi/targets/trir",
            json={"target_value": 1.0, "warning_threshold": 1.5, "critical_threshold": 2.0},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "TRIR"
        assert data["comparison_type"] == "less_than"

    async def test_upsert_updates_existing(self, client: AsyncClient, seeded_targets):
        resp = await client.put(
            "/api/v1/kpi/targets/trir",
            json={"target_value": 0.8, "warning_threshold": 1.0, "critical_threshold": 1.4},
        )
        assert resp.status_code == 200

        listing = (await client.get("/api/v1/kpi/targets")).json()
        assert [t["kpi_code"] for t in listing] == ["training_compliance", "trir"]
        trir = next(t for t in listing if t["kpi_code"] == "trir")
        assert trir["critical_threshold"] == 1.4

    async def test_unknown_code_not_found(self, client: AsyncClient, seeded_db):
        resp = await client.put("/api/v1/kpi/targets/made_up", json={"target_value": 1})
        assert resp.status_code == 404

    async def test_invalid_comparison_type_rejected(self, client: AsyncClient, seeded_db):
        resp = await client.put(
            "/api/v1/kpi/targets/trir",
            json={"target_value": 1, "comparison_type": "sideways"},
        )
        assert resp.status_code == 422


@pytest.mark.asyncio
class TestKPIEvaluation:
    async def test_statuses_and_alerts(self, client: AsyncClient, seeded_targets):
        resp = await client.post(
            "/api/v1/kpi/evaluate",
            json={"indicators": {"trir": 1.8, "training_compliance": 70, "ltifr": None, "dart_rate": 0.5}},
        )
        assert resp.status_code == 200
        data = resp.json()

        statuses = {s["kpi_code"]: s["status"] for s in data["statuses"]}
        assert statuses == {
            "trir": "warning",
            "training_compliance": "critical",
            "ltifr": "neutral",
            "dart_rate": "neutral",
        }

        alerts = {a["code"]: a for a in data["alerts"]}
        assert set(alerts) == {"trir", "training_compliance"}
        assert alerts["trir"]["threshold"] == 1.5
        assert alerts["trir"]["severity"] == "warning"
        assert alerts["training_compliance"]["threshold"] == 80
        assert alerts["training_compliance"]["label"] == "Training Compliance"

    async def test_values_inside_target_raise_nothing(self, client: AsyncClient, seeded_targets):
        resp = await client.post(
            "/api/v1/kpi/evaluate",
            json={"indicators": {"trir": 0.9, "training_compliance": 97}},
        )
        data = resp.json()
        assert {s["status"] for s in data["statuses"]} == {"success"}
        assert data["alerts"] == []


@pytest.mark.asyncio
class TestKPIBreachAlerts:
    async def test_breaches_are_persisted_as_alerts(self, client: AsyncClient, seeded_targets, published_alerts):
        resp = await client.post(
            "/api/v1/kpi/evaluate",
            json={"indicators": {"trir": 1.8, "training_compliance": 70}},
        )
        assert resp.status_code == 200
        assert resp.json()["alerts_created"] == 2
        assert len(published_alerts) == 2

        listing = (await client.get("/api/v1/alerts/", params={"alert_type": "kpi_breach"})).json()
        by_code = {a["alert_metadata"]["kpi_code"]: a for a in listing}
        assert set(by_code) == {"trir", "training_compliance"}
        assert by_code["trir"]["severity"] == "medium"
        assert by_code["training_compliance"]["severity"] == "critical"
        assert by_code["trir"]["incident_id"] is None

    async def test_open_breach_is_not_raised_twice(self, client: AsyncClient, seeded_targets):
        body = {"indicators": {"trir": 1.8}}
        first = (await client.post("/api/v1/kpi/evaluate", json=body)).json()
        second = (await client.post("/api/v1/kpi/evaluate", json=body)).json()

        assert first["alerts_created"] == 1
        assert second["alerts_created"] == 0
        assert len(second["alerts"]) == 1

        listing = (await client.get("/api/v1/alerts/", params={"alert_type": "kpi_breach"})).json()
        assert len(listing) == 1

    async def test_worsening_breach_raises_new_severity(self, client: AsyncClient, seeded_targets):
        await client.post("/api/v1/kpi/evaluate", json={"indicators": {"trir": 1.8}})
        resp = await client.post("/api/v1/kpi/evaluate", json={"indicators": {"trir": 2.4}})

        assert resp.json()["alerts_created"] == 1
        listing = (await client.get("/api/v1/alerts/", params={"alert_type": "kpi_breach"})).json()
        assert sorted(a["severity"] for a in listing) == ["critical", "medium"]

    async def test_no_breach_creates_no_alert(self, client: AsyncClient, seeded_targets):
        resp = await client.post("/api/v1/kpi/evaluate", json={"indicators": {"trir": 0.5}})
        assert resp.json()["alerts_created"] == 0
