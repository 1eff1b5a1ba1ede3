"""HTTP tests through the FastAPI app with the in-memory store."""

import httpx
import pytest
import pytest_asyncio

from simengine.config import IncidentStatus, Severity
from simengine.main import app
from simengine.shared.api import get_store, get_config_provider

from conftest import GAME_ID, make_incident, make_service


@pytest_asyncio.fixture
async def client(store, config_provider):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_config_provider] = lambda: config_provider

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


class TestTopologyRoutes:

    @pytest.mark.asyncio
    async def test_add_dependency_and_reject_cycle(self, client, store):
        db = await store.add_service(make_service("Primary Database", "database"))
        web = await store.add_service(make_service("Web Application", "application"))

        created = await client.post(
            f"/games/{GAME_ID}/dependencies",
            json={"service_id": web.id, "depends_on_service_id": db.id},
        )
        cycle = await client.post(
            f"/games/{GAME_ID}/dependencies",
            json={"service_id": db.id, "depends_on_service_id": web.id},
        )

        assert created.status_code == 201
        assert created.json()["depends_on_service_name"] == "Primary Database"
        assert cycle.status_code == 409
        assert cycle.json()["error_type"] == "CycleError"
        assert "circular dependency" in cycle.json()["detail"]
        assert "X-Correlation-ID" in cycle.headers

    @pytest.mark.asyncio
    async def test_unknown_service_is_404(self, client, store):
        db = await store.add_service(make_service("Primary Database", "database"))

        response = await client.post(
            f"/games/{GAME_ID}/dependencies",
            json={"service_id": db.id, "depends_on_service_id": "missing"},
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cascade_route(self, client, store):
        db = await store.add_service(make_service("Primary Database", "database"))
        web = await store.add_service(make_service("Web Application", "application"))
        await client.post(
            f"/games/{GAME_ID}/dependencies",
            json={"service_id": web.id, "depends_on_service_id": db.id, "dependency_type": "soft"},
        )

        response = await client.post(f"/services/{db.id}/cascade")

        assert response.status_code == 200
        assert response.json()[0]["impacted_status"] == "degraded"
        graph = (await client.get(f"/games/{GAME_ID}/dependency-graph")).json()
        statuses = {s["name"]: s["status"] for s in graph["services"]}
        assert statuses["Web Application"] == "degraded"


class TestHealthAndSLARoutes:

    @pytest.mark.asyncio
    async def test_recompute_and_summary(self, client, store):
        await client.post(f"/games/{GAME_ID}/services/initialize", json={})
        await store.add_incident(make_incident(
            "Database down", severity=Severity.CRITICAL, affected_service_name="Primary Database"
        ))

        recompute = await client.post(f"/games/{GAME_ID}/services/recompute")
        summary = await client.get(f"/games/{GAME_ID}/services/health")

        assert recompute.status_code == 200
        assert summary.json()["total"] == 8
        assert summary.json()["down"] >= 1
        assert summary.json()["services"][0]["status"] == "down"

    @pytest.mark.asyncio
    async def test_sla_check_and_status(self, client, store):
        await store.add_incident(make_incident("Late", priority="low", sla_in_minutes=-600))

        check = await client.post(f"/games/{GAME_ID}/sla/check")
        status = await client.get(f"/games/{GAME_ID}/sla/status")

        assert check.json()["breached_count"] == 1
        assert check.json()["breaches"][0]["new_priority"] == "medium"
        assert status.json()["breached"] == 1


class TestEscalationRoutes:

    @pytest.mark.asyncio
    async def test_manual_escalation_and_history(self, client, store):
        incident = await store.add_incident(make_incident("Fresh"))

        response = await client.post(
            f"/incidents/{incident.id}/escalate", json={"reason": "Instructor call"}
        )
        history = await client.get(f"/incidents/{incident.id}/escalations")

        assert response.status_code == 201
        assert response.json()["escalation_level"] == 1
        assert response.json()["escalated_by"] == "instructor"
        assert [e["id"] for e in history.json()] == [response.json()["id"]]

    @pytest.mark.asyncio
    async def test_escalation_errors(self, client, store):
        closed = await store.add_incident(make_incident("Done", status=IncidentStatus.CLOSED))

        missing = await client.post("/incidents/missing/escalate", json={"reason": "x"})
        refused = await client.post(f"/incidents/{closed.id}/escalate", json={"reason": "x"})

        assert missing.status_code == 404
        assert refused.status_code == 409
        assert refused.json()["error_type"] == "CapacityOrStateError"

    @pytest.mark.asyncio
    async def test_rule_validation(self, client):
        response = await client.post(
            f"/games/{GAME_ID}/escalation-rules",
            json={
                "name": "Reassign",
                "priority_trigger": "high",
                "time_threshold_minutes": 10,
                "auto_reassign": True,
            },
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_default_rules_and_check(self, client, store):
        await store.add_incident(make_incident("Stuck", priority="medium", minutes_ago=10_000))

        seeded = await client.post(f"/games/{GAME_ID}/escalation-rules/initialize")
        checks = await client.get(f"/games/{GAME_ID}/escalations/check")

        assert seeded.json()["rules_created"] == 5
        assert checks.json()[0]["should_escalate"] is True
        assert checks.json()[0]["rule"]["priority_trigger"] == "medium"


class TestRootRoutes:

    @pytest.mark.asyncio
    async def test_health_endpoint(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
