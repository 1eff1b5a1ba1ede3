"""Tests for incident matching, status derivation and health recompute."""

import pytest

from simengine.config import IncidentStatus, ServiceStatus, Severity
from simengine.core import NotFoundError
from simengine.health.application import ServiceHealthAggregator
from simengine.health.domain import StatusDeriver, health_score, match_reason
from simengine.shared.domain import DEFAULT_KEYWORD_SYNONYMS
from simengine.topology.application import CascadePropagator, DependencyGraphService

from conftest import GAME_ID, make_incident, make_service


class TestMatchReason:

    def test_id_wins_over_everything(self):
        service = make_service("Primary Database", "database")
        incident = make_incident("Unrelated", affected_service_id=service.id)

        assert match_reason(service, incident, DEFAULT_KEYWORD_SYNONYMS) == "id"

    def test_exact_name_is_case_insensitive(self):
        service = make_service("Email Service")
        incident = make_incident("Bounces", affected_service_name="  email service ")

        assert match_reason(service, incident, DEFAULT_KEYWORD_SYNONYMS) == "exact_name"

    def test_keyword_synonym_in_title(self):
        service = make_service("Primary Database", "database")
        incident = make_incident("DB connection pool exhausted")

        assert match_reason(service, incident, DEFAULT_KEYWORD_SYNONYMS) == "keyword"

    def test_synonym_inside_another_word_is_not_a_keyword_hit(self):
        service = make_service("Primary Database", "database")
        incident = make_incident("Survey broken", description="Users cannot submit feedback")

        assert match_reason(service, incident, DEFAULT_KEYWORD_SYNONYMS) is None

    def test_substring_of_reference(self):
        service = make_service("API Gateway")
        incident = make_incident("Timeouts", affected_service_name="Gateway")

        # "api" is a synonym of gateway but appears nowhere in the text
        assert match_reason(service, incident, {"gateway": ["api"]}) == "substring"

    def test_service_name_in_description(self):
        service = make_service("Email Service")
        incident = make_incident("Mail delayed", description="The email service queue is stuck")

        assert match_reason(service, incident, DEFAULT_KEYWORD_SYNONYMS) == "text"

    def test_empty_reference_never_matches_by_name(self):
        service = make_service("Backup System", "server")
        incident = make_incident("Printer jam", affected_service_name="")

        assert match_reason(service, incident, DEFAULT_KEYWORD_SYNONYMS) is None


class TestStatusDeriver:

    @pytest.mark.parametrize("max_rank,count,expected", [
        (0, 0, ServiceStatus.OPERATIONAL),
        (4, 1, ServiceStatus.DOWN),
        (3, 1, ServiceStatus.DEGRADED),
        (2, 1, ServiceStatus.DEGRADED),
        (1, 1, ServiceStatus.OPERATIONAL),
        (1, 2, ServiceStatus.DEGRADED),
    ])
    def test_derive(self, max_rank, count, expected):
        assert StatusDeriver.derive(max_rank, count) == expected

    def test_unknown_severity_ranks_zero(self):
        incident = make_incident("Odd", severity="cosmic")

        assert StatusDeriver.max_severity_rank([incident]) == 0


class TestHealthScore:

    def test_empty_game_is_fully_healthy(self):
        assert health_score([]) == 100

    def test_weighted_by_criticality(self):
        up = make_service("Up", criticality=10)
        down = make_service("Down", criticality=10, status=ServiceStatus.DOWN)
        degraded = make_service("Slow", criticality=5, status=ServiceStatus.DEGRADED)

        assert health_score([up, down]) == 50
        assert health_score([up, degraded]) == 83


class TestServiceHealthAggregator:

    @pytest.fixture
    def aggregator(self, store, config_provider):
        return ServiceHealthAggregator(store, config_provider)

    @pytest.mark.asyncio
    async def test_recompute_single_service(self, store, aggregator):
        db = await store.add_service(make_service("Primary Database", "database"))
        await store.add_incident(make_incident("Database down", severity=Severity.CRITICAL))

        assert await aggregator.recompute(db.id) == ServiceStatus.DOWN
        assert (await store.get_service(db.id)).status == ServiceStatus.DOWN

    @pytest.mark.asyncio
    async def test_recompute_unknown_service(self, aggregator):
        with pytest.raises(NotFoundError):
            await aggregator.recompute("missing")

    @pytest.mark.asyncio
    async def test_unchanged_status_writes_nothing(self, store, aggregator):
        await store.add_service(make_service("Email Service"))

        assert await aggregator.recompute_all(GAME_ID) == []
        assert await store.list_events(GAME_ID) == []

    @pytest.mark.asyncio
    async def test_closed_incidents_are_ignored(self, store, aggregator):
        db = await store.add_service(make_service("Primary Database", "database"))
        await store.add_incident(make_incident(
            "Database down", severity=Severity.CRITICAL, status=IncidentStatus.RESOLVED
        ))

        await aggregator.recompute_all(GAME_ID)

        assert (await store.get_service(db.id)).status == ServiceStatus.OPERATIONAL

    @pytest.mark.asyncio
    async def test_cascade_floor_and_recovery(self, store, config_provider, aggregator):
        db = await store.add_service(make_service("Primary Database", "database"))
        web = await store.add_service(make_service("Web Application", "application"))
        await DependencyGraphService(store, config_provider).add_dependency(GAME_ID, web.id, db.id, "hard")
        incident = await store.add_incident(make_incident(
            "Database down", severity=Severity.CRITICAL, affected_service_name="Primary Database"
        ))

        changes = await aggregator.recompute_all(GAME_ID)

        by_name = {c.service_name: c for c in changes}
        assert by_name["Primary Database"].new_status == ServiceStatus.DOWN
        assert by_name["Primary Database"].cause == "incidents"
        assert by_name["Web Application"].new_status == ServiceStatus.DOWN
        assert by_name["Web Application"].cause == "cascade"

        await store.update_incident(incident.id, {"status": IncidentStatus.RESOLVED})
        await aggregator.recompute_all(GAME_ID)

        assert (await store.get_service(db.id)).status == ServiceStatus.OPERATIONAL
        assert (await store.get_service(web.id)).status == ServiceStatus.OPERATIONAL

    @pytest.mark.asyncio
    async def test_cascade_from_degraded_source_survives_recompute(self, store, config_provider, aggregator):
        db = await store.add_service(make_service("Primary Database", "database"))
        web = await store.add_service(make_service("Web Application", "application"))
        await DependencyGraphService(store, config_provider).add_dependency(GAME_ID, web.id, db.id, "soft")
        incident = await store.add_incident(make_incident(
            "DB slow", severity=Severity.HIGH, affected_service_name="Primary Database"
        ))

        await aggregator.recompute_all(GAME_ID)
        await CascadePropagator(store, config_provider).apply(db.id)
        await aggregator.recompute_all(GAME_ID)

        assert (await store.get_service(db.id)).status == ServiceStatus.DEGRADED
        assert (await store.get_service(web.id)).status == ServiceStatus.DEGRADED

        await store.update_incident(incident.id, {"status": IncidentStatus.RESOLVED})
        await aggregator.recompute_all(GAME_ID)

        assert (await store.get_service(web.id)).status == ServiceStatus.OPERATIONAL

    @pytest.mark.asyncio
    async def test_status_change_event_payload(self, store, aggregator):
        db = await store.add_service(make_service("Primary Database", "database"))
        await store.add_incident(make_incident("DB slow", severity=Severity.HIGH))

        await aggregator.recompute_all(GAME_ID)

        [event] = await store.list_events(GAME_ID, "service_status_changed")
        assert event.severity == "warning"
        assert event.payload == {
            "serviceId": db.id,
            "serviceName": "Primary Database",
            "previousStatus": "operational",
            "newStatus": "degraded",
            "activeIncidents": 1,
            "cause": "incidents",
        }

    @pytest.mark.asyncio
    async def test_service_health_summary(self, store, aggregator):
        await store.add_service(make_service("Email Service", criticality=6))
        await store.add_service(make_service("Primary Database", "database", criticality=10))
        await store.add_incident(make_incident("Database down", severity=Severity.CRITICAL))
        await aggregator.recompute_all(GAME_ID)

        summary = await aggregator.get_service_health(GAME_ID)

        assert summary.total == 2
        assert summary.down == 1
        assert summary.operational == 1
        assert summary.services[0].name == "Primary Database"
        assert summary.services[0].active_incidents == 1
        assert summary.health_score == 38

    @pytest.mark.asyncio
    async def test_initialize_services_once(self, store, aggregator):
        assert await aggregator.initialize_services_for_game(GAME_ID) == 8
        assert await aggregator.initialize_services_for_game(GAME_ID) == 0
        assert len(await store.list_services(GAME_ID)) == 8

    @pytest.mark.asyncio
    async def test_initialize_scenario_services(self, store, aggregator):
        created = await aggregator.initialize_services_for_game(GAME_ID, "healthcare")

        names = {s.name for s in await store.list_services(GAME_ID)}
        assert created == 12
        assert "Patient Records System" in names
