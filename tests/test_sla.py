"""Tests for SLA breach processing and SLA dashboards."""

import asyncio
from datetime import timedelta

import pytest

from simengine.config import IncidentStatus, Priority
from simengine.shared.application import StaticConfigProvider
from simengine.shared.domain import EngineConfig
from simengine.sla.application import SLAMonitor
from simengine.sla.domain import SLAWindow, escalate_priority

from conftest import GAME_ID, NOW, make_incident, make_team


@pytest.fixture
def monitor(store, config_provider):
    return SLAMonitor(store, config_provider)


class TestEscalatePriority:

    @pytest.mark.parametrize("before,after", [
        ("low", "medium"),
        ("medium", "high"),
        ("high", "critical"),
        ("critical", "critical"),
    ])
    def test_one_step_up(self, before, after):
        assert escalate_priority(before) == after


class TestSLAWindow:

    def test_boundaries(self):
        window = SLAWindow(NOW, 15)

        assert window.has_passed(NOW)
        assert not window.is_at_risk(NOW)
        assert window.is_at_risk(NOW + timedelta(minutes=15))
        assert window.is_comfortable(NOW + timedelta(minutes=16))
        assert not window.has_passed(None)


class TestBreachProcessing:

    @pytest.mark.asyncio
    async def test_breach_bumps_priority_and_morale(self, store, monitor):
        team = await store.add_team(make_team("Blue Team"))
        incident = await store.add_incident(make_incident(
            "Checkout failing", priority=Priority.HIGH, sla_in_minutes=-5,
            assigned_team_id=team.id,
        ))

        result = await monitor.check_and_process_breaches(GAME_ID, NOW)

        assert result.breached_count == 1
        assert result.escalated_count == 1
        assert result.breaches[0].team_name == "Blue Team"
        updated = await store.get_incident(incident.id)
        assert updated.sla_breached
        assert updated.priority == Priority.CRITICAL
        assert (await store.get_team(team.id)).morale_level == 95

    @pytest.mark.asyncio
    async def test_breach_is_applied_exactly_once(self, store, monitor):
        incident = await store.add_incident(make_incident(
            "Checkout failing", priority=Priority.LOW, sla_in_minutes=-1
        ))

        first = await monitor.check_and_process_breaches(GAME_ID, NOW)
        second = await monitor.check_and_process_breaches(GAME_ID, NOW)

        assert first.breached_count == 1
        assert second.breached_count == 0
        assert (await store.get_incident(incident.id)).priority == Priority.MEDIUM
        assert len(await store.list_events(GAME_ID, "sla_breached")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_passes_do_not_double_breach(self, store, monitor):
        incident = await store.add_incident(make_incident(
            "Checkout failing", priority=Priority.MEDIUM, sla_in_minutes=-1
        ))

        results = await asyncio.gather(
            monitor.check_and_process_breaches(GAME_ID, NOW),
            monitor.check_and_process_breaches(GAME_ID, NOW),
        )

        assert sum(r.breached_count for r in results) == 1
        assert (await store.get_incident(incident.id)).priority == Priority.HIGH

    @pytest.mark.asyncio
    async def test_critical_is_absorbing(self, store, monitor):
        team = await store.add_team(make_team("Red Team"))
        incident = await store.add_incident(make_incident(
            "Core down", priority=Priority.CRITICAL, sla_in_minutes=-1,
            assigned_team_id=team.id,
        ))

        result = await monitor.check_and_process_breaches(GAME_ID, NOW)

        assert result.breached_count == 1
        assert result.escalated_count == 0
        assert (await store.get_incident(incident.id)).priority == Priority.CRITICAL
        assert (await store.get_team(team.id)).morale_level == 100
        assert await store.list_events(GAME_ID, "incident_escalated") == []

    @pytest.mark.asyncio
    async def test_future_and_closed_incidents_are_skipped(self, store, monitor):
        await store.add_incident(make_incident("Not yet", sla_in_minutes=10))
        await store.add_incident(make_incident(
            "Done", sla_in_minutes=-10, status=IncidentStatus.CLOSED
        ))
        await store.add_incident(make_incident("No deadline"))

        result = await monitor.check_and_process_breaches(GAME_ID, NOW)

        assert result.breached_count == 0

    @pytest.mark.asyncio
    async def test_breach_events(self, store, monitor):
        incident = await store.add_incident(make_incident(
            "Checkout failing", priority=Priority.HIGH, sla_in_minutes=-5
        ))

        await monitor.check_and_process_breaches(GAME_ID, NOW)

        [breach] = await store.list_events(GAME_ID, "sla_breached")
        [escalated] = await store.list_events(GAME_ID, "incident_escalated")
        assert breach.severity == "critical"
        assert breach.category == "incident"
        assert breach.payload["incidentId"] == incident.id
        assert breach.payload["previousPriority"] == "high"
        assert breach.payload["newPriority"] == "critical"
        assert breach.payload["teamName"] is None
        assert escalated.payload["reason"] == "SLA breach auto-escalation"

    @pytest.mark.asyncio
    async def test_morale_penalty_is_configurable(self, store):
        monitor = SLAMonitor(store, StaticConfigProvider(EngineConfig(sla_morale_penalty=30)))
        team = await store.add_team(make_team("Blue Team", morale_level=20))
        await store.add_incident(make_incident(
            "Checkout failing", priority=Priority.LOW, sla_in_minutes=-5,
            assigned_team_id=team.id,
        ))

        await monitor.check_and_process_breaches(GAME_ID, NOW)

        assert (await store.get_team(team.id)).morale_level == 0


class TestSLAStatus:

    @pytest.mark.asyncio
    async def test_status_buckets(self, store, monitor):
        await store.add_incident(make_incident("Comfortable", sla_in_minutes=120))
        await store.add_incident(make_incident("Close", sla_in_minutes=10))
        await store.add_incident(make_incident("Late", sla_in_minutes=-10))
        await store.add_incident(make_incident("Flagged", sla_in_minutes=-30, sla_breached=True))

        status = await monitor.get_sla_status(GAME_ID, NOW)

        assert status.total == 4
        assert status.within_sla == 1
        assert status.at_risk == 1
        assert status.breached == 2

    @pytest.mark.asyncio
    async def test_at_risk_sorted_by_deadline(self, store, monitor):
        team = await store.add_team(make_team("Blue Team"))
        await store.add_incident(make_incident("Later", sla_in_minutes=12, assigned_team_id=team.id))
        await store.add_incident(make_incident("Sooner", sla_in_minutes=3))
        await store.add_incident(make_incident("Far", sla_in_minutes=60))
        await store.add_incident(make_incident("Late", sla_in_minutes=-1))

        at_risk = await monitor.get_at_risk_incidents(GAME_ID, now=NOW)

        assert [i.title for i in at_risk] == ["Sooner", "Later"]
        assert at_risk[0].minutes_remaining == 3
        assert at_risk[1].team_name == "Blue Team"

    @pytest.mark.asyncio
    async def test_at_risk_custom_window(self, store, monitor):
        await store.add_incident(make_incident("Far", sla_in_minutes=60))

        at_risk = await monitor.get_at_risk_incidents(GAME_ID, within_minutes=90, now=NOW)

        assert [i.title for i in at_risk] == ["Far"]
