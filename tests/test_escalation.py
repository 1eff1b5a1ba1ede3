"""Tests for the escalation rule engine."""

from datetime import timedelta

import pytest

from simengine.config import IncidentStatus, Priority
from simengine.core import CapacityOrStateError, NotFoundError, ValidationException
from simengine.escalation.application import EscalationRuleEngine
from simengine.escalation.domain import select_next_rule
from simengine.shared.domain import EscalationRule, new_id

from conftest import GAME_ID, NOW, make_incident, make_team


def make_rule(priority: str, minutes: int, level: int, **kwargs) -> EscalationRule:
    return EscalationRule(
        id=new_id(), game_id=GAME_ID, name=f"{priority} {minutes}m L{level}",
        priority_trigger=priority, time_threshold_minutes=minutes,
        escalation_level=level, **kwargs
    )


@pytest.fixture
def engine(store, config_provider):
    return EscalationRuleEngine(store, config_provider)


class TestSelectNextRule:

    def test_lowest_pending_level_fires_first(self):
        r1 = make_rule(Priority.HIGH, 30, 1)
        r2 = make_rule(Priority.HIGH, 60, 2)

        assert select_next_rule([r2, r1], Priority.HIGH, 0, 45) is r1
        assert select_next_rule([r2, r1], Priority.HIGH, 1, 45) is None
        assert select_next_rule([r2, r1], Priority.HIGH, 1, 60) is r2

    def test_other_priorities_are_ignored(self):
        rule = make_rule(Priority.CRITICAL, 0, 1)

        assert select_next_rule([rule], Priority.LOW, 0, 500) is None


class TestCheckEscalations:

    @pytest.mark.asyncio
    async def test_forty_five_minutes_fires_thirty_minute_rule(self, store, engine):
        r1 = await store.create_escalation_rule(make_rule(Priority.HIGH, 30, 1))
        await store.create_escalation_rule(make_rule(Priority.HIGH, 60, 2))
        await store.add_incident(make_incident("Login broken", priority=Priority.HIGH, minutes_ago=45))

        [check] = await engine.check_escalations(GAME_ID, NOW)

        assert check.should_escalate
        assert check.rule.id == r1.id
        assert check.next_level == 1
        assert check.minutes_open == 45

    @pytest.mark.asyncio
    async def test_check_is_read_only_and_urgent_first(self, store, engine):
        await engine.initialize_default_rules(GAME_ID)
        high = await store.add_incident(make_incident("Slow", priority=Priority.HIGH, minutes_ago=90))
        critical = await store.add_incident(make_incident("Down", priority=Priority.CRITICAL, minutes_ago=5))

        checks = await engine.check_escalations(GAME_ID, NOW)

        assert [c.incident_id for c in checks] == [critical.id, high.id]
        assert not checks[0].should_escalate
        assert checks[1].should_escalate
        assert (await store.get_incident(high.id)).current_escalation_level == 0


class TestEscalateIncident:

    @pytest.mark.asyncio
    async def test_auto_escalation_one_level_per_pass(self, store, engine):
        team = await store.add_team(make_team("Blue Team", score=500))
        await store.create_escalation_rule(make_rule(Priority.HIGH, 30, 1))
        await store.create_escalation_rule(make_rule(Priority.HIGH, 60, 2))
        incident = await store.add_incident(make_incident(
            "Login broken", priority=Priority.HIGH, minutes_ago=45, assigned_team_id=team.id
        ))

        assert await engine.process_auto_escalations(GAME_ID, NOW) == 1
        assert await engine.process_auto_escalations(GAME_ID, NOW) == 0
        assert await engine.process_auto_escalations(GAME_ID, NOW + timedelta(minutes=16)) == 1

        updated = await store.get_incident(incident.id)
        history = await engine.get_incident_escalations(incident.id)
        assert updated.current_escalation_level == 2
        assert updated.escalation_count == 2
        assert len(history) == updated.current_escalation_level
        assert [e.escalation_level for e in history] == [2, 1]
        # 25 for level 1, then 50 for level 2
        assert (await store.get_team(team.id)).score == 425
        assert history[1].reason.startswith("Automatic escalation:")
        assert history[1].reason.endswith("45 minutes without resolution")

    @pytest.mark.asyncio
    async def test_manual_escalation_bypasses_thresholds(self, store, engine):
        incident = await store.add_incident(make_incident("Fresh", priority=Priority.LOW))

        escalation = await engine.escalate_incident(incident.id, reason="Instructor call", escalated_by="instructor")

        assert escalation.escalation_level == 1
        assert escalation.escalated_by == "instructor"
        assert (await store.get_incident(incident.id)).current_escalation_level == 1

    @pytest.mark.asyncio
    async def test_escalation_events(self, store, engine):
        team = await store.add_team(make_team("Blue Team"))
        incident = await store.add_incident(make_incident("Fresh", assigned_team_id=team.id))

        escalation = await engine.escalate_incident(incident.id, reason="Manual")

        [escalated] = await store.list_events(GAME_ID, "incident_escalated")
        [raised] = await store.list_events(GAME_ID, "escalation_level_raised")
        assert escalated.severity == "warning"
        assert escalated.payload["escalationLevel"] == 1
        assert escalated.payload["fromTeamId"] == team.id
        assert escalated.payload["penalty"] == 25
        assert "reassignment_unresolved" not in escalated.payload
        assert raised.payload["escalationId"] == escalation.id

    @pytest.mark.asyncio
    async def test_explicit_team_takes_over(self, store, engine):
        blue = await store.add_team(make_team("Blue Team"))
        red = await store.add_team(make_team("Red Team"))
        incident = await store.add_incident(make_incident("Fresh", assigned_team_id=blue.id))

        escalation = await engine.escalate_incident(incident.id, reason="Hand-off", to_team_id=red.id)

        assert escalation.from_team_id == blue.id
        assert escalation.to_team_id == red.id
        assert (await store.get_incident(incident.id)).assigned_team_id == red.id

    @pytest.mark.asyncio
    async def test_rule_reassigns_by_role(self, store, engine):
        blue = await store.add_team(make_team("Blue Team", role="Tier1"))
        senior = await store.add_team(make_team("Senior Team", role="Tier2 Support"))
        rule = await store.create_escalation_rule(make_rule(
            Priority.MEDIUM, 0, 1, auto_reassign=True, target_team_role="tier2"
        ))
        incident = await store.add_incident(make_incident("Fresh", assigned_team_id=blue.id))

        await engine.escalate_incident(incident.id, rule.id, "Rule")

        assert (await store.get_incident(incident.id)).assigned_team_id == senior.id

    @pytest.mark.asyncio
    async def test_unresolved_role_keeps_team(self, store, engine):
        blue = await store.add_team(make_team("Blue Team", role="Tier1"))
        rule = await store.create_escalation_rule(make_rule(
            Priority.MEDIUM, 0, 1, auto_reassign=True, target_team_role="director"
        ))
        incident = await store.add_incident(make_incident("Fresh", assigned_team_id=blue.id))

        escalation = await engine.escalate_incident(incident.id, rule.id, "Rule")

        [event] = await store.list_events(GAME_ID, "incident_escalated")
        assert escalation.to_team_id is None
        assert event.payload["reassignment_unresolved"] is True
        assert (await store.get_incident(incident.id)).assigned_team_id == blue.id

    @pytest.mark.asyncio
    async def test_missing_references(self, store, engine):
        incident = await store.add_incident(make_incident("Fresh"))

        with pytest.raises(NotFoundError):
            await engine.escalate_incident("missing", reason="x")
        with pytest.raises(NotFoundError):
            await engine.escalate_incident(incident.id, "missing-rule", "x")
        with pytest.raises(NotFoundError):
            await engine.escalate_incident(incident.id, reason="x", to_team_id="missing-team")
        assert await engine.get_incident_escalations(incident.id) == []

    @pytest.mark.asyncio
    async def test_closed_incident_cannot_escalate(self, store, engine):
        incident = await store.add_incident(make_incident("Done", status=IncidentStatus.RESOLVED))

        with pytest.raises(CapacityOrStateError):
            await engine.escalate_incident(incident.id, reason="Too late")

    @pytest.mark.asyncio
    async def test_stale_expected_level_is_refused(self, store, engine):
        incident = await store.add_incident(make_incident("Fresh"))
        await engine.escalate_incident(incident.id, reason="First")

        with pytest.raises(CapacityOrStateError):
            await engine.escalate_incident(incident.id, reason="Second", expected_level=0)
        assert len(await engine.get_incident_escalations(incident.id)) == 1


class TestAcknowledge:

    @pytest.mark.asyncio
    async def test_acknowledge_once(self, store, engine):
        red = await store.add_team(make_team("Red Team"))
        incident = await store.add_incident(make_incident("Fresh"))
        escalation = await engine.escalate_incident(incident.id, reason="Hand-off", to_team_id=red.id)
        assert [e.id for e in await engine.get_unacknowledged_escalations(red.id)] == [escalation.id]

        acknowledged = await engine.acknowledge_escalation(escalation.id, NOW)

        assert acknowledged.acknowledged
        assert acknowledged.acknowledged_at == NOW
        assert await engine.get_unacknowledged_escalations(red.id) == []
        with pytest.raises(CapacityOrStateError):
            await engine.acknowledge_escalation(escalation.id)

    @pytest.mark.asyncio
    async def test_acknowledge_unknown(self, engine):
        with pytest.raises(NotFoundError):
            await engine.acknowledge_escalation("missing")


class TestRules:

    @pytest.mark.asyncio
    async def test_default_rules_seeded_once(self, engine):
        assert await engine.initialize_default_rules(GAME_ID) == 5
        assert await engine.initialize_default_rules(GAME_ID) == 0
        rules = await engine.get_escalation_rules(GAME_ID)
        assert {(r.priority_trigger, r.escalation_level) for r in rules} == {
            ("critical", 1), ("critical", 2), ("high", 1), ("high", 2), ("medium", 1),
        }

    @pytest.mark.asyncio
    async def test_create_rule(self, engine):
        rule = await engine.create_escalation_rule(
            GAME_ID, "Low after a day", Priority.LOW, 1440, notify_roles=["lead"]
        )

        assert rule.escalation_level == 1
        assert [r.id for r in await engine.get_escalation_rules(GAME_ID)] == [rule.id]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [
        {"priority_trigger": "urgent"},
        {"time_threshold_minutes": -1},
        {"escalation_level": 0},
        {"auto_reassign": True},
    ])
    async def test_create_rule_validation(self, engine, kwargs):
        params = {
            "priority_trigger": Priority.HIGH,
            "time_threshold_minutes": 30,
            "escalation_level": 1,
        }
        params.update(kwargs)

        with pytest.raises(ValidationException):
            await engine.create_escalation_rule(GAME_ID, "Bad rule", **params)
