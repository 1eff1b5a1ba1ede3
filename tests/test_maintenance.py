"""Tests for the maintenance cycle and the outbox dispatcher."""

import json

import httpx
import pytest

from simengine.config import Priority, Severity, ServiceStatus
from simengine.core import StoreError
from simengine.maintenance import MaintenanceCycle, OutboxDispatcher
from simengine.shared.application import StaticConfigProvider
from simengine.shared.domain import EngineConfig
from simengine.sla.infrastructure import SlackClient

from conftest import GAME_ID, NOW, make_incident, make_service, make_team


WEBHOOK = "https://hooks.slack.test/services/T000/B000/XXX"


def slack_with(handler) -> SlackClient:
    return SlackClient(
        webhook_url=WEBHOOK,
        channel="#sim",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestMaintenanceCycle:

    @pytest.mark.asyncio
    async def test_pass_runs_every_component(self, store, config_provider):
        team = await store.add_team(make_team("Blue Team"))
        db = await store.add_service(make_service("Primary Database", "database"))
        incident = await store.add_incident(make_incident(
            "Database down", priority=Priority.HIGH, severity=Severity.CRITICAL,
            minutes_ago=45, sla_in_minutes=-5, assigned_team_id=team.id,
        ))
        cycle = MaintenanceCycle(store, config_provider)
        await cycle._escalations.initialize_default_rules(GAME_ID)

        result = await cycle.run_all(NOW)

        [game] = result.games
        assert game.status_changes == 1
        assert game.sla_breaches == 1
        # Breach made it critical; the 15 minute critical rule fires
        assert game.escalations == 1
        assert (await store.get_service(db.id)).status == ServiceStatus.DOWN
        updated = await store.get_incident(incident.id)
        assert updated.priority == Priority.CRITICAL
        assert updated.current_escalation_level == 1

    @pytest.mark.asyncio
    async def test_failing_game_does_not_stop_others(self, store, config_provider, monkeypatch):
        await store.add_service(make_service("Primary Database", "database", game_id="game-a"))
        await store.add_service(make_service("Primary Database", "database", game_id="game-b"))
        cycle = MaintenanceCycle(store, config_provider)
        original = cycle._aggregator.recompute_all

        async def flaky(game_id):
            if game_id == "game-a":
                raise StoreError("connection reset")
            return await original(game_id)

        monkeypatch.setattr(cycle._aggregator, "recompute_all", flaky)

        result = await cycle.run_all(NOW)

        assert result.failed_games == ["game-a"]
        assert [g.game_id for g in result.games] == ["game-b"]
        assert result.summary()["games_failed"] == 1


class TestOutboxDispatcher:

    @pytest.mark.asyncio
    async def test_notifies_configured_types_only(self, store, config_provider):
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(json.loads(request.content))
            return httpx.Response(200)

        await store.append_event(GAME_ID, "sla_breached", "critical", {"incidentNumber": "INC-1"})
        await store.append_event(GAME_ID, "service_status_changed", "warning", {"serviceName": "CDN"})
        dispatcher = OutboxDispatcher(store, config_provider, slack_with(handler))

        assert await dispatcher.drain() == 1

        assert len(sent) == 1
        assert sent[0]["channel"] == "#sim"
        assert sent[0]["blocks"][0]["text"]["text"] == "🚨 SLA Breach"
        assert await store.list_undispatched_events() == []

    @pytest.mark.asyncio
    async def test_failed_send_stays_in_outbox(self, store, config_provider, monkeypatch):
        monkeypatch.setattr("simengine.sla.infrastructure.external.asyncio.sleep", _no_sleep)
        await store.append_event(GAME_ID, "incident_escalated", "warning", {"reason": "x"})
        dispatcher = OutboxDispatcher(
            store, config_provider, slack_with(lambda request: httpx.Response(500))
        )

        assert await dispatcher.drain() == 0
        assert len(await store.list_undispatched_events()) == 1

    @pytest.mark.asyncio
    async def test_unconfigured_slack_clears_outbox(self, store):
        config = StaticConfigProvider(EngineConfig())
        await store.append_event(GAME_ID, "sla_breached", "critical", {})
        dispatcher = OutboxDispatcher(store, config, SlackClient(webhook_url=""))

        assert await dispatcher.drain() == 0
        assert await store.list_undispatched_events() == []

    @pytest.mark.asyncio
    async def test_batch_size_limits_drain(self, store, config_provider):
        for _ in range(3):
            await store.append_event(GAME_ID, "service_status_changed", "info", {})
        dispatcher = OutboxDispatcher(store, config_provider, SlackClient(webhook_url=""), batch_size=2)

        await dispatcher.drain()

        assert len(await store.list_undispatched_events()) == 1


async def _no_sleep(seconds):
    return None
