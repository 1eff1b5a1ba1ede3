"""Tests for engine config loading, the circuit breaker and the scheduler guard."""

import asyncio

import pytest

from simengine.core import ConfigurationException
from simengine.shared.domain import GameEvent, new_id
from simengine.sla.infrastructure import (
    CircuitBreaker, CircuitState, EngineConfigManager, EngineScheduler, SlackMessage,
)


class TestEngineConfigManager:

    def test_missing_file_uses_defaults(self, tmp_path):
        manager = EngineConfigManager()

        config = manager.load(tmp_path / "absent.yaml")

        assert config.escalation_penalty_per_level == 25
        assert config.keyword_synonyms["database"] == ["db", "database"]

    def test_load_and_reload(self, tmp_path):
        path = tmp_path / "engine_config.yaml"
        path.write_text("sla_morale_penalty: 7\nkeyword_synonyms:\n  Storage: [SAN, Disk]\n")
        manager = EngineConfigManager()
        manager.load(path)

        assert manager.config.sla_morale_penalty == 7
        assert manager.config.keyword_synonyms == {"storage": ["san", "disk"]}

        path.write_text("sla_morale_penalty: 9\n")
        assert manager.reload()
        assert manager.get_config().sla_morale_penalty == 9

    def test_bad_reload_keeps_previous_config(self, tmp_path):
        path = tmp_path / "engine_config.yaml"
        path.write_text("max_graph_depth: 4\n")
        manager = EngineConfigManager()
        manager.load(path)

        path.write_text("max_graph_depth: 0\n")

        assert not manager.reload()
        assert manager.config.max_graph_depth == 4

    def test_invalid_initial_file_raises(self, tmp_path):
        path = tmp_path / "engine_config.yaml"
        path.write_text("max_graph_depth: [unclosed\n")

        with pytest.raises(ConfigurationException):
            EngineConfigManager().load(path)

    def test_unloaded_manager_raises(self):
        with pytest.raises(RuntimeError):
            EngineConfigManager().get_config()


class TestCircuitBreaker:

    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)

        breaker.record_failure()
        assert breaker.allow_request()
        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow_request()

    def test_half_open_after_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()

        assert breaker.state == CircuitState.HALF_OPEN
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED


class TestSlackMessage:

    def test_fields_follow_payload(self):
        event = GameEvent(
            id=new_id(), game_id="game-1", event_type="sla_breached", severity="critical",
            payload={"incidentNumber": "INC-7", "newPriority": "critical", "teamName": None},
        )

        message = SlackMessage.from_event(event)

        assert message.fields == [("Incident", "INC-7"), ("New Priority", "critical")]


class TestEngineScheduler:

    @pytest.mark.asyncio
    async def test_overrunning_pass_is_cancelled(self):
        scheduler = EngineScheduler(interval_seconds=30, timeout_seconds=0.01)
        finished = []

        async def slow_pass():
            await asyncio.sleep(1)
            finished.append(True)

        await scheduler._guarded(slow_pass)()

        assert finished == []

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        scheduler = EngineScheduler(interval_seconds=30)

        async def noop():
            return None

        await scheduler.start(noop)
        assert scheduler.is_running
        await scheduler.stop()
        assert not scheduler.is_running
