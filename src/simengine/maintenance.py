"""
Maintenance Cycle
=================

The periodic pass that keeps a running game consistent.

For each game, in order:
1. Recompute service health (incidents plus cascade floor)
2. Process SLA breaches
3. Run automatic escalations

Then the event outbox is drained to Slack.

Usage:
    cycle = MaintenanceCycle(store, config_provider)
    await cycle.run_all()
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from simengine.escalation.application import EscalationRuleEngine
from simengine.health.application import ServiceHealthAggregator
from simengine.shared.application import IEngineStore, IEngineConfigProvider
from simengine.shared.domain import utcnow
from simengine.shared.infrastructure.logging import get_logger, log_latency
from simengine.sla.application import SLAMonitor
from simengine.sla.infrastructure import SlackClient

logger = get_logger(__name__)


@dataclass
class GamePassResult:
    """What one pass changed in one game."""
    game_id: str
    status_changes: int = 0
    sla_breaches: int = 0
    escalations: int = 0


@dataclass
class CycleResult:
    games: List[GamePassResult] = field(default_factory=list)
    failed_games: List[str] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        return {
            "games_processed": len(self.games),
            "games_failed": len(self.failed_games),
            "status_changes": sum(g.status_changes for g in self.games),
            "sla_breaches": sum(g.sla_breaches for g in self.games),
            "escalations": sum(g.escalations for g in self.games),
        }


class MaintenanceCycle:
    """Runs every engine component over every game."""

    def __init__(self, store: IEngineStore, config_provider: IEngineConfigProvider):
        self._store = store
        self._aggregator = ServiceHealthAggregator(store, config_provider)
        self._sla_monitor = SLAMonitor(store, config_provider)
        self._escalations = EscalationRuleEngine(store, config_provider)

    async def run_game(self, game_id: str, now: Optional[datetime] = None) -> GamePassResult:
        """One pass over a single game. Errors propagate."""
        current_time = now or utcnow()

        with log_latency(logger, "maintenance_pass", game_id=game_id):
            changes = await self._aggregator.recompute_all(game_id)
            sla = await self._sla_monitor.check_and_process_breaches(game_id, current_time)
            escalated = await self._escalations.process_auto_escalations(game_id, current_time)

        return GamePassResult(
            game_id=game_id,
            status_changes=len(changes),
            sla_breaches=sla.breached_count,
            escalations=escalated,
        )

    async def run_all(self, now: Optional[datetime] = None) -> CycleResult:
        """
        One pass over every game.

        A game whose pass fails is logged and left for the next pass; the
        others still run.
        """
        result = CycleResult()

        for game_id in await self._store.list_game_ids():
            try:
                result.games.append(await self.run_game(game_id, now))
            except Exception:
                logger.exception(
                    "processing failed, will retry on next pass",
                    extra={"game_id": game_id}
                )
                result.failed_games.append(game_id)

        logger.info("Maintenance cycle complete", extra=result.summary())
        return result


class OutboxDispatcher:
    """
    Drains undispatched game events to Slack.

    Only event types listed in ``notify_event_types`` are sent; the rest
    are marked dispatched without a notification. An event whose send
    fails stays in the outbox for the next drain.
    """

    def __init__(
        self,
        store: IEngineStore,
        config_provider: IEngineConfigProvider,
        slack_client: SlackClient,
        batch_size: int = 50
    ):
        self._store = store
        self._config_provider = config_provider
        self._slack_client = slack_client
        self._batch_size = batch_size

    async def drain(self) -> int:
        """
        Dispatch one batch of outbox events.

        Returns:
            Number of notifications sent
        """
        events = await self._store.list_undispatched_events(self._batch_size)
        if not events:
            return 0

        notify = set(self._config_provider.get_config().notify_event_types)
        dispatched: List[str] = []
        sent = 0

        for event in events:
            if event.event_type not in notify or not self._slack_client.is_configured:
                dispatched.append(event.id)
                continue
            if await self._slack_client.send_event(event):
                dispatched.append(event.id)
                sent += 1

        if dispatched:
            await self._store.mark_events_dispatched(dispatched, utcnow())

        logger.info(
            "Outbox drained",
            extra={
                "events_read": len(events),
                "events_dispatched": len(dispatched),
                "notifications_sent": sent,
            }
        )
        return sent
