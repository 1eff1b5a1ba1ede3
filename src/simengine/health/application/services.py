"""
Health Application Services
===========================

Derives service statuses from open incidents and writes the changes.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from simengine.config import ServiceStatus, EventType, EventSeverity
from simengine.core import NotFoundError
from simengine.health.domain import (
    StatusDeriver, StatusChange, HealthSummary,
    matching_incidents, services_for_scenario,
)
from simengine.shared.application import IEngineStore, IEngineConfigProvider
from simengine.shared.domain import Service, new_id
from simengine.shared.infrastructure.logging import get_logger
from simengine.topology.domain import DependencyIndex, worse_status

logger = get_logger(__name__)


_EVENT_SEVERITY = {
    ServiceStatus.DOWN: EventSeverity.CRITICAL,
    ServiceStatus.DEGRADED: EventSeverity.WARNING,
    ServiceStatus.OPERATIONAL: EventSeverity.INFO,
}


@dataclass
class _Target:
    status: str
    active_incidents: int
    cause: str


class ServiceHealthAggregator:
    """
    Recomputes service statuses for a game.

    The written status is the worse of what the service's own incidents
    imply and the floor forced by any upstream service those incidents
    degrade or take down, by edge type as in ``CascadePropagator``.
    Cascaded failures therefore persist while their source is failing and
    clear once its incidents are resolved.
    """

    def __init__(self, store: IEngineStore, config_provider: IEngineConfigProvider):
        self._store = store
        self._config_provider = config_provider

    async def _targets(self, store: IEngineStore, game_id: str, services: List[Service]) -> Dict[str, _Target]:
        config = self._config_provider.get_config()
        incidents = await store.list_open_incidents(game_id)

        targets: Dict[str, _Target] = {}
        for service in services:
            matched = matching_incidents(service, incidents, config.keyword_synonyms)
            targets[service.id] = _Target(
                status=StatusDeriver.from_incidents(matched),
                active_incidents=len(matched),
                cause="incidents",
            )

        failing = [sid for sid, t in targets.items() if t.status != ServiceStatus.OPERATIONAL]
        if not failing:
            return targets

        index = DependencyIndex(await store.list_dependencies(game_id))
        by_id = {s.id: s for s in services}
        for source_id in failing:
            for impact in index.cascade_from(source_id, by_id, config.max_graph_depth):
                target = targets[impact.service_id]
                floored = worse_status(target.status, impact.impacted_status)
                if floored != target.status:
                    target.status = floored
                    target.cause = "cascade"

        return targets

    async def _write(self, store: IEngineStore, service: Service, target: _Target) -> Optional[StatusChange]:
        if service.status == target.status:
            return None

        await store.update_service_status(service.id, target.status)
        await store.append_event(
            service.game_id,
            EventType.SERVICE_STATUS_CHANGED,
            _EVENT_SEVERITY[target.status],
            {
                "serviceId": service.id,
                "serviceName": service.name,
                "previousStatus": service.status,
                "newStatus": target.status,
                "activeIncidents": target.active_incidents,
                "cause": target.cause,
            }
        )
        logger.info(
            "Service status changed",
            extra={
                "game_id": service.game_id,
                "service_id": service.id,
                "service_name": service.name,
                "previous_status": service.status,
                "new_status": target.status,
                "cause": target.cause,
            }
        )
        return StatusChange(
            service_id=service.id,
            service_name=service.name,
            previous_status=service.status,
            new_status=target.status,
            active_incidents=target.active_incidents,
            cause=target.cause,
        )

    async def recompute(self, service_id: str) -> str:
        """
        Re-derive one service's status.

        Returns:
            The status after the recompute
        """
        async with self._store.transaction() as store:
            service = await store.get_service(service_id)
            if service is None:
                raise NotFoundError("Service", service_id)

            services = await store.list_services(service.game_id)
            targets = await self._targets(store, service.game_id, services)
            target = targets[service.id]
            await self._write(store, service, target)
            return target.status

    async def recompute_all(self, game_id: str) -> List[StatusChange]:
        """Re-derive every service of a game in one transaction."""
        async with self._store.transaction() as store:
            services = await store.list_services(game_id)
            targets = await self._targets(store, game_id, services)

            changes = []
            for service in services:
                change = await self._write(store, service, targets[service.id])
                if change is not None:
                    changes.append(change)

        return changes

    async def get_service_health(self, game_id: str) -> HealthSummary:
        """Current statuses, per-service incident counts and the health score."""
        synonyms = self._config_provider.get_config().keyword_synonyms
        services = await self._store.list_services(game_id)
        incidents = await self._store.list_open_incidents(game_id)

        counts = {
            s.id: len(matching_incidents(s, incidents, synonyms))
            for s in services
        }
        return HealthSummary.build(game_id, services, counts)

    async def initialize_services_for_game(self, game_id: str, scenario_type: str = "general_itsm") -> int:
        """
        Seed the default catalogue for a game.

        Does nothing if the game already has services.

        Returns:
            Number of services created
        """
        async with self._store.transaction() as store:
            if await store.list_services(game_id):
                logger.info(
                    "Services already exist, skipping initialization",
                    extra={"game_id": game_id}
                )
                return 0

            entries = services_for_scenario(scenario_type)
            for entry in entries:
                await store.add_service(Service(
                    id=new_id(),
                    game_id=game_id,
                    name=entry.name,
                    type=entry.type,
                    criticality=entry.criticality,
                    description=entry.description,
                ))

        logger.info(
            "Initialized services",
            extra={"game_id": game_id, "scenario_type": scenario_type, "services_created": len(entries)}
        )
        return len(entries)
