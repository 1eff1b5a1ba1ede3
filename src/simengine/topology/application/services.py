"""
Topology Application Services
=============================

Dependency graph maintenance and failure cascade.

Both services take the record store and config provider by constructor
injection and keep no state between calls.
"""

from typing import Dict, List, Optional

from simengine.config import (
    DependencyType, ServiceStatus, EventType, EventSeverity,
    VALID_DEPENDENCY_TYPES,
)
from simengine.core import CapacityOrStateError, CycleError, NotFoundError, ValidationException
from simengine.shared.application import IEngineStore, IEngineConfigProvider
from simengine.shared.domain import Service, ServiceDependency, new_id
from simengine.shared.infrastructure.logging import get_logger
from simengine.topology.domain import (
    DependencyIndex, DependencyImpact, DependencyGraph, ServiceNode, is_worse,
)

logger = get_logger(__name__)


# (dependent type, dependency type, edge type, delay minutes)
DEFAULT_DEPENDENCY_LAYOUT = [
    ("application", "database", DependencyType.HARD, 0),
    ("application", "network", DependencyType.HARD, 0),
    ("database", "storage", DependencyType.HARD, 0),
    ("application", "security", DependencyType.SOFT, 5),
]


class DependencyGraphService:
    """
    Service for the directed dependency graph between a game's services.

    The graph is kept acyclic: every insert locks the game's graph, then
    checks the transitive closure of the target before writing.
    """

    def __init__(self, store: IEngineStore, config_provider: IEngineConfigProvider):
        self._store = store
        self._config_provider = config_provider

    async def _index(self, game_id: str) -> DependencyIndex:
        return DependencyIndex(await self._store.list_dependencies(game_id))

    async def _require_service(self, service_id: str, game_id: Optional[str] = None) -> Service:
        service = await self._store.get_service(service_id)
        if service is None or (game_id is not None and service.game_id != game_id):
            raise NotFoundError("Service", service_id)
        return service

    async def add_dependency(
        self,
        game_id: str,
        service_id: str,
        depends_on_service_id: str,
        dependency_type: str = DependencyType.HARD,
        impact_delay_minutes: int = 0
    ) -> ServiceDependency:
        """
        Add (or update) the edge ``service_id -> depends_on_service_id``.

        Raises:
            CycleError: the edge would close a cycle; nothing is written
            NotFoundError: either service is missing from the game
            CapacityOrStateError: the edge would exceed the depth limit
            ValidationException: unknown dependency type or negative delay
        """
        if dependency_type not in VALID_DEPENDENCY_TYPES:
            raise ValidationException(
                f"dependency_type must be one of {VALID_DEPENDENCY_TYPES}",
                {"dependency_type": dependency_type}
            )
        if impact_delay_minutes < 0:
            raise ValidationException("impact_delay_minutes cannot be negative")

        config = self._config_provider.get_config()

        async with self._store.transaction() as store:
            await store.lock_game_graph(game_id)
            await self._require_service(service_id, game_id)
            await self._require_service(depends_on_service_id, game_id)

            edges = await store.list_dependencies(game_id)
            index = DependencyIndex(edges)

            if index.would_create_cycle(service_id, depends_on_service_id):
                logger.warning(
                    "Rejected circular dependency",
                    extra={
                        "game_id": game_id,
                        "service_id": service_id,
                        "depends_on_service_id": depends_on_service_id,
                    }
                )
                raise CycleError(service_id, depends_on_service_id)

            exists = any(
                e.service_id == service_id and e.depends_on_service_id == depends_on_service_id
                for e in edges
            )
            if not exists:
                index.check_depth(service_id, depends_on_service_id, config.max_graph_depth)

            dependency = await store.upsert_dependency(ServiceDependency(
                id=new_id(),
                game_id=game_id,
                service_id=service_id,
                depends_on_service_id=depends_on_service_id,
                dependency_type=dependency_type,
                impact_delay_minutes=impact_delay_minutes,
            ))

        logger.info(
            "Dependency saved",
            extra={
                "game_id": game_id,
                "dependency_id": dependency.id,
                "dependency_type": dependency_type,
                "updated": exists,
            }
        )
        return dependency

    async def remove_dependency(self, dependency_id: str) -> None:
        """Delete an edge. Raises NotFoundError if it does not exist."""
        removed = await self._store.delete_dependency(dependency_id)
        if not removed:
            raise NotFoundError("Dependency", dependency_id)
        logger.info("Dependency removed", extra={"dependency_id": dependency_id})

    async def get_dependencies(self, game_id: str) -> List[ServiceDependency]:
        return await self._store.list_dependencies(game_id)

    async def get_dependency_graph(self, game_id: str) -> DependencyGraph:
        """Services with their immediate neighbours, plus the raw edges."""
        services = await self._store.list_services(game_id)
        edges = await self._store.list_dependencies(game_id)
        index = DependencyIndex(edges)

        nodes = [
            ServiceNode(
                id=s.id,
                name=s.name,
                type=s.type,
                status=s.status,
                criticality=s.criticality,
                depends_on=index.depends_on(s.id),
                depended_on_by=index.depended_on_by(s.id),
            )
            for s in services
        ]
        return DependencyGraph(game_id=game_id, services=nodes, dependencies=edges)

    async def _closure(self, service_id: str, upstream: bool) -> List[Service]:
        service = await self._require_service(service_id)
        index = await self._index(service.game_id)
        depth = self._config_provider.get_config().max_graph_depth

        ids = (
            index.ancestors_of(service_id, depth) if upstream
            else index.descendants_of(service_id, depth)
        )
        by_id = {s.id: s for s in await self._store.list_services(service.game_id)}
        return [by_id[i] for i in ids if i in by_id]

    async def ancestors_of(self, service_id: str) -> List[Service]:
        """Every service ``service_id`` transitively depends on."""
        return await self._closure(service_id, upstream=True)

    async def descendants_of(self, service_id: str) -> List[Service]:
        """Every service that transitively depends on ``service_id``."""
        return await self._closure(service_id, upstream=False)

    async def initialize_default_dependencies(self, game_id: str) -> int:
        """
        Wire the standard layout between a game's services by type.

        Applications depend hard on databases and networks, databases on
        storage, and applications softly on security. Edges the graph
        refuses are skipped.

        Returns:
            Number of edges written
        """
        by_type: Dict[str, List[Service]] = {}
        for service in await self._store.list_services(game_id):
            by_type.setdefault(service.type, []).append(service)

        created = 0
        for dependent_type, dependency_type_name, edge_type, delay in DEFAULT_DEPENDENCY_LAYOUT:
            for dependent in by_type.get(dependent_type, []):
                for dependency in by_type.get(dependency_type_name, []):
                    try:
                        await self.add_dependency(
                            game_id, dependent.id, dependency.id, edge_type, delay
                        )
                    except (CycleError, CapacityOrStateError) as e:
                        logger.info(
                            "Skipped default dependency",
                            extra={"game_id": game_id, "reason": e.message}
                        )
                        continue
                    created += 1

        logger.info(
            "Initialized default dependencies",
            extra={"game_id": game_id, "dependencies_created": created}
        )
        return created


class CascadePropagator:
    """
    Spreads a service failure to everything that depends on it.

    Hard edges force dependents down, soft edges force them degraded.
    Statuses only ever get worse here; recovery is the aggregator's job.
    """

    def __init__(self, store: IEngineStore, config_provider: IEngineConfigProvider):
        self._store = store
        self._config_provider = config_provider

    async def _impacts(self, store: IEngineStore, service_id: str) -> List[DependencyImpact]:
        service = await store.get_service(service_id)
        if service is None:
            raise NotFoundError("Service", service_id)

        edges = await store.list_dependencies(service.game_id)
        services = {s.id: s for s in await store.list_services(service.game_id)}
        depth = self._config_provider.get_config().max_graph_depth

        return DependencyIndex(edges).cascade_from(service_id, services, depth)

    async def impact_of(self, service_id: str) -> List[DependencyImpact]:
        """Read-only: which dependents a failure of ``service_id`` reaches."""
        return await self._impacts(self._store, service_id)

    async def apply(self, service_id: str) -> List[DependencyImpact]:
        """
        Write the impacted statuses in one transaction.

        A dependent is only updated when the impacted status is strictly
        worse than its current one, so repeated calls change nothing.

        Returns:
            All computed impacts, applied or not
        """
        async with self._store.transaction() as store:
            impacts = await self._impacts(store, service_id)
            source = await store.get_service(service_id)
            changed = 0

            for impact in impacts:
                current = await store.get_service(impact.service_id)
                if current is None or not is_worse(impact.impacted_status, current.status):
                    continue

                await store.update_service_status(impact.service_id, impact.impacted_status)
                await store.append_event(
                    current.game_id,
                    EventType.SERVICE_STATUS_CHANGED,
                    EventSeverity.CRITICAL if impact.impacted_status == ServiceStatus.DOWN
                    else EventSeverity.WARNING,
                    {
                        "serviceId": impact.service_id,
                        "serviceName": impact.service_name,
                        "previousStatus": current.status,
                        "newStatus": impact.impacted_status,
                        "cause": "cascade",
                        "sourceServiceId": service_id,
                        "sourceServiceName": source.name,
                        "impactType": impact.impact_type,
                        "depth": impact.depth,
                    }
                )
                changed += 1

        if changed:
            logger.info(
                "Cascade applied",
                extra={
                    "service_id": service_id,
                    "impacted": len(impacts),
                    "changed": changed,
                }
            )
        return impacts
