"""
Topology Domain Entities
========================

Read-side views over the service dependency graph.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from simengine.config import ServiceStatus, ImpactType, DependencyType, STATUS_ORDER
from simengine.shared.domain import Service, ServiceDependency


@dataclass(frozen=True)
class DependencyImpact:
    """
    A dependent service and the status a failure upstream forces on it.

    ``depth`` is the number of edges between the failing service and this
    one; depth 1 is a direct dependent.
    """
    service_id: str
    service_name: str
    impact_type: str
    impacted_status: str
    depth: int
    dependency_type: str

    @classmethod
    def for_edge(cls, service: Service, dependency_type: str, depth: int) -> "DependencyImpact":
        return cls(
            service_id=service.id,
            service_name=service.name,
            impact_type=ImpactType.DIRECT if depth == 1 else ImpactType.CASCADE,
            impacted_status=impacted_status_for(dependency_type),
            depth=depth,
            dependency_type=dependency_type,
        )


def impacted_status_for(dependency_type: str) -> str:
    """Hard edges take dependents down; soft edges degrade them."""
    if dependency_type == DependencyType.HARD:
        return ServiceStatus.DOWN
    return ServiceStatus.DEGRADED


def worse_status(left: str, right: str) -> str:
    """The less healthy of two statuses."""
    return left if STATUS_ORDER[left] >= STATUS_ORDER[right] else right


def is_worse(candidate: str, current: str) -> bool:
    return STATUS_ORDER[candidate] > STATUS_ORDER[current]


@dataclass
class ServiceNode:
    """A service with its immediate neighbours in the graph."""
    id: str
    name: str
    type: str
    status: str
    criticality: int
    depends_on: List[str] = field(default_factory=list)
    depended_on_by: List[str] = field(default_factory=list)


@dataclass
class DependencyGraph:
    """Whole-game graph snapshot for display."""
    game_id: str
    services: List[ServiceNode]
    dependencies: List[ServiceDependency]

    def node(self, service_id: str) -> Optional[ServiceNode]:
        for node in self.services:
            if node.id == service_id:
                return node
        return None
