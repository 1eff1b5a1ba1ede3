"""
Topology Application DTOs
=========================

Pydantic models for the dependency graph API.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from simengine.shared.domain import Service, ServiceDependency
from simengine.topology.domain import DependencyImpact, DependencyGraph


DependencyTypeStr = Literal["hard", "soft"]
ServiceStatusStr = Literal["operational", "degraded", "down"]
ImpactTypeStr = Literal["direct", "cascade"]


# ========== Request DTOs ==========

class DependencyCreateRequest(BaseModel):
    """Request model for adding a dependency edge."""
    service_id: str = Field(..., min_length=1, description="Dependent service")
    depends_on_service_id: str = Field(..., min_length=1, description="Service depended upon")
    dependency_type: DependencyTypeStr = Field(default="hard", description="hard: goes down, soft: degrades")
    impact_delay_minutes: int = Field(default=0, ge=0, description="Delay before impact is felt")


# ========== Response DTOs ==========

class DependencyResponse(BaseModel):
    """One dependency edge with service names."""
    id: str
    game_id: str
    service_id: str
    service_name: Optional[str] = None
    depends_on_service_id: str
    depends_on_service_name: Optional[str] = None
    dependency_type: DependencyTypeStr
    impact_delay_minutes: int
    created_at: datetime

    @classmethod
    def from_record(cls, dependency: ServiceDependency) -> "DependencyResponse":
        return cls(
            id=dependency.id,
            game_id=dependency.game_id,
            service_id=dependency.service_id,
            service_name=dependency.service_name,
            depends_on_service_id=dependency.depends_on_service_id,
            depends_on_service_name=dependency.depends_on_service_name,
            dependency_type=dependency.dependency_type,
            impact_delay_minutes=dependency.impact_delay_minutes,
            created_at=dependency.created_at,
        )


class ServiceSummaryResponse(BaseModel):
    """Service fields shown in closure queries."""
    id: str
    name: str
    type: str
    status: ServiceStatusStr
    criticality: int

    @classmethod
    def from_record(cls, service: Service) -> "ServiceSummaryResponse":
        return cls(
            id=service.id,
            name=service.name,
            type=service.type,
            status=service.status,
            criticality=service.criticality,
        )


class ServiceNodeResponse(ServiceSummaryResponse):
    """A service plus its immediate graph neighbours."""
    depends_on: List[str] = Field(default_factory=list)
    depended_on_by: List[str] = Field(default_factory=list)


class DependencyGraphResponse(BaseModel):
    """Whole-game dependency graph."""
    game_id: str
    services: List[ServiceNodeResponse]
    dependencies: List[DependencyResponse]

    @classmethod
    def from_graph(cls, graph: DependencyGraph) -> "DependencyGraphResponse":
        return cls(
            game_id=graph.game_id,
            services=[
                ServiceNodeResponse(
                    id=n.id,
                    name=n.name,
                    type=n.type,
                    status=n.status,
                    criticality=n.criticality,
                    depends_on=n.depends_on,
                    depended_on_by=n.depended_on_by,
                )
                for n in graph.services
            ],
            dependencies=[DependencyResponse.from_record(d) for d in graph.dependencies],
        )


class DependencyImpactResponse(BaseModel):
    """A dependent reached by a cascade."""
    service_id: str
    service_name: str
    impact_type: ImpactTypeStr
    impacted_status: ServiceStatusStr
    depth: int = Field(..., ge=1)
    dependency_type: DependencyTypeStr

    @classmethod
    def from_impact(cls, impact: DependencyImpact) -> "DependencyImpactResponse":
        return cls(
            service_id=impact.service_id,
            service_name=impact.service_name,
            impact_type=impact.impact_type,
            impacted_status=impact.impacted_status,
            depth=impact.depth,
            dependency_type=impact.dependency_type,
        )


class InitializeDependenciesResponse(BaseModel):
    """Result of seeding the default dependency layout."""
    dependencies_created: int
