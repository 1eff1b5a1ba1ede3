"""
Health Application DTOs
=======================

Pydantic models for the service health API.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from simengine.health.domain import HealthSummary, StatusChange


ServiceStatusStr = Literal["operational", "degraded", "down"]


class InitializeServicesRequest(BaseModel):
    """Request model for seeding a game's service catalogue."""
    scenario_type: str = Field(
        default="general_itsm",
        description="Scenario family; healthcare, finance/bank and retail/ecommerce add extras"
    )


class ServiceHealthResponse(BaseModel):
    id: str
    name: str
    type: str
    status: ServiceStatusStr
    criticality: int = Field(..., ge=1, le=10)
    description: Optional[str] = None
    active_incidents: int = Field(..., ge=0)


class HealthSummaryResponse(BaseModel):
    """Game-wide service health."""
    game_id: str
    total: int
    operational: int
    degraded: int
    down: int
    health_score: int = Field(..., ge=0, le=100, description="Criticality-weighted health")
    services: List[ServiceHealthResponse]

    @classmethod
    def from_summary(cls, summary: HealthSummary) -> "HealthSummaryResponse":
        return cls(
            game_id=summary.game_id,
            total=summary.total,
            operational=summary.operational,
            degraded=summary.degraded,
            down=summary.down,
            health_score=summary.health_score,
            services=[
                ServiceHealthResponse(
                    id=s.id,
                    name=s.name,
                    type=s.type,
                    status=s.status,
                    criticality=s.criticality,
                    description=s.description,
                    active_incidents=s.active_incidents,
                )
                for s in summary.services
            ],
        )


class StatusChangeResponse(BaseModel):
    service_id: str
    service_name: str
    previous_status: ServiceStatusStr
    new_status: ServiceStatusStr
    active_incidents: int
    cause: Literal["incidents", "cascade"]

    @classmethod
    def from_change(cls, change: StatusChange) -> "StatusChangeResponse":
        return cls(
            service_id=change.service_id,
            service_name=change.service_name,
            previous_status=change.previous_status,
            new_status=change.new_status,
            active_incidents=change.active_incidents,
            cause=change.cause,
        )


class RecomputeResponse(BaseModel):
    service_id: str
    status: ServiceStatusStr


class InitializeServicesResponse(BaseModel):
    services_created: int
