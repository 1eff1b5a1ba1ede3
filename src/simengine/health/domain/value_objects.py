"""
Health Value Objects
====================

Status derivation rules and the health summary.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from simengine.config import ServiceStatus, SEVERITY_RANK, STATUS_ORDER
from simengine.shared.domain import Incident, Service


HEALTH_WEIGHTS = {
    ServiceStatus.OPERATIONAL: 1.0,
    ServiceStatus.DEGRADED: 0.5,
    ServiceStatus.DOWN: 0.0,
}


class StatusDeriver:
    """
    Pure functions mapping matched incidents to a service status.

    Uses the severity rank (critical=4 ... low=1, unknown=0) and the number
    of matching open incidents.
    """

    @staticmethod
    def max_severity_rank(incidents: Iterable[Incident]) -> int:
        return max((SEVERITY_RANK.get(i.severity, 0) for i in incidents), default=0)

    @staticmethod
    def derive(max_rank: int, count: int) -> str:
        if count == 0:
            return ServiceStatus.OPERATIONAL
        if max_rank >= 4:
            return ServiceStatus.DOWN
        if max_rank >= 2 or count >= 2:
            return ServiceStatus.DEGRADED
        return ServiceStatus.OPERATIONAL

    @classmethod
    def from_incidents(cls, incidents: List[Incident]) -> str:
        return cls.derive(cls.max_severity_rank(incidents), len(incidents))


def health_score(services: Iterable[Service]) -> int:
    """Criticality-weighted health, 0-100; an empty game is fully healthy."""
    total = 0
    healthy = 0.0
    for service in services:
        total += service.criticality
        healthy += service.criticality * HEALTH_WEIGHTS.get(service.status, 0.0)
    if total == 0:
        return 100
    return round(100 * healthy / total)


@dataclass(frozen=True)
class StatusChange:
    """One status transition written by a recompute."""
    service_id: str
    service_name: str
    previous_status: str
    new_status: str
    active_incidents: int
    cause: str


@dataclass
class ServiceHealth:
    """A service with the number of open incidents affecting it."""
    id: str
    name: str
    type: str
    status: str
    criticality: int
    description: Optional[str]
    active_incidents: int


@dataclass
class HealthSummary:
    """Game-wide health overview."""
    game_id: str
    total: int
    operational: int
    degraded: int
    down: int
    health_score: int
    services: List[ServiceHealth] = field(default_factory=list)

    @classmethod
    def build(cls, game_id: str, services: List[Service], counts: dict) -> "HealthSummary":
        rows = [
            ServiceHealth(
                id=s.id,
                name=s.name,
                type=s.type,
                status=s.status,
                criticality=s.criticality,
                description=s.description,
                active_incidents=counts.get(s.id, 0),
            )
            for s in services
        ]
        # Worst first, then most critical
        rows.sort(key=lambda r: (-STATUS_ORDER.get(r.status, 0), -r.criticality, r.name))

        return cls(
            game_id=game_id,
            total=len(services),
            operational=sum(1 for s in services if s.status == ServiceStatus.OPERATIONAL),
            degraded=sum(1 for s in services if s.status == ServiceStatus.DEGRADED),
            down=sum(1 for s in services if s.status == ServiceStatus.DOWN),
            health_score=health_score(services),
            services=rows,
        )
