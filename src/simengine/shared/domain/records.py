"""
Simulation Records
==================

Plain domain records read and written by the engine.

These mirror the rows of the record store. They carry no persistence
concerns; each bounded context adds its own behaviour on top.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from simengine.config import (
    Priority, Severity, IncidentStatus, ServiceStatus, DependencyType,
    EventSeverity, OPEN_INCIDENT_STATUSES,
)


def new_id() -> str:
    """Generate a record identifier."""
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Service:
    """A simulated IT component (configuration item)."""

    id: str
    game_id: str
    name: str
    type: str
    criticality: int = 5
    status: str = ServiceStatus.OPERATIONAL
    description: Optional[str] = None
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not 1 <= self.criticality <= 10:
            raise ValueError("criticality must be between 1 and 10")


@dataclass
class ServiceDependency:
    """Directed edge: ``service_id`` depends on ``depends_on_service_id``."""

    id: str
    game_id: str
    service_id: str
    depends_on_service_id: str
    dependency_type: str = DependencyType.HARD
    impact_delay_minutes: int = 0
    created_at: datetime = field(default_factory=utcnow)
    service_name: Optional[str] = None
    depends_on_service_name: Optional[str] = None


@dataclass
class Incident:
    """An open or closed incident affecting (possibly) one service."""

    id: str
    game_id: str
    title: str
    priority: str = Priority.MEDIUM
    severity: str = Severity.MEDIUM
    status: str = IncidentStatus.OPEN
    incident_number: Optional[str] = None
    description: str = ""
    sla_deadline: Optional[datetime] = None
    sla_breached: bool = False
    current_escalation_level: int = 0
    escalation_count: int = 0
    assigned_team_id: Optional[str] = None
    affected_service_id: Optional[str] = None
    affected_service_name: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_open(self) -> bool:
        """Resolved and closed incidents are invisible to every engine pass."""
        return self.status in OPEN_INCIDENT_STATUSES

    def minutes_open(self, now: Optional[datetime] = None) -> float:
        """Minutes elapsed since creation."""
        current_time = now or utcnow()
        return (current_time - self.created_at).total_seconds() / 60


@dataclass
class Team:
    """A student team holding score and morale."""

    id: str
    game_id: str
    name: str
    role: Optional[str] = None
    score: int = 0
    morale_level: int = 100


@dataclass
class EscalationRule:
    """Time/priority trigger that hands an incident to a higher tier."""

    id: str
    game_id: str
    name: str
    priority_trigger: str
    time_threshold_minutes: int
    escalation_level: int = 1
    description: str = ""
    notify_roles: List[str] = field(default_factory=list)
    auto_reassign: bool = False
    target_team_role: Optional[str] = None


@dataclass
class IncidentEscalation:
    """Append-only audit row for one escalation-level increase."""

    id: str
    incident_id: str
    escalation_level: int
    reason: str
    escalated_by: str = "system"
    escalation_rule_id: Optional[str] = None
    from_team_id: Optional[str] = None
    to_team_id: Optional[str] = None
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class GameEvent:
    """Observability log entry; undispatched entries form the outbox."""

    id: str
    game_id: str
    event_type: str
    severity: str = EventSeverity.INFO
    category: str = "infrastructure"
    payload: Dict[str, Any] = field(default_factory=dict)
    actor_type: str = "system"
    created_at: datetime = field(default_factory=utcnow)
    dispatched_at: Optional[datetime] = None


@dataclass
class IncidentFilter:
    """Narrowing applied on top of the open-incident query."""

    sla_deadline_before: Optional[datetime] = None
    sla_deadline_after: Optional[datetime] = None
    sla_breached: Optional[bool] = None
    priority: Optional[str] = None

    def matches(self, incident: Incident) -> bool:
        if self.sla_breached is not None and incident.sla_breached != self.sla_breached:
            return False
        if self.priority is not None and incident.priority != self.priority:
            return False
        if self.sla_deadline_before is not None:
            if incident.sla_deadline is None or not incident.sla_deadline < self.sla_deadline_before:
                return False
        if self.sla_deadline_after is not None:
            if incident.sla_deadline is None or not incident.sla_deadline > self.sla_deadline_after:
                return False
        return True
