"""
Record Store Interface
======================

The engine reads and writes through this abstraction only (Dependency
Inversion). Every method is atomic on its own; ``transaction()`` groups a
read-decide-write unit so it commits or rolls back as a whole.

Implementations:
- ``SQLAlchemyEngineStore`` (PostgreSQL in production)
- ``InMemoryEngineStore`` (tests and local simulations)
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, AsyncContextManager, Dict, List, Optional

from simengine.shared.domain import (
    Service, ServiceDependency, Incident, Team,
    EscalationRule, IncidentEscalation, GameEvent, IncidentFilter,
)


class IEngineStore(ABC):
    """Transactional record store used by all engine components."""

    @abstractmethod
    def transaction(self) -> AsyncContextManager["IEngineStore"]:
        """
        Open an atomic unit of work.

        Nested calls join the enclosing transaction. Any exception raised
        inside the block rolls back every write made in it.
        """

    # ========== Games ==========

    @abstractmethod
    async def list_game_ids(self) -> List[str]:
        """Games that currently own at least one service or incident."""

    # ========== Services ==========

    @abstractmethod
    async def get_service(self, service_id: str) -> Optional[Service]:
        """Get a service by id."""

    @abstractmethod
    async def list_services(self, game_id: str) -> List[Service]:
        """All services of a game."""

    @abstractmethod
    async def add_service(self, service: Service) -> Service:
        """Insert a new service."""

    @abstractmethod
    async def update_service_status(self, service_id: str, status: str) -> None:
        """Overwrite the status column of a service."""

    # ========== Dependencies ==========

    @abstractmethod
    async def lock_game_graph(self, game_id: str) -> None:
        """
        Block other graph mutations of the game until the current
        transaction ends.

        Raises:
            RuntimeError: called outside ``transaction()``
        """

    @abstractmethod
    async def list_dependencies(self, game_id: str) -> List[ServiceDependency]:
        """All edges of a game, in insertion order."""

    @abstractmethod
    async def get_dependency(self, dependency_id: str) -> Optional[ServiceDependency]:
        """Get an edge by id."""

    @abstractmethod
    async def upsert_dependency(self, dependency: ServiceDependency) -> ServiceDependency:
        """Insert an edge, or update type/delay when the ordered pair exists."""

    @abstractmethod
    async def delete_dependency(self, dependency_id: str) -> bool:
        """Delete an edge. Returns False when it did not exist."""

    # ========== Incidents ==========

    @abstractmethod
    async def get_incident(self, incident_id: str, for_update: bool = False) -> Optional[Incident]:
        """Get an incident; ``for_update`` takes a row lock inside a transaction."""

    @abstractmethod
    async def list_open_incidents(
        self,
        game_id: str,
        incident_filter: Optional[IncidentFilter] = None
    ) -> List[Incident]:
        """Open / in-progress incidents of a game, oldest first."""

    @abstractmethod
    async def update_incident(self, incident_id: str, patch: Dict[str, Any]) -> Incident:
        """Apply a partial update and return the new state."""

    # ========== Escalation rules ==========

    @abstractmethod
    async def list_escalation_rules(self, game_id: str) -> List[EscalationRule]:
        """Rules of a game ordered by priority trigger then level."""

    @abstractmethod
    async def get_escalation_rule(self, rule_id: str) -> Optional[EscalationRule]:
        """Get a rule by id."""

    @abstractmethod
    async def create_escalation_rule(self, rule: EscalationRule) -> EscalationRule:
        """Insert a rule."""

    # ========== Escalation audit ==========

    @abstractmethod
    async def insert_escalation(self, escalation: IncidentEscalation) -> IncidentEscalation:
        """Append an escalation audit row."""

    @abstractmethod
    async def get_escalation(self, escalation_id: str) -> Optional[IncidentEscalation]:
        """Get an escalation row by id."""

    @abstractmethod
    async def list_escalations(self, incident_id: str) -> List[IncidentEscalation]:
        """Escalation history of an incident, newest first."""

    @abstractmethod
    async def list_unacknowledged_escalations(self, team_id: str) -> List[IncidentEscalation]:
        """Escalations handed to a team that it has not acknowledged yet."""

    @abstractmethod
    async def acknowledge_escalation(self, escalation_id: str, acknowledged_at: datetime) -> None:
        """Set the acknowledged flag and timestamp."""

    # ========== Teams ==========

    @abstractmethod
    async def get_team(self, team_id: str) -> Optional[Team]:
        """Get a team by id."""

    @abstractmethod
    async def find_team_by_role(self, game_id: str, role: str) -> Optional[Team]:
        """First team of the game whose role contains ``role`` (case-insensitive)."""

    @abstractmethod
    async def adjust_team_score(self, team_id: str, delta: int) -> int:
        """Add ``delta`` to the score, flooring at 0. Returns the new score."""

    @abstractmethod
    async def adjust_team_morale(self, team_id: str, delta: int) -> int:
        """Add ``delta`` to morale, flooring at 0. Returns the new morale."""

    # ========== Events / outbox ==========

    @abstractmethod
    async def append_event(
        self,
        game_id: str,
        event_type: str,
        severity: str,
        payload: Dict[str, Any],
        category: str = "infrastructure",
        actor_type: str = "system"
    ) -> GameEvent:
        """Append an observability event (also enqueued in the outbox)."""

    @abstractmethod
    async def list_events(self, game_id: str, event_type: Optional[str] = None) -> List[GameEvent]:
        """Events of a game in append order."""

    @abstractmethod
    async def list_undispatched_events(self, limit: int = 50) -> List[GameEvent]:
        """Oldest events not yet handed to the dispatcher."""

    @abstractmethod
    async def mark_events_dispatched(self, event_ids: List[str], dispatched_at: datetime) -> None:
        """Remove events from the outbox."""
