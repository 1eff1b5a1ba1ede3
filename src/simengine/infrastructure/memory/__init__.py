"""
In-Memory Record Store
======================

``IEngineStore`` implementation holding every record in process memory.

Used by the test-suite and for local simulations without PostgreSQL.
Transactions are serialised with an ``asyncio.Lock``; the outermost
transaction snapshots the state and restores it if the block raises, so a
failed unit never leaves partial writes behind. Records are copied on the
way in and out, like rows from a database.
"""

import asyncio
import copy
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from simengine.config import VALID_PRIORITIES
from simengine.core import NotFoundError
from simengine.shared.application import IEngineStore
from simengine.shared.domain import (
    Service, ServiceDependency, Incident, Team,
    EscalationRule, IncidentEscalation, GameEvent, IncidentFilter,
    new_id, utcnow,
)


@dataclass
class _State:
    services: Dict[str, Service] = field(default_factory=dict)
    dependencies: Dict[str, ServiceDependency] = field(default_factory=dict)
    incidents: Dict[str, Incident] = field(default_factory=dict)
    teams: Dict[str, Team] = field(default_factory=dict)
    rules: Dict[str, EscalationRule] = field(default_factory=dict)
    escalations: Dict[str, IncidentEscalation] = field(default_factory=dict)
    events: List[GameEvent] = field(default_factory=list)


class InMemoryEngineStore(IEngineStore):
    """Process-local store with snapshot/rollback transactions."""

    def __init__(self):
        self._state = _State()
        self._lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(
            f"in_memory_tx_{id(self)}", default=False
        )

    # ========== Transactions ==========

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["InMemoryEngineStore"]:
        if self._in_transaction.get():
            yield self
            return

        async with self._lock:
            snapshot = copy.deepcopy(self._state)
            token = self._in_transaction.set(True)
            try:
                yield self
            except BaseException:
                self._state = snapshot
                raise
            finally:
                self._in_transaction.reset(token)

    @asynccontextmanager
    async def _atomic(self) -> AsyncIterator[_State]:
        """Single-call unit: joins an open transaction or takes the lock."""
        if self._in_transaction.get():
            yield self._state
            return
        async with self._lock:
            yield self._state

    # ========== Seeding (not part of IEngineStore) ==========

    async def add_team(self, team: Team) -> Team:
        async with self._atomic() as state:
            state.teams[team.id] = copy.deepcopy(team)
        return copy.deepcopy(team)

    async def add_incident(self, incident: Incident) -> Incident:
        if incident.priority not in VALID_PRIORITIES:
            raise ValueError(f"Unknown priority: {incident.priority}")
        async with self._atomic() as state:
            state.incidents[incident.id] = copy.deepcopy(incident)
        return copy.deepcopy(incident)

    # ========== Games ==========

    async def list_game_ids(self) -> List[str]:
        async with self._atomic() as state:
            game_ids = {s.game_id for s in state.services.values()}
            game_ids.update(i.game_id for i in state.incidents.values())
            return sorted(game_ids)

    # ========== Services ==========

    async def get_service(self, service_id: str) -> Optional[Service]:
        async with self._atomic() as state:
            return copy.deepcopy(state.services.get(service_id))

    async def list_services(self, game_id: str) -> List[Service]:
        async with self._atomic() as state:
            services = [s for s in state.services.values() if s.game_id == game_id]
            return copy.deepcopy(sorted(services, key=lambda s: s.name))

    async def add_service(self, service: Service) -> Service:
        async with self._atomic() as state:
            state.services[service.id] = copy.deepcopy(service)
        return copy.deepcopy(service)

    async def update_service_status(self, service_id: str, status: str) -> None:
        async with self._atomic() as state:
            service = state.services.get(service_id)
            if service is None:
                raise NotFoundError("Service", service_id)
            service.status = status
            service.updated_at = utcnow()

    # ========== Dependencies ==========

    def _with_names(self, state: _State, dependency: ServiceDependency) -> ServiceDependency:
        source = state.services.get(dependency.service_id)
        target = state.services.get(dependency.depends_on_service_id)
        return replace(
            copy.deepcopy(dependency),
            service_name=source.name if source else None,
            depends_on_service_name=target.name if target else None,
        )

    async def lock_game_graph(self, game_id: str) -> None:
        # Transactions already hold the store-wide lock
        if not self._in_transaction.get():
            raise RuntimeError("lock_game_graph() requires an open transaction")

    async def list_dependencies(self, game_id: str) -> List[ServiceDependency]:
        async with self._atomic() as state:
            return [
                self._with_names(state, d)
                for d in state.dependencies.values()
                if d.game_id == game_id
            ]

    async def get_dependency(self, dependency_id: str) -> Optional[ServiceDependency]:
        async with self._atomic() as state:
            dependency = state.dependencies.get(dependency_id)
            return self._with_names(state, dependency) if dependency else None

    async def upsert_dependency(self, dependency: ServiceDependency) -> ServiceDependency:
        async with self._atomic() as state:
            for existing in state.dependencies.values():
                if (existing.service_id == dependency.service_id
                        and existing.depends_on_service_id == dependency.depends_on_service_id):
                    existing.dependency_type = dependency.dependency_type
                    existing.impact_delay_minutes = dependency.impact_delay_minutes
                    return self._with_names(state, existing)

            state.dependencies[dependency.id] = copy.deepcopy(dependency)
            return self._with_names(state, dependency)

    async def delete_dependency(self, dependency_id: str) -> bool:
        async with self._atomic() as state:
            return state.dependencies.pop(dependency_id, None) is not None

    # ========== Incidents ==========

    async def get_incident(self, incident_id: str, for_update: bool = False) -> Optional[Incident]:
        async with self._atomic() as state:
            return copy.deepcopy(state.incidents.get(incident_id))

    async def list_open_incidents(
        self,
        game_id: str,
        incident_filter: Optional[IncidentFilter] = None
    ) -> List[Incident]:
        async with self._atomic() as state:
            incidents = [
                i for i in state.incidents.values()
                if i.game_id == game_id and i.is_open
                and (incident_filter is None or incident_filter.matches(i))
            ]
            return copy.deepcopy(sorted(incidents, key=lambda i: i.created_at))

    async def update_incident(self, incident_id: str, patch: Dict[str, Any]) -> Incident:
        async with self._atomic() as state:
            incident = state.incidents.get(incident_id)
            if incident is None:
                raise NotFoundError("Incident", incident_id)
            for key, value in patch.items():
                if not hasattr(incident, key):
                    raise AttributeError(f"Incident has no field '{key}'")
                setattr(incident, key, value)
            incident.updated_at = utcnow()
            return copy.deepcopy(incident)

    # ========== Escalation rules ==========

    async def list_escalation_rules(self, game_id: str) -> List[EscalationRule]:
        async with self._atomic() as state:
            rules = [r for r in state.rules.values() if r.game_id == game_id]
            return copy.deepcopy(
                sorted(rules, key=lambda r: (r.priority_trigger, r.escalation_level))
            )

    async def get_escalation_rule(self, rule_id: str) -> Optional[EscalationRule]:
        async with self._atomic() as state:
            return copy.deepcopy(state.rules.get(rule_id))

    async def create_escalation_rule(self, rule: EscalationRule) -> EscalationRule:
        async with self._atomic() as state:
            state.rules[rule.id] = copy.deepcopy(rule)
        return copy.deepcopy(rule)

    # ========== Escalation audit ==========

    async def insert_escalation(self, escalation: IncidentEscalation) -> IncidentEscalation:
        async with self._atomic() as state:
            state.escalations[escalation.id] = copy.deepcopy(escalation)
        return copy.deepcopy(escalation)

    async def get_escalation(self, escalation_id: str) -> Optional[IncidentEscalation]:
        async with self._atomic() as state:
            return copy.deepcopy(state.escalations.get(escalation_id))

    async def list_escalations(self, incident_id: str) -> List[IncidentEscalation]:
        async with self._atomic() as state:
            rows = [e for e in state.escalations.values() if e.incident_id == incident_id]
            # dict order is insertion order, newest last
            return copy.deepcopy(list(reversed(rows)))

    async def list_unacknowledged_escalations(self, team_id: str) -> List[IncidentEscalation]:
        async with self._atomic() as state:
            rows = [
                e for e in state.escalations.values()
                if e.to_team_id == team_id and not e.acknowledged
            ]
            return copy.deepcopy(list(reversed(rows)))

    async def acknowledge_escalation(self, escalation_id: str, acknowledged_at: datetime) -> None:
        async with self._atomic() as state:
            escalation = state.escalations.get(escalation_id)
            if escalation is None:
                raise NotFoundError("Escalation", escalation_id)
            escalation.acknowledged = True
            escalation.acknowledged_at = acknowledged_at

    # ========== Teams ==========

    async def get_team(self, team_id: str) -> Optional[Team]:
        async with self._atomic() as state:
            return copy.deepcopy(state.teams.get(team_id))

    async def find_team_by_role(self, game_id: str, role: str) -> Optional[Team]:
        needle = role.lower()
        async with self._atomic() as state:
            for team in state.teams.values():
                if team.game_id == game_id and team.role and needle in team.role.lower():
                    return copy.deepcopy(team)
        return None

    async def adjust_team_score(self, team_id: str, delta: int) -> int:
        async with self._atomic() as state:
            team = state.teams.get(team_id)
            if team is None:
                raise NotFoundError("Team", team_id)
            team.score = max(0, team.score + delta)
            return team.score

    async def adjust_team_morale(self, team_id: str, delta: int) -> int:
        async with self._atomic() as state:
            team = state.teams.get(team_id)
            if team is None:
                raise NotFoundError("Team", team_id)
            team.morale_level = max(0, team.morale_level + delta)
            return team.morale_level

    # ========== Events / outbox ==========

    async def append_event(
        self,
        game_id: str,
        event_type: str,
        severity: str,
        payload: Dict[str, Any],
        category: str = "infrastructure",
        actor_type: str = "system"
    ) -> GameEvent:
        event = GameEvent(
            id=new_id(),
            game_id=game_id,
            event_type=event_type,
            severity=severity,
            category=category,
            payload=copy.deepcopy(payload),
            actor_type=actor_type,
        )
        async with self._atomic() as state:
            state.events.append(event)
        return copy.deepcopy(event)

    async def list_events(self, game_id: str, event_type: Optional[str] = None) -> List[GameEvent]:
        async with self._atomic() as state:
            return copy.deepcopy([
                e for e in state.events
                if e.game_id == game_id and (event_type is None or e.event_type == event_type)
            ])

    async def list_undispatched_events(self, limit: int = 50) -> List[GameEvent]:
        async with self._atomic() as state:
            pending = [e for e in state.events if e.dispatched_at is None]
            return copy.deepcopy(pending[:limit])

    async def mark_events_dispatched(self, event_ids: List[str], dispatched_at: datetime) -> None:
        wanted = set(event_ids)
        async with self._atomic() as state:
            for event in state.events:
                if event.id in wanted:
                    event.dispatched_at = dispatched_at
