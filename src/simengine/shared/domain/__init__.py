"""
Shared Domain Records
=====================

Records every bounded context reads: services, edges, incidents, teams,
rules, escalation audit rows and game events.
"""

from simengine.shared.domain.records import (
    Service,
    ServiceDependency,
    Incident,
    Team,
    EscalationRule,
    IncidentEscalation,
    GameEvent,
    IncidentFilter,
    new_id,
    utcnow,
)
from simengine.shared.domain.engine_config import EngineConfig, DEFAULT_KEYWORD_SYNONYMS

__all__ = [
    "Service",
    "ServiceDependency",
    "Incident",
    "Team",
    "EscalationRule",
    "IncidentEscalation",
    "GameEvent",
    "IncidentFilter",
    "new_id",
    "utcnow",
    "EngineConfig",
    "DEFAULT_KEYWORD_SYNONYMS",
]
