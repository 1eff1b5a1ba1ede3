"""
SLA Domain Entities
===================

Results produced by the SLA monitor.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class SLABreach:
    """One incident that crossed its SLA deadline during a pass."""
    incident_id: str
    incident_number: Optional[str]
    title: str
    previous_priority: str
    new_priority: str
    escalated: bool
    team_id: Optional[str] = None
    team_name: Optional[str] = None


@dataclass
class SLACheckResult:
    """Outcome of one breach-processing pass over a game."""
    breached_count: int = 0
    escalated_count: int = 0
    breaches: List[SLABreach] = field(default_factory=list)

    def add(self, breach: SLABreach) -> None:
        self.breaches.append(breach)
        self.breached_count += 1
        if breach.escalated:
            self.escalated_count += 1


@dataclass(frozen=True)
class SLAStatusSummary:
    """Open incidents of a game bucketed by SLA position."""
    total: int
    within_sla: int
    breached: int
    at_risk: int


@dataclass(frozen=True)
class AtRiskIncident:
    """An open, unbreached incident whose deadline is close."""
    id: str
    incident_number: Optional[str]
    title: str
    priority: str
    severity: str
    status: str
    sla_deadline: datetime
    minutes_remaining: int
    team_id: Optional[str] = None
    team_name: Optional[str] = None
