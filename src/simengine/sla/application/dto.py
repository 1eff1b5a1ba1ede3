"""
SLA Application DTOs
====================

Pydantic models for the SLA API layer.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from simengine.sla.domain import SLABreach, SLACheckResult, SLAStatusSummary, AtRiskIncident


PriorityStr = Literal["critical", "high", "medium", "low"]


class SLABreachResponse(BaseModel):
    incident_id: str
    incident_number: Optional[str] = None
    title: str
    previous_priority: PriorityStr
    new_priority: PriorityStr
    escalated: bool
    team_id: Optional[str] = None
    team_name: Optional[str] = None

    @classmethod
    def from_breach(cls, breach: SLABreach) -> "SLABreachResponse":
        return cls(
            incident_id=breach.incident_id,
            incident_number=breach.incident_number,
            title=breach.title,
            previous_priority=breach.previous_priority,
            new_priority=breach.new_priority,
            escalated=breach.escalated,
            team_id=breach.team_id,
            team_name=breach.team_name,
        )


class SLACheckResponse(BaseModel):
    """Result of one breach-processing pass."""
    breached_count: int = Field(..., ge=0)
    escalated_count: int = Field(..., ge=0)
    breaches: List[SLABreachResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: SLACheckResult) -> "SLACheckResponse":
        return cls(
            breached_count=result.breached_count,
            escalated_count=result.escalated_count,
            breaches=[SLABreachResponse.from_breach(b) for b in result.breaches],
        )


class SLAStatusResponse(BaseModel):
    """Open incidents bucketed by SLA position."""
    total: int
    within_sla: int
    breached: int
    at_risk: int = Field(..., description="Deadline inside the at-risk window")

    @classmethod
    def from_summary(cls, summary: SLAStatusSummary) -> "SLAStatusResponse":
        return cls(
            total=summary.total,
            within_sla=summary.within_sla,
            breached=summary.breached,
            at_risk=summary.at_risk,
        )


class AtRiskIncidentResponse(BaseModel):
    id: str
    incident_number: Optional[str] = None
    title: str
    priority: PriorityStr
    severity: str
    status: str
    sla_deadline: datetime
    minutes_remaining: int
    team_id: Optional[str] = None
    team_name: Optional[str] = None

    @classmethod
    def from_incident(cls, incident: AtRiskIncident) -> "AtRiskIncidentResponse":
        return cls(
            id=incident.id,
            incident_number=incident.incident_number,
            title=incident.title,
            priority=incident.priority,
            severity=incident.severity,
            status=incident.status,
            sla_deadline=incident.sla_deadline,
            minutes_remaining=incident.minutes_remaining,
            team_id=incident.team_id,
            team_name=incident.team_name,
        )
