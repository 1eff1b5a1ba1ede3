"""
Escalation Application DTOs
===========================

Pydantic models for the escalation API layer.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from simengine.escalation.domain import EscalationCheck
from simengine.shared.domain import EscalationRule, IncidentEscalation


PriorityStr = Literal["critical", "high", "medium", "low"]


class EscalationRuleCreateRequest(BaseModel):
    """Request to add a custom escalation rule to a game."""
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)
    priority_trigger: PriorityStr
    time_threshold_minutes: int = Field(..., ge=0)
    escalation_level: int = Field(default=1, ge=1)
    notify_roles: List[str] = Field(default_factory=list)
    auto_reassign: bool = False
    target_team_role: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def check_reassign_target(self):
        if self.auto_reassign and not self.target_team_role:
            raise ValueError("auto_reassign requires target_team_role")
        return self


class EscalationRuleResponse(BaseModel):
    id: str
    game_id: str
    name: str
    description: str
    priority_trigger: PriorityStr
    time_threshold_minutes: int
    escalation_level: int
    notify_roles: List[str]
    auto_reassign: bool
    target_team_role: Optional[str] = None

    @classmethod
    def from_rule(cls, rule: EscalationRule) -> "EscalationRuleResponse":
        return cls(
            id=rule.id,
            game_id=rule.game_id,
            name=rule.name,
            description=rule.description,
            priority_trigger=rule.priority_trigger,
            time_threshold_minutes=rule.time_threshold_minutes,
            escalation_level=rule.escalation_level,
            notify_roles=list(rule.notify_roles),
            auto_reassign=rule.auto_reassign,
            target_team_role=rule.target_team_role,
        )


class EscalationCheckResponse(BaseModel):
    """Escalation verdict for one open incident."""
    incident_id: str
    incident_number: Optional[str] = None
    title: str
    priority: PriorityStr
    current_level: int
    minutes_open: int
    should_escalate: bool
    next_level: Optional[int] = None
    rule: Optional[EscalationRuleResponse] = None

    @classmethod
    def from_check(cls, check: EscalationCheck) -> "EscalationCheckResponse":
        return cls(
            incident_id=check.incident_id,
            incident_number=check.incident_number,
            title=check.title,
            priority=check.priority,
            current_level=check.current_level,
            minutes_open=check.minutes_open,
            should_escalate=check.should_escalate,
            next_level=check.next_level,
            rule=EscalationRuleResponse.from_rule(check.rule) if check.rule else None,
        )


class EscalateRequest(BaseModel):
    """Manual escalation request; bypasses rule time gating."""
    reason: str = Field(..., min_length=1, max_length=500)
    rule_id: Optional[str] = None
    to_team_id: Optional[str] = None
    escalated_by: str = Field(default="instructor", max_length=100)


class IncidentEscalationResponse(BaseModel):
    id: str
    incident_id: str
    escalation_level: int
    reason: str
    escalated_by: str
    escalation_rule_id: Optional[str] = None
    from_team_id: Optional[str] = None
    to_team_id: Optional[str] = None
    acknowledged: bool
    acknowledged_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_escalation(cls, escalation: IncidentEscalation) -> "IncidentEscalationResponse":
        return cls(
            id=escalation.id,
            incident_id=escalation.incident_id,
            escalation_level=escalation.escalation_level,
            reason=escalation.reason,
            escalated_by=escalation.escalated_by,
            escalation_rule_id=escalation.escalation_rule_id,
            from_team_id=escalation.from_team_id,
            to_team_id=escalation.to_team_id,
            acknowledged=escalation.acknowledged,
            acknowledged_at=escalation.acknowledged_at,
            created_at=escalation.created_at,
        )


class AutoEscalationResponse(BaseModel):
    escalated_count: int = Field(..., ge=0)


class InitializeRulesResponse(BaseModel):
    rules_created: int = Field(..., ge=0)
