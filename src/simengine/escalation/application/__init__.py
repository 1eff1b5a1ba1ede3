"""
Escalation Application Layer
============================

Contains:
- Services: EscalationRuleEngine
- DTOs: API request/response models
"""

from simengine.escalation.application.services import EscalationRuleEngine
from simengine.escalation.application.dto import (
    EscalationRuleCreateRequest,
    EscalationRuleResponse,
    EscalationCheckResponse,
    EscalateRequest,
    IncidentEscalationResponse,
    AutoEscalationResponse,
    InitializeRulesResponse,
)

__all__ = [
    "EscalationRuleEngine",
    "EscalationRuleCreateRequest",
    "EscalationRuleResponse",
    "EscalationCheckResponse",
    "EscalateRequest",
    "IncidentEscalationResponse",
    "AutoEscalationResponse",
    "InitializeRulesResponse",
]
