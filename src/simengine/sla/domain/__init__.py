"""
SLA Domain Layer
================

Contains:
- Entities: SLABreach, SLACheckResult, SLAStatusSummary, AtRiskIncident
- Value Objects: priority escalation order, SLAWindow

Pure Python; no infrastructure imports.
"""

from simengine.sla.domain.entities import (
    SLABreach,
    SLACheckResult,
    SLAStatusSummary,
    AtRiskIncident,
)
from simengine.sla.domain.value_objects import (
    PRIORITY_ESCALATION,
    escalate_priority,
    SLAWindow,
)

__all__ = [
    "SLABreach",
    "SLACheckResult",
    "SLAStatusSummary",
    "AtRiskIncident",
    "PRIORITY_ESCALATION",
    "escalate_priority",
    "SLAWindow",
]
