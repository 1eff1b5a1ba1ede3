"""
SLA Application Layer
=====================

Contains:
- Services: SLAMonitor
- DTOs: API response models
"""

from simengine.sla.application.services import SLAMonitor
from simengine.sla.application.dto import (
    SLABreachResponse,
    SLACheckResponse,
    SLAStatusResponse,
    AtRiskIncidentResponse,
)

__all__ = [
    "SLAMonitor",
    "SLABreachResponse",
    "SLACheckResponse",
    "SLAStatusResponse",
    "AtRiskIncidentResponse",
]
