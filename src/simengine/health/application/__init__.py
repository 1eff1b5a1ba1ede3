"""
Health Application Layer
========================

Contains:
- Services: ServiceHealthAggregator
- DTOs: API request/response models
"""

from simengine.health.application.services import ServiceHealthAggregator
from simengine.health.application.dto import (
    InitializeServicesRequest,
    ServiceHealthResponse,
    HealthSummaryResponse,
    StatusChangeResponse,
    RecomputeResponse,
    InitializeServicesResponse,
)

__all__ = [
    "ServiceHealthAggregator",
    "InitializeServicesRequest",
    "ServiceHealthResponse",
    "HealthSummaryResponse",
    "StatusChangeResponse",
    "RecomputeResponse",
    "InitializeServicesResponse",
]
