"""
Topology Application Layer
==========================

Contains:
- Services: DependencyGraphService, CascadePropagator
- DTOs: API request/response models
"""

from simengine.topology.application.services import (
    DependencyGraphService,
    CascadePropagator,
    DEFAULT_DEPENDENCY_LAYOUT,
)
from simengine.topology.application.dto import (
    DependencyCreateRequest,
    DependencyResponse,
    ServiceSummaryResponse,
    ServiceNodeResponse,
    DependencyGraphResponse,
    DependencyImpactResponse,
    InitializeDependenciesResponse,
)

__all__ = [
    # Services
    "DependencyGraphService",
    "CascadePropagator",
    "DEFAULT_DEPENDENCY_LAYOUT",
    # DTOs
    "DependencyCreateRequest",
    "DependencyResponse",
    "ServiceSummaryResponse",
    "ServiceNodeResponse",
    "DependencyGraphResponse",
    "DependencyImpactResponse",
    "InitializeDependenciesResponse",
]
