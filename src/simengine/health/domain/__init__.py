"""
Health Domain Layer
===================

Contains:
- Matching: ordered, pure incident-to-service strategies
- Value Objects: StatusDeriver, health score, summaries
- Catalogue: default services per scenario type

This layer has no dependencies on infrastructure.
"""

from simengine.health.domain.matching import (
    MATCH_STRATEGIES,
    match_reason,
    matching_incidents,
)
from simengine.health.domain.value_objects import (
    StatusDeriver,
    StatusChange,
    ServiceHealth,
    HealthSummary,
    HEALTH_WEIGHTS,
    health_score,
)
from simengine.health.domain.catalogue import (
    CatalogueEntry,
    BASE_SERVICES,
    services_for_scenario,
)

__all__ = [
    "MATCH_STRATEGIES",
    "match_reason",
    "matching_incidents",
    "StatusDeriver",
    "StatusChange",
    "ServiceHealth",
    "HealthSummary",
    "HEALTH_WEIGHTS",
    "health_score",
    "CatalogueEntry",
    "BASE_SERVICES",
    "services_for_scenario",
]
