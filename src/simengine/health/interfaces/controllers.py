"""
Health Controllers (API Routes)
===============================

FastAPI routes for service health.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from simengine.health.application import (
    ServiceHealthAggregator,
    InitializeServicesRequest,
    HealthSummaryResponse,
    StatusChangeResponse,
    RecomputeResponse,
    InitializeServicesResponse,
)
from simengine.shared.api import get_store, get_config_provider
from simengine.shared.application import IEngineStore, IEngineConfigProvider

router = APIRouter(tags=["Service Health"])


def get_aggregator(
    store: IEngineStore = Depends(get_store),
    config_provider: IEngineConfigProvider = Depends(get_config_provider)
) -> ServiceHealthAggregator:
    return ServiceHealthAggregator(store, config_provider)


@router.get(
    "/games/{game_id}/services/health",
    response_model=HealthSummaryResponse,
    summary="Get service health for a game",
    description="""
    Services ordered worst first, with active incident counts.

    `health_score = round(100 × Σ(criticality × weight) / Σ criticality)`
    with weights operational 1, degraded 0.5, down 0.
    """
)
async def get_service_health(
    game_id: str,
    aggregator: ServiceHealthAggregator = Depends(get_aggregator)
):
    return HealthSummaryResponse.from_summary(await aggregator.get_service_health(game_id))


@router.post(
    "/games/{game_id}/services/recompute",
    response_model=List[StatusChangeResponse],
    summary="Recompute every service status"
)
async def recompute_all(
    game_id: str,
    aggregator: ServiceHealthAggregator = Depends(get_aggregator)
):
    changes = await aggregator.recompute_all(game_id)
    return [StatusChangeResponse.from_change(c) for c in changes]


@router.post(
    "/services/{service_id}/recompute",
    response_model=RecomputeResponse,
    summary="Recompute one service status"
)
async def recompute_service(
    service_id: str,
    aggregator: ServiceHealthAggregator = Depends(get_aggregator)
):
    new_status = await aggregator.recompute(service_id)
    return RecomputeResponse(service_id=service_id, status=new_status)


@router.post(
    "/games/{game_id}/services/initialize",
    response_model=InitializeServicesResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Seed the default service catalogue"
)
async def initialize_services(
    game_id: str,
    request: InitializeServicesRequest,
    aggregator: ServiceHealthAggregator = Depends(get_aggregator)
):
    created = await aggregator.initialize_services_for_game(game_id, request.scenario_type)
    return InitializeServicesResponse(services_created=created)
