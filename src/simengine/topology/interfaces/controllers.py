"""
Topology Controllers (API Routes)
=================================

FastAPI routes for the dependency graph and cascade.

Controllers are thin - they delegate to application services.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from simengine.shared.api import get_store, get_config_provider
from simengine.shared.application import IEngineStore, IEngineConfigProvider
from simengine.topology.application import (
    DependencyGraphService,
    CascadePropagator,
    DependencyCreateRequest,
    DependencyResponse,
    DependencyGraphResponse,
    DependencyImpactResponse,
    ServiceSummaryResponse,
    InitializeDependenciesResponse,
)

router = APIRouter(tags=["Dependency Graph"])


# ========== Dependencies ==========

def get_graph_service(
    store: IEngineStore = Depends(get_store),
    config_provider: IEngineConfigProvider = Depends(get_config_provider)
) -> DependencyGraphService:
    return DependencyGraphService(store, config_provider)


def get_cascade_propagator(
    store: IEngineStore = Depends(get_store),
    config_provider: IEngineConfigProvider = Depends(get_config_provider)
) -> CascadePropagator:
    return CascadePropagator(store, config_provider)


# ========== Route Handlers ==========

@router.get(
    "/games/{game_id}/dependencies",
    response_model=List[DependencyResponse],
    summary="List dependency edges"
)
async def list_dependencies(
    game_id: str,
    service: DependencyGraphService = Depends(get_graph_service)
):
    edges = await service.get_dependencies(game_id)
    return [DependencyResponse.from_record(e) for e in edges]


@router.post(
    "/games/{game_id}/dependencies",
    response_model=DependencyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a dependency edge",
    description="""
    Add `service_id -> depends_on_service_id`.

    Re-adding an existing pair updates its type and delay.

    **Errors**:
    - 409 if the edge would create a circular dependency
    - 404 if either service is not part of the game
    """
)
async def add_dependency(
    game_id: str,
    request: DependencyCreateRequest,
    service: DependencyGraphService = Depends(get_graph_service)
):
    dependency = await service.add_dependency(
        game_id,
        request.service_id,
        request.depends_on_service_id,
        request.dependency_type,
        request.impact_delay_minutes,
    )
    return DependencyResponse.from_record(dependency)


@router.delete(
    "/dependencies/{dependency_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a dependency edge"
)
async def remove_dependency(
    dependency_id: str,
    service: DependencyGraphService = Depends(get_graph_service)
):
    await service.remove_dependency(dependency_id)


@router.get(
    "/games/{game_id}/dependency-graph",
    response_model=DependencyGraphResponse,
    summary="Get the full dependency graph"
)
async def get_dependency_graph(
    game_id: str,
    service: DependencyGraphService = Depends(get_graph_service)
):
    graph = await service.get_dependency_graph(game_id)
    return DependencyGraphResponse.from_graph(graph)


@router.post(
    "/games/{game_id}/dependencies/initialize",
    response_model=InitializeDependenciesResponse,
    summary="Seed the default dependency layout"
)
async def initialize_dependencies(
    game_id: str,
    service: DependencyGraphService = Depends(get_graph_service)
):
    created = await service.initialize_default_dependencies(game_id)
    return InitializeDependenciesResponse(dependencies_created=created)


@router.get(
    "/services/{service_id}/ancestors",
    response_model=List[ServiceSummaryResponse],
    summary="Services this one transitively depends on"
)
async def get_ancestors(
    service_id: str,
    service: DependencyGraphService = Depends(get_graph_service)
):
    return [ServiceSummaryResponse.from_record(s) for s in await service.ancestors_of(service_id)]


@router.get(
    "/services/{service_id}/descendants",
    response_model=List[ServiceSummaryResponse],
    summary="Services that transitively depend on this one"
)
async def get_descendants(
    service_id: str,
    service: DependencyGraphService = Depends(get_graph_service)
):
    return [ServiceSummaryResponse.from_record(s) for s in await service.descendants_of(service_id)]


@router.get(
    "/services/{service_id}/impact",
    response_model=List[DependencyImpactResponse],
    summary="Preview the cascade of a failure"
)
async def get_impact(
    service_id: str,
    propagator: CascadePropagator = Depends(get_cascade_propagator)
):
    return [DependencyImpactResponse.from_impact(i) for i in await propagator.impact_of(service_id)]


@router.post(
    "/services/{service_id}/cascade",
    response_model=List[DependencyImpactResponse],
    summary="Apply the cascade of a failure",
    description="Writes the impacted statuses. Only worsens statuses; safe to repeat."
)
async def apply_cascade(
    service_id: str,
    propagator: CascadePropagator = Depends(get_cascade_propagator)
):
    return [DependencyImpactResponse.from_impact(i) for i in await propagator.apply(service_id)]
