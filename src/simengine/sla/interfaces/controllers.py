"""
SLA Controllers (API Routes)
============================

FastAPI routes for SLA monitoring.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from simengine.shared.api import get_store, get_config_provider
from simengine.shared.application import IEngineStore, IEngineConfigProvider
from simengine.sla.application import (
    SLAMonitor,
    SLACheckResponse,
    SLAStatusResponse,
    AtRiskIncidentResponse,
)

router = APIRouter(prefix="/games/{game_id}/sla", tags=["SLA Monitoring"])


def get_sla_monitor(
    store: IEngineStore = Depends(get_store),
    config_provider: IEngineConfigProvider = Depends(get_config_provider)
) -> SLAMonitor:
    return SLAMonitor(store, config_provider)


@router.post(
    "/check",
    response_model=SLACheckResponse,
    summary="Process SLA breaches now",
    description="""
    Marks every open incident whose deadline has passed and bumps its
    priority one step (critical stays critical).

    **Idempotent**: an incident is only ever breached once.
    """
)
async def check_breaches(
    game_id: str,
    monitor: SLAMonitor = Depends(get_sla_monitor)
):
    return SLACheckResponse.from_result(await monitor.check_and_process_breaches(game_id))


@router.get(
    "/status",
    response_model=SLAStatusResponse,
    summary="SLA status summary"
)
async def get_sla_status(
    game_id: str,
    monitor: SLAMonitor = Depends(get_sla_monitor)
):
    return SLAStatusResponse.from_summary(await monitor.get_sla_status(game_id))


@router.get(
    "/at-risk",
    response_model=List[AtRiskIncidentResponse],
    summary="Incidents close to breaching"
)
async def get_at_risk_incidents(
    game_id: str,
    within_minutes: Optional[int] = Query(None, ge=1, le=1440),
    monitor: SLAMonitor = Depends(get_sla_monitor)
):
    incidents = await monitor.get_at_risk_incidents(game_id, within_minutes)
    return [AtRiskIncidentResponse.from_incident(i) for i in incidents]
