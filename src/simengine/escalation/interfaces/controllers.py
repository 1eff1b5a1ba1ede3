"""
Escalation Controllers (API Routes)
===================================

FastAPI routes for escalation rules, checks and the escalation audit.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from simengine.escalation.application import (
    EscalationRuleEngine,
    EscalationRuleCreateRequest,
    EscalationRuleResponse,
    EscalationCheckResponse,
    EscalateRequest,
    IncidentEscalationResponse,
    AutoEscalationResponse,
    InitializeRulesResponse,
)
from simengine.shared.api import get_store, get_config_provider
from simengine.shared.application import IEngineStore, IEngineConfigProvider

router = APIRouter(tags=["Escalations"])


def get_escalation_engine(
    store: IEngineStore = Depends(get_store),
    config_provider: IEngineConfigProvider = Depends(get_config_provider)
) -> EscalationRuleEngine:
    return EscalationRuleEngine(store, config_provider)


@router.get(
    "/games/{game_id}/escalation-rules",
    response_model=List[EscalationRuleResponse],
    summary="List escalation rules"
)
async def list_rules(
    game_id: str,
    engine: EscalationRuleEngine = Depends(get_escalation_engine)
):
    return [EscalationRuleResponse.from_rule(r) for r in await engine.get_escalation_rules(game_id)]


@router.post(
    "/games/{game_id}/escalation-rules",
    response_model=EscalationRuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a custom escalation rule"
)
async def create_rule(
    game_id: str,
    request: EscalationRuleCreateRequest,
    engine: EscalationRuleEngine = Depends(get_escalation_engine)
):
    rule = await engine.create_escalation_rule(
        game_id,
        request.name,
        request.priority_trigger,
        request.time_threshold_minutes,
        escalation_level=request.escalation_level,
        description=request.description,
        notify_roles=request.notify_roles,
        auto_reassign=request.auto_reassign,
        target_team_role=request.target_team_role,
    )
    return EscalationRuleResponse.from_rule(rule)


@router.post(
    "/games/{game_id}/escalation-rules/initialize",
    response_model=InitializeRulesResponse,
    summary="Seed the default escalation rules"
)
async def initialize_rules(
    game_id: str,
    engine: EscalationRuleEngine = Depends(get_escalation_engine)
):
    return InitializeRulesResponse(rules_created=await engine.initialize_default_rules(game_id))


@router.get(
    "/games/{game_id}/escalations/check",
    response_model=List[EscalationCheckResponse],
    summary="Which open incidents are due for escalation",
    description="Read-only. Incidents are listed most urgent first."
)
async def check_escalations(
    game_id: str,
    engine: EscalationRuleEngine = Depends(get_escalation_engine)
):
    return [EscalationCheckResponse.from_check(c) for c in await engine.check_escalations(game_id)]


@router.post(
    "/games/{game_id}/escalations/process",
    response_model=AutoEscalationResponse,
    summary="Run automatic escalations now"
)
async def process_escalations(
    game_id: str,
    engine: EscalationRuleEngine = Depends(get_escalation_engine)
):
    return AutoEscalationResponse(escalated_count=await engine.process_auto_escalations(game_id))


@router.post(
    "/incidents/{incident_id}/escalate",
    response_model=IncidentEscalationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Escalate an incident manually",
    description="""
    Raises the incident one escalation level regardless of rule timing.

    **Errors**:
    - 404 if the incident, rule or team does not exist
    - 409 if the incident is resolved or closed
    """
)
async def escalate_incident(
    incident_id: str,
    request: EscalateRequest,
    engine: EscalationRuleEngine = Depends(get_escalation_engine)
):
    escalation = await engine.escalate_incident(
        incident_id,
        request.rule_id,
        request.reason,
        request.escalated_by,
        request.to_team_id,
    )
    return IncidentEscalationResponse.from_escalation(escalation)


@router.get(
    "/incidents/{incident_id}/escalations",
    response_model=List[IncidentEscalationResponse],
    summary="Escalation history of an incident"
)
async def list_incident_escalations(
    incident_id: str,
    engine: EscalationRuleEngine = Depends(get_escalation_engine)
):
    rows = await engine.get_incident_escalations(incident_id)
    return [IncidentEscalationResponse.from_escalation(e) for e in rows]


@router.get(
    "/teams/{team_id}/escalations/pending",
    response_model=List[IncidentEscalationResponse],
    summary="Unacknowledged escalations handed to a team"
)
async def list_pending_escalations(
    team_id: str,
    engine: EscalationRuleEngine = Depends(get_escalation_engine)
):
    rows = await engine.get_unacknowledged_escalations(team_id)
    return [IncidentEscalationResponse.from_escalation(e) for e in rows]


@router.post(
    "/escalations/{escalation_id}/acknowledge",
    response_model=IncidentEscalationResponse,
    summary="Acknowledge an escalation"
)
async def acknowledge_escalation(
    escalation_id: str,
    engine: EscalationRuleEngine = Depends(get_escalation_engine)
):
    return IncidentEscalationResponse.from_escalation(
        await engine.acknowledge_escalation(escalation_id)
    )
