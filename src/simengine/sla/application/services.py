"""
SLA Application Services
========================

Detects SLA breaches, bumps incident priority and penalises team morale.

Each breach is processed in its own transaction that re-reads the incident
under a row lock, so a breach is applied exactly once even when two passes
overlap.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from simengine.config import EventType, EventSeverity
from simengine.shared.application import IEngineStore, IEngineConfigProvider
from simengine.shared.domain import IncidentFilter, utcnow
from simengine.shared.infrastructure.logging import get_logger
from simengine.sla.domain import (
    SLABreach, SLACheckResult, SLAStatusSummary, AtRiskIncident,
    SLAWindow, escalate_priority,
)

logger = get_logger(__name__)


class SLAMonitor:
    """
    Service for SLA breach processing and SLA dashboards.

    Run periodically by the maintenance cycle.
    """

    def __init__(self, store: IEngineStore, config_provider: IEngineConfigProvider):
        self._store = store
        self._config_provider = config_provider

    async def check_and_process_breaches(
        self,
        game_id: str,
        now: Optional[datetime] = None
    ) -> SLACheckResult:
        """
        Mark every newly breached incident of a game.

        Args:
            game_id: Game to scan
            now: Evaluation time (defaults to the current UTC time)

        Returns:
            SLACheckResult with the breaches applied by this call
        """
        current_time = now or utcnow()
        result = SLACheckResult()

        candidates = await self._store.list_open_incidents(
            game_id,
            IncidentFilter(sla_deadline_before=current_time, sla_breached=False)
        )
        candidates.sort(key=lambda i: i.sla_deadline)

        for candidate in candidates:
            breach = await self._process_breach(candidate.id, current_time)
            if breach is not None:
                result.add(breach)

        if result.breached_count:
            logger.info(
                "SLA check complete",
                extra={
                    "game_id": game_id,
                    "breached_count": result.breached_count,
                    "escalated_count": result.escalated_count,
                }
            )
        return result

    async def _process_breach(self, incident_id: str, now: datetime) -> Optional[SLABreach]:
        config = self._config_provider.get_config()

        async with self._store.transaction() as store:
            incident = await store.get_incident(incident_id, for_update=True)
            # Another pass may have got here first
            if (incident is None or not incident.is_open or incident.sla_breached
                    or incident.sla_deadline is None or not incident.sla_deadline < now):
                return None

            previous_priority = incident.priority
            new_priority = escalate_priority(previous_priority)
            escalated = new_priority != previous_priority

            await store.update_incident(incident.id, {
                "sla_breached": True,
                "priority": new_priority,
            })

            team = None
            if incident.assigned_team_id:
                team = await store.get_team(incident.assigned_team_id)

            await store.append_event(
                incident.game_id,
                EventType.SLA_BREACHED,
                EventSeverity.CRITICAL,
                {
                    "incidentId": incident.id,
                    "incidentNumber": incident.incident_number,
                    "title": incident.title,
                    "previousPriority": previous_priority,
                    "newPriority": new_priority,
                    "escalated": escalated,
                    "teamId": incident.assigned_team_id,
                    "teamName": team.name if team else None,
                    "breachTime": now.isoformat(),
                    "slaDeadline": incident.sla_deadline.isoformat(),
                },
                category="incident",
            )

            if escalated:
                await store.append_event(
                    incident.game_id,
                    EventType.INCIDENT_ESCALATED,
                    EventSeverity.WARNING,
                    {
                        "incidentId": incident.id,
                        "incidentNumber": incident.incident_number,
                        "reason": "SLA breach auto-escalation",
                        "previousPriority": previous_priority,
                        "newPriority": new_priority,
                    },
                    category="incident",
                )
                if team is not None:
                    await store.adjust_team_morale(team.id, -config.sla_morale_penalty)

        logger.info(
            "SLA breached",
            extra={
                "incident_id": incident.id,
                "incident_number": incident.incident_number,
                "previous_priority": previous_priority,
                "new_priority": new_priority,
                "escalated": escalated,
            }
        )
        return SLABreach(
            incident_id=incident.id,
            incident_number=incident.incident_number,
            title=incident.title,
            previous_priority=previous_priority,
            new_priority=new_priority,
            escalated=escalated,
            team_id=incident.assigned_team_id,
            team_name=team.name if team else None,
        )

    async def get_sla_status(self, game_id: str, now: Optional[datetime] = None) -> SLAStatusSummary:
        """Open incidents split into within SLA, at risk and breached."""
        window = SLAWindow(now or utcnow(), self._config_provider.get_config().at_risk_window_minutes)
        incidents = await self._store.list_open_incidents(game_id)

        return SLAStatusSummary(
            total=len(incidents),
            within_sla=sum(1 for i in incidents if window.is_comfortable(i.sla_deadline)),
            breached=sum(
                1 for i in incidents
                if i.sla_breached or window.has_passed(i.sla_deadline)
            ),
            at_risk=sum(
                1 for i in incidents
                if not i.sla_breached and window.is_at_risk(i.sla_deadline)
            ),
        )

    async def get_at_risk_incidents(
        self,
        game_id: str,
        within_minutes: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> List[AtRiskIncident]:
        """
        Unbreached incidents whose deadline falls within the window.

        Args:
            within_minutes: Window size; defaults to ``at_risk_window_minutes``
        """
        current_time = now or utcnow()
        minutes = within_minutes or self._config_provider.get_config().at_risk_window_minutes
        window = SLAWindow(current_time, minutes)

        incidents = await self._store.list_open_incidents(
            game_id,
            IncidentFilter(
                sla_breached=False,
                sla_deadline_after=current_time,
                sla_deadline_before=current_time + timedelta(minutes=minutes, microseconds=1),
            )
        )
        incidents = [i for i in incidents if window.is_at_risk(i.sla_deadline)]
        incidents.sort(key=lambda i: i.sla_deadline)

        at_risk = []
        for incident in incidents:
            team = await self._store.get_team(incident.assigned_team_id) if incident.assigned_team_id else None
            at_risk.append(AtRiskIncident(
                id=incident.id,
                incident_number=incident.incident_number,
                title=incident.title,
                priority=incident.priority,
                severity=incident.severity,
                status=incident.status,
                sla_deadline=incident.sla_deadline,
                minutes_remaining=window.minutes_remaining(incident.sla_deadline),
                team_id=incident.assigned_team_id,
                team_name=team.name if team else None,
            ))
        return at_risk
