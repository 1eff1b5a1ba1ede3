"""
Escalation Application Services
===============================

Rule-driven hand-off of incidents to higher-tier teams.

Every escalation advances the incident exactly one level and writes one
audit row, so the audit trail always accounts for the current level.
"""

from datetime import datetime
from typing import List, Optional

from simengine.config import (
    EventType, EventSeverity, SEVERITY_RANK, VALID_PRIORITIES,
)
from simengine.core import CapacityOrStateError, NotFoundError, ValidationException
from simengine.escalation.domain import (
    EscalationCheck, DEFAULT_ESCALATION_RULES,
    select_next_rule, auto_escalation_reason,
)
from simengine.shared.application import IEngineStore, IEngineConfigProvider
from simengine.shared.domain import EscalationRule, IncidentEscalation, new_id, utcnow
from simengine.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class EscalationRuleEngine:
    """
    Service for escalation rules, checks and escalations.

    ``process_auto_escalations`` is the scheduled driver; manual
    escalations call ``escalate_incident`` directly and skip rule gating.
    """

    def __init__(self, store: IEngineStore, config_provider: IEngineConfigProvider):
        self._store = store
        self._config_provider = config_provider

    # ========== Rules ==========

    async def get_escalation_rules(self, game_id: str) -> List[EscalationRule]:
        return await self._store.list_escalation_rules(game_id)

    async def create_escalation_rule(
        self,
        game_id: str,
        name: str,
        priority_trigger: str,
        time_threshold_minutes: int,
        escalation_level: int = 1,
        description: str = "",
        notify_roles: Optional[List[str]] = None,
        auto_reassign: bool = False,
        target_team_role: Optional[str] = None
    ) -> EscalationRule:
        """
        Create a custom rule for a game.

        Raises:
            ValidationException: unknown priority, negative threshold,
                level below 1, or auto-reassign without a target role
        """
        if priority_trigger not in VALID_PRIORITIES:
            raise ValidationException(
                f"priority_trigger must be one of {VALID_PRIORITIES}",
                {"priority_trigger": priority_trigger}
            )
        if time_threshold_minutes < 0:
            raise ValidationException("time_threshold_minutes cannot be negative")
        if escalation_level < 1:
            raise ValidationException("escalation_level must be at least 1")
        if auto_reassign and not target_team_role:
            raise ValidationException("auto_reassign requires target_team_role")

        rule = await self._store.create_escalation_rule(EscalationRule(
            id=new_id(),
            game_id=game_id,
            name=name,
            description=description,
            priority_trigger=priority_trigger,
            time_threshold_minutes=time_threshold_minutes,
            escalation_level=escalation_level,
            notify_roles=list(notify_roles or []),
            auto_reassign=auto_reassign,
            target_team_role=target_team_role,
        ))
        logger.info(
            "Escalation rule created",
            extra={"game_id": game_id, "rule_id": rule.id, "rule_name": name}
        )
        return rule

    async def initialize_default_rules(self, game_id: str) -> int:
        """Seed the default rule set; no-op if the game already has rules."""
        async with self._store.transaction() as store:
            if await store.list_escalation_rules(game_id):
                return 0
            for template in DEFAULT_ESCALATION_RULES:
                await store.create_escalation_rule(EscalationRule(
                    id=new_id(),
                    game_id=game_id,
                    name=template.name,
                    description=template.description,
                    priority_trigger=template.priority_trigger,
                    time_threshold_minutes=template.time_threshold_minutes,
                    escalation_level=template.escalation_level,
                    notify_roles=list(template.notify_roles),
                ))

        logger.info(
            "Initialized escalation rules",
            extra={"game_id": game_id, "rules_created": len(DEFAULT_ESCALATION_RULES)}
        )
        return len(DEFAULT_ESCALATION_RULES)

    # ========== Checks ==========

    async def check_escalations(
        self,
        game_id: str,
        now: Optional[datetime] = None
    ) -> List[EscalationCheck]:
        """
        Evaluate every open incident against the game's rules.

        Read-only. Incidents are returned most urgent first.
        """
        current_time = now or utcnow()
        incidents = await self._store.list_open_incidents(game_id)
        rules = await self._store.list_escalation_rules(game_id)

        incidents.sort(key=lambda i: (-SEVERITY_RANK.get(i.priority, 0), i.created_at))

        checks = []
        for incident in incidents:
            minutes_open = incident.minutes_open(current_time)
            rule = select_next_rule(
                rules, incident.priority, incident.current_escalation_level, minutes_open
            )
            checks.append(EscalationCheck(
                incident_id=incident.id,
                incident_number=incident.incident_number,
                title=incident.title,
                priority=incident.priority,
                current_level=incident.current_escalation_level,
                minutes_open=round(minutes_open),
                should_escalate=rule is not None,
                next_level=rule.escalation_level if rule else None,
                rule=rule,
            ))
        return checks

    # ========== Escalation ==========

    async def escalate_incident(
        self,
        incident_id: str,
        rule_id: Optional[str] = None,
        reason: str = "",
        escalated_by: str = "system",
        to_team_id: Optional[str] = None,
        *,
        expected_level: Optional[int] = None
    ) -> IncidentEscalation:
        """
        Raise an incident one escalation level.

        Target team: ``to_team_id`` if given, else the team matching the
        rule's ``target_team_role`` when the rule auto-reassigns, else the
        current team. The previous team loses ``new_level`` times the
        per-level penalty.

        Args:
            expected_level: Refuse unless the incident is still at this
                level (guards concurrent automatic passes)

        Raises:
            NotFoundError: incident, or an explicitly named rule or team, is missing
            CapacityOrStateError: incident is resolved/closed or its level moved
        """
        config = self._config_provider.get_config()

        async with self._store.transaction() as store:
            incident = await store.get_incident(incident_id, for_update=True)
            if incident is None:
                raise NotFoundError("Incident", incident_id)
            if not incident.is_open:
                raise CapacityOrStateError(
                    f"Incident is {incident.status} and cannot be escalated",
                    {"incident_id": incident_id, "status": incident.status}
                )
            if expected_level is not None and incident.current_escalation_level != expected_level:
                raise CapacityOrStateError(
                    "Incident escalation level changed concurrently",
                    {
                        "incident_id": incident_id,
                        "expected_level": expected_level,
                        "current_level": incident.current_escalation_level,
                    }
                )

            rule = None
            if rule_id is not None:
                rule = await store.get_escalation_rule(rule_id)
                if rule is None:
                    raise NotFoundError("EscalationRule", rule_id)

            target_team_id = None
            reassignment_unresolved = False
            if to_team_id is not None:
                team = await store.get_team(to_team_id)
                if team is None or team.game_id != incident.game_id:
                    raise NotFoundError("Team", to_team_id)
                target_team_id = team.id
            elif rule is not None and rule.auto_reassign and rule.target_team_role:
                team = await store.find_team_by_role(incident.game_id, rule.target_team_role)
                if team is not None:
                    target_team_id = team.id
                else:
                    reassignment_unresolved = True
                    logger.warning(
                        "No team matches escalation target role, keeping current team",
                        extra={
                            "incident_id": incident_id,
                            "rule_id": rule.id,
                            "target_team_role": rule.target_team_role,
                        }
                    )

            previous_level = incident.current_escalation_level
            new_level = previous_level + 1
            previous_team_id = incident.assigned_team_id

            escalation = await store.insert_escalation(IncidentEscalation(
                id=new_id(),
                incident_id=incident.id,
                escalation_rule_id=rule_id,
                from_team_id=previous_team_id,
                to_team_id=target_team_id,
                escalation_level=new_level,
                reason=reason,
                escalated_by=escalated_by,
            ))

            patch = {
                "current_escalation_level": new_level,
                "escalation_count": incident.escalation_count + 1,
            }
            if target_team_id is not None:
                patch["assigned_team_id"] = target_team_id
            await store.update_incident(incident.id, patch)

            penalty = 0
            if previous_team_id is not None:
                penalty = new_level * config.escalation_penalty_per_level
                await store.adjust_team_score(previous_team_id, -penalty)

            payload = {
                "incidentId": incident.id,
                "incidentNumber": incident.incident_number,
                "title": incident.title,
                "reason": reason,
                "escalationLevel": new_level,
                "previousLevel": previous_level,
                "ruleId": rule_id,
                "fromTeamId": previous_team_id,
                "toTeamId": target_team_id,
                "escalatedBy": escalated_by,
                "penalty": penalty,
            }
            if reassignment_unresolved:
                payload["reassignment_unresolved"] = True

            await store.append_event(
                incident.game_id,
                EventType.INCIDENT_ESCALATED,
                EventSeverity.WARNING,
                payload,
                category="incident",
                actor_type="system" if escalated_by == "system" else "user",
            )
            await store.append_event(
                incident.game_id,
                EventType.ESCALATION_LEVEL_RAISED,
                EventSeverity.INFO,
                {
                    "incidentId": incident.id,
                    "escalationId": escalation.id,
                    "previousLevel": previous_level,
                    "escalationLevel": new_level,
                },
                category="incident",
            )

        logger.info(
            "Incident escalated",
            extra={
                "incident_id": incident_id,
                "escalation_level": new_level,
                "rule_id": rule_id,
                "to_team_id": target_team_id,
                "penalty": penalty,
            }
        )
        return escalation

    async def process_auto_escalations(self, game_id: str, now: Optional[datetime] = None) -> int:
        """
        Escalate every incident whose next rule is due.

        Returns:
            Number of incidents escalated
        """
        escalated = 0
        for check in await self.check_escalations(game_id, now):
            if not check.should_escalate or check.rule is None:
                continue
            try:
                await self.escalate_incident(
                    check.incident_id,
                    check.rule.id,
                    auto_escalation_reason(check.rule, check.minutes_open),
                    "system",
                    expected_level=check.current_level,
                )
            except CapacityOrStateError as e:
                # Resolved or escalated by someone else since the check
                logger.info(
                    "Skipped automatic escalation",
                    extra={"incident_id": check.incident_id, "reason": e.message}
                )
                continue
            escalated += 1

        if escalated:
            logger.info(
                "Automatic escalations processed",
                extra={"game_id": game_id, "escalated_count": escalated}
            )
        return escalated

    # ========== Audit ==========

    async def acknowledge_escalation(
        self,
        escalation_id: str,
        now: Optional[datetime] = None
    ) -> IncidentEscalation:
        """
        Mark an escalation as acknowledged by the receiving team.

        Raises:
            NotFoundError: no such escalation
            CapacityOrStateError: already acknowledged
        """
        async with self._store.transaction() as store:
            escalation = await store.get_escalation(escalation_id)
            if escalation is None:
                raise NotFoundError("Escalation", escalation_id)
            if escalation.acknowledged:
                raise CapacityOrStateError(
                    "Escalation already acknowledged",
                    {"escalation_id": escalation_id}
                )
            await store.acknowledge_escalation(escalation_id, now or utcnow())
            escalation = await store.get_escalation(escalation_id)

        logger.info("Escalation acknowledged", extra={"escalation_id": escalation_id})
        return escalation

    async def get_incident_escalations(self, incident_id: str) -> List[IncidentEscalation]:
        """Escalation history of an incident, newest first."""
        return await self._store.list_escalations(incident_id)

    async def get_unacknowledged_escalations(self, team_id: str) -> List[IncidentEscalation]:
        """Escalations handed to a team that it has not acknowledged yet."""
        return await self._store.list_unacknowledged_escalations(team_id)
