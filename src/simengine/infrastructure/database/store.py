"""
SQLAlchemy Record Store
=======================

Concrete ``IEngineStore`` backed by async SQLAlchemy.

Every ``transaction()`` owns one session and commits or rolls back as a
unit. Calls made outside a transaction run in their own short session, so
each is atomic on its own. Incident reads with ``for_update=True`` issue
``SELECT ... FOR UPDATE`` so concurrent passes over the same incident are
serialised by the database.
"""

from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, or_, select, union, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from simengine.config import OPEN_INCIDENT_STATUSES
from simengine.core import NotFoundError, StoreError
from simengine.infrastructure.database.models import (
    ServiceModel, ServiceDependencyModel, TeamModel, IncidentModel,
    EscalationRuleModel, IncidentEscalationModel, GameEventModel,
)
from simengine.shared.application import IEngineStore
from simengine.shared.domain import (
    Service, ServiceDependency, Incident, Team,
    EscalationRule, IncidentEscalation, GameEvent, IncidentFilter,
)
from simengine.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

_INCIDENT_COLUMNS = {
    "priority", "severity", "status", "sla_deadline", "sla_breached",
    "current_escalation_level", "escalation_count", "assigned_team_id",
    "affected_service_id", "affected_service_name", "title", "description",
}
_UUID_COLUMNS = {"assigned_team_id", "affected_service_id"}


def _to_uuid(value: Optional[str]) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _str(value: Optional[UUID]) -> Optional[str]:
    return str(value) if value is not None else None


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """Some backends drop tzinfo; the engine compares in UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ========== Row -> record mapping ==========

def _to_service(model: ServiceModel) -> Service:
    return Service(
        id=str(model.id),
        game_id=str(model.game_id),
        name=model.name,
        type=model.type,
        criticality=model.criticality,
        status=model.status,
        description=model.description,
        updated_at=_aware(model.updated_at),
    )


def _to_incident(model: IncidentModel) -> Incident:
    return Incident(
        id=str(model.id),
        game_id=str(model.game_id),
        incident_number=model.incident_number,
        title=model.title,
        description=model.description or "",
        priority=model.priority,
        severity=model.severity,
        status=model.status,
        sla_deadline=_aware(model.sla_deadline),
        sla_breached=bool(model.sla_breached),
        current_escalation_level=model.current_escalation_level or 0,
        escalation_count=model.escalation_count or 0,
        assigned_team_id=_str(model.assigned_team_id),
        affected_service_id=_str(model.affected_service_id),
        affected_service_name=model.affected_service_name,
        created_at=_aware(model.created_at),
        updated_at=_aware(model.updated_at),
    )


def _to_team(model: TeamModel) -> Team:
    return Team(
        id=str(model.id),
        game_id=str(model.game_id),
        name=model.name,
        role=model.role,
        score=model.score,
        morale_level=model.morale_level,
    )


def _to_rule(model: EscalationRuleModel) -> EscalationRule:
    return EscalationRule(
        id=str(model.id),
        game_id=str(model.game_id),
        name=model.name,
        description=model.description or "",
        priority_trigger=model.priority_trigger,
        time_threshold_minutes=model.time_threshold_minutes,
        escalation_level=model.escalation_level,
        notify_roles=list(model.notify_roles or []),
        auto_reassign=bool(model.auto_reassign),
        target_team_role=model.target_team_role,
    )


def _to_escalation(model: IncidentEscalationModel) -> IncidentEscalation:
    return IncidentEscalation(
        id=str(model.id),
        incident_id=str(model.incident_id),
        escalation_rule_id=_str(model.escalation_rule_id),
        from_team_id=_str(model.from_team_id),
        to_team_id=_str(model.to_team_id),
        escalation_level=model.escalation_level,
        reason=model.reason,
        escalated_by=model.escalated_by,
        acknowledged=bool(model.acknowledged),
        acknowledged_at=_aware(model.acknowledged_at),
        created_at=_aware(model.created_at),
    )


def _to_event(model: GameEventModel) -> GameEvent:
    return GameEvent(
        id=str(model.id),
        game_id=str(model.game_id),
        event_type=model.event_type,
        category=model.event_category,
        severity=model.severity,
        payload=dict(model.event_data or {}),
        actor_type=model.actor_type,
        created_at=_aware(model.created_at),
        dispatched_at=_aware(model.dispatched_at),
    )


class SQLAlchemyEngineStore(IEngineStore):
    """
    SQLAlchemy implementation of the engine record store.

    Takes a session factory rather than a session so that each transaction
    gets its own connection-bound unit of work.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self._current: ContextVar[Optional[AsyncSession]] = ContextVar(
            f"engine_store_session_{id(self)}", default=None
        )

    # ========== Sessions ==========

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SQLAlchemyEngineStore"]:
        if self._current.get() is not None:
            yield self
            return

        try:
            async with self._session_maker() as session:
                async with session.begin():
                    token = self._current.set(session)
                    try:
                        yield self
                    finally:
                        self._current.reset(token)
        except SQLAlchemyError as e:
            logger.error("Store transaction failed", extra={"error": str(e)})
            raise StoreError("Store transaction failed", {"error": str(e)}) from e

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        current = self._current.get()
        if current is not None:
            yield current
            return

        try:
            async with self._session_maker() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            logger.error("Store call failed", extra={"error": str(e)})
            raise StoreError("Store call failed", {"error": str(e)}) from e

    # ========== Games ==========

    async def list_game_ids(self) -> List[str]:
        async with self._session() as session:
            stmt = union(
                select(ServiceModel.game_id),
                select(IncidentModel.game_id),
            )
            result = await session.execute(stmt)
            return sorted(str(row[0]) for row in result.all())

    # ========== Services ==========

    async def get_service(self, service_id: str) -> Optional[Service]:
        service_uuid = _to_uuid(service_id)
        if service_uuid is None:
            return None
        async with self._session() as session:
            model = await session.get(ServiceModel, service_uuid)
            return _to_service(model) if model else None

    async def list_services(self, game_id: str) -> List[Service]:
        game_uuid = _to_uuid(game_id)
        if game_uuid is None:
            return []
        async with self._session() as session:
            stmt = (
                select(ServiceModel)
                .where(ServiceModel.game_id == game_uuid)
                .order_by(ServiceModel.name)
            )
            result = await session.execute(stmt)
            return [_to_service(m) for m in result.scalars().all()]

    async def add_service(self, service: Service) -> Service:
        async with self._session() as session:
            model = ServiceModel(
                id=_to_uuid(service.id) or uuid4(),
                game_id=_to_uuid(service.game_id),
                name=service.name,
                type=service.type,
                criticality=service.criticality,
                status=service.status,
                description=service.description,
                updated_at=service.updated_at,
            )
            session.add(model)
            await session.flush()
            return _to_service(model)

    async def update_service_status(self, service_id: str, status: str) -> None:
        async with self._session() as session:
            stmt = (
                update(ServiceModel)
                .where(ServiceModel.id == _to_uuid(service_id))
                .values(status=status, updated_at=datetime.now(timezone.utc))
            )
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise NotFoundError("Service", service_id)

    # ========== Dependencies ==========

    def _dependency_query(self):
        source = aliased(ServiceModel)
        target = aliased(ServiceModel)
        return (
            select(ServiceDependencyModel, source.name, target.name)
            .join(source, ServiceDependencyModel.service_id == source.id)
            .join(target, ServiceDependencyModel.depends_on_service_id == target.id)
        )

    @staticmethod
    def _to_dependency(model: ServiceDependencyModel, source_name: str, target_name: str) -> ServiceDependency:
        return ServiceDependency(
            id=str(model.id),
            game_id=str(model.game_id),
            service_id=str(model.service_id),
            depends_on_service_id=str(model.depends_on_service_id),
            dependency_type=model.dependency_type,
            impact_delay_minutes=model.impact_delay_minutes,
            created_at=_aware(model.created_at),
            service_name=source_name,
            depends_on_service_name=target_name,
        )

    async def lock_game_graph(self, game_id: str) -> None:
        """
        Lock every service row of the game, in id order.

        Edges only join services of one game, so two graph writers of the
        same game queue here and the second reads the first one's edges.
        """
        session = self._current.get()
        if session is None:
            raise RuntimeError("lock_game_graph() requires an open transaction")
        game_uuid = _to_uuid(game_id)
        if game_uuid is None:
            return
        stmt = (
            select(ServiceModel.id)
            .where(ServiceModel.game_id == game_uuid)
            .order_by(ServiceModel.id)
            .with_for_update()
        )
        await session.execute(stmt)

    async def list_dependencies(self, game_id: str) -> List[ServiceDependency]:
        game_uuid = _to_uuid(game_id)
        if game_uuid is None:
            return []
        async with self._session() as session:
            stmt = (
                self._dependency_query()
                .where(ServiceDependencyModel.game_id == game_uuid)
                .order_by(ServiceDependencyModel.created_at)
            )
            result = await session.execute(stmt)
            return [self._to_dependency(*row) for row in result.all()]

    async def get_dependency(self, dependency_id: str) -> Optional[ServiceDependency]:
        dependency_uuid = _to_uuid(dependency_id)
        if dependency_uuid is None:
            return None
        async with self._session() as session:
            stmt = self._dependency_query().where(ServiceDependencyModel.id == dependency_uuid)
            row = (await session.execute(stmt)).first()
            return self._to_dependency(*row) if row else None

    async def upsert_dependency(self, dependency: ServiceDependency) -> ServiceDependency:
        async with self._session() as session:
            stmt = select(ServiceDependencyModel).where(
                and_(
                    ServiceDependencyModel.service_id == _to_uuid(dependency.service_id),
                    ServiceDependencyModel.depends_on_service_id == _to_uuid(dependency.depends_on_service_id),
                )
            )
            model = (await session.execute(stmt)).scalar_one_or_none()

            if model is None:
                model = ServiceDependencyModel(
                    id=_to_uuid(dependency.id) or uuid4(),
                    game_id=_to_uuid(dependency.game_id),
                    service_id=_to_uuid(dependency.service_id),
                    depends_on_service_id=_to_uuid(dependency.depends_on_service_id),
                    dependency_type=dependency.dependency_type,
                    impact_delay_minutes=dependency.impact_delay_minutes,
                    created_at=dependency.created_at,
                )
                session.add(model)
            else:
                model.dependency_type = dependency.dependency_type
                model.impact_delay_minutes = dependency.impact_delay_minutes

            await session.flush()
            row = (await session.execute(
                self._dependency_query().where(ServiceDependencyModel.id == model.id)
            )).first()
            return self._to_dependency(*row)

    async def delete_dependency(self, dependency_id: str) -> bool:
        dependency_uuid = _to_uuid(dependency_id)
        if dependency_uuid is None:
            return False
        async with self._session() as session:
            result = await session.execute(
                delete(ServiceDependencyModel).where(ServiceDependencyModel.id == dependency_uuid)
            )
            return result.rowcount > 0

    # ========== Incidents ==========

    async def get_incident(self, incident_id: str, for_update: bool = False) -> Optional[Incident]:
        incident_uuid = _to_uuid(incident_id)
        if incident_uuid is None:
            return None
        async with self._session() as session:
            stmt = select(IncidentModel).where(IncidentModel.id == incident_uuid)
            if for_update:
                stmt = stmt.with_for_update().execution_options(populate_existing=True)
            model = (await session.execute(stmt)).scalar_one_or_none()
            return _to_incident(model) if model else None

    async def list_open_incidents(
        self,
        game_id: str,
        incident_filter: Optional[IncidentFilter] = None
    ) -> List[Incident]:
        game_uuid = _to_uuid(game_id)
        if game_uuid is None:
            return []

        conditions = [
            IncidentModel.game_id == game_uuid,
            IncidentModel.status.in_(OPEN_INCIDENT_STATUSES),
        ]
        if incident_filter is not None:
            if incident_filter.sla_breached is True:
                conditions.append(IncidentModel.sla_breached.is_(True))
            elif incident_filter.sla_breached is False:
                conditions.append(
                    or_(IncidentModel.sla_breached.is_(False), IncidentModel.sla_breached.is_(None))
                )
            if incident_filter.priority is not None:
                conditions.append(IncidentModel.priority == incident_filter.priority)
            if incident_filter.sla_deadline_before is not None:
                conditions.append(IncidentModel.sla_deadline < incident_filter.sla_deadline_before)
            if incident_filter.sla_deadline_after is not None:
                conditions.append(IncidentModel.sla_deadline > incident_filter.sla_deadline_after)

        async with self._session() as session:
            stmt = (
                select(IncidentModel)
                .where(and_(*conditions))
                .order_by(IncidentModel.created_at.asc())
            )
            result = await session.execute(stmt)
            return [_to_incident(m) for m in result.scalars().all()]

    async def update_incident(self, incident_id: str, patch: Dict[str, Any]) -> Incident:
        unknown = set(patch) - _INCIDENT_COLUMNS
        if unknown:
            raise AttributeError(f"Incident has no updatable fields {sorted(unknown)}")

        values = {
            key: (_to_uuid(value) if key in _UUID_COLUMNS else value)
            for key, value in patch.items()
        }
        values["updated_at"] = datetime.now(timezone.utc)

        incident_uuid = _to_uuid(incident_id)
        if incident_uuid is None:
            raise NotFoundError("Incident", incident_id)
        async with self._session() as session:
            model = await session.get(IncidentModel, incident_uuid)
            if model is None:
                raise NotFoundError("Incident", incident_id)
            for key, value in values.items():
                setattr(model, key, value)
            await session.flush()
            return _to_incident(model)

    # ========== Escalation rules ==========

    async def list_escalation_rules(self, game_id: str) -> List[EscalationRule]:
        game_uuid = _to_uuid(game_id)
        if game_uuid is None:
            return []
        async with self._session() as session:
            stmt = (
                select(EscalationRuleModel)
                .where(EscalationRuleModel.game_id == game_uuid)
                .order_by(EscalationRuleModel.priority_trigger, EscalationRuleModel.escalation_level)
            )
            result = await session.execute(stmt)
            return [_to_rule(m) for m in result.scalars().all()]

    async def get_escalation_rule(self, rule_id: str) -> Optional[EscalationRule]:
        rule_uuid = _to_uuid(rule_id)
        if rule_uuid is None:
            return None
        async with self._session() as session:
            model = await session.get(EscalationRuleModel, rule_uuid)
            return _to_rule(model) if model else None

    async def create_escalation_rule(self, rule: EscalationRule) -> EscalationRule:
        async with self._session() as session:
            model = EscalationRuleModel(
                id=_to_uuid(rule.id) or uuid4(),
                game_id=_to_uuid(rule.game_id),
                name=rule.name,
                description=rule.description,
                priority_trigger=rule.priority_trigger,
                time_threshold_minutes=rule.time_threshold_minutes,
                escalation_level=rule.escalation_level,
                notify_roles=list(rule.notify_roles),
                auto_reassign=rule.auto_reassign,
                target_team_role=rule.target_team_role,
            )
            session.add(model)
            await session.flush()
            return _to_rule(model)

    # ========== Escalation audit ==========

    async def insert_escalation(self, escalation: IncidentEscalation) -> IncidentEscalation:
        async with self._session() as session:
            model = IncidentEscalationModel(
                id=_to_uuid(escalation.id) or uuid4(),
                incident_id=_to_uuid(escalation.incident_id),
                escalation_rule_id=_to_uuid(escalation.escalation_rule_id),
                from_team_id=_to_uuid(escalation.from_team_id),
                to_team_id=_to_uuid(escalation.to_team_id),
                escalation_level=escalation.escalation_level,
                reason=escalation.reason,
                escalated_by=escalation.escalated_by,
                acknowledged=escalation.acknowledged,
                acknowledged_at=escalation.acknowledged_at,
                created_at=escalation.created_at,
            )
            session.add(model)
            await session.flush()
            return _to_escalation(model)

    async def get_escalation(self, escalation_id: str) -> Optional[IncidentEscalation]:
        escalation_uuid = _to_uuid(escalation_id)
        if escalation_uuid is None:
            return None
        async with self._session() as session:
            model = await session.get(IncidentEscalationModel, escalation_uuid)
            return _to_escalation(model) if model else None

    async def list_escalations(self, incident_id: str) -> List[IncidentEscalation]:
        incident_uuid = _to_uuid(incident_id)
        if incident_uuid is None:
            return []
        async with self._session() as session:
            stmt = (
                select(IncidentEscalationModel)
                .where(IncidentEscalationModel.incident_id == incident_uuid)
                .order_by(
                    IncidentEscalationModel.created_at.desc(),
                    IncidentEscalationModel.escalation_level.desc(),
                )
            )
            result = await session.execute(stmt)
            return [_to_escalation(m) for m in result.scalars().all()]

    async def list_unacknowledged_escalations(self, team_id: str) -> List[IncidentEscalation]:
        team_uuid = _to_uuid(team_id)
        if team_uuid is None:
            return []
        async with self._session() as session:
            stmt = (
                select(IncidentEscalationModel)
                .where(
                    IncidentEscalationModel.to_team_id == team_uuid,
                    IncidentEscalationModel.acknowledged.is_(False),
                )
                .order_by(IncidentEscalationModel.created_at.desc())
            )
            result = await session.execute(stmt)
            return [_to_escalation(m) for m in result.scalars().all()]

    async def acknowledge_escalation(self, escalation_id: str, acknowledged_at: datetime) -> None:
        async with self._session() as session:
            result = await session.execute(
                update(IncidentEscalationModel)
                .where(IncidentEscalationModel.id == _to_uuid(escalation_id))
                .values(acknowledged=True, acknowledged_at=acknowledged_at)
            )
            if result.rowcount == 0:
                raise NotFoundError("Escalation", escalation_id)

    # ========== Teams ==========

    async def get_team(self, team_id: str) -> Optional[Team]:
        team_uuid = _to_uuid(team_id)
        if team_uuid is None:
            return None
        async with self._session() as session:
            model = await session.get(TeamModel, team_uuid)
            return _to_team(model) if model else None

    async def find_team_by_role(self, game_id: str, role: str) -> Optional[Team]:
        async with self._session() as session:
            stmt = (
                select(TeamModel)
                .where(
                    TeamModel.game_id == _to_uuid(game_id),
                    TeamModel.role.ilike(f"%{role}%"),
                )
                .limit(1)
            )
            model = (await session.execute(stmt)).scalar_one_or_none()
            return _to_team(model) if model else None

    async def _adjust_team(self, team_id: str, attribute: str, delta: int) -> int:
        async with self._session() as session:
            stmt = (
                select(TeamModel)
                .where(TeamModel.id == _to_uuid(team_id))
                .with_for_update()
            )
            model = (await session.execute(stmt)).scalar_one_or_none()
            if model is None:
                raise NotFoundError("Team", team_id)
            value = max(0, getattr(model, attribute) + delta)
            setattr(model, attribute, value)
            await session.flush()
            return value

    async def adjust_team_score(self, team_id: str, delta: int) -> int:
        return await self._adjust_team(team_id, "score", delta)

    async def adjust_team_morale(self, team_id: str, delta: int) -> int:
        return await self._adjust_team(team_id, "morale_level", delta)

    # ========== Events / outbox ==========

    async def append_event(
        self,
        game_id: str,
        event_type: str,
        severity: str,
        payload: Dict[str, Any],
        category: str = "infrastructure",
        actor_type: str = "system"
    ) -> GameEvent:
        async with self._session() as session:
            model = GameEventModel(
                id=uuid4(),
                game_id=_to_uuid(game_id),
                event_type=event_type,
                event_category=category,
                severity=severity,
                event_data=payload,
                actor_type=actor_type,
                created_at=datetime.now(timezone.utc),
            )
            session.add(model)
            await session.flush()
            return _to_event(model)

    async def list_events(self, game_id: str, event_type: Optional[str] = None) -> List[GameEvent]:
        async with self._session() as session:
            stmt = select(GameEventModel).where(GameEventModel.game_id == _to_uuid(game_id))
            if event_type is not None:
                stmt = stmt.where(GameEventModel.event_type == event_type)
            stmt = stmt.order_by(GameEventModel.created_at.asc())
            result = await session.execute(stmt)
            return [_to_event(m) for m in result.scalars().all()]

    async def list_undispatched_events(self, limit: int = 50) -> List[GameEvent]:
        async with self._session() as session:
            stmt = (
                select(GameEventModel)
                .where(GameEventModel.dispatched_at.is_(None))
                .order_by(GameEventModel.created_at.asc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [_to_event(m) for m in result.scalars().all()]

    async def mark_events_dispatched(self, event_ids: List[str], dispatched_at: datetime) -> None:
        uuids = [u for u in (_to_uuid(e) for e in event_ids) if u is not None]
        if not uuids:
            return
        async with self._session() as session:
            await session.execute(
                update(GameEventModel)
                .where(GameEventModel.id.in_(uuids))
                .values(dispatched_at=dispatched_at)
            )
