"""Integration tests for the SQLAlchemy store against in-memory SQLite."""

from datetime import timedelta
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from simengine.config import Priority, ServiceStatus, Severity
from simengine.core import CycleError, NotFoundError
from simengine.escalation.application import EscalationRuleEngine
from simengine.health.application import ServiceHealthAggregator
from simengine.infrastructure.database import Base
from simengine.infrastructure.database.models import IncidentModel, TeamModel
from simengine.infrastructure.database.store import SQLAlchemyEngineStore
from simengine.shared.domain import Service, new_id
from simengine.sla.application import SLAMonitor
from simengine.topology.application import CascadePropagator, DependencyGraphService

from conftest import NOW


@pytest_asyncio.fixture
async def session_maker():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest.fixture
def sql_store(session_maker):
    return SQLAlchemyEngineStore(session_maker)


@pytest.fixture
def game_id():
    return new_id()


async def _seed(session_maker, *models):
    async with session_maker() as session:
        async with session.begin():
            session.add_all(models)


def _incident(game_id: str, **kwargs) -> IncidentModel:
    values = {
        "id": uuid4(),
        "game_id": UUID(game_id),
        "incident_number": "INC-0001",
        "title": "Database down",
        "priority": Priority.HIGH,
        "severity": Severity.CRITICAL,
        "created_at": NOW - timedelta(minutes=45),
        "updated_at": NOW - timedelta(minutes=45),
    }
    values.update(kwargs)
    return IncidentModel(**values)


async def _service(store, game_id: str, name: str, type: str = "service") -> Service:
    return await store.add_service(Service(id=new_id(), game_id=game_id, name=name, type=type))


class TestSQLAlchemyEngineStore:

    @pytest.mark.asyncio
    async def test_dependencies_round_trip_with_names(self, sql_store, config_provider, game_id):
        db = await _service(sql_store, game_id, "Primary Database", "database")
        web = await _service(sql_store, game_id, "Web Application", "application")
        graph = DependencyGraphService(sql_store, config_provider)

        edge = await graph.add_dependency(game_id, web.id, db.id, "hard")
        updated = await graph.add_dependency(game_id, web.id, db.id, "soft", 3)

        [stored] = await sql_store.list_dependencies(game_id)
        assert updated.id == edge.id
        assert stored.service_name == "Web Application"
        assert stored.depends_on_service_name == "Primary Database"
        assert stored.dependency_type == "soft"
        with pytest.raises(CycleError):
            await graph.add_dependency(game_id, db.id, web.id)
        assert await sql_store.list_game_ids() == [game_id]

    @pytest.mark.asyncio
    async def test_graph_lock_inside_transaction_only(self, sql_store, game_id):
        await _service(sql_store, game_id, "Primary Database", "database")

        with pytest.raises(RuntimeError):
            await sql_store.lock_game_graph(game_id)

        async with sql_store.transaction() as tx:
            await tx.lock_game_graph(game_id)
            await tx.lock_game_graph("not-a-uuid")

    @pytest.mark.asyncio
    async def test_failed_transaction_rolls_back(self, sql_store, game_id):
        service = await _service(sql_store, game_id, "CDN", "network")

        with pytest.raises(RuntimeError):
            async with sql_store.transaction() as tx:
                await tx.update_service_status(service.id, ServiceStatus.DOWN)
                raise RuntimeError("abort")

        assert (await sql_store.get_service(service.id)).status == ServiceStatus.OPERATIONAL

    @pytest.mark.asyncio
    async def test_recompute_and_cascade(self, sql_store, session_maker, config_provider, game_id):
        db = await _service(sql_store, game_id, "Primary Database", "database")
        web = await _service(sql_store, game_id, "Web Application", "application")
        await DependencyGraphService(sql_store, config_provider).add_dependency(game_id, web.id, db.id, "soft")
        await _seed(session_maker, _incident(game_id))

        changes = await ServiceHealthAggregator(sql_store, config_provider).recompute_all(game_id)
        impacts = await CascadePropagator(sql_store, config_provider).apply(db.id)

        assert {c.service_name: c.new_status for c in changes} == {
            "Primary Database": ServiceStatus.DOWN,
            "Web Application": ServiceStatus.DEGRADED,
        }
        assert [i.service_id for i in impacts] == [web.id]
        assert (await sql_store.get_service(web.id)).status == ServiceStatus.DEGRADED

    @pytest.mark.asyncio
    async def test_breach_and_escalation(self, sql_store, session_maker, config_provider, game_id):
        team_id = uuid4()
        incident = _incident(
            game_id, sla_deadline=NOW - timedelta(minutes=1), assigned_team_id=team_id
        )
        await _seed(
            session_maker,
            TeamModel(id=team_id, game_id=UUID(game_id), name="Blue Team", score=100, morale_level=3),
            incident,
        )

        sla = await SLAMonitor(sql_store, config_provider).check_and_process_breaches(game_id, NOW)
        again = await SLAMonitor(sql_store, config_provider).check_and_process_breaches(game_id, NOW)

        assert sla.breached_count == 1
        assert again.breached_count == 0
        team = await sql_store.get_team(str(team_id))
        assert team.morale_level == 0

        engine = EscalationRuleEngine(sql_store, config_provider)
        await engine.initialize_default_rules(game_id)
        assert await engine.process_auto_escalations(game_id, NOW) == 1

        stored = await sql_store.get_incident(str(incident.id))
        history = await engine.get_incident_escalations(str(incident.id))
        assert stored.priority == Priority.CRITICAL
        assert stored.sla_breached
        assert stored.current_escalation_level == 1
        assert len(history) == 1
        assert (await sql_store.get_team(str(team_id))).score == 75

    @pytest.mark.asyncio
    async def test_outbox(self, sql_store, game_id):
        event = await sql_store.append_event(game_id, "sla_breached", "critical", {"incidentId": "x"})

        [pending] = await sql_store.list_undispatched_events()
        await sql_store.mark_events_dispatched([event.id], NOW)

        assert pending.payload == {"incidentId": "x"}
        assert await sql_store.list_undispatched_events() == []
        assert len(await sql_store.list_events(game_id, "sla_breached")) == 1

    @pytest.mark.asyncio
    async def test_malformed_ids_are_not_found(self, sql_store):
        assert await sql_store.get_service("not-a-uuid") is None
        assert await sql_store.get_incident("not-a-uuid") is None
        with pytest.raises(NotFoundError):
            await sql_store.update_incident("not-a-uuid", {"priority": "low"})
