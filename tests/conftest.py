"""Shared fixtures: an in-memory record store seeded per test."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
import pytest_asyncio

from simengine.config import Priority, Severity, IncidentStatus
from simengine.infrastructure.memory import InMemoryEngineStore
from simengine.shared.application import StaticConfigProvider
from simengine.shared.domain import EngineConfig, Service, Incident, Team, new_id


GAME_ID = "game-1"
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def make_service(name: str, type: str = "service", criticality: int = 5, game_id: str = GAME_ID, **kwargs) -> Service:
    return Service(id=new_id(), game_id=game_id, name=name, type=type, criticality=criticality, **kwargs)


def make_incident(
    title: str,
    priority: str = Priority.MEDIUM,
    severity: str = Severity.MEDIUM,
    status: str = IncidentStatus.OPEN,
    minutes_ago: float = 0,
    sla_in_minutes: Optional[float] = None,
    game_id: str = GAME_ID,
    **kwargs
) -> Incident:
    created_at = NOW - timedelta(minutes=minutes_ago)
    return Incident(
        id=new_id(),
        game_id=game_id,
        title=title,
        priority=priority,
        severity=severity,
        status=status,
        incident_number=f"INC-{new_id()[:6].upper()}",
        sla_deadline=NOW + timedelta(minutes=sla_in_minutes) if sla_in_minutes is not None else None,
        created_at=created_at,
        updated_at=created_at,
        **kwargs
    )


def make_team(name: str, role: Optional[str] = None, score: int = 500, morale_level: int = 100, game_id: str = GAME_ID) -> Team:
    return Team(id=new_id(), game_id=game_id, name=name, role=role, score=score, morale_level=morale_level)


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def config_provider(engine_config) -> StaticConfigProvider:
    return StaticConfigProvider(engine_config)


@pytest.fixture
def store() -> InMemoryEngineStore:
    return InMemoryEngineStore()


@pytest_asyncio.fixture
async def chain(store):
    """Three unconnected services A, B and C."""
    a = await store.add_service(make_service("Service A"))
    b = await store.add_service(make_service("Service B"))
    c = await store.add_service(make_service("Service C"))
    return a, b, c
