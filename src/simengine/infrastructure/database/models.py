"""
Database Models
===============

SQLAlchemy ORM models for the records the engine reads and writes.

These are the database representations of the shared domain records.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON, Boolean, DateTime, ForeignKey, Integer, String, Text,
    UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from simengine.infrastructure.database import Base
from simengine.config import (
    Priority, Severity, IncidentStatus, ServiceStatus, DependencyType, EventSeverity,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceModel(Base):
    """Maps to the 'services' table (configuration items)."""
    __tablename__ = "services"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    game_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    criticality: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=ServiceStatus.OPERATIONAL)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ServiceDependencyModel(Base):
    """Maps to the 'service_dependencies' table."""
    __tablename__ = "service_dependencies"
    __table_args__ = (
        UniqueConstraint("service_id", "depends_on_service_id", name="uq_service_dependency_pair"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    game_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    service_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True
    )
    depends_on_service_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True
    )
    dependency_type: Mapped[str] = mapped_column(String(50), nullable=False, default=DependencyType.HARD)
    impact_delay_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class TeamModel(Base):
    """Maps to the 'teams' table (only the columns the engine touches)."""
    __tablename__ = "teams"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    game_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    morale_level: Mapped[int] = mapped_column(Integer, nullable=False, default=100)


class IncidentModel(Base):
    """Maps to the 'incidents' table."""
    __tablename__ = "incidents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    game_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    incident_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    priority: Mapped[str] = mapped_column(String(50), nullable=False, default=Priority.MEDIUM)
    severity: Mapped[str] = mapped_column(String(50), nullable=False, default=Severity.MEDIUM)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default=IncidentStatus.OPEN, index=True)

    # SLA tracking
    sla_deadline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sla_breached: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Escalation tracking
    current_escalation_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    escalation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assigned_team_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )

    # Affected service: direct link and/or free-text name from scenario generation
    affected_service_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="SET NULL"), nullable=True
    )
    affected_service_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class EscalationRuleModel(Base):
    """Maps to the 'escalation_rules' table."""
    __tablename__ = "escalation_rules"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    game_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    priority_trigger: Mapped[str] = mapped_column(String(50), nullable=False)
    time_threshold_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    escalation_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    notify_roles: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    auto_reassign: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    target_team_role: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class IncidentEscalationModel(Base):
    """Maps to the 'incident_escalations' table (append-only audit)."""
    __tablename__ = "incident_escalations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    incident_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    escalation_rule_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("escalation_rules.id"), nullable=True
    )
    from_team_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("teams.id"), nullable=True)
    to_team_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("teams.id"), nullable=True, index=True)
    escalation_level: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    escalated_by: Mapped[str] = mapped_column(String(100), nullable=False, default="system")
    acknowledged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class GameEventModel(Base):
    """Maps to the 'game_events' table; rows without dispatched_at form the outbox."""
    __tablename__ = "game_events"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    game_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    event_category: Mapped[str] = mapped_column(String(50), nullable=False, default="infrastructure")
    severity: Mapped[str] = mapped_column(String(50), nullable=False, default=EventSeverity.INFO)
    event_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    actor_type: Mapped[str] = mapped_column(String(50), nullable=False, default="system")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )
    dispatched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
