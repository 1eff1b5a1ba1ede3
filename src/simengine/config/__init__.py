"""
Configuration Module
====================

Application settings and domain constants using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from pathlib import Path
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="simengine", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/itsm_simulation",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Engine ==========
    engine_config_path: Path = Field(
        default=Path("engine_config.yaml"),
        description="Path to engine tuning YAML file"
    )
    poll_interval_seconds: int = Field(
        default=30,
        description="Seconds between maintenance passes (0 disables the poller)",
        ge=0
    )
    pass_timeout_seconds: float = Field(
        default=25.0,
        description="A maintenance pass running longer than this is skipped",
        gt=0
    )
    outbox_batch_size: int = Field(
        default=50,
        description="Events drained from the outbox per dispatch",
        ge=1
    )

    # ========== Slack Integration ==========
    slack_webhook_url: Optional[str] = Field(
        default=None,
        description="Slack webhook URL for notifications"
    )
    slack_channel: str = Field(
        default="#incident-simulation",
        description="Slack channel for engine notifications"
    )
    slack_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for Slack API calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("poll_interval_seconds")
    @classmethod
    def validate_poll_interval(cls, v: int) -> int:
        """Zero disables polling, anything else must leave room for a pass."""
        if 0 < v < 10:
            raise ValueError("poll_interval_seconds must be 0 or at least 10")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Priority(str):
    """Incident priority levels."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Severity(str):
    """Incident severity levels (same scale as priority)."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IncidentStatus(str):
    """Incident lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ServiceStatus(str):
    """Operational status of a simulated service."""
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    DOWN = "down"


class DependencyType(str):
    """Consequence of a dependency edge."""
    HARD = "hard"   # dependent goes down
    SOFT = "soft"   # dependent degrades


class ImpactType(str):
    """How a dependent was reached during cascade."""
    DIRECT = "direct"
    CASCADE = "cascade"


class EventSeverity(str):
    """Severity of an appended game event."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class EventType(str):
    """Game event types written by the engine."""
    SERVICE_STATUS_CHANGED = "service_status_changed"
    SLA_BREACHED = "sla_breached"
    INCIDENT_ESCALATED = "incident_escalated"
    ESCALATION_LEVEL_RAISED = "escalation_level_raised"


# ========== Lists for validation ==========

VALID_PRIORITIES = [
    Priority.CRITICAL, Priority.HIGH,
    Priority.MEDIUM, Priority.LOW
]
VALID_SERVICE_STATUSES = [
    ServiceStatus.OPERATIONAL, ServiceStatus.DEGRADED, ServiceStatus.DOWN
]
VALID_DEPENDENCY_TYPES = [DependencyType.HARD, DependencyType.SOFT]
OPEN_INCIDENT_STATUSES = [IncidentStatus.OPEN, IncidentStatus.IN_PROGRESS]
CLOSED_INCIDENT_STATUSES = [IncidentStatus.RESOLVED, IncidentStatus.CLOSED]

# Ordinal used by the aggregator (critical=4 ... none=0)
SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}

# Health ordering: a higher value is worse
STATUS_ORDER = {
    ServiceStatus.OPERATIONAL: 0,
    ServiceStatus.DEGRADED: 1,
    ServiceStatus.DOWN: 2,
}
