"""
Engine Configuration
====================

Tuning knobs loaded from YAML and hot-reloaded at runtime.

This is a value object - replaced wholesale on reload, never mutated.
"""

from typing import Dict, List

from pydantic import BaseModel, Field, field_validator

from simengine.config import EventType


DEFAULT_KEYWORD_SYNONYMS: Dict[str, List[str]] = {
    "database": ["db", "database"],
    "authentication": ["auth", "login"],
    "api": ["api"],
    "gateway": ["api"],
    "web": ["web", "website"],
}


class EngineConfig(BaseModel):
    """
    Engine tuning loaded from ``engine_config.yaml``.

    Every field has a default so an empty or missing file is valid.
    """
    sla_morale_penalty: int = Field(
        default=5,
        ge=0,
        description="Morale deducted from the assigned team when a breach raises priority"
    )
    escalation_penalty_per_level: int = Field(
        default=25,
        ge=0,
        description="Score deducted per escalation level from the team losing the incident"
    )
    max_graph_depth: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Deepest dependency chain walked or allowed"
    )
    at_risk_window_minutes: int = Field(
        default=15,
        ge=1,
        description="Incidents whose deadline falls inside this window are at risk"
    )
    keyword_synonyms: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_KEYWORD_SYNONYMS.items()},
        description="Service-name keyword -> words that identify it in incident text"
    )
    notify_event_types: List[str] = Field(
        default_factory=lambda: [EventType.SLA_BREACHED, EventType.INCIDENT_ESCALATED],
        description="Event types forwarded to Slack by the outbox dispatcher"
    )

    @field_validator("keyword_synonyms")
    @classmethod
    def normalise_synonyms(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        """Keywords and synonyms are compared lower-case."""
        return {
            keyword.lower(): [word.lower() for word in words if word]
            for keyword, words in v.items()
            if keyword
        }
