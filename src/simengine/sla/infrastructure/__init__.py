"""
SLA Infrastructure Layer
========================

External integrations driving the engine at runtime:
- EngineConfigManager: YAML config with watchdog hot-reload
- SlackClient: webhook notifications behind a circuit breaker
- EngineScheduler: APScheduler interval job
"""

from simengine.sla.infrastructure.external import (
    EngineConfigManager,
    CircuitBreaker,
    CircuitState,
    SlackClient,
    SlackMessage,
    EngineScheduler,
)

__all__ = [
    "EngineConfigManager",
    "CircuitBreaker",
    "CircuitState",
    "SlackClient",
    "SlackMessage",
    "EngineScheduler",
]
