"""
Engine Configuration Provider
=============================

Services read tuning through this interface so the YAML-backed manager
can swap the config underneath them at runtime.
"""

from abc import ABC, abstractmethod
from typing import Optional

from simengine.shared.domain.engine_config import EngineConfig


class IEngineConfigProvider(ABC):
    """Interface for engine configuration access."""

    @abstractmethod
    def get_config(self) -> EngineConfig:
        """Get current engine configuration."""


class StaticConfigProvider(IEngineConfigProvider):
    """Fixed configuration, for tests and one-off scripts."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self._config = config or EngineConfig()

    def get_config(self) -> EngineConfig:
        return self._config
