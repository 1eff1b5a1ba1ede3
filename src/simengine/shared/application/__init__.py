"""
Shared Application Layer
========================

Abstractions every engine service depends on.
"""

from simengine.shared.application.store import IEngineStore
from simengine.shared.application.config_provider import (
    IEngineConfigProvider,
    StaticConfigProvider,
)

__all__ = [
    "IEngineStore",
    "IEngineConfigProvider",
    "StaticConfigProvider",
]
