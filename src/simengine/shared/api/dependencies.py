"""
Shared API Dependencies
=======================

FastAPI dependency providers. The store and config provider are created
once in the application lifespan and hung on ``app.state``; tests replace
them through ``app.dependency_overrides``.
"""

from fastapi import Request

from simengine.shared.application import IEngineStore, IEngineConfigProvider


def get_store(request: Request) -> IEngineStore:
    """Record store bound at startup."""
    return request.app.state.store


def get_config_provider(request: Request) -> IEngineConfigProvider:
    """Engine config provider bound at startup."""
    return request.app.state.config_provider
