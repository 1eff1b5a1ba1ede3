"""
Health Interfaces Layer
=======================

FastAPI route handlers delegating to the health aggregator.
"""

from simengine.health.interfaces.controllers import router as health_router

__all__ = ["health_router"]
