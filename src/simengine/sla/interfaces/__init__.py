"""
SLA Interfaces Layer
====================

FastAPI route handlers delegating to the SLA monitor.
"""

from simengine.sla.interfaces.controllers import router as sla_router

__all__ = ["sla_router"]
