"""
Escalation Interfaces Layer
===========================

FastAPI route handlers delegating to the escalation rule engine.
"""

from simengine.escalation.interfaces.controllers import router as escalation_router

__all__ = ["escalation_router"]
