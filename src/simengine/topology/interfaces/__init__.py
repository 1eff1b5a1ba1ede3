"""
Topology Interfaces Layer
=========================

FastAPI route handlers delegating to the topology services.
"""

from simengine.topology.interfaces.controllers import router as topology_router

__all__ = ["topology_router"]
