"""
Topology Domain Layer
=====================

Pure graph logic over service dependencies:
- DependencyIndex: adjacency, closures, cycle and depth checks, cascade BFS
- Entities: DependencyImpact, ServiceNode, DependencyGraph

No infrastructure imports.
"""

from simengine.topology.domain.entities import (
    DependencyImpact,
    ServiceNode,
    DependencyGraph,
    impacted_status_for,
    worse_status,
    is_worse,
)
from simengine.topology.domain.graph import DependencyIndex

__all__ = [
    "DependencyImpact",
    "ServiceNode",
    "DependencyGraph",
    "DependencyIndex",
    "impacted_status_for",
    "worse_status",
    "is_worse",
]
