"""
Dependency Index
================

In-memory adjacency over one game's dependency edges.

Loaded once per call from the store, then every traversal is an explicit
BFS/DFS with a visited set, O(V + E). Edge direction: ``service_id``
depends on ``depends_on_service_id``; failures flow the other way.
"""

from collections import defaultdict, deque
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set

from simengine.core import CapacityOrStateError
from simengine.shared.domain import Service, ServiceDependency
from simengine.topology.domain.entities import DependencyImpact


class DependencyIndex:
    """Adjacency lists in both directions, in edge insertion order."""

    def __init__(self, edges: Iterable[ServiceDependency]):
        self._upstream: Dict[str, List[ServiceDependency]] = defaultdict(list)
        self._downstream: Dict[str, List[ServiceDependency]] = defaultdict(list)
        for edge in edges:
            self._upstream[edge.service_id].append(edge)
            self._downstream[edge.depends_on_service_id].append(edge)

    def depends_on(self, service_id: str) -> List[str]:
        """Services this one depends on directly."""
        return [e.depends_on_service_id for e in self._upstream.get(service_id, [])]

    def depended_on_by(self, service_id: str) -> List[str]:
        """Services that depend on this one directly."""
        return [e.service_id for e in self._downstream.get(service_id, [])]

    # ========== Closures ==========

    def _reachable(
        self,
        start: str,
        neighbours: Callable[[str], List[str]],
        max_depth: Optional[int]
    ) -> List[str]:
        visited: Set[str] = {start}
        order: List[str] = []
        queue = deque([(start, 0)])

        while queue:
            current, depth = queue.popleft()
            if max_depth is not None and depth >= max_depth:
                continue
            for nxt in neighbours(current):
                if nxt in visited:
                    continue
                visited.add(nxt)
                order.append(nxt)
                queue.append((nxt, depth + 1))

        return order

    def ancestors_of(self, service_id: str, max_depth: Optional[int] = None) -> List[str]:
        """Everything ``service_id`` transitively depends on, nearest first."""
        return self._reachable(service_id, self.depends_on, max_depth)

    def descendants_of(self, service_id: str, max_depth: Optional[int] = None) -> List[str]:
        """Everything that transitively depends on ``service_id``, nearest first."""
        return self._reachable(service_id, self.depended_on_by, max_depth)

    def would_create_cycle(self, service_id: str, depends_on_service_id: str) -> bool:
        """
        True if adding ``service_id -> depends_on_service_id`` closes a cycle.

        That is the case when the source already sits in the dependsOn
        closure of the target (or both are the same service).
        """
        if service_id == depends_on_service_id:
            return True
        return service_id in set(self.ancestors_of(depends_on_service_id))

    # ========== Depth ==========

    def _longest_chain(self, start: str, neighbours: Callable[[str], List[str]]) -> int:
        """Edges on the longest path leaving ``start`` (graph must be acyclic)."""
        memo: Dict[str, int] = {}
        stack = [(start, False)]

        while stack:
            node, expanded = stack.pop()
            if node in memo:
                continue
            children = neighbours(node)
            if expanded:
                memo[node] = max((memo[c] + 1 for c in children), default=0)
                continue
            stack.append((node, True))
            stack.extend((c, False) for c in children if c not in memo)

        return memo[start]

    def check_depth(self, service_id: str, depends_on_service_id: str, max_depth: int) -> None:
        """Refuse an edge that would make some chain longer than ``max_depth``."""
        below = self._longest_chain(service_id, self.depended_on_by)
        above = self._longest_chain(depends_on_service_id, self.depends_on)
        length = below + 1 + above
        if length > max_depth:
            raise CapacityOrStateError(
                f"Dependency chain would be {length} levels deep (limit {max_depth})",
                {
                    "service_id": service_id,
                    "depends_on_service_id": depends_on_service_id,
                    "max_graph_depth": max_depth,
                }
            )

    # ========== Cascade ==========

    def cascade_from(
        self,
        service_id: str,
        services: Mapping[str, Service],
        max_depth: int
    ) -> List[DependencyImpact]:
        """
        Dependents reached from a failing service, breadth first.

        Each dependent appears once. The first edge that reaches it in BFS
        order decides hard (down) or soft (degraded).
        """
        impacts: List[DependencyImpact] = []
        visited: Set[str] = {service_id}
        queue = deque([(service_id, 0)])

        while queue:
            current, depth = queue.popleft()
            if depth >= max_depth:
                continue
            for edge in self._downstream.get(current, []):
                dependent = edge.service_id
                if dependent in visited:
                    continue
                visited.add(dependent)
                service = services.get(dependent)
                if service is None:
                    continue
                impacts.append(DependencyImpact.for_edge(service, edge.dependency_type, depth + 1))
                queue.append((dependent, depth + 1))

        return impacts
