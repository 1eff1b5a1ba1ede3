"""
Topology Module
===============

Bounded Context for the service dependency graph.

Responsibilities:
- Keep the dependency graph acyclic and depth-bounded
- Answer ancestor / descendant queries
- Propagate failures to dependents (hard: down, soft: degraded)
- Seed the default dependency layout for a new game
"""
