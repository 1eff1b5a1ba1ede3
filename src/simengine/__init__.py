"""
ITSM Simulation Engine
======================

Consistency engine for classroom ITSM incident-response games: dependency
graph, service health, failure cascade, SLA monitoring and escalation.
"""

__version__ = "1.0.0"
