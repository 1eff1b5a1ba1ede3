"""
Shared Kernel Module
====================

Shared records, the record-store interface and generic infrastructure used
across all bounded contexts (topology, health, sla, escalation).

Architecture Pattern: Modular Monolith
- Each engine component is a bounded context
- Shared kernel holds data records and plumbing only

DO NOT add status, cascade or escalation rules to the shared kernel.
"""
