"""
Service Health Module
=====================

Bounded Context for deriving service status from open incidents.

Responsibilities:
- Match free-text incident references to services
- Derive operational / degraded / down and write only on change
- Keep cascaded failures in place while their source is down
- Game health summary weighted by criticality
- Seed the default service catalogue
"""
