"""
Escalation Module
=================

Bounded Context for rule-driven incident escalation.

Responsibilities:
- Escalation rules per game (defaults plus custom rules)
- Read-only escalation checks
- Automatic and manual escalation, one level at a time
- Escalation audit trail and acknowledgement
"""
