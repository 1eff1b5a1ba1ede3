"""
Escalation Domain Entities
==========================
"""

from dataclasses import dataclass
from typing import Optional

from simengine.shared.domain import EscalationRule


@dataclass(frozen=True)
class EscalationCheck:
    """
    Read-only verdict for one open incident.

    ``rule`` is the next rule to fire, or None when nothing is due.
    """
    incident_id: str
    incident_number: Optional[str]
    title: str
    priority: str
    current_level: int
    minutes_open: int
    should_escalate: bool
    next_level: Optional[int] = None
    rule: Optional[EscalationRule] = None
