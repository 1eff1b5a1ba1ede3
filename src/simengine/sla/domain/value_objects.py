"""
SLA Value Objects
=================

Priority escalation order and SLA time windows.
"""

from datetime import datetime, timedelta
from typing import Optional

from simengine.config import Priority


# Breach bumps priority one step; critical is absorbing
PRIORITY_ESCALATION = {
    Priority.LOW: Priority.MEDIUM,
    Priority.MEDIUM: Priority.HIGH,
    Priority.HIGH: Priority.CRITICAL,
    Priority.CRITICAL: Priority.CRITICAL,
}


def escalate_priority(priority: str) -> str:
    """Next priority after an SLA breach; unknown values are left as they are."""
    return PRIORITY_ESCALATION.get(priority, priority)


class SLAWindow:
    """
    Classifies a deadline relative to ``now``.

    A deadline inside ``(now, now + at_risk_minutes]`` is at risk; one at or
    before ``now`` has passed.
    """

    def __init__(self, now: datetime, at_risk_minutes: int):
        self.now = now
        self.at_risk_until = now + timedelta(minutes=at_risk_minutes)

    def has_passed(self, deadline: Optional[datetime]) -> bool:
        return deadline is not None and deadline <= self.now

    def is_at_risk(self, deadline: Optional[datetime]) -> bool:
        return deadline is not None and self.now < deadline <= self.at_risk_until

    def is_comfortable(self, deadline: Optional[datetime]) -> bool:
        return deadline is not None and deadline > self.at_risk_until

    def minutes_remaining(self, deadline: datetime) -> int:
        return round((deadline - self.now).total_seconds() / 60)
