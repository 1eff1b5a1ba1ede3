"""
Escalation Value Objects
========================

Rule selection and the default rule set.
"""

from typing import Iterable, List, NamedTuple, Optional

from simengine.config import Priority
from simengine.shared.domain import EscalationRule


class RuleTemplate(NamedTuple):
    name: str
    description: str
    priority_trigger: str
    time_threshold_minutes: int
    escalation_level: int
    notify_roles: List[str]


DEFAULT_ESCALATION_RULES = [
    RuleTemplate("Critical P1 - 15 min", "Escalate critical incidents after 15 minutes",
                 Priority.CRITICAL, 15, 1, ["manager", "lead"]),
    RuleTemplate("Critical P1 - 30 min", "Major escalation for critical incidents after 30 minutes",
                 Priority.CRITICAL, 30, 2, ["director", "vp"]),
    RuleTemplate("High Priority - 30 min", "Escalate high priority incidents after 30 minutes",
                 Priority.HIGH, 30, 1, ["manager"]),
    RuleTemplate("High Priority - 60 min", "Major escalation for high priority incidents after 60 minutes",
                 Priority.HIGH, 60, 2, ["director"]),
    RuleTemplate("Medium Priority - 60 min", "Escalate medium priority incidents after 60 minutes",
                 Priority.MEDIUM, 60, 1, ["lead"]),
]


def select_next_rule(
    rules: Iterable[EscalationRule],
    priority: str,
    current_level: int,
    minutes_open: float
) -> Optional[EscalationRule]:
    """
    The rule that should fire next, if any.

    Candidates match the priority and sit above the current level; the
    lowest-level candidate whose threshold has elapsed wins.
    """
    candidates = sorted(
        (r for r in rules if r.priority_trigger == priority and r.escalation_level > current_level),
        key=lambda r: r.escalation_level,
    )
    for rule in candidates:
        if minutes_open >= rule.time_threshold_minutes:
            return rule
    return None


def auto_escalation_reason(rule: EscalationRule, minutes_open: int) -> str:
    return f"Automatic escalation: {rule.name} - {minutes_open} minutes without resolution"
