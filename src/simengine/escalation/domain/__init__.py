"""
Escalation Domain Layer
=======================

Contains:
- Entities: EscalationCheck
- Value Objects: next-rule selection, default rule set
"""

from simengine.escalation.domain.entities import EscalationCheck
from simengine.escalation.domain.value_objects import (
    RuleTemplate,
    DEFAULT_ESCALATION_RULES,
    select_next_rule,
    auto_escalation_reason,
)

__all__ = [
    "EscalationCheck",
    "RuleTemplate",
    "DEFAULT_ESCALATION_RULES",
    "select_next_rule",
    "auto_escalation_reason",
]
