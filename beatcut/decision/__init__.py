"""Segment scoring and keep/remove decisions."""

from .engine import DecisionEngine
from .rules import DecisionRule, DECISION_RULES

__all__ = [
    'DecisionEngine',
    'DecisionRule',
    'DECISION_RULES',
]
