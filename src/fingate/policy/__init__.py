"""Compliance policy module for FinGate."""

from fingate.policy.models import (
    ComplianceResult,
    PolicySeverity,
    RuleViolation,
)
from fingate.policy.rules import PolicyRule
from fingate.policy.engine import ComplianceValidator
from fingate.policy.loader import load_rules

__all__ = [
    "ComplianceResult",
    "PolicySeverity",
    "RuleViolation",
    "PolicyRule",
    "ComplianceValidator",
    "load_rules",
]
