"""Compliance evaluation models."""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class PolicySeverity(str, Enum):
    """Severity of a policy rule."""

    BLOCKING = "BLOCKING"    # Violation aborts the pipeline
    WARNING = "WARNING"      # Violation is recorded, request proceeds


class RuleViolation(BaseModel):
    """Details of a rule violation."""

    rule_id: str = Field(description="Identifier of the violated rule")
    severity: PolicySeverity = Field(description="Severity of the rule")
    message: str = Field(description="Human-readable violation message")
    details: Optional[dict] = Field(default=None, description="Additional details")


class ComplianceResult(BaseModel):
    """Complete result of evaluating every rule against a request."""

    violations: List[RuleViolation] = Field(
        default_factory=list,
        description="BLOCKING violations",
    )
    warnings: List[RuleViolation] = Field(
        default_factory=list,
        description="WARNING violations",
    )
    passed_rules: List[str] = Field(default_factory=list, description="Rules that passed")

    evaluation_time_ms: float = Field(default=0.0, description="Time to evaluate (ms)")

    @property
    def compliant(self) -> bool:
        """True when no BLOCKING rule was violated."""
        return not self.violations

    @property
    def is_blocked(self) -> bool:
        return bool(self.violations)

    @property
    def violated_rule_ids(self) -> List[str]:
        """Ids of every violated rule, blocking first."""
        return [v.rule_id for v in self.violations] + [w.rule_id for w in self.warnings]
