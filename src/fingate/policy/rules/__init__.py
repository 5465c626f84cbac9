"""Policy rule definition."""

from typing import Callable, FrozenSet, Iterable, Optional, Tuple

from fingate.policy.models import PolicySeverity, RuleViolation
from fingate.schema import GatewayRequest, OperationType


Predicate = Callable[[GatewayRequest], bool]


class PolicyRule:
    """A declarative compliance rule: an id, a pure predicate and a severity."""

    def __init__(
        self,
        rule_id: str,
        predicate: Predicate,
        severity: PolicySeverity = PolicySeverity.BLOCKING,
        description: str = "",
        operations: Optional[Iterable[OperationType]] = None,
    ):
        """
        Initialize a policy rule.

        Args:
            rule_id: Unique rule identifier
            predicate: Pure function returning True when the request passes
            severity: BLOCKING aborts the pipeline, WARNING is only recorded
            description: Human-readable description, used as violation message
            operations: Operation types the rule applies to (all when None)
        """
        self.rule_id = rule_id
        self.predicate = predicate
        self.severity = PolicySeverity(severity)
        self.description = description or rule_id
        self.operations: Optional[FrozenSet[OperationType]] = (
            frozenset(OperationType(op) for op in operations) if operations else None
        )

    def applies_to(self, request: GatewayRequest) -> bool:
        return self.operations is None or request.operation_type in self.operations

    def evaluate(self, request: GatewayRequest) -> Tuple[bool, Optional[RuleViolation]]:
        """
        Evaluate the rule against a request.

        Returns:
            Tuple of (passed: bool, violation: RuleViolation or None)
        """
        if not self.applies_to(request):
            return True, None

        try:
            passed = bool(self.predicate(request))
        except Exception as e:
            # Fail closed: a broken predicate blocks
            return False, RuleViolation(
                rule_id=self.rule_id,
                severity=PolicySeverity.BLOCKING,
                message=f"Rule evaluation error: {e}",
                details={"error_type": type(e).__name__},
            )

        if passed:
            return True, None
        return False, self.create_violation(self.description)

    def create_violation(self, message: str, details: Optional[dict] = None) -> RuleViolation:
        """Create a violation for this rule."""
        return RuleViolation(
            rule_id=self.rule_id,
            severity=self.severity,
            message=message,
            details=details,
        )

    def __repr__(self) -> str:
        return f"PolicyRule({self.rule_id!r}, severity={self.severity.value})"
