"""Compliance Validator - deterministic policy evaluation.

Every loaded rule is evaluated for every request so callers always
receive the complete violation list.
"""

import logging
import time
from typing import List, Optional, Sequence

from fingate.policy.models import ComplianceResult, PolicySeverity, RuleViolation
from fingate.policy.rules import PolicyRule
from fingate.policy.loader import load_rules
from fingate.schema import GatewayRequest


logger = logging.getLogger(__name__)


class ComplianceValidator:
    """
    Evaluates requests against an immutable ruleset.

    A BLOCKING violation aborts the pipeline; WARNING violations are
    reported alongside the outcome. When rules overlap, the most severe
    result wins: any BLOCKING violation blocks regardless of warnings.
    """

    def __init__(self, rules: Optional[Sequence[PolicyRule]] = None):
        """Initialize with the given rules, or the built-in ruleset."""
        self.rules: tuple[PolicyRule, ...] = tuple(rules if rules is not None else load_rules())

        logger.info(f"Compliance Validator initialized with {len(self.rules)} rules")

    def validate(self, request: GatewayRequest) -> ComplianceResult:
        """
        Evaluate a request against all policy rules.

        Args:
            request: Validated gateway request

        Returns:
            ComplianceResult listing every violation and warning
        """
        start_time = time.perf_counter()

        violations: List[RuleViolation] = []
        warnings: List[RuleViolation] = []
        passed_rules: List[str] = []

        for rule in self.rules:
            passed, violation = rule.evaluate(request)

            if passed:
                passed_rules.append(rule.rule_id)
            elif violation.severity == PolicySeverity.BLOCKING:
                violations.append(violation)
                logger.warning(f"Rule '{rule.rule_id}' failed: {violation.message}")
            else:
                warnings.append(violation)
                logger.info(f"Rule '{rule.rule_id}' warning: {violation.message}")

        elapsed_ms = (time.perf_counter() - start_time) * 1000

        result = ComplianceResult(
            violations=violations,
            warnings=warnings,
            passed_rules=passed_rules,
            evaluation_time_ms=elapsed_ms,
        )

        logger.debug(
            f"Compliance evaluation for {request.request_id}: "
            f"{'BLOCKED' if result.is_blocked else 'COMPLIANT'} "
            f"({len(violations)} violations, {len(warnings)} warnings)"
        )
        return result
