"""Ruleset loading.

A ruleset is a JSON document::

    {"rules": [{"id": "...", "check": "required_fields",
                "params": {"fields": ["prompt"]}, "severity": "BLOCKING",
                "operations": ["ANALYSIS"], "description": "..."}]}

Rules are loaded once at startup. Any problem is a ConfigurationError.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fingate.errors import ConfigurationError
from fingate.policy.models import PolicySeverity
from fingate.policy.rules import PolicyRule
from fingate.policy.rules.checks import CHECKS
from fingate.policy.rules.defaults import DEFAULT_RULESET
from fingate.schema import OperationType


logger = logging.getLogger(__name__)


def build_rules(document: Dict[str, Any]) -> List[PolicyRule]:
    """Build PolicyRules from a ruleset document."""
    if not isinstance(document, dict) or not isinstance(document.get("rules"), list):
        raise ConfigurationError("Ruleset must be an object with a 'rules' list")

    rules: List[PolicyRule] = []
    seen = set()

    for index, entry in enumerate(document["rules"]):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Rule #{index} must be an object")

        rule_id = entry.get("id")
        if not rule_id or not isinstance(rule_id, str):
            raise ConfigurationError(f"Rule #{index} is missing an 'id'")
        if rule_id in seen:
            raise ConfigurationError(f"Duplicate rule id: {rule_id}")
        seen.add(rule_id)

        check_name = entry.get("check")
        factory = CHECKS.get(check_name)
        if factory is None:
            raise ConfigurationError(f"Rule '{rule_id}' uses unknown check: {check_name!r}")

        try:
            severity = PolicySeverity(entry.get("severity", PolicySeverity.BLOCKING.value))
        except ValueError:
            raise ConfigurationError(
                f"Rule '{rule_id}' has invalid severity: {entry.get('severity')!r}"
            )

        try:
            operations = [OperationType(op) for op in entry.get("operations") or []]
        except ValueError as e:
            raise ConfigurationError(f"Rule '{rule_id}' has invalid operations: {e}")

        params = entry.get("params") or {}
        if not isinstance(params, dict):
            raise ConfigurationError(f"Rule '{rule_id}' params must be an object")

        try:
            predicate = factory(**params)
        except Exception as e:
            raise ConfigurationError(f"Rule '{rule_id}' has invalid params: {e}") from e

        rules.append(PolicyRule(
            rule_id=rule_id,
            predicate=predicate,
            severity=severity,
            description=entry.get("description", ""),
            operations=operations or None,
        ))

    return rules


def load_rules(path: Optional[str] = None) -> List[PolicyRule]:
    """
    Load the compliance ruleset.

    Args:
        path: JSON ruleset file. Built-in defaults are used when None.

    Raises:
        ConfigurationError: If the file is missing, malformed or invalid
    """
    if path is None:
        rules = build_rules(DEFAULT_RULESET)
        logger.info(f"Loaded {len(rules)} built-in compliance rules")
        return rules

    try:
        document = json.loads(Path(path).read_text())
    except FileNotFoundError:
        raise ConfigurationError(f"Ruleset file not found: {path}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Ruleset file is not valid JSON: {e}")

    rules = build_rules(document)
    logger.info(f"Loaded {len(rules)} compliance rules from {path}")
    return rules
