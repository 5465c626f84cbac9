"""Predicate factories referenced by name from ruleset configuration.

Each factory takes the rule's ``params`` as keyword arguments and returns a
pure predicate over a GatewayRequest (True = pass).
"""

import json
import re
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from fingate.schema import GatewayRequest


def _iter_strings(value: Any) -> Iterator[str]:
    """Yield every string nested anywhere in a payload value."""
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from _iter_strings(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _iter_strings(item)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def required_fields(fields: List[str]) -> Callable[[GatewayRequest], bool]:
    """All listed payload fields must be present and non-blank."""
    fields = list(fields)

    def check(request: GatewayRequest) -> bool:
        return all(not _is_blank(request.payload.get(f)) for f in fields)

    return check


def numeric_fields(fields: List[str]) -> Callable[[GatewayRequest], bool]:
    """Listed payload fields, when present, must be finite non-negative numbers."""
    fields = list(fields)

    def check(request: GatewayRequest) -> bool:
        for f in fields:
            if f not in request.payload:
                continue
            value = request.payload[f]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return False
            if value != value or value < 0 or value == float("inf"):
                return False
        return True

    return check


def max_payload_bytes(limit: int) -> Callable[[GatewayRequest], bool]:
    """Serialized payload must not exceed ``limit`` bytes."""
    limit = int(limit)

    def check(request: GatewayRequest) -> bool:
        encoded = json.dumps(request.payload, sort_keys=True, default=str).encode()
        return len(encoded) <= limit

    return check


def forbidden_terms(terms: List[str], fields: Optional[List[str]] = None) -> Callable[[GatewayRequest], bool]:
    """No listed term may appear (case-insensitive, whole words) in payload text."""
    pattern = re.compile(
        r"\b(?:" + "|".join(re.escape(t) for t in terms) + r")\b",
        re.IGNORECASE,
    )

    def check(request: GatewayRequest) -> bool:
        source = (
            {f: request.payload.get(f) for f in fields} if fields else request.payload
        )
        return not any(pattern.search(s) for s in _iter_strings(source))

    return check


def pattern_absent(pattern: str) -> Callable[[GatewayRequest], bool]:
    """The regular expression must not match any payload string."""
    compiled = re.compile(pattern)

    def check(request: GatewayRequest) -> bool:
        return not any(compiled.search(s) for s in _iter_strings(request.payload))

    return check


def max_amount(limit: float) -> Callable[[GatewayRequest], bool]:
    """Payload ``amount``, when numeric, must not exceed ``limit``."""
    limit = float(limit)

    def check(request: GatewayRequest) -> bool:
        amount = request.amount
        return amount is None or amount <= limit

    return check


def allowed_values(field: str, values: Iterable[Any]) -> Callable[[GatewayRequest], bool]:
    """Payload ``field``, when present, must be one of ``values``."""
    allowed = set(values)

    def check(request: GatewayRequest) -> bool:
        return field not in request.payload or request.payload[field] in allowed

    return check


CHECKS: Dict[str, Callable[..., Callable[[GatewayRequest], bool]]] = {
    "required_fields": required_fields,
    "numeric_fields": numeric_fields,
    "max_payload_bytes": max_payload_bytes,
    "forbidden_terms": forbidden_terms,
    "pattern_absent": pattern_absent,
    "max_amount": max_amount,
    "allowed_values": allowed_values,
}
