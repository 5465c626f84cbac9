"""
Gateway Request Schema

Defines the immutable request value accepted at ingress and the
deterministic fingerprint used as the response-cache key.
"""

import hashlib
import json
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OperationType(str, Enum):
    """Supported operation types."""

    ANALYSIS = "ANALYSIS"
    RISK_ASSESSMENT = "RISK_ASSESSMENT"
    FRAUD_CHECK = "FRAUD_CHECK"


class GatewayRequest(BaseModel):
    """
    Gateway Request

    Created once at ingress and never mutated. Discarded after the
    orchestrator returns a terminal outcome.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        json_schema_extra={
            "examples": [
                {
                    "caller_id": "desk-equities-07",
                    "operation_type": "ANALYSIS",
                    "payload": {"prompt": "Summarise Q3 liquidity risk for ACME Corp"},
                }
            ]
        },
    )

    request_id: str = Field(
        default_factory=lambda: f"req_{uuid4().hex[:12]}",
        description="Unique identifier for this request",
    )

    caller_id: str = Field(
        min_length=1,
        max_length=128,
        description="Identity of the calling application or user",
    )

    operation_type: OperationType = Field(
        description="Type of operation (ANALYSIS, RISK_ASSESSMENT, FRAUD_CHECK)",
    )

    payload: Dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque structured operation payload",
    )

    submitted_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Ingress timestamp",
    )

    @field_validator("caller_id")
    @classmethod
    def validate_caller_id(cls, v: str) -> str:
        """Caller ids are used as partition keys and must not be blank."""
        if not v.strip():
            raise ValueError("caller_id cannot be blank")
        return v.strip()

    @property
    def amount(self) -> Optional[float]:
        """Numeric transaction amount in the payload, if any."""
        value = self.payload.get("amount")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)

    @property
    def is_transactional(self) -> bool:
        """Whether this request is subject to fraud scoring."""
        if self.operation_type == OperationType.FRAUD_CHECK:
            return True
        return self.operation_type == OperationType.RISK_ASSESSMENT and self.amount is not None

    @property
    def fingerprint(self) -> str:
        """Cache key derived from the request's semantic content."""
        return compute_fingerprint(self.operation_type, self.payload)


def _normalize(value: Any) -> Any:
    """Normalize payload values so equivalent requests hash identically."""
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    if isinstance(value, str):
        return " ".join(value.split())
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def compute_fingerprint(operation_type: OperationType, payload: Dict[str, Any]) -> str:
    """
    Compute the deterministic fingerprint of a request.

    Only the operation type and normalized payload participate, so the
    digest is stable across processes and callers.
    """
    canonical = json.dumps(
        {
            "operation_type": OperationType(operation_type).value,
            "payload": _normalize(payload),
        },
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(canonical.encode()).hexdigest()
