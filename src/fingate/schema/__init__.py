"""Request schema module for FinGate ingress."""

from fingate.schema.request_schema import (
    GatewayRequest,
    OperationType,
    compute_fingerprint,
)
from fingate.schema.validator import RequestValidator

__all__ = [
    "GatewayRequest",
    "OperationType",
    "compute_fingerprint",
    "RequestValidator",
]
