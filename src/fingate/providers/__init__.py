"""Provider module for FinGate - AI backends and failover routing."""

from fingate.providers.models import (
    HealthStatus,
    InvocationConstraints,
    ModelResponse,
    ProviderAttempt,
    ProviderEndpoint,
)
from fingate.providers.base import ModelProvider
from fingate.providers.router import ModelRouter

__all__ = [
    "HealthStatus",
    "InvocationConstraints",
    "ModelResponse",
    "ProviderAttempt",
    "ProviderEndpoint",
    "ModelProvider",
    "ModelRouter",
]
