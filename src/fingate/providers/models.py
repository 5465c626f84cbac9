"""Provider routing models."""

from datetime import datetime, UTC
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Routing health of a provider endpoint."""

    HEALTHY = "HEALTHY"      # Eligible for routing
    DEGRADED = "DEGRADED"    # Recently failed, eligible again after cooldown


class ProviderEndpoint(BaseModel):
    """One AI backend as seen by the router."""

    name: str = Field(description="Provider name")
    priority: int = Field(ge=0, description="Lower is tried first")
    health_status: HealthStatus = Field(default=HealthStatus.HEALTHY)
    average_latency_ms: float = Field(default=0.0, ge=0.0, description="EWMA of successful calls")
    timeout_seconds: float = Field(default=20.0, gt=0)

    consecutive_failures: int = Field(default=0, ge=0)
    degraded_at: Optional[datetime] = Field(default=None)
    last_error: Optional[str] = Field(default=None)


class InvocationConstraints(BaseModel):
    """Per-request limits passed to the router."""

    max_tokens: int = Field(default=1024, gt=0)
    timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Upper bound per provider call (endpoint timeout when unset)",
    )


class ProviderAttempt(BaseModel):
    """One provider call made while routing a request."""

    provider: str
    success: bool
    latency_ms: float = 0.0
    error: Optional[str] = None


class ModelResponse(BaseModel):
    """Successful model output."""

    text: str = Field(description="Completion text")
    provider: str = Field(description="Provider that produced the text")
    latency_ms: float = Field(default=0.0)
    attempts: List[ProviderAttempt] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
