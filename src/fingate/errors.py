"""Exception hierarchy and stable reason codes for FinGate."""

from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, List, Optional


class ReasonCode(str, Enum):
    """Stable reason codes carried by every terminal outcome."""

    COMPLETED = "COMPLETED"
    RATE_LIMITED = "RATE_LIMITED"
    COMPLIANCE_VIOLATION = "COMPLIANCE_VIOLATION"
    SUSPECTED_FRAUD = "SUSPECTED_FRAUD"
    ALL_PROVIDERS_EXHAUSTED = "ALL_PROVIDERS_EXHAUSTED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class GatewayError(Exception):
    """Base exception for all FinGate errors."""

    def __init__(self, detail: str, error_code: str = "GATEWAY_ERROR"):
        self.detail = detail
        self.error_code = error_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "detail": self.detail,
            "timestamp": self.timestamp,
        }


class ConfigurationError(GatewayError):
    """Raised at startup when settings or the policy ruleset are invalid."""

    def __init__(self, detail: str):
        super().__init__(detail=detail, error_code="CONFIGURATION_ERROR")


class TransientProviderError(GatewayError):
    """Retryable failure of a single AI provider call."""

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        super().__init__(
            detail=f"{provider}: {detail}",
            error_code="TRANSIENT_PROVIDER_ERROR",
        )


class AllProvidersExhaustedError(GatewayError):
    """Raised by the model router when no endpoint produced a response."""

    def __init__(self, attempts: Optional[List[Dict[str, Any]]] = None):
        self.attempts = attempts or []
        tried = ", ".join(a["provider"] for a in self.attempts) or "none eligible"
        super().__init__(
            detail=f"All providers exhausted (tried: {tried})",
            error_code=ReasonCode.ALL_PROVIDERS_EXHAUSTED.value,
        )


class RequestSchemaError(GatewayError):
    """Raised when raw ingress data does not match the request schema."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(detail=message, error_code="INVALID_REQUEST")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data
