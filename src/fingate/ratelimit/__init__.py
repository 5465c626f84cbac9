"""Rate limiting module for FinGate."""

from fingate.ratelimit.models import AdmitDecision, RateBudget
from fingate.ratelimit.limiter import RateLimiter

__all__ = [
    "AdmitDecision",
    "RateBudget",
    "RateLimiter",
]
