"""Cache models."""

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """A cached AI response. Owned exclusively by the ResponseCache."""

    fingerprint: str = Field(description="Request fingerprint (cache key)")
    response: Any = Field(description="Cached response")
    created_at: datetime = Field(description="When the entry was stored")
    expires_at: datetime = Field(description="Entry is absent once now > expires_at")

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class CacheLookup(BaseModel):
    """Result of a cache lookup or single-flight computation."""

    hit: bool = Field(description="Served from a live cache entry")
    response: Optional[Any] = Field(default=None)
    shared: bool = Field(
        default=False,
        description="Result came from another caller's in-flight computation",
    )
