"""Ledger models for the audit trail."""

import hashlib
import json
import uuid
from datetime import datetime, UTC
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, PrivateAttr


class EventType(str, Enum):
    """Types of events in the audit ledger."""

    REQUEST_RECEIVED = "REQUEST_RECEIVED"        # Request entered the pipeline
    REQUEST_REJECTED = "REQUEST_REJECTED"        # Rate limit, compliance or fraud rejection
    CACHE_HIT = "CACHE_HIT"                      # Served from the response cache
    FRAUD_SCORED = "FRAUD_SCORED"                # Fraud assessment produced
    PROVIDER_FAILED = "PROVIDER_FAILED"          # A provider attempt failed
    REQUEST_COMPLETED = "REQUEST_COMPLETED"      # Response delivered
    REQUEST_FAILED = "REQUEST_FAILED"            # Terminal failure
    SNAPSHOT_REFRESHED = "SNAPSHOT_REFRESHED"    # Reference data swapped


class LedgerEntry(BaseModel):
    """
    Immutable ledger entry with hash-chaining.

    Each entry links to its predecessor's hash, so tampering with any
    entry breaks the chain from that point on.
    """

    entry_id: str = Field(
        default_factory=lambda: f"entry_{uuid.uuid4().hex[:12]}",
        description="Unique entry identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When event occurred"
    )
    event_type: EventType = Field(description="Type of event")

    payload: dict = Field(description="Event-specific data")

    previous_hash: str = Field(
        default="genesis",
        description="Hash of previous entry"
    )

    request_id: Optional[str] = Field(default=None)
    caller_id: Optional[str] = Field(default=None)

    _cached_hash: Optional[str] = PrivateAttr(default=None)

    def compute_hash(self) -> str:
        """
        Compute SHA-256 hash of this entry.

        Hash includes: previous_hash + timestamp + event_type + payload + ids
        """
        hash_input = json.dumps({
            "previous_hash": self.previous_hash,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "payload": self.payload,
            "entry_id": self.entry_id,
            "request_id": self.request_id,
            "caller_id": self.caller_id,
        }, sort_keys=True, default=str)

        return hashlib.sha256(hash_input.encode()).hexdigest()[:32]

    @property
    def hash(self) -> str:
        """Get or compute hash."""
        if self._cached_hash is None:
            self._cached_hash = self.compute_hash()
        return self._cached_hash


class ChainValidationResult(BaseModel):
    """Result of ledger chain validation."""

    is_valid: bool = Field(description="Whether chain is valid")
    total_entries: int = Field(description="Total entries checked")
    broken_at: Optional[int] = Field(default=None, description="Index where chain broke")
    error_message: Optional[str] = Field(default=None)
