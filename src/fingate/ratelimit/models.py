"""Rate limiting models."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class AdmitDecision(BaseModel):
    """Result of an admission check."""

    allowed: bool = Field(description="Whether the request was admitted")
    caller_id: str = Field(description="Caller the decision applies to")
    retry_after_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Seconds until capacity frees up (0 when allowed)",
    )
    remaining: int = Field(default=0, ge=0, description="Admissions left in the current window")


class RateBudget(BaseModel):
    """Snapshot of one caller's sliding-window budget."""

    caller_id: str
    window_start: Optional[datetime] = Field(
        default=None,
        description="Timestamp of the oldest admission still inside the window",
    )
    count: int = Field(ge=0, description="Admissions inside the window")
    limit: int = Field(gt=0, description="Maximum admissions per window")

    @property
    def exhausted(self) -> bool:
        return self.count >= self.limit
