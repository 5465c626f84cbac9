"""Orchestration models: per-request state machine and terminal outcomes."""

from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from fingate.errors import ReasonCode


class PipelineState(str, Enum):
    """State machine states for one request."""

    RECEIVED = "RECEIVED"              # Entered the pipeline
    ADMITTED = "ADMITTED"              # Rate limiter allowed
    VALIDATED = "VALIDATED"            # No blocking compliance violations
    CACHE_CHECKED = "CACHE_CHECKED"    # Cache lookup done (miss)
    FRAUD_CHECKED = "FRAUD_CHECKED"    # Transactional request passed scoring
    ROUTED = "ROUTED"                  # Model router invoked
    COMPLETED = "COMPLETED"            # Response delivered
    REJECTED = "REJECTED"              # Rate limit, compliance or fraud
    FAILED = "FAILED"                  # Providers exhausted or internal error


TERMINAL_STATES = {PipelineState.COMPLETED, PipelineState.REJECTED, PipelineState.FAILED}


class OutcomeStatus(str, Enum):
    """Terminal outcome kinds."""

    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


class RequestRecord(BaseModel):
    """Mutable lifecycle record of one request inside the orchestrator."""

    request_id: str
    caller_id: str

    state: PipelineState = Field(default=PipelineState.RECEIVED)
    state_history: list[tuple[str, str]] = Field(
        default_factory=list,
        description="History of (state, timestamp) transitions"
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def transition_to(self, new_state: PipelineState) -> None:
        """Transition to a new state and record history."""
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Request {self.request_id} already terminal ({self.state.value})")
        self.state_history.append((self.state.value, datetime.now(UTC).isoformat()))
        self.state = new_state

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def path(self) -> List[str]:
        """States visited so far, including the current one."""
        return [state for state, _ in self.state_history] + [self.state.value]


class Outcome(BaseModel):
    """Terminal result returned for every submitted request."""

    request_id: str = Field(description="Request the outcome belongs to")
    status: OutcomeStatus = Field(description="COMPLETED, REJECTED or FAILED")
    reason: ReasonCode = Field(description="Stable reason code")
    message: str = Field(description="Human-readable summary")

    # For completed requests
    response: Optional[str] = Field(default=None, description="Model output")
    provider: Optional[str] = Field(default=None)
    cached: bool = Field(default=False, description="Served from the response cache")

    # Caller-actionable details (retry-after, rule ids, confidence)
    details: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list, description="Non-blocking rule ids")

    stage_history: List[str] = Field(default_factory=list)
    completed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_completed(self) -> bool:
        return self.status == OutcomeStatus.COMPLETED

    @property
    def is_rejected(self) -> bool:
        return self.status == OutcomeStatus.REJECTED

    @property
    def is_failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED
