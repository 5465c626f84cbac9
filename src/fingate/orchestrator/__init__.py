"""Orchestration module for FinGate - request pipeline and outcomes."""

from fingate.orchestrator.models import (
    Outcome,
    OutcomeStatus,
    PipelineState,
    RequestRecord,
)
from fingate.orchestrator.prompts import build_prompt
from fingate.orchestrator.engine import RequestOrchestrator

__all__ = [
    "Outcome",
    "OutcomeStatus",
    "PipelineState",
    "RequestRecord",
    "build_prompt",
    "RequestOrchestrator",
]
