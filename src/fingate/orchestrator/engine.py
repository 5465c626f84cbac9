"""Request Orchestrator - the per-request pipeline."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fingate.cache.store import ResponseCache
from fingate.errors import AllProvidersExhaustedError, ReasonCode
from fingate.fraud.scorer import FraudScorer
from fingate.ledger.models import EventType
from fingate.orchestrator.models import Outcome, OutcomeStatus, PipelineState, RequestRecord
from fingate.orchestrator.prompts import build_prompt
from fingate.policy.engine import ComplianceValidator
from fingate.providers.models import InvocationConstraints, ModelResponse
from fingate.providers.router import ModelRouter
from fingate.ratelimit.limiter import RateLimiter
from fingate.refdata.store import ReferenceDataStore
from fingate.schema import GatewayRequest


logger = logging.getLogger(__name__)


class RequestOrchestrator:
    """
    Drives each request through the gateway pipeline.

    Pipeline:

    RECEIVED → ADMITTED → VALIDATED → CACHE_CHECKED → [FRAUD_CHECKED] → ROUTED → COMPLETED
        ↓          ↓                        ↓                ↓              ↓
    REJECTED   REJECTED                 COMPLETED        REJECTED        FAILED
    (rate)     (compliance)             (cache hit)      (fraud)         (providers)

    Every request ends in exactly one Outcome. Caller cancellation is
    propagated, never converted into an outcome.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        validator: ComplianceValidator,
        cache: ResponseCache,
        fraud_scorer: FraudScorer,
        router: ModelRouter,
        reference: Optional[ReferenceDataStore] = None,
        ledger=None,
        fraud_confidence_threshold: float = 0.8,
        cache_ttl_seconds: Optional[float] = None,
        single_flight_wait_seconds: float = 30.0,
        max_tokens: int = 1024,
        provider_timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            rate_limiter: Per-caller admission control
            validator: Compliance ruleset evaluation
            cache: Response cache with single-flight
            fraud_scorer: Transaction anomaly scoring
            router: Provider routing with failover
            reference: Snapshot store used for prompt market context
            ledger: Optional AuditLedger for pipeline events
            fraud_confidence_threshold: Reject when confidence exceeds this
            cache_ttl_seconds: TTL for stored responses (cache default if None)
            single_flight_wait_seconds: Follower wait before computing alone
            max_tokens: Token limit passed to providers
            provider_timeout_seconds: Optional overall cap per provider call
        """
        self.rate_limiter = rate_limiter
        self.validator = validator
        self.cache = cache
        self.fraud_scorer = fraud_scorer
        self.router = router
        self.reference = reference
        self.ledger = ledger

        self.fraud_confidence_threshold = fraud_confidence_threshold
        self.cache_ttl = cache_ttl_seconds
        self.single_flight_wait = single_flight_wait_seconds
        self.constraints = InvocationConstraints(
            max_tokens=max_tokens,
            timeout_seconds=provider_timeout_seconds,
        )

        self.stats: Dict[str, int] = {reason.value: 0 for reason in ReasonCode}
        self.audit_failures = 0

        logger.info("Request Orchestrator initialized")

    async def submit(self, request: GatewayRequest) -> Outcome:
        """
        Process one request to a terminal outcome.

        Raises:
            asyncio.CancelledError: If the caller cancelled the request
        """
        record = RequestRecord(request_id=request.request_id, caller_id=request.caller_id)

        try:
            self._log(
                EventType.REQUEST_RECEIVED,
                request,
                {"operation_type": request.operation_type.value, "fingerprint": request.fingerprint},
            )
            outcome = await self._run_pipeline(request, record)
        except asyncio.CancelledError:
            logger.info(f"Request {request.request_id} cancelled by caller in {record.state.value}")
            raise
        except Exception as e:
            logger.exception(f"Unexpected error processing {request.request_id}: {e}")
            outcome = self._fail(
                record,
                request,
                ReasonCode.INTERNAL_ERROR,
                "Internal error while processing the request",
                {"error_type": type(e).__name__},
            )

        self.stats[outcome.reason.value] += 1
        return outcome

    async def _run_pipeline(self, request: GatewayRequest, record: RequestRecord) -> Outcome:
        # Admission
        decision = self.rate_limiter.admit(request.caller_id)
        if not decision.allowed:
            return self._reject(
                record,
                request,
                ReasonCode.RATE_LIMITED,
                f"Rate limit exceeded for caller {request.caller_id}",
                {"retry_after_seconds": round(decision.retry_after_seconds, 3)},
            )
        record.transition_to(PipelineState.ADMITTED)

        # Compliance
        compliance = self.validator.validate(request)
        warnings = [w.rule_id for w in compliance.warnings]
        if compliance.is_blocked:
            return self._reject(
                record,
                request,
                ReasonCode.COMPLIANCE_VIOLATION,
                "Request violates compliance policy",
                {
                    "violations": [v.rule_id for v in compliance.violations],
                    "messages": [v.message for v in compliance.violations],
                },
                warnings=warnings,
            )
        record.transition_to(PipelineState.VALIDATED)

        # Cache
        fingerprint = request.fingerprint
        cached = self.cache.lookup(fingerprint)
        record.transition_to(PipelineState.CACHE_CHECKED)
        if cached.hit:
            self._log(EventType.CACHE_HIT, request, {"fingerprint": fingerprint})
            return self._complete(record, request, cached.response, cached=True, warnings=warnings)

        # Fraud (transactional only)
        if request.is_transactional:
            assessment = self.fraud_scorer.score(request)
            self._log(EventType.FRAUD_SCORED, request, assessment.model_dump())
            if assessment.is_anomalous and assessment.confidence > self.fraud_confidence_threshold:
                return self._reject(
                    record,
                    request,
                    ReasonCode.SUSPECTED_FRAUD,
                    "Transaction deviates sharply from the caller's recent activity",
                    {
                        "confidence": round(assessment.confidence, 4),
                        "z_score": round(assessment.z_score, 4),
                    },
                    warnings=warnings,
                )
            record.transition_to(PipelineState.FRAUD_CHECKED)

        # Routing
        prompt = build_prompt(request, self.reference.current if self.reference else None)
        record.transition_to(PipelineState.ROUTED)
        try:
            lookup = await self.cache.get_or_compute(
                fingerprint,
                lambda: self.router.invoke(prompt, self.constraints),
                ttl=self.cache_ttl,
                wait_timeout=self.single_flight_wait,
                miss_recorded=True,
            )
        except AllProvidersExhaustedError as e:
            self._log_attempt_failures(request, e.attempts)
            return self._fail(
                record,
                request,
                ReasonCode.ALL_PROVIDERS_EXHAUSTED,
                "No AI provider could serve the request",
                {"attempts": e.attempts},
                warnings=warnings,
            )

        response: ModelResponse = lookup.response
        if not (lookup.hit or lookup.shared):
            self._log_attempt_failures(
                request,
                [a.model_dump() for a in response.attempts if not a.success],
            )
        return self._complete(record, request, response, cached=lookup.hit, warnings=warnings)

    def _complete(
        self,
        record: RequestRecord,
        request: GatewayRequest,
        response: ModelResponse,
        cached: bool,
        warnings: List[str],
    ) -> Outcome:
        record.transition_to(PipelineState.COMPLETED)
        self._log(
            EventType.REQUEST_COMPLETED,
            request,
            {"provider": response.provider, "cached": cached, "warnings": warnings},
        )
        logger.info(
            f"Request {request.request_id} completed via {response.provider}"
            f"{' (cached)' if cached else ''}"
        )
        return Outcome(
            request_id=request.request_id,
            status=OutcomeStatus.COMPLETED,
            reason=ReasonCode.COMPLETED,
            message="Request completed",
            response=response.text,
            provider=response.provider,
            cached=cached,
            warnings=warnings,
            stage_history=record.path,
        )

    def _reject(
        self,
        record: RequestRecord,
        request: GatewayRequest,
        reason: ReasonCode,
        message: str,
        details: Dict[str, Any],
        warnings: Optional[List[str]] = None,
    ) -> Outcome:
        record.transition_to(PipelineState.REJECTED)
        self._log(EventType.REQUEST_REJECTED, request, {"reason": reason.value, **details})
        logger.warning(f"Request {request.request_id} rejected: {reason.value}")
        return Outcome(
            request_id=request.request_id,
            status=OutcomeStatus.REJECTED,
            reason=reason,
            message=message,
            details=details,
            warnings=warnings or [],
            stage_history=record.path,
        )

    def _fail(
        self,
        record: RequestRecord,
        request: GatewayRequest,
        reason: ReasonCode,
        message: str,
        details: Dict[str, Any],
        warnings: Optional[List[str]] = None,
    ) -> Outcome:
        # An error raised after the terminal transition still needs an outcome
        if not record.is_terminal:
            record.transition_to(PipelineState.FAILED)
        self._log(EventType.REQUEST_FAILED, request, {"reason": reason.value, **details})
        logger.error(f"Request {request.request_id} failed: {reason.value}")
        return Outcome(
            request_id=request.request_id,
            status=OutcomeStatus.FAILED,
            reason=reason,
            message=message,
            details=details,
            warnings=warnings or [],
            stage_history=record.path,
        )

    def _log_attempt_failures(self, request: GatewayRequest, attempts: List[Dict[str, Any]]) -> None:
        for attempt in attempts:
            if attempt.get("success"):
                continue
            self._log(
                EventType.PROVIDER_FAILED,
                request,
                {"provider": attempt["provider"], "error": attempt.get("error")},
            )

    def _log(self, event_type: EventType, request: GatewayRequest, payload: Dict[str, Any]) -> None:
        """Append a pipeline event. Audit failures never change the outcome."""
        if not self.ledger:
            return
        try:
            self.ledger.log_event(
                event_type=event_type,
                payload=payload,
                request_id=request.request_id,
                caller_id=request.caller_id,
            )
        except Exception:
            self.audit_failures += 1
            logger.exception(
                f"Audit write failed for {request.request_id} ({event_type.value})"
            )
