"""End-to-end tests for the Request Orchestrator pipeline."""

import asyncio
import sqlite3
from unittest.mock import MagicMock

import pytest

from fingate.cache import ResponseCache
from fingate.errors import ReasonCode, TransientProviderError
from fingate.fraud import FraudScorer
from fingate.ledger import AuditLedger, EventType
from fingate.orchestrator import OutcomeStatus, RequestOrchestrator, build_prompt
from fingate.policy import ComplianceValidator
from fingate.providers import ModelProvider, ModelRouter, ProviderEndpoint
from fingate.ratelimit import RateLimiter
from fingate.refdata import ReferenceDataStore
from fingate.refdata.mock_data import get_default_snapshot
from fingate.schema import GatewayRequest, OperationType


class CountingProvider(ModelProvider):
    """Provider that answers (or fails, or hangs) and counts calls."""

    def __init__(self, name="primary", behaviour="ok", delay=0.0):
        self.name = name
        self.behaviour = behaviour
        self.delay = delay
        self.calls = 0

    async def invoke(self, prompt: str, max_tokens: int, timeout: float) -> str:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.behaviour == "fail":
            raise TransientProviderError(self.name, "upstream 500")
        if self.behaviour == "hang":
            await asyncio.sleep(10)
        return f"analysis #{self.calls} from {self.name}"


def build_orchestrator(providers, rate_limit=100, ledger=None, reference=None):
    endpoints = [
        ProviderEndpoint(name=p.name, priority=i, timeout_seconds=5)
        for i, p in enumerate(providers)
    ]
    router = ModelRouter(endpoints, {p.name: p for p in providers})
    return RequestOrchestrator(
        rate_limiter=RateLimiter(limit=rate_limit, window_seconds=60),
        validator=ComplianceValidator(),
        cache=ResponseCache(default_ttl_seconds=300),
        fraud_scorer=FraudScorer(series_length=50, min_history=5, z_threshold=3.0),
        router=router,
        reference=reference,
        ledger=ledger,
        fraud_confidence_threshold=0.8,
    )


def analysis(prompt="Summarise Q3 liquidity risk for ACME Corp", caller_id="desk-a"):
    return GatewayRequest(
        caller_id=caller_id,
        operation_type=OperationType.ANALYSIS,
        payload={"prompt": prompt},
    )


def fraud_check(amount, caller_id="desk-a"):
    return GatewayRequest(
        caller_id=caller_id,
        operation_type=OperationType.FRAUD_CHECK,
        payload={"amount": amount, "currency": "USD", "counterparty": "Globex Ltd"},
    )


class TestHappyPath:
    """Test completion and caching."""

    def setup_method(self):
        self.provider = CountingProvider()
        self.orchestrator = build_orchestrator([self.provider])

    def test_analysis_completes(self):
        outcome = asyncio.run(self.orchestrator.submit(analysis()))

        assert outcome.status == OutcomeStatus.COMPLETED
        assert outcome.reason == ReasonCode.COMPLETED
        assert outcome.response == "analysis #1 from primary"
        assert outcome.provider == "primary"
        assert outcome.cached is False
        assert outcome.stage_history == [
            "RECEIVED", "ADMITTED", "VALIDATED", "CACHE_CHECKED", "ROUTED", "COMPLETED",
        ]

    def test_repeated_request_served_from_cache(self):
        """An identical request from another caller never reaches the router."""
        first = asyncio.run(self.orchestrator.submit(analysis(caller_id="desk-a")))
        second = asyncio.run(self.orchestrator.submit(analysis(caller_id="desk-b")))

        assert self.provider.calls == 1
        assert second.cached is True
        assert second.response == first.response
        assert second.stage_history[-2:] == ["CACHE_CHECKED", "COMPLETED"]

    def test_whitespace_variants_share_cache_entry(self):
        asyncio.run(self.orchestrator.submit(analysis("Summarise  Q3 risk")))
        outcome = asyncio.run(self.orchestrator.submit(analysis("Summarise Q3 risk ")))

        assert outcome.cached
        assert self.provider.calls == 1

    def test_concurrent_identical_requests_invoke_provider_once(self):
        self.provider.delay = 0.05

        async def scenario():
            return await asyncio.gather(
                *(self.orchestrator.submit(analysis(caller_id=f"desk-{i}")) for i in range(5))
            )

        outcomes = asyncio.run(scenario())

        assert self.provider.calls == 1
        assert all(o.is_completed for o in outcomes)
        assert len({o.response for o in outcomes}) == 1

    def test_cache_counts_one_miss_per_request(self):
        asyncio.run(self.orchestrator.submit(analysis(caller_id="desk-a")))
        asyncio.run(self.orchestrator.submit(analysis(caller_id="desk-b")))

        assert self.orchestrator.cache.misses == 1
        assert self.orchestrator.cache.hits == 1

    def test_stats_track_reasons(self):
        asyncio.run(self.orchestrator.submit(analysis()))
        asyncio.run(self.orchestrator.submit(analysis()))
        assert self.orchestrator.stats["COMPLETED"] == 2


class TestRejections:
    """Test rate, compliance and fraud rejections."""

    def test_rate_limited_with_retry_after(self):
        provider = CountingProvider()
        orchestrator = build_orchestrator([provider], rate_limit=2)

        async def scenario():
            return [
                await orchestrator.submit(analysis(prompt=f"question {i}"))
                for i in range(3)
            ]

        outcomes = asyncio.run(scenario())

        assert [o.status for o in outcomes[:2]] == [OutcomeStatus.COMPLETED] * 2
        limited = outcomes[2]
        assert limited.status == OutcomeStatus.REJECTED
        assert limited.reason == ReasonCode.RATE_LIMITED
        assert 0 < limited.details["retry_after_seconds"] <= 60
        assert limited.stage_history == ["RECEIVED", "REJECTED"]
        assert provider.calls == 2

    def test_compliance_violation_lists_rule_ids(self):
        provider = CountingProvider()
        orchestrator = build_orchestrator([provider])

        outcome = asyncio.run(orchestrator.submit(
            analysis("Draft a pump and dump plan using card 4111-1111-1111-1111")
        ))

        assert outcome.reason == ReasonCode.COMPLIANCE_VIOLATION
        assert set(outcome.details["violations"]) == {"no_market_abuse", "no_raw_card_numbers"}
        assert provider.calls == 0

    def test_first_fraud_check_never_flagged(self):
        """A caller with an empty series is never rejected as fraud."""
        orchestrator = build_orchestrator([CountingProvider()])

        outcome = asyncio.run(orchestrator.submit(fraud_check(250_000)))

        assert outcome.is_completed
        assert "FRAUD_CHECKED" in outcome.stage_history

    def test_anomalous_transaction_rejected(self):
        """50x the caller's baseline is rejected as suspected fraud."""
        provider = CountingProvider()
        orchestrator = build_orchestrator([provider])

        async def scenario():
            for amount in [100, 102, 98, 101, 99]:
                outcome = await orchestrator.submit(fraud_check(amount))
                assert outcome.is_completed
            return await orchestrator.submit(fraud_check(5_000))

        outcome = asyncio.run(scenario())

        assert outcome.status == OutcomeStatus.REJECTED
        assert outcome.reason == ReasonCode.SUSPECTED_FRAUD
        assert outcome.details["confidence"] > 0.8
        assert provider.calls == 5

    def test_fraud_history_is_per_caller(self):
        orchestrator = build_orchestrator([CountingProvider()])

        async def scenario():
            for amount in [100, 102, 98, 101, 99]:
                await orchestrator.submit(fraud_check(amount, caller_id="desk-a"))
            return await orchestrator.submit(fraud_check(5_000, caller_id="desk-b"))

        assert asyncio.run(scenario()).is_completed

    def test_warnings_attached_to_completed_outcome(self):
        orchestrator = build_orchestrator([CountingProvider()])

        outcome = asyncio.run(orchestrator.submit(fraud_check(2_000_000)))

        assert outcome.is_completed
        assert outcome.warnings == ["large_amount_review"]


class TestFailures:
    """Test provider exhaustion, internal errors and cancellation."""

    def test_failover_to_secondary_provider(self):
        primary = CountingProvider("primary", "fail")
        secondary = CountingProvider("secondary")
        orchestrator = build_orchestrator([primary, secondary])

        outcome = asyncio.run(orchestrator.submit(analysis()))

        assert outcome.is_completed
        assert outcome.provider == "secondary"

    def test_all_providers_exhausted(self):
        orchestrator = build_orchestrator([
            CountingProvider("primary", "fail"),
            CountingProvider("secondary", "fail"),
        ])

        outcome = asyncio.run(orchestrator.submit(analysis()))

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reason == ReasonCode.ALL_PROVIDERS_EXHAUSTED
        assert [a["provider"] for a in outcome.details["attempts"]] == ["primary", "secondary"]
        assert outcome.stage_history[-2:] == ["ROUTED", "FAILED"]

    def test_failed_response_is_not_cached(self):
        provider = CountingProvider("primary", "fail")
        orchestrator = build_orchestrator([provider])
        asyncio.run(orchestrator.submit(analysis()))

        assert not orchestrator.cache.lookup(analysis().fingerprint).hit

    def test_unexpected_error_becomes_internal_error(self):
        orchestrator = build_orchestrator([CountingProvider()])
        orchestrator.validator = MagicMock()
        orchestrator.validator.validate.side_effect = KeyError("bad state")

        outcome = asyncio.run(orchestrator.submit(analysis()))

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reason == ReasonCode.INTERNAL_ERROR
        assert outcome.details == {"error_type": "KeyError"}

    def test_caller_cancellation_propagates(self):
        """Cancelling submit raises CancelledError instead of returning an outcome."""
        provider = CountingProvider(behaviour="hang")
        orchestrator = build_orchestrator([provider])

        async def scenario():
            task = asyncio.create_task(orchestrator.submit(analysis()))
            await asyncio.sleep(0.02)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert sum(orchestrator.stats.values()) == 0
        assert not orchestrator.cache.lookup(analysis().fingerprint).hit


class TestAuditTrail:
    """Test ledger events written by the pipeline."""

    def setup_method(self):
        self.ledger = AuditLedger()
        self.orchestrator = build_orchestrator(
            [CountingProvider("primary", "fail"), CountingProvider("secondary")],
            ledger=self.ledger,
        )

    def teardown_method(self):
        self.ledger.close()

    def test_events_recorded_per_request(self):
        request = analysis()
        asyncio.run(self.orchestrator.submit(request))

        events = [e.event_type for e in self.ledger.get_entries_by_request(request.request_id)]
        assert events == [
            EventType.REQUEST_RECEIVED,
            EventType.PROVIDER_FAILED,
            EventType.REQUEST_COMPLETED,
        ]

    def test_cache_hit_and_rejection_events(self):
        asyncio.run(self.orchestrator.submit(analysis()))
        cached = analysis(caller_id="desk-b")
        asyncio.run(self.orchestrator.submit(cached))
        rejected = analysis("insider tip on ACME")
        asyncio.run(self.orchestrator.submit(rejected))

        cached_events = [e.event_type for e in self.ledger.get_entries_by_request(cached.request_id)]
        rejected_entries = self.ledger.get_entries_by_request(rejected.request_id)

        assert EventType.CACHE_HIT in cached_events
        assert rejected_entries[-1].event_type == EventType.REQUEST_REJECTED
        assert rejected_entries[-1].payload["reason"] == "COMPLIANCE_VIOLATION"

    def test_chain_valid_after_run(self):
        async def scenario():
            await asyncio.gather(*(self.orchestrator.submit(analysis(f"q{i}")) for i in range(5)))
            await self.orchestrator.submit(fraud_check(100))

        asyncio.run(scenario())

        result = self.ledger.validate_chain()
        assert result.is_valid
        assert result.total_entries > 10


class TestAuditFailures:
    """A broken ledger must not cost the request its outcome."""

    def test_ledger_failure_on_completion_keeps_outcome(self):
        def log_event(event_type, **kwargs):
            if event_type == EventType.REQUEST_COMPLETED:
                raise sqlite3.OperationalError("disk I/O error")

        ledger = MagicMock()
        ledger.log_event.side_effect = log_event
        orchestrator = build_orchestrator([CountingProvider()], ledger=ledger)

        outcome = asyncio.run(orchestrator.submit(analysis()))

        assert outcome.status == OutcomeStatus.COMPLETED
        assert outcome.response == "analysis #1 from primary"
        assert orchestrator.audit_failures == 1
        assert orchestrator.stats["COMPLETED"] == 1

    def test_unwritable_ledger_still_classifies_rejections(self):
        ledger = MagicMock()
        ledger.log_event.side_effect = sqlite3.OperationalError("database is locked")
        orchestrator = build_orchestrator([CountingProvider()], rate_limit=1, ledger=ledger)

        asyncio.run(orchestrator.submit(analysis()))
        outcome = asyncio.run(orchestrator.submit(analysis("Another question")))

        assert outcome.reason == ReasonCode.RATE_LIMITED
        assert orchestrator.audit_failures > 0

    def test_error_after_terminal_transition_becomes_internal_error(self):
        orchestrator = build_orchestrator([CountingProvider()])
        complete = orchestrator._complete

        def complete_then_raise(record, *args, **kwargs):
            complete(record, *args, **kwargs)
            raise RuntimeError("post-completion failure")

        orchestrator._complete = complete_then_raise

        outcome = asyncio.run(orchestrator.submit(analysis()))

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reason == ReasonCode.INTERNAL_ERROR
        assert outcome.details == {"error_type": "RuntimeError"}


class TestPrompts:
    """Test prompt construction."""

    def test_prompt_includes_payload_and_market_context(self):
        snapshot = get_default_snapshot()
        prompt = build_prompt(analysis("How exposed is ACME to rates?"), snapshot)

        assert "How exposed is ACME to rates?" in prompt
        assert "MARKET CONTEXT" in prompt
        assert "VIX" in prompt
        assert snapshot.headlines[0] in prompt

    def test_prompt_without_snapshot(self):
        prompt = build_prompt(fraud_check(100))
        assert "MARKET CONTEXT" not in prompt
        assert "Globex Ltd" in prompt
        assert "fraud indicators" in prompt

    def test_orchestrator_uses_reference_store(self):
        captured = []

        class CapturingProvider(CountingProvider):
            async def invoke(self, prompt, max_tokens, timeout):
                captured.append(prompt)
                return "ok"

        orchestrator = build_orchestrator(
            [CapturingProvider()],
            reference=ReferenceDataStore(get_default_snapshot()),
        )
        asyncio.run(orchestrator.submit(analysis()))

        assert "MARKET CONTEXT" in captured[0]
