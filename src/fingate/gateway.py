"""Gateway wiring: builds every component from settings."""

import asyncio
import logging
from typing import Dict, Mapping, Optional

from fingate.cache import ResponseCache
from fingate.config import GatewaySettings
from fingate.errors import ConfigurationError
from fingate.fraud import FraudScorer
from fingate.ledger import AuditLedger
from fingate.orchestrator import RequestOrchestrator
from fingate.policy import ComplianceValidator, load_rules
from fingate.providers import ModelProvider, ModelRouter, ProviderEndpoint
from fingate.ratelimit import RateLimiter
from fingate.refdata import (
    BackgroundRefresher,
    HttpReferenceSource,
    ReferenceDataSource,
    ReferenceDataStore,
)
from fingate.refdata.mock_data import MockReferenceSource, get_default_snapshot
from fingate.schema import RequestValidator


logger = logging.getLogger(__name__)


class Gateway:
    """Container holding one process-wide instance of every component."""

    def __init__(
        self,
        settings: GatewaySettings,
        ledger: AuditLedger,
        reference: ReferenceDataStore,
        refresher: BackgroundRefresher,
        router: ModelRouter,
        orchestrator: RequestOrchestrator,
    ):
        self.settings = settings
        self.ledger = ledger
        self.reference = reference
        self.refresher = refresher
        self.router = router
        self.orchestrator = orchestrator
        self.request_validator = RequestValidator()

        self._sweep_task: Optional[asyncio.Task] = None
        self._sweep_cancel: Optional[asyncio.Event] = None

    @property
    def cache(self) -> ResponseCache:
        return self.orchestrator.cache

    async def start(self) -> None:
        """Load a first snapshot, then start periodic refresh and cache sweeping."""
        await self.refresher.refresh_once()
        self.refresher.start(delay_first=True)

        self._sweep_cancel = asyncio.Event()
        self._sweep_task = asyncio.create_task(
            self._sweep_cache(self._sweep_cancel),
            name="cache-sweeper",
        )
        logger.info("Gateway started")

    async def stop(self) -> None:
        await self.refresher.stop()
        if self._sweep_task is not None:
            self._sweep_cancel.set()
            try:
                await self._sweep_task
            finally:
                self._sweep_task = None
                self._sweep_cancel = None
        logger.info("Gateway stopped")

    async def _sweep_cache(self, cancel_event: asyncio.Event) -> None:
        """Reclaim expired cache entries every ``cache_sweep_interval_seconds``."""
        interval = self.settings.cache_sweep_interval_seconds
        while not cancel_event.is_set():
            try:
                await asyncio.wait_for(cancel_event.wait(), timeout=interval)
            except TimeoutError:
                removed = self.cache.purge_expired()
                if removed:
                    logger.info(f"Cache sweep removed {removed} expired entries")


def build_providers(settings: GatewaySettings) -> Dict[str, ModelProvider]:
    """Instantiate the provider adapters named in ``provider_priority``."""
    providers: Dict[str, ModelProvider] = {}

    for name in settings.provider_priority:
        if name == "ollama":
            from fingate.providers.ollama import OllamaProvider
            providers[name] = OllamaProvider(
                ollama_url=settings.ollama_url,
                model_name=settings.ollama_model,
            )
        elif name == "gemini":
            from fingate.providers.gemini import GeminiProvider
            providers[name] = GeminiProvider(
                api_key=settings.google_api_key,
                model_name=settings.gemini_model,
            )
        elif name == "simulated":
            from fingate.providers.simulated import SimulatedProvider
            providers[name] = SimulatedProvider(failure_rate=settings.simulated_failure_rate)
        else:
            raise ConfigurationError(f"Unknown provider: {name}")

    return providers


def build_gateway(
    settings: GatewaySettings,
    providers: Optional[Mapping[str, ModelProvider]] = None,
    reference_source: Optional[ReferenceDataSource] = None,
    ledger: Optional[AuditLedger] = None,
) -> Gateway:
    """
    Wire a Gateway from settings.

    Args:
        settings: Validated settings (see ``load_settings``)
        providers: Provider implementations by name (built from settings if None)
        reference_source: Snapshot source (HTTP if ``reference_url`` set, mock otherwise)
        ledger: Audit ledger (built from ``ledger_path`` if None)

    Raises:
        ConfigurationError: If the ruleset or provider table is invalid
    """
    providers = dict(providers) if providers is not None else build_providers(settings)

    endpoints = [
        ProviderEndpoint(
            name=name,
            priority=priority,
            timeout_seconds=settings.timeout_for(name),
        )
        for priority, name in enumerate(settings.provider_priority)
    ]
    router = ModelRouter(
        endpoints,
        providers,
        cooldown_seconds=settings.provider_cooldown_seconds,
    )

    ledger = ledger if ledger is not None else AuditLedger(settings.ledger_path)

    reference = ReferenceDataStore(initial=get_default_snapshot())
    if reference_source is None:
        if settings.reference_url:
            reference_source = HttpReferenceSource(settings.reference_url)
        else:
            reference_source = MockReferenceSource()

    refresher = BackgroundRefresher(
        reference_source,
        reference,
        interval_seconds=settings.refresh_interval_seconds,
        ledger=ledger,
    )

    orchestrator = RequestOrchestrator(
        rate_limiter=RateLimiter(settings.rate_limit, settings.rate_window_seconds),
        validator=ComplianceValidator(load_rules(settings.policy_rules_path)),
        cache=ResponseCache(default_ttl_seconds=settings.cache_ttl_seconds),
        fraud_scorer=FraudScorer(
            series_length=settings.fraud_series_length,
            min_history=settings.fraud_min_history,
            z_threshold=settings.fraud_z_threshold,
            reference=reference,
        ),
        router=router,
        reference=reference,
        ledger=ledger,
        fraud_confidence_threshold=settings.fraud_confidence_threshold,
        cache_ttl_seconds=settings.cache_ttl_seconds,
        single_flight_wait_seconds=settings.single_flight_wait_seconds,
        max_tokens=settings.max_tokens,
    )

    logger.info(f"Gateway wired (providers: {settings.provider_priority})")
    return Gateway(
        settings=settings,
        ledger=ledger,
        reference=reference,
        refresher=refresher,
        router=router,
        orchestrator=orchestrator,
    )
