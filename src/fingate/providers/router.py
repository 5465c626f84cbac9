"""Model Router - priority routing with failover and cooldown recovery."""

import asyncio
import logging
import threading
import time
from datetime import datetime, timedelta, UTC
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from fingate.errors import AllProvidersExhaustedError, ConfigurationError
from fingate.providers.base import ModelProvider
from fingate.providers.models import (
    HealthStatus,
    InvocationConstraints,
    ModelResponse,
    ProviderAttempt,
    ProviderEndpoint,
)


logger = logging.getLogger(__name__)


class ModelRouter:
    """
    Routes prompts to AI providers in priority order.

    Routing:

    HEALTHY (by priority) → call with timeout → success → HEALTHY
                                              ↘ error/timeout → DEGRADED, try next
    DEGRADED → eligible again once ``cooldown`` has elapsed

    Raises AllProvidersExhaustedError when no eligible endpoint succeeds.
    The health table is shared by all requests and guarded by a lock that
    is never held across a provider call.
    """

    def __init__(
        self,
        endpoints: Sequence[ProviderEndpoint],
        providers: Mapping[str, ModelProvider],
        cooldown_seconds: float = 30.0,
        latency_alpha: float = 0.2,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        """
        Initialize the router.

        Args:
            endpoints: Endpoint descriptions (priority, timeout)
            providers: Provider implementation for every endpoint name
            cooldown_seconds: How long a degraded endpoint is skipped
            latency_alpha: Weight of the newest sample in the latency EWMA
            clock: Time source (injectable for tests)

        Raises:
            ConfigurationError: If the endpoint list is empty or inconsistent
        """
        if not endpoints:
            raise ConfigurationError("ModelRouter needs at least one endpoint")

        names = [e.name for e in endpoints]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate provider endpoints: {names}")

        missing = [n for n in names if n not in providers]
        if missing:
            raise ConfigurationError(f"No provider implementation for: {missing}")

        self._endpoints: Dict[str, ProviderEndpoint] = {
            e.name: e.model_copy() for e in sorted(endpoints, key=lambda e: e.priority)
        }
        self.providers = dict(providers)
        self.cooldown = timedelta(seconds=cooldown_seconds)
        self.latency_alpha = latency_alpha
        self._clock = clock
        self._lock = threading.Lock()

        logger.info(f"Model Router initialized with providers: {list(self._endpoints)}")

    async def invoke(
        self,
        prompt: str,
        constraints: Optional[InvocationConstraints] = None,
    ) -> ModelResponse:
        """
        Invoke the highest-priority eligible provider, falling through on failure.

        Args:
            prompt: Full prompt text
            constraints: Token and timeout limits

        Returns:
            ModelResponse from the first provider that succeeded

        Raises:
            AllProvidersExhaustedError: If every eligible provider failed
        """
        constraints = constraints or InvocationConstraints()
        attempts: List[ProviderAttempt] = []

        for name, endpoint_timeout in self._eligible():
            timeout = endpoint_timeout
            if constraints.timeout_seconds is not None:
                timeout = min(timeout, constraints.timeout_seconds)

            provider = self.providers[name]
            started = time.perf_counter()
            try:
                text = await asyncio.wait_for(
                    provider.invoke(prompt, max_tokens=constraints.max_tokens, timeout=timeout),
                    timeout=timeout,
                )
            except asyncio.CancelledError:
                # Caller went away; says nothing about provider health
                raise
            except TimeoutError:
                error = f"timed out after {timeout}s"
            except Exception as e:
                error = f"{type(e).__name__}: {e}"
            else:
                latency_ms = (time.perf_counter() - started) * 1000
                self._record_success(name, latency_ms)
                attempts.append(ProviderAttempt(provider=name, success=True, latency_ms=latency_ms))
                logger.info(f"Provider {name} answered in {latency_ms:.0f}ms")
                return ModelResponse(
                    text=text,
                    provider=name,
                    latency_ms=latency_ms,
                    attempts=attempts,
                )

            latency_ms = (time.perf_counter() - started) * 1000
            self._record_failure(name, error)
            attempts.append(
                ProviderAttempt(provider=name, success=False, latency_ms=latency_ms, error=error)
            )
            logger.error(f"Provider {name} failed ({error}), falling through")

        raise AllProvidersExhaustedError(attempts=[a.model_dump() for a in attempts])

    def health(self) -> List[ProviderEndpoint]:
        """Snapshot of the health table in priority order."""
        with self._lock:
            return [e.model_copy() for e in self._endpoints.values()]

    def endpoint(self, name: str) -> ProviderEndpoint:
        with self._lock:
            return self._endpoints[name].model_copy()

    def _eligible(self) -> List[tuple[str, float]]:
        now = self._clock()
        eligible = []
        with self._lock:
            for endpoint in self._endpoints.values():
                if endpoint.health_status == HealthStatus.HEALTHY:
                    eligible.append((endpoint.name, endpoint.timeout_seconds))
                elif endpoint.degraded_at is None or now - endpoint.degraded_at >= self.cooldown:
                    logger.info(f"Provider {endpoint.name} cooldown elapsed, retrying")
                    eligible.append((endpoint.name, endpoint.timeout_seconds))
        return eligible

    def _record_success(self, name: str, latency_ms: float) -> None:
        with self._lock:
            endpoint = self._endpoints[name]
            if endpoint.health_status != HealthStatus.HEALTHY:
                logger.info(f"Provider {name} recovered")
            endpoint.health_status = HealthStatus.HEALTHY
            endpoint.consecutive_failures = 0
            endpoint.degraded_at = None
            endpoint.last_error = None
            if endpoint.average_latency_ms == 0.0:
                endpoint.average_latency_ms = latency_ms
            else:
                endpoint.average_latency_ms = (
                    self.latency_alpha * latency_ms
                    + (1 - self.latency_alpha) * endpoint.average_latency_ms
                )

    def _record_failure(self, name: str, error: str) -> None:
        with self._lock:
            endpoint = self._endpoints[name]
            endpoint.health_status = HealthStatus.DEGRADED
            endpoint.consecutive_failures += 1
            endpoint.degraded_at = self._clock()
            endpoint.last_error = error
