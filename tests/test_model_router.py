"""Tests for the Model Router and provider adapters."""

import asyncio
from datetime import datetime, timedelta, UTC
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from fingate.errors import AllProvidersExhaustedError, ConfigurationError, TransientProviderError
from fingate.providers import (
    HealthStatus,
    InvocationConstraints,
    ModelProvider,
    ModelRouter,
    ProviderEndpoint,
)
from fingate.providers.gemini import GeminiProvider
from fingate.providers.ollama import OllamaProvider
from fingate.providers.simulated import SimulatedProvider


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


class ScriptedProvider(ModelProvider):
    """Provider whose behaviour is set per test: 'ok', 'fail' or 'hang'."""

    def __init__(self, name: str, behaviour: str = "ok"):
        self.name = name
        self.behaviour = behaviour
        self.calls = 0

    async def invoke(self, prompt: str, max_tokens: int, timeout: float) -> str:
        self.calls += 1
        if self.behaviour == "fail":
            raise TransientProviderError(self.name, "boom")
        if self.behaviour == "hang":
            await asyncio.sleep(10)
        return f"{self.name} says hi"


def make_router(behaviours, clock=None, timeout=1.0, cooldown=30):
    providers = {name: ScriptedProvider(name, b) for name, b in behaviours.items()}
    endpoints = [
        ProviderEndpoint(name=name, priority=i, timeout_seconds=timeout)
        for i, name in enumerate(behaviours)
    ]
    router = ModelRouter(
        endpoints,
        providers,
        cooldown_seconds=cooldown,
        clock=clock or FakeClock(),
    )
    return router, providers


class TestRouting:
    """Test priority order and failover."""

    def test_highest_priority_healthy_provider_used(self):
        router, providers = make_router({"primary": "ok", "secondary": "ok"})

        response = asyncio.run(router.invoke("prompt"))

        assert response.provider == "primary"
        assert providers["secondary"].calls == 0

    def test_priority_number_not_list_order_decides(self):
        providers = {"a": ScriptedProvider("a"), "b": ScriptedProvider("b")}
        endpoints = [
            ProviderEndpoint(name="a", priority=5),
            ProviderEndpoint(name="b", priority=1),
        ]
        router = ModelRouter(endpoints, providers)

        assert asyncio.run(router.invoke("p")).provider == "b"

    def test_fails_over_to_third_endpoint(self):
        """Two failing endpoints are marked degraded and the third answers."""
        router, providers = make_router({"a": "fail", "b": "fail", "c": "ok"})

        response = asyncio.run(router.invoke("prompt"))

        assert response.provider == "c"
        assert [a.provider for a in response.attempts] == ["a", "b", "c"]
        assert [a.success for a in response.attempts] == [False, False, True]
        assert router.endpoint("a").health_status == HealthStatus.DEGRADED
        assert router.endpoint("b").health_status == HealthStatus.DEGRADED
        assert router.endpoint("c").health_status == HealthStatus.HEALTHY

    def test_degraded_endpoint_skipped_during_cooldown(self):
        router, providers = make_router({"a": "fail", "b": "ok"})
        asyncio.run(router.invoke("p1"))

        asyncio.run(router.invoke("p2"))

        assert providers["a"].calls == 1
        assert providers["b"].calls == 2

    def test_degraded_endpoint_retried_after_cooldown(self):
        """Once the cooldown elapses the endpoint is eligible and can recover."""
        clock = FakeClock()
        router, providers = make_router({"a": "fail", "b": "ok"}, clock=clock, cooldown=30)
        asyncio.run(router.invoke("p1"))

        providers["a"].behaviour = "ok"
        clock.advance(30)
        response = asyncio.run(router.invoke("p2"))

        assert response.provider == "a"
        endpoint = router.endpoint("a")
        assert endpoint.health_status == HealthStatus.HEALTHY
        assert endpoint.consecutive_failures == 0

    def test_timeout_counts_as_failure(self):
        """A provider exceeding its timeout is degraded and skipped."""
        router, _ = make_router({"slow": "hang", "fast": "ok"}, timeout=0.05)

        response = asyncio.run(router.invoke("p"))

        assert response.provider == "fast"
        assert "timed out" in response.attempts[0].error
        assert router.endpoint("slow").health_status == HealthStatus.DEGRADED

    def test_constraint_timeout_caps_endpoint_timeout(self):
        router, _ = make_router({"slow": "hang", "fast": "ok"}, timeout=5.0)

        response = asyncio.run(
            router.invoke("p", InvocationConstraints(timeout_seconds=0.05))
        )

        assert response.provider == "fast"
        assert "0.05" in response.attempts[0].error

    def test_all_failing_raises_exhausted(self):
        router, _ = make_router({"a": "fail", "b": "fail"})

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            asyncio.run(router.invoke("p"))

        attempts = exc_info.value.attempts
        assert [a["provider"] for a in attempts] == ["a", "b"]
        assert all("boom" in a["error"] for a in attempts)

    def test_no_eligible_endpoint_raises_without_calls(self):
        """With every endpoint cooling down, nothing is called."""
        router, providers = make_router({"a": "fail"})
        with pytest.raises(AllProvidersExhaustedError):
            asyncio.run(router.invoke("p1"))

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            asyncio.run(router.invoke("p2"))

        assert exc_info.value.attempts == []
        assert providers["a"].calls == 1

    def test_cancellation_is_not_a_provider_failure(self):
        router, _ = make_router({"slow": "hang"}, timeout=5.0)

        async def scenario():
            task = asyncio.create_task(router.invoke("p"))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        endpoint = router.endpoint("slow")
        assert endpoint.health_status == HealthStatus.HEALTHY
        assert endpoint.consecutive_failures == 0

    def test_latency_tracked_on_success(self):
        router, _ = make_router({"a": "ok"})
        asyncio.run(router.invoke("p"))
        assert router.endpoint("a").average_latency_ms > 0


class TestRouterConfiguration:
    def test_empty_endpoints_rejected(self):
        with pytest.raises(ConfigurationError):
            ModelRouter([], {})

    def test_duplicate_endpoints_rejected(self):
        endpoints = [ProviderEndpoint(name="a", priority=0), ProviderEndpoint(name="a", priority=1)]
        with pytest.raises(ConfigurationError):
            ModelRouter(endpoints, {"a": ScriptedProvider("a")})

    def test_missing_implementation_rejected(self):
        with pytest.raises(ConfigurationError):
            ModelRouter([ProviderEndpoint(name="a", priority=0)], {})

    def test_health_snapshot_is_a_copy(self):
        router, _ = make_router({"a": "ok"})
        snapshot = router.health()
        snapshot[0].health_status = HealthStatus.DEGRADED
        assert router.endpoint("a").health_status == HealthStatus.HEALTHY


class TestProviderAdapters:
    """Test concrete provider adapters with mocked transports."""

    @patch("fingate.providers.gemini.genai.Client")
    def test_gemini_returns_text(self, mock_client):
        mock_response = MagicMock()
        mock_response.text = "  Liquidity looks adequate.  "
        mock_client.return_value.aio.models.generate_content = AsyncMock(return_value=mock_response)

        provider = GeminiProvider(api_key="fake-key")
        text = asyncio.run(provider.invoke("prompt", max_tokens=64, timeout=5))

        assert text == "Liquidity looks adequate."
        kwargs = mock_client.return_value.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.0-flash"
        assert kwargs["config"].max_output_tokens == 64

    @patch("fingate.providers.gemini.genai.Client")
    def test_gemini_errors_are_transient(self, mock_client):
        mock_client.return_value.aio.models.generate_content = AsyncMock(
            side_effect=Exception("429 RESOURCE_EXHAUSTED")
        )

        provider = GeminiProvider(api_key="fake-key")
        with pytest.raises(TransientProviderError, match="RESOURCE_EXHAUSTED"):
            asyncio.run(provider.invoke("prompt", max_tokens=64, timeout=5))

    def test_gemini_requires_api_key(self):
        with pytest.raises(ValueError):
            GeminiProvider(api_key="")

    @patch("fingate.providers.ollama.httpx.AsyncClient")
    def test_ollama_posts_generate_request(self, mock_client_cls):
        mock_response = MagicMock()
        mock_response.json.return_value = {"response": "Risk is MODERATE."}
        mock_client = mock_client_cls.return_value.__aenter__.return_value
        mock_client.post = AsyncMock(return_value=mock_response)

        provider = OllamaProvider(ollama_url="http://ollama:11434/api/generate", model_name="llama3.1:8b")
        text = asyncio.run(provider.invoke("prompt", max_tokens=128, timeout=5))

        assert text == "Risk is MODERATE."
        url = mock_client.post.call_args.args[0]
        payload = mock_client.post.call_args.kwargs["json"]
        assert url == "http://ollama:11434/api/generate"
        assert payload["model"] == "llama3.1:8b"
        assert payload["options"]["num_predict"] == 128
        assert payload["stream"] is False

    @patch("fingate.providers.ollama.httpx.AsyncClient")
    def test_ollama_connection_error_is_transient(self, mock_client_cls):
        mock_client = mock_client_cls.return_value.__aenter__.return_value
        mock_client.post = AsyncMock(side_effect=httpx.ConnectError("refused"))

        provider = OllamaProvider(ollama_url="http://ollama:11434/api/generate")
        with pytest.raises(TransientProviderError, match="connection failed"):
            asyncio.run(provider.invoke("prompt", max_tokens=128, timeout=5))

    @patch("fingate.providers.ollama.httpx.AsyncClient")
    def test_ollama_empty_completion_is_transient(self, mock_client_cls):
        mock_response = MagicMock()
        mock_response.json.return_value = {"response": ""}
        mock_client = mock_client_cls.return_value.__aenter__.return_value
        mock_client.post = AsyncMock(return_value=mock_response)

        provider = OllamaProvider()
        with pytest.raises(TransientProviderError, match="empty completion"):
            asyncio.run(provider.invoke("prompt", max_tokens=128, timeout=5))

    def test_simulated_provider_is_deterministic(self):
        provider = SimulatedProvider(latency_seconds=0)

        first = asyncio.run(provider.invoke("same prompt", max_tokens=256, timeout=1))
        second = asyncio.run(provider.invoke("same prompt", max_tokens=256, timeout=1))

        assert first == second
        assert first.startswith("[simulated analysis ")
        assert provider.calls == 2

    def test_simulated_provider_failure_rate(self):
        provider = SimulatedProvider(failure_rate=1.0, latency_seconds=0)
        with pytest.raises(TransientProviderError):
            asyncio.run(provider.invoke("p", max_tokens=16, timeout=1))
