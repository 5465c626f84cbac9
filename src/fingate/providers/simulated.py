"""Simulated Provider - offline stand-in for demos and load tests."""

import asyncio
import hashlib
import logging
import random

from fingate.errors import TransientProviderError
from fingate.providers.base import ModelProvider


logger = logging.getLogger(__name__)


class SimulatedProvider(ModelProvider):
    """
    Offline provider that fabricates a deterministic analysis stub.

    Simulates:
    - Latency (fixed delay)
    - Random transient failures (``failure_rate``)

    Not a model. Use it to exercise routing, caching and failover without
    a real backend.
    """

    name = "simulated"

    def __init__(self, failure_rate: float = 0.0, latency_seconds: float = 0.05, seed: int | None = None):
        """
        Initialize the simulated provider.

        Args:
            failure_rate: Probability of simulated failure (0.0-1.0)
            latency_seconds: Delay before answering
            seed: Seed for the failure draw
        """
        self.failure_rate = failure_rate
        self.latency_seconds = latency_seconds
        self._random = random.Random(seed)
        self.calls = 0

        logger.info(f"Simulated provider initialized (failure_rate={failure_rate})")

    async def invoke(self, prompt: str, max_tokens: int, timeout: float) -> str:
        self.calls += 1
        await asyncio.sleep(self.latency_seconds)

        if self._random.random() < self.failure_rate:
            raise TransientProviderError(self.name, "simulated upstream failure")

        digest = hashlib.sha256(prompt.encode()).hexdigest()[:8]
        words = prompt.split()
        summary = " ".join(words[-40:])
        text = f"[simulated analysis {digest}] Key considerations based on the request: {summary}"
        return text[: max_tokens * 4]
