"""Provider interface."""

from abc import ABC, abstractmethod


class ModelProvider(ABC):
    """
    Narrow interface over one AI backend.

    Implementations raise TransientProviderError for retryable failures.
    The router bounds every call with its own timeout, so ``timeout`` is a
    hint for the transport layer.
    """

    name: str = "provider"

    @abstractmethod
    async def invoke(self, prompt: str, max_tokens: int, timeout: float) -> str:
        """Return the completion text for ``prompt``."""
