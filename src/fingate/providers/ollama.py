"""
Ollama Provider

Calls a local or self-hosted Ollama server over its generate API.
"""

import logging
import os

import httpx

from fingate.errors import TransientProviderError
from fingate.providers.base import ModelProvider


logger = logging.getLogger(__name__)


class OllamaProvider(ModelProvider):
    """Local LLM backend served by Ollama."""

    name = "ollama"

    def __init__(
        self,
        ollama_url: str | None = None,
        model_name: str | None = None,
        temperature: float = 0.1,  # Analysts want stable wording
    ):
        """
        Initialize the Ollama provider.

        Args:
            ollama_url: Generate endpoint (defaults to OLLAMA_URL or http://localhost:11434/api/generate)
            model_name: Model to use (defaults to OLLAMA_MODEL or llama3.1:8b)
            temperature: Sampling temperature
        """
        self.ollama_url = ollama_url or os.getenv("OLLAMA_URL", "http://localhost:11434/api/generate")
        self.model_name = model_name or os.getenv("OLLAMA_MODEL", "llama3.1:8b")
        self.temperature = temperature

        logger.info(f"Ollama provider initialized: {self.model_name} at {self.ollama_url}")

    async def invoke(self, prompt: str, max_tokens: int, timeout: float) -> str:
        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "num_predict": max_tokens,
            },
        }

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(self.ollama_url, json=payload)
                response.raise_for_status()
                result = response.json()
        except httpx.ConnectError as e:
            logger.error("Failed to connect to Ollama. Is it running?")
            raise TransientProviderError(self.name, f"connection failed: {e}") from e
        except httpx.HTTPError as e:
            raise TransientProviderError(self.name, f"HTTP error: {e}") from e
        except ValueError as e:
            raise TransientProviderError(self.name, f"invalid JSON response: {e}") from e

        text = (result.get("response") or "").strip()
        if not text:
            raise TransientProviderError(self.name, "empty completion")

        return text
