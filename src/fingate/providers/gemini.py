"""
Gemini Provider

Google Gemini backend via the google-genai SDK.
"""

import logging

from google import genai
from google.genai import types

from fingate.errors import TransientProviderError
from fingate.providers.base import ModelProvider


logger = logging.getLogger(__name__)


class GeminiProvider(ModelProvider):
    """Hosted LLM backend served by Google Gemini."""

    name = "gemini"

    def __init__(self, api_key: str, model_name: str = "gemini-2.0-flash", temperature: float = 0.1):
        if not api_key:
            raise ValueError("Gemini provider requires an API key")

        self.model_name = model_name
        self.temperature = temperature
        self.client = genai.Client(api_key=api_key)

        logger.info(f"Gemini provider initialized: {self.model_name}")

    async def invoke(self, prompt: str, max_tokens: int, timeout: float) -> str:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self.temperature,
                    max_output_tokens=max_tokens,
                ),
            )
        except Exception as e:
            # SDK error types vary by transport; every failure is retryable elsewhere
            raise TransientProviderError(self.name, str(e)) from e

        text = (response.text or "").strip()
        if not text:
            raise TransientProviderError(self.name, "empty completion")

        return text
