"""Gemini text provider backed by the google-genai SDK."""

import asyncio
import logging

from google.genai import Client, types

from services.text_providers.base import TextProvider, TextProviderError
from utils.retry import APIRateLimitError, TemporaryServiceError, retry_api_call

logger = logging.getLogger(__name__)


class GeminiTextProvider(TextProvider):
    """Text generation through Google Gemini."""

    def __init__(self, api_key: str, model_name: str = "gemini-2.5-flash", timeout: float = 120.0):
        """Initialize the Gemini client.

        Args:
            api_key: Google GenAI API key
            model_name: Gemini model to use
            timeout: Per-call timeout in seconds
        """
        self.client = Client(api_key=api_key)
        self.model_name = model_name
        self.timeout = timeout

    def get_provider_name(self) -> str:
        return "gemini"

    @retry_api_call(max_retries=2, base_delay=2.0)
    async def generate(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        json_output: bool = False,
        max_tokens: int = 8192,
    ) -> str:
        config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
            response_mime_type="application/json" if json_output else None,
        )

        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(
                    model=self.model_name,
                    contents=prompt,
                    config=config,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise TextProviderError(f"Gemini call timed out after {self.timeout}s") from e
        except Exception as e:
            # Convert specific errors to retryable errors
            message = str(e).lower()
            if "rate limit" in message or "429" in message or "resource_exhausted" in message:
                raise APIRateLimitError(f"Gemini rate limit: {e}") from e
            if "503" in message or "unavailable" in message or "overloaded" in message:
                raise TemporaryServiceError(f"Gemini unavailable: {e}") from e
            raise TextProviderError(f"Gemini call failed: {e}") from e

        if not response.text or not response.text.strip():
            logger.error("Gemini response is empty")
            raise TextProviderError("Gemini returned an empty response")

        return response.text.strip()
