"""Anthropic text provider backed by the anthropic SDK."""

import asyncio
import logging

import anthropic
from anthropic import AsyncAnthropic

from services.text_providers.base import TextProvider, TextProviderError
from utils.retry import APIRateLimitError, NetworkError, TemporaryServiceError, retry_api_call

logger = logging.getLogger(__name__)


class AnthropicTextProvider(TextProvider):
    """Text generation through Anthropic Claude."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "claude-sonnet-4-20250514",
        timeout: float = 120.0,
    ):
        if not api_key:
            raise ValueError("Anthropic API key is required for AnthropicTextProvider")

        self.client = AsyncAnthropic(api_key=api_key)
        self.model_name = model_name
        self.timeout = timeout

    def get_provider_name(self) -> str:
        return "anthropic"

    @retry_api_call(max_retries=2, base_delay=2.0)
    async def generate(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        json_output: bool = False,
        max_tokens: int = 8192,
    ) -> str:
        system = (
            "Respond with valid JSON only. No markdown fences, no commentary."
            if json_output
            else anthropic.NOT_GIVEN
        )

        try:
            response = await asyncio.wait_for(
                self.client.messages.create(
                    model=self.model_name,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    system=system,
                    messages=[{"role": "user", "content": prompt}],
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise TextProviderError(f"Anthropic call timed out after {self.timeout}s") from e
        except anthropic.RateLimitError as e:
            raise APIRateLimitError(f"Anthropic rate limit: {e}") from e
        except anthropic.APIConnectionError as e:
            raise NetworkError(f"Anthropic connection error: {e}") from e
        except anthropic.InternalServerError as e:
            raise TemporaryServiceError(f"Anthropic unavailable: {e}") from e
        except anthropic.APIError as e:
            raise TextProviderError(f"Anthropic call failed: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        if not text.strip():
            logger.error("Anthropic response is empty")
            raise TextProviderError("Anthropic returned an empty response")

        return text.strip()
