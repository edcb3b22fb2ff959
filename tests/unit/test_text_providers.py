"""Unit tests for the generative text providers (SDK clients are mocked)."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest

from services.text_providers import create_text_provider
from services.text_providers.anthropic_provider import AnthropicTextProvider
from services.text_providers.base import TextProviderError
from services.text_providers.gemini_provider import GeminiTextProvider
from utils.retry import APIRateLimitError


@pytest.fixture
def no_sleep():
    with patch("utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        yield sleep


def _gemini(generate: AsyncMock) -> GeminiTextProvider:
    provider = GeminiTextProvider(api_key="test-key", timeout=5)
    provider.client = MagicMock()
    provider.client.aio.models.generate_content = generate
    return provider


def _anthropic(create: AsyncMock) -> AnthropicTextProvider:
    provider = AnthropicTextProvider(api_key="test-key", timeout=5)
    provider.client = MagicMock()
    provider.client.messages.create = create
    return provider


class TestFactory:
    def test_creates_configured_provider(self):
        gemini = create_text_provider({"text_provider": "gemini", "gemini_api_key": "k"})
        claude = create_text_provider({"text_provider": "anthropic", "anthropic_api_key": "k"})

        assert gemini.get_provider_name() == "gemini"
        assert claude.get_provider_name() == "anthropic"

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            create_text_provider({"text_provider": "mystery"})

    def test_anthropic_requires_key(self):
        with pytest.raises(ValueError):
            AnthropicTextProvider(api_key="")


class TestGeminiTextProvider:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generate_returns_stripped_text(self):
        generate = AsyncMock(return_value=SimpleNamespace(text="  Narration text.  "))
        provider = _gemini(generate)

        assert await provider.generate("prompt", json_output=True) == "Narration text."
        config = generate.call_args.kwargs["config"]
        assert config.response_mime_type == "application/json"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, no_sleep):
        generate = AsyncMock(
            side_effect=[Exception("429 RESOURCE_EXHAUSTED"), SimpleNamespace(text="ok")]
        )
        provider = _gemini(generate)

        assert await provider.generate("prompt") == "ok"
        assert generate.await_count == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_response_is_an_error(self):
        provider = _gemini(AsyncMock(return_value=SimpleNamespace(text="")))

        with pytest.raises(TextProviderError):
            await provider.generate("prompt")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, no_sleep):
        generate = AsyncMock(side_effect=Exception("400 INVALID_ARGUMENT"))
        provider = _gemini(generate)

        with pytest.raises(TextProviderError):
            await provider.generate("prompt")
        assert generate.await_count == 1


class TestAnthropicTextProvider:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generate_joins_text_blocks(self):
        message = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Scene one. "), SimpleNamespace(type="text", text="Scene two.")]
        )
        create = AsyncMock(return_value=message)
        provider = _anthropic(create)

        assert await provider.generate("prompt", json_output=True, temperature=0.2) == "Scene one. Scene two."
        kwargs = create.call_args.kwargs
        assert kwargs["temperature"] == 0.2
        assert "JSON" in kwargs["system"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limit_gives_up_after_retries(self, no_sleep):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        error = anthropic.RateLimitError(
            "rate limited", response=httpx.Response(429, request=request), body=None
        )
        create = AsyncMock(side_effect=error)
        provider = _anthropic(create)

        with pytest.raises(APIRateLimitError):
            await provider.generate("prompt")
        assert create.await_count == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_response_is_an_error(self):
        provider = _anthropic(AsyncMock(return_value=SimpleNamespace(content=[])))

        with pytest.raises(TextProviderError):
            await provider.generate("prompt")
