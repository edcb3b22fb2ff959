"""Generative text providers used for script distillation and scene planning."""

from services.text_providers.base import TextProvider, TextProviderError


def create_text_provider(config: dict) -> TextProvider:
    """Build the text provider selected by TEXT_PROVIDER.

    Args:
        config: Configuration dict from load_config()

    Returns:
        Configured TextProvider

    Raises:
        ValueError: If the provider name is unknown
    """
    provider = config.get("text_provider", "gemini")
    timeout = config.get("generation_timeout", 120.0)

    if provider == "gemini":
        from services.text_providers.gemini_provider import GeminiTextProvider

        return GeminiTextProvider(
            api_key=config["gemini_api_key"],
            model_name=config.get("gemini_model", "gemini-2.5-flash"),
            timeout=timeout,
        )

    if provider == "anthropic":
        from services.text_providers.anthropic_provider import AnthropicTextProvider

        return AnthropicTextProvider(
            api_key=config["anthropic_api_key"],
            model_name=config.get("anthropic_model", "claude-sonnet-4-20250514"),
            timeout=timeout,
        )

    raise ValueError(f"Unknown text provider: {provider}")


__all__ = ["TextProvider", "TextProviderError", "create_text_provider"]
