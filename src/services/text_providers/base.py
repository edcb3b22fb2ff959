"""Base abstraction for generative text providers."""

from abc import ABC, abstractmethod


class TextProviderError(Exception):
    """Raised when a text provider call fails or returns nothing usable."""

    pass


class TextProvider(ABC):
    """Abstract base class for prompt -> text generation backends."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        json_output: bool = False,
        max_tokens: int = 8192,
    ) -> str:
        """Generate text for a prompt.

        Args:
            prompt: Full prompt text
            temperature: Sampling temperature
            json_output: Ask the model for a bare JSON response
            max_tokens: Upper bound on response length

        Returns:
            Generated text (stripped, never empty)

        Raises:
            TextProviderError: If the call fails, times out or returns no text
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Get the name of this provider (e.g., "gemini", "anthropic")."""
