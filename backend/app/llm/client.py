"""LLM client for narrative text with OpenAI integration.

Security: Reads API key from settings only, never hardcoded.
Provides a deterministic stub for local runs and tests.
"""

import logging
from typing import Protocol

from openai import AsyncOpenAI

from backend.app.config import Settings
from backend.app.errors import ConfigurationError

logger = logging.getLogger(__name__)


class EmptyCompletionError(Exception):
    """Provider returned no text."""

    pass


class LLMClient(Protocol):
    """Protocol for LLM client implementations."""

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        max_tokens: int,
        temperature: float | None = None,
    ) -> str:
        """Return the completion text for one system + user prompt pair.

        Raises on provider failure; callers decide on fallbacks.
        """
        ...


class DeterministicStubClient:
    """Stub client that returns empty completions (no API key required).

    Every narrative call made through it takes its templated fallback, so
    output is fully deterministic.
    """

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        max_tokens: int,
        temperature: float | None = None,
    ) -> str:
        self.calls.append(prompt)
        return ""


class OpenAIClient:
    """OpenAI-backed LLM client."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", temperature: float = 0.7):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from settings)
            model: Model name to use (default: gpt-4o-mini for cost efficiency)
            temperature: Default sampling temperature
        """
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        max_tokens: int,
        temperature: float | None = None,
    ) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature if temperature is None else temperature,
            max_tokens=max_tokens,
        )

        text = response.choices[0].message.content or ""
        if not text.strip():
            raise EmptyCompletionError(f"{self.model} returned an empty completion")
        return text.strip()


def get_llm_client(settings: Settings) -> LLMClient:
    """Factory function to get the LLM client for the configured credentials.

    Returns:
        OpenAIClient if an API key is configured, DeterministicStubClient when
        stub providers are explicitly allowed

    Raises:
        ConfigurationError: No API key and stubs not allowed
    """
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI client for narrative generation")
        return OpenAIClient(
            api_key=api_key.get_secret_value(),
            model=settings.openai_model,
            temperature=settings.narrative_temperature,
        )
    if settings.allow_stub_providers:
        logger.warning("No OpenAI API key configured, using deterministic stub client")
        return DeterministicStubClient()
    raise ConfigurationError("OPENAI_API_KEY is required for narrative generation")
