"""Anthropic (Claude) AI provider implementation."""

import logging

from party_venues.services.ai.client import AIClient, AIClientError, AIProvider
from party_venues.services.ai.prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicClient(AIClient):
    """Anthropic Claude AI client."""

    provider = AIProvider.ANTHROPIC

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 2000,
    ):
        """
        Initialize the Anthropic client.

        Args:
            api_key: Anthropic API key.
            model: Model name (defaults to claude-sonnet-4-20250514).
            temperature: Sampling temperature.
            max_tokens: Maximum tokens in the response.
        """
        import anthropic

        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = model or DEFAULT_MODEL
        self.temperature = temperature
        self.max_tokens = max_tokens

    def complete(self, prompt: str) -> str:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            logger.error(f"Anthropic API error: {e}")
            raise AIClientError(f"API error: {e}") from e

        text_blocks = [block.text for block in response.content if getattr(block, "text", None)]
        raw_response = "".join(text_blocks)
        if not raw_response.strip():
            raise AIClientError("Empty response from Anthropic")
        logger.info(f"AI extraction received response ({len(raw_response)} chars)")
        return raw_response
