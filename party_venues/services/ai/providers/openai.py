"""OpenAI AI provider implementation."""

import logging

from party_venues.services.ai.client import AIClient, AIClientError, AIProvider
from party_venues.services.ai.prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


class OpenAIClient(AIClient):
    """OpenAI GPT AI client."""

    provider = AIProvider.OPENAI

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 2000,
    ):
        """
        Initialize the OpenAI client.

        Args:
            api_key: OpenAI API key.
            model: Model name (defaults to gpt-4o-mini).
            temperature: Sampling temperature.
            max_tokens: Maximum tokens in the response.
        """
        import openai

        self.client = openai.OpenAI(api_key=api_key)
        self.model = model or DEFAULT_MODEL
        self.temperature = temperature
        self.max_tokens = max_tokens

    def complete(self, prompt: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
            )
        except Exception as e:
            logger.error(f"OpenAI API error: {e}")
            raise AIClientError(f"API error: {e}") from e

        raw_response = response.choices[0].message.content or ""
        if not raw_response.strip():
            raise AIClientError("Empty response from OpenAI")
        logger.debug(f"Raw AI response: {raw_response[:500]}...")
        return raw_response
