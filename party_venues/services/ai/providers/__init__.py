"""AI provider implementations."""

from party_venues.services.ai.providers.anthropic import AnthropicClient
from party_venues.services.ai.providers.openai import OpenAIClient

__all__ = ["AnthropicClient", "OpenAIClient"]
