"""AI client interface and provider abstraction."""

import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

# Venue fields that should be empty strings instead of null.
# These match the ExtractedVenue schema where str fields have default="".
_VENUE_STRING_FIELDS = ["name", "address_line_1", "city", "postcode"]
_VENUE_LIST_FIELDS = ["venue_type", "safety_certifications"]

_PACKAGE_STRING_FIELDS = ["name", "description"]
_PACKAGE_LIST_FIELDS = ["activities_included", "food_included", "additional_costs"]


def sanitize_extraction_response(data: dict[str, Any]) -> dict[str, Any]:
    """
    Convert nulls to empty values for required string and list fields.

    The model often returns null for fields it could not find, but our
    Pydantic models expect "" and [] for those.

    Args:
        data: The parsed JSON dict from the model.

    Returns:
        Sanitized dict.
    """
    result = data.copy()

    venue = result.get("venue")
    if isinstance(venue, dict):
        venue = venue.copy()
        for field in _VENUE_STRING_FIELDS:
            if field in venue and venue[field] is None:
                venue[field] = ""
        for field in _VENUE_LIST_FIELDS:
            if field in venue and venue[field] is None:
                venue[field] = []
        result["venue"] = venue

    if result.get("packages") is None and "packages" in result:
        result["packages"] = []

    packages = result.get("packages")
    if isinstance(packages, list):
        cleaned = []
        for package in packages:
            if isinstance(package, dict):
                package = package.copy()
                for field in _PACKAGE_STRING_FIELDS:
                    if field in package and package[field] is None:
                        package[field] = ""
                for field in _PACKAGE_LIST_FIELDS:
                    if field in package and package[field] is None:
                        package[field] = []
            cleaned.append(package)
        result["packages"] = cleaned

    if result.get("extraction_notes") is None and "extraction_notes" in result:
        result["extraction_notes"] = ""

    return result


def strip_code_fences(raw_response: str) -> str:
    """Remove surrounding markdown code fences from a model response."""
    json_str = raw_response.strip()
    if json_str.startswith("```json"):
        json_str = json_str[7:]
    if json_str.startswith("```"):
        json_str = json_str[3:]
    if json_str.endswith("```"):
        json_str = json_str[:-3]
    return json_str.strip()


class AIProvider(str, Enum):
    """Supported AI providers."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"


class AIClientError(Exception):
    """Raised when the model API call fails or returns nothing."""


class AIClient(ABC):
    """Abstract base class for AI providers."""

    provider: AIProvider
    model: str

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """
        Send a prompt and return the raw text response.

        Args:
            prompt: The full user prompt.

        Returns:
            The model's response text.

        Raises:
            AIClientError: If the API call fails or the response is empty.
        """
        pass


def get_ai_client(
    provider: AIProvider | str,
    api_key: str,
    model: str | None = None,
    temperature: float = 0.1,
    max_tokens: int = 2000,
) -> AIClient:
    """
    Factory function to get an AI client for the specified provider.

    Args:
        provider: The AI provider to use.
        api_key: The API key for the provider.
        model: Optional model name override.
        temperature: Sampling temperature.
        max_tokens: Maximum tokens in the response.

    Returns:
        An AIClient instance for the specified provider.

    Raises:
        ValueError: If the provider is not supported.
    """
    if isinstance(provider, str):
        try:
            provider = AIProvider(provider.lower())
        except ValueError:
            raise ValueError(f"Unsupported AI provider: {provider}")

    if provider == AIProvider.ANTHROPIC:
        from party_venues.services.ai.providers.anthropic import AnthropicClient

        return AnthropicClient(
            api_key=api_key, model=model, temperature=temperature, max_tokens=max_tokens
        )
    elif provider == AIProvider.OPENAI:
        from party_venues.services.ai.providers.openai import OpenAIClient

        return OpenAIClient(
            api_key=api_key, model=model, temperature=temperature, max_tokens=max_tokens
        )
    else:
        raise ValueError(f"Unsupported AI provider: {provider}")


def create_client_from_env(temperature: float = 0.1, max_tokens: int = 2000) -> AIClient:
    """
    Create an AI client from environment variables.

    Reads AI_PROVIDER (default openai), AI_MODEL and the provider's API key.

    Raises:
        ValueError: If the provider is unknown or its API key is missing.
    """
    provider = os.environ.get("AI_PROVIDER", "openai").lower()
    model = os.environ.get("AI_MODEL")

    if provider == "anthropic":
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable is required")
    elif provider == "openai":
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY environment variable is required")
    else:
        raise ValueError(f"Unsupported AI provider: {provider}")

    return get_ai_client(
        provider=provider,
        api_key=api_key,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
    )
