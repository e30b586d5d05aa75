"""AI extraction services for party venues."""

from party_venues.services.ai.client import AIClient, AIClientError, AIProvider, get_ai_client
from party_venues.services.ai.extraction import (
    ExtractionOutcome,
    ExtractionService,
    parse_extraction_response,
)

__all__ = [
    "AIClient",
    "AIClientError",
    "AIProvider",
    "get_ai_client",
    "ExtractionOutcome",
    "ExtractionService",
    "parse_extraction_response",
]
