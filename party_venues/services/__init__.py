"""Application services for Party Venues."""

from party_venues.services.ai import (
    AIClient,
    AIProvider,
    ExtractionOutcome,
    ExtractionService,
)
from party_venues.services.review_service import ReviewResult, ReviewService, ReviewSummary

__all__ = [
    "AIClient",
    "AIProvider",
    "ExtractionOutcome",
    "ExtractionService",
    "ReviewResult",
    "ReviewService",
    "ReviewSummary",
]
