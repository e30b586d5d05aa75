"""Enums for queue, venue and extraction fields."""

from enum import Enum


class QueueStatus(str, Enum):
    """Lifecycle status of a scraping queue item."""

    PENDING = "pending"
    PROCESSING = "processing"
    SCRAPED = "scraped"
    REVIEW = "review"
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Approved and rejected items are never picked up again."""
        return self in (QueueStatus.COMPLETED, QueueStatus.REJECTED)


# Statuses in which a queue item may carry extracted data
EXTRACTED_STATUSES = frozenset(
    {QueueStatus.REVIEW, QueueStatus.COMPLETED, QueueStatus.REJECTED}
)


class VenueStatus(str, Enum):
    """Publication status of a directory venue."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class VenueType(str, Enum):
    """Venue categories suggested to the model."""

    SOFT_PLAY = "soft_play"
    TRAMPOLINE = "trampoline"
    BOWLING = "bowling"
    SWIMMING = "swimming"
    LASER_TAG = "laser_tag"
    CLIMBING = "climbing"
    ARTS_CRAFTS = "arts_crafts"
    SPORTS = "sports"
    OTHER = "other"


class ExtractionErrorKind(str, Enum):
    """Why an extraction attempt failed."""

    API = "api"
    PARSE = "parse"
    SCHEMA = "schema"
    NO_VENUE = "no_venue"


class ConfidenceBand(str, Enum):
    """Review bucket derived from the extraction confidence score."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
