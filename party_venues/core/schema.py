"""Pydantic v2 models for queue items, venues and extraction payloads."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from party_venues.core.enums import EXTRACTED_STATUSES, QueueStatus, VenueStatus
from party_venues.core.scoring import clamp_confidence


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


# ============================================================================
# Extraction contract (model output)
# ============================================================================


class ExtractedVenue(BaseModel):
    """Venue block of the extraction JSON."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    description: str | None = None
    address_line_1: str = ""
    address_line_2: str | None = None
    city: str = ""
    borough: str | None = None
    postcode: str = ""
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    parking_info: str | None = None
    parking_free: bool | None = None
    max_children: int | None = None
    max_adults: int | None = None
    min_age: int | None = None
    max_age: int | None = None
    venue_type: list[str] = Field(default_factory=list)
    safety_certifications: list[str] = Field(default_factory=list)
    staff_dbs_checked: bool | None = None
    first_aid_trained: bool | None = None
    food_provided: bool | None = None
    outside_food_allowed: bool | None = None
    allergy_accommodations: bool | None = None
    allergy_info: str | None = None
    private_party_room: bool | None = None
    adults_must_stay: bool | None = None


class ExtractedPackage(BaseModel):
    """One party package from the extraction JSON."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    description: str = ""
    base_price: float | None = None
    base_includes_children: int | None = None
    additional_child_price: float | None = None
    duration_minutes: int | None = None
    activities_included: list[str] = Field(default_factory=list)
    food_included: list[str] = Field(default_factory=list)
    additional_costs: list[str] = Field(default_factory=list)
    deposit_required: float | None = None
    advance_booking_days: int | None = None


class ExtractionResult(BaseModel):
    """
    Full structured result returned by the language model.

    Confidence values outside [0, 1] are clamped rather than rejected;
    a missing or non-numeric confidence is a validation error.
    """

    model_config = ConfigDict(extra="ignore")

    venue: ExtractedVenue | None = None
    packages: list[ExtractedPackage] = Field(default_factory=list)
    confidence_score: float
    extraction_notes: str = ""

    @field_validator("confidence_score", mode="before")
    @classmethod
    def clamp_confidence_score(cls, v: Any) -> float:
        """Clamp confidence into [0, 1]."""
        clamped = clamp_confidence(v)
        if clamped is None:
            raise ValueError(f"confidence_score must be a number, got {v!r}")
        return clamped

    @property
    def has_venue(self) -> bool:
        """Check whether a venue with a usable name was extracted."""
        return self.venue is not None and bool(self.venue.name.strip())


# ============================================================================
# Queue
# ============================================================================


class QueueItem(BaseModel):
    """A unit of pipeline work keyed by a candidate venue URL."""

    id: UUID = Field(default_factory=uuid4)
    url: str
    search_query: str | None = None
    status: QueueStatus = QueueStatus.PENDING

    raw_content: str | None = None
    source_page_url: str | None = None
    extracted_data: dict[str, Any] | None = None
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)

    error_message: str | None = None
    rejection_reason: str | None = None
    reviewed_by: str | None = None

    created_at: datetime = Field(default_factory=_utc_now)
    claimed_at: datetime | None = None
    processed_at: datetime | None = None
    reviewed_at: datetime | None = None

    @model_validator(mode="after")
    def check_stage_containment(self) -> "QueueItem":
        """Extracted data only exists once an item has reached review."""
        if self.extracted_data is not None and self.status not in EXTRACTED_STATUSES:
            raise ValueError(
                f"extracted_data is not allowed on an item with status '{self.status.value}'"
            )
        if (self.extracted_data is None) != (self.confidence_score is None):
            raise ValueError("extracted_data and confidence_score must be set together")
        return self

    @property
    def extraction(self) -> ExtractionResult | None:
        """Parse the stored extraction payload."""
        if self.extracted_data is None:
            return None
        return ExtractionResult.model_validate(self.extracted_data)

    @property
    def venue_name(self) -> str | None:
        """Venue name from the extraction, if any."""
        venue = (self.extracted_data or {}).get("venue") or {}
        return venue.get("name") or None


# ============================================================================
# Directory entities
# ============================================================================


class PartyPackage(BaseModel):
    """A bookable party package offered by a venue."""

    id: UUID = Field(default_factory=uuid4)
    venue_id: UUID
    name: str
    description: str | None = None

    # Pricing
    base_price: float | None = None
    base_includes_children: int | None = None
    additional_child_price: float | None = None

    duration_minutes: int | None = None

    # Inclusions
    activities_included: list[str] = Field(default_factory=list)
    food_included: list[str] = Field(default_factory=list)
    decorations_included: list[str] = Field(default_factory=list)
    additional_costs: list[str] = Field(default_factory=list)

    # Booking
    deposit_required: float | None = None
    advance_booking_days: int | None = None

    created_at: datetime = Field(default_factory=_utc_now)

    def price_for(self, children: int) -> float | None:
        """Estimate the total price for a party of the given size."""
        if self.base_price is None:
            return None
        included = self.base_includes_children or 0
        extra = max(0, children - included) if included else 0
        return self.base_price + extra * (self.additional_child_price or 0.0)


class Venue(BaseModel):
    """A directory entry for a children's party venue."""

    id: UUID = Field(default_factory=uuid4)
    slug: str
    name: str
    description: str | None = None
    venue_type: list[str] = Field(default_factory=list)

    # Location
    address_line_1: str = ""
    address_line_2: str | None = None
    city: str = ""
    borough: str | None = None
    postcode: str = ""
    country: str = "UK"

    # Contact
    phone: str | None = None
    email: str | None = None
    website: str | None = None

    # Parent info
    parking_info: str | None = None
    parking_free: bool | None = None

    # Capacity and ages
    max_children: int | None = None
    max_adults: int | None = None
    min_age: int | None = None
    max_age: int | None = None

    # Safety
    safety_certifications: list[str] = Field(default_factory=list)
    staff_dbs_checked: bool | None = None
    first_aid_trained: bool | None = None

    # Food
    food_provided: bool | None = None
    outside_food_allowed: bool | None = None
    allergy_accommodations: bool | None = None
    allergy_info: str | None = None

    # Amenities
    private_party_room: bool | None = None
    adults_must_stay: bool | None = None

    status: VenueStatus = VenueStatus.DRAFT
    source_url: str | None = None
    queue_item_id: UUID | None = None

    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    packages: list[PartyPackage] = Field(default_factory=list)
