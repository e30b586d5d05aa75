"""Review service: approve, reject and correct extracted queue items."""

import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from party_venues.core.enums import ConfidenceBand, QueueStatus, VenueStatus
from party_venues.core.schema import ExtractionResult, PartyPackage, QueueItem, Venue
from party_venues.core.scoring import determine_confidence_band
from party_venues.core.slugs import unique_slug, venue_base_slug
from party_venues.db.repositories import PartyPackageRepository, QueueRepository, VenueRepository
from party_venues.ingestion.config import ReviewConfig
from party_venues.services.ai.client import sanitize_extraction_response

logger = logging.getLogger(__name__)


@dataclass
class ReviewResult:
    """Result of a review operation."""

    success: bool
    item: QueueItem | None = None
    venue: Venue | None = None
    packages: list[PartyPackage] = field(default_factory=list)
    error_message: str | None = None


@dataclass
class ReviewSummary:
    """Items awaiting review split into confidence bands."""

    high: list[QueueItem] = field(default_factory=list)
    medium: list[QueueItem] = field(default_factory=list)
    low: list[QueueItem] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Total number of items awaiting review."""
        return len(self.high) + len(self.medium) + len(self.low)

    def counts(self) -> dict[str, int]:
        """Item count per band."""
        return {
            ConfidenceBand.HIGH.value: len(self.high),
            ConfidenceBand.MEDIUM.value: len(self.medium),
            ConfidenceBand.LOW.value: len(self.low),
        }


class ReviewService:
    """Service for reviewing extracted items and publishing them as venues."""

    def __init__(self, session: Session, config: ReviewConfig | None = None):
        """
        Initialize the review service.

        Args:
            session: SQLAlchemy database session.
            config: Review thresholds and approval policy.
        """
        self.session = session
        self.config = config or ReviewConfig()
        self.queue_repo = QueueRepository(session)
        self.venue_repo = VenueRepository(session)
        self.package_repo = PartyPackageRepository(session)

    def list_for_review(
        self,
        min_confidence: float | None = None,
        max_confidence: float | None = None,
        limit: int | None = None,
    ) -> list[QueueItem]:
        """List items awaiting review, highest confidence first."""
        return self.queue_repo.list_for_review(
            min_confidence=min_confidence,
            max_confidence=max_confidence,
            limit=limit,
        )

    def review_summary(self) -> ReviewSummary:
        """
        Split the review set into high, medium and low confidence bands.

        Returns:
            ReviewSummary with items in descending confidence order per band.
        """
        summary = ReviewSummary()
        for item in self.queue_repo.list_for_review():
            band = determine_confidence_band(
                item.confidence_score,
                high_threshold=self.config.high_confidence_threshold,
                low_threshold=self.config.low_confidence_threshold,
            )
            getattr(summary, band.value).append(item)
        return summary

    def approve(
        self,
        item_id: UUID | str,
        reviewed_by: str | None = None,
        publish: bool | None = None,
    ) -> ReviewResult:
        """
        Approve a review item, creating its venue and packages.

        The venue, its packages and the queue transition are written in one
        savepoint. On failure nothing is kept and the item stays in review
        with the error recorded.

        Args:
            item_id: The queue item to approve.
            reviewed_by: Optional reviewer name.
            publish: Create the venue as published. Defaults to the
                     ``publish_on_approve`` policy.

        Returns:
            ReviewResult with the created venue and packages.
        """
        item = self.queue_repo.get_by_id(item_id)
        if item is None:
            return ReviewResult(success=False, error_message=f"Queue item {item_id} not found")

        if item.status != QueueStatus.REVIEW:
            return ReviewResult(
                success=False,
                item=item,
                error_message=f"Only items in review can be approved (status is '{item.status.value}')",
            )

        try:
            extraction = item.extraction
        except ValidationError as e:
            return self._approval_failed(item, f"Stored extraction is invalid: {e.error_count()} error(s)")

        if extraction is None or not extraction.has_venue:
            return self._approval_failed(item, "Extraction has no venue to create")

        if publish is None:
            publish = self.config.publish_on_approve
        status = VenueStatus.PUBLISHED if publish else VenueStatus.DRAFT

        try:
            with self.session.begin_nested():
                venue = self.venue_repo.create(self._build_venue(item, extraction, status))
                packages = self.package_repo.create_many(
                    self._build_packages(venue.id, extraction)
                )
                updated_item = self.queue_repo.mark_completed(item.id, reviewed_by=reviewed_by)
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"Failed to approve queue item {item.id}: {e}")
            return self._approval_failed(item, f"Approval failed: {e}")

        logger.info(
            f"Approved {item.url} as venue '{venue.slug}' ({status.value}) "
            f"with {len(packages)} package(s)"
        )
        venue.packages = packages
        return ReviewResult(success=True, item=updated_item, venue=venue, packages=packages)

    def reject(
        self,
        item_id: UUID | str,
        reason: str | None = None,
        reviewed_by: str | None = None,
    ) -> ReviewResult:
        """
        Reject a review item. No venue or package is written.

        Args:
            item_id: The queue item to reject.
            reason: Why the item was rejected.
            reviewed_by: Optional reviewer name.

        Returns:
            ReviewResult with the rejected item.
        """
        item = self.queue_repo.get_by_id(item_id)
        if item is None:
            return ReviewResult(success=False, error_message=f"Queue item {item_id} not found")

        if item.status != QueueStatus.REVIEW:
            return ReviewResult(
                success=False,
                item=item,
                error_message=f"Only items in review can be rejected (status is '{item.status.value}')",
            )

        updated_item = self.queue_repo.mark_rejected(item.id, reason=reason, reviewed_by=reviewed_by)
        logger.info(f"Rejected {item.url}: {reason or 'no reason given'}")
        return ReviewResult(success=True, item=updated_item)

    def requeue(self, item_id: UUID | str) -> ReviewResult:
        """Send a review item back for re-extraction, discarding its extracted data."""
        item = self.queue_repo.get_by_id(item_id)
        if item is None:
            return ReviewResult(success=False, error_message=f"Queue item {item_id} not found")

        if item.status != QueueStatus.REVIEW:
            return ReviewResult(
                success=False,
                item=item,
                error_message=f"Only items in review can be requeued (status is '{item.status.value}')",
            )

        updated_item = self.queue_repo.requeue_for_extraction(item.id)
        logger.info(f"Requeued {item.url} for extraction")
        return ReviewResult(success=True, item=updated_item)

    def update_extraction(
        self,
        item_id: UUID | str,
        data: dict[str, Any],
        confidence_score: float | None = None,
    ) -> ReviewResult:
        """
        Replace a review item's extracted data with a corrected version.

        The data is validated against the extraction schema. The stored
        confidence is kept unless a new one is given or the data carries one.

        Args:
            item_id: The queue item to correct.
            data: Corrected extraction JSON.
            confidence_score: Optional new confidence (clamped to [0, 1]).

        Returns:
            ReviewResult with the updated item.
        """
        item = self.queue_repo.get_by_id(item_id)
        if item is None:
            return ReviewResult(success=False, error_message=f"Queue item {item_id} not found")

        if item.status != QueueStatus.REVIEW:
            return ReviewResult(
                success=False,
                item=item,
                error_message=f"Only items in review can be edited (status is '{item.status.value}')",
            )

        payload = sanitize_extraction_response(data)
        if confidence_score is not None:
            payload["confidence_score"] = confidence_score
        elif payload.get("confidence_score") is None:
            payload["confidence_score"] = item.confidence_score

        try:
            extraction = ExtractionResult.model_validate(payload)
        except ValidationError as e:
            return ReviewResult(
                success=False,
                item=item,
                error_message=f"Validation error: {e.error_count()} error(s)",
            )

        if not extraction.has_venue:
            return ReviewResult(
                success=False,
                item=item,
                error_message="Extraction must include a venue with a name",
            )

        updated_item = self.queue_repo.update_extraction(
            item.id,
            extraction.model_dump(mode="json"),
            extraction.confidence_score,
        )
        return ReviewResult(success=True, item=updated_item)

    def _approval_failed(self, item: QueueItem, message: str) -> ReviewResult:
        self.queue_repo.set_error(item.id, message)
        return ReviewResult(
            success=False,
            item=self.queue_repo.get_by_id(item.id),
            error_message=message,
        )

    @staticmethod
    def _build_packages(venue_id: UUID, extraction: ExtractionResult) -> list[PartyPackage]:
        """Map extracted packages to PartyPackage models for a venue."""
        packages = []
        for extracted in extraction.packages:
            packages.append(
                PartyPackage(
                    venue_id=venue_id,
                    name=extracted.name or "Party package",
                    description=extracted.description or None,
                    base_price=extracted.base_price,
                    base_includes_children=extracted.base_includes_children,
                    additional_child_price=extracted.additional_child_price,
                    duration_minutes=extracted.duration_minutes,
                    activities_included=extracted.activities_included,
                    food_included=extracted.food_included,
                    decorations_included=[],
                    additional_costs=extracted.additional_costs,
                    deposit_required=extracted.deposit_required,
                    advance_booking_days=extracted.advance_booking_days,
                )
            )
        return packages

    def _build_venue(
        self,
        item: QueueItem,
        extraction: ExtractionResult,
        status: VenueStatus,
    ) -> Venue:
        """Map an extraction to a new Venue with a unique slug."""
        data = extraction.venue
        slug = unique_slug(venue_base_slug(data.name, data.city), self.venue_repo.slug_exists)
        return Venue(
            slug=slug,
            name=data.name.strip(),
            description=data.description,
            venue_type=data.venue_type or ["other"],
            address_line_1=data.address_line_1,
            address_line_2=data.address_line_2,
            city=data.city,
            borough=data.borough,
            postcode=data.postcode,
            phone=data.phone,
            email=data.email,
            website=data.website or item.url,
            parking_info=data.parking_info,
            parking_free=data.parking_free,
            max_children=data.max_children,
            max_adults=data.max_adults,
            min_age=data.min_age,
            max_age=data.max_age,
            safety_certifications=data.safety_certifications,
            staff_dbs_checked=data.staff_dbs_checked,
            first_aid_trained=data.first_aid_trained,
            food_provided=data.food_provided,
            outside_food_allowed=data.outside_food_allowed,
            allergy_accommodations=data.allergy_accommodations,
            allergy_info=data.allergy_info,
            private_party_room=data.private_party_room,
            adults_must_stay=data.adults_must_stay,
            status=status,
            source_url=item.source_page_url or item.url,
            queue_item_id=item.id,
        )
