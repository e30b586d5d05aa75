"""Repository classes for database operations."""

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from party_venues.core.enums import QueueStatus, VenueStatus
from party_venues.core.schema import PartyPackage, QueueItem, Venue
from party_venues.db.models import PartyPackageDB, QueueItemDB, VenueDB

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class QueueRepository:
    """
    Repository for the scraping queue.

    Stage transitions go through ``claim`` (a compare-and-swap UPDATE into
    ``processing``) followed by one of the ``mark_*`` methods.
    """

    def __init__(self, session: Session):
        self.session = session

    def create_if_absent(self, url: str, search_query: str | None = None) -> QueueItem | None:
        """
        Enqueue a URL as a pending item unless it is already queued.

        Args:
            url: The candidate venue URL.
            search_query: The query that produced the URL.

        Returns:
            The created QueueItem, or None if the URL already exists.
        """
        if self.exists(url):
            return None

        db_item = QueueItemDB(
            url=url,
            search_query=search_query,
            status=QueueStatus.PENDING.value,
            created_at=_utc_now(),
        )
        try:
            with self.session.begin_nested():
                self.session.add(db_item)
                self.session.flush()
        except IntegrityError:
            # Inserted concurrently between the existence check and the flush
            logger.debug(f"Skipping duplicate URL {url}")
            return None
        return self._to_domain(db_item)

    def exists(self, url: str) -> bool:
        """Check whether a URL is already queued."""
        stmt = select(QueueItemDB.id).where(QueueItemDB.url == url)
        return self.session.execute(stmt).first() is not None

    def get_by_id(self, item_id: UUID | str) -> QueueItem | None:
        """
        Get a queue item by ID.

        Args:
            item_id: The UUID of the queue item.

        Returns:
            The QueueItem if found, None otherwise.
        """
        db_item = self._get_db(item_id)
        return self._to_domain(db_item) if db_item else None

    def get_by_url(self, url: str) -> QueueItem | None:
        """Get a queue item by its URL."""
        stmt = select(QueueItemDB).where(QueueItemDB.url == url)
        db_item = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_item) if db_item else None

    def list_by_status(self, status: QueueStatus, limit: int | None = None) -> list[QueueItem]:
        """
        List queue items in a status, oldest first.

        Args:
            status: The status to filter on.
            limit: Maximum number of items to return.

        Returns:
            List of QueueItem domain models.
        """
        stmt = (
            select(QueueItemDB)
            .where(QueueItemDB.status == status.value)
            .order_by(QueueItemDB.created_at.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(item) for item in result]

    def list_for_extraction(self, limit: int | None = None) -> list[QueueItem]:
        """List scraped items that have content and no extraction yet."""
        stmt = (
            select(QueueItemDB)
            .where(QueueItemDB.status == QueueStatus.SCRAPED.value)
            .where(QueueItemDB.raw_content.is_not(None))
            .where(QueueItemDB.extracted_data_json.is_(None))
            .order_by(QueueItemDB.created_at.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(item) for item in result]

    def list_for_review(
        self,
        min_confidence: float | None = None,
        max_confidence: float | None = None,
        limit: int | None = None,
    ) -> list[QueueItem]:
        """
        List items awaiting review, highest confidence first.

        Args:
            min_confidence: Inclusive lower bound on confidence.
            max_confidence: Inclusive upper bound on confidence.
            limit: Maximum number of items to return.

        Returns:
            List of QueueItem domain models.
        """
        stmt = select(QueueItemDB).where(QueueItemDB.status == QueueStatus.REVIEW.value)
        if min_confidence is not None:
            stmt = stmt.where(QueueItemDB.confidence_score >= min_confidence)
        if max_confidence is not None:
            stmt = stmt.where(QueueItemDB.confidence_score <= max_confidence)
        stmt = stmt.order_by(QueueItemDB.confidence_score.desc(), QueueItemDB.created_at.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(item) for item in result]

    def claim(self, item_id: UUID | str, expected_status: QueueStatus) -> bool:
        """
        Atomically move an item from ``expected_status`` to processing.

        Args:
            item_id: The queue item ID.
            expected_status: The status the item must currently have.

        Returns:
            True if this caller won the claim, False otherwise.
        """
        self.session.flush()
        stmt = (
            update(QueueItemDB)
            .where(QueueItemDB.id == str(item_id))
            .where(QueueItemDB.status == expected_status.value)
            .values(status=QueueStatus.PROCESSING.value, claimed_at=_utc_now())
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self.session.expire_all()
        return result.rowcount == 1

    def mark_scraped(
        self,
        item_id: UUID | str,
        raw_content: str,
        source_page_url: str | None = None,
    ) -> QueueItem:
        """Record scraped content and hand the item to extraction."""
        db_item = self._require_db(item_id)
        db_item.status = QueueStatus.SCRAPED.value
        db_item.raw_content = raw_content
        db_item.source_page_url = source_page_url
        db_item.error_message = None
        db_item.processed_at = _utc_now()
        self.session.flush()
        return self._to_domain(db_item)

    def mark_failed(self, item_id: UUID | str, error_message: str) -> QueueItem:
        """Record a stage failure. Extraction data never survives a failure."""
        db_item = self._require_db(item_id)
        db_item.status = QueueStatus.FAILED.value
        db_item.error_message = error_message
        db_item.extracted_data_json = None
        db_item.confidence_score = None
        db_item.processed_at = _utc_now()
        self.session.flush()
        return self._to_domain(db_item)

    def mark_review(
        self,
        item_id: UUID | str,
        extracted_data: dict[str, Any],
        confidence_score: float,
    ) -> QueueItem:
        """
        Persist a validated extraction and move the item to review.

        Args:
            item_id: The queue item ID.
            extracted_data: The extraction payload as a JSON-compatible dict.
            confidence_score: Confidence in [0, 1].

        Returns:
            The updated QueueItem.
        """
        if not 0.0 <= confidence_score <= 1.0:
            raise ValueError(f"confidence_score out of range: {confidence_score}")

        db_item = self._require_db(item_id)
        db_item.status = QueueStatus.REVIEW.value
        db_item.extracted_data_json = json.dumps(extracted_data)
        db_item.confidence_score = confidence_score
        db_item.error_message = None
        db_item.processed_at = _utc_now()
        self.session.flush()
        return self._to_domain(db_item)

    def mark_completed(self, item_id: UUID | str, reviewed_by: str | None = None) -> QueueItem:
        """Mark an approved item as completed."""
        db_item = self._require_db(item_id)
        db_item.status = QueueStatus.COMPLETED.value
        db_item.error_message = None
        db_item.reviewed_by = reviewed_by
        db_item.reviewed_at = _utc_now()
        self.session.flush()
        return self._to_domain(db_item)

    def mark_rejected(
        self,
        item_id: UUID | str,
        reason: str | None = None,
        reviewed_by: str | None = None,
    ) -> QueueItem:
        """Mark a reviewed item as rejected."""
        db_item = self._require_db(item_id)
        db_item.status = QueueStatus.REJECTED.value
        db_item.rejection_reason = reason
        db_item.reviewed_by = reviewed_by
        db_item.reviewed_at = _utc_now()
        self.session.flush()
        return self._to_domain(db_item)

    def set_error(self, item_id: UUID | str, error_message: str | None) -> None:
        """Record an error without changing the item's status."""
        db_item = self._require_db(item_id)
        db_item.error_message = error_message
        self.session.flush()

    def update_extraction(
        self,
        item_id: UUID | str,
        extracted_data: dict[str, Any],
        confidence_score: float,
    ) -> QueueItem:
        """Replace the extraction payload of an item in review."""
        db_item = self._require_db(item_id)
        if db_item.status != QueueStatus.REVIEW.value:
            raise ValueError(f"Queue item {item_id} is not in review (status={db_item.status})")
        if not 0.0 <= confidence_score <= 1.0:
            raise ValueError(f"confidence_score out of range: {confidence_score}")

        db_item.extracted_data_json = json.dumps(extracted_data)
        db_item.confidence_score = confidence_score
        self.session.flush()
        return self._to_domain(db_item)

    def requeue_for_extraction(self, item_id: UUID | str) -> QueueItem:
        """Send a review item back to scraped, discarding its extraction."""
        db_item = self._require_db(item_id)
        if db_item.status != QueueStatus.REVIEW.value:
            raise ValueError(f"Queue item {item_id} is not in review (status={db_item.status})")

        db_item.status = QueueStatus.SCRAPED.value
        db_item.extracted_data_json = None
        db_item.confidence_score = None
        db_item.error_message = None
        self.session.flush()
        return self._to_domain(db_item)

    def count_by_status(self) -> dict[str, int]:
        """
        Count queue items per status.

        Returns:
            Mapping of every status value to its item count.
        """
        stmt = select(QueueItemDB.status, func.count(QueueItemDB.id)).group_by(QueueItemDB.status)
        counts = {status.value: 0 for status in QueueStatus}
        for status, count in self.session.execute(stmt).all():
            counts[status] = count
        return counts

    def requeue_failed(self) -> int:
        """
        Move failed items back to the input status of the stage that failed them.

        Items without raw content go back to pending, the rest to scraped.

        Returns:
            Number of items requeued.
        """
        stmt = select(QueueItemDB).where(QueueItemDB.status == QueueStatus.FAILED.value)
        items = self.session.execute(stmt).scalars().all()
        for db_item in items:
            db_item.status = self._stage_input_status(db_item).value
            db_item.error_message = None
            db_item.claimed_at = None
        self.session.flush()
        return len(items)

    def release_stale(self, older_than: datetime) -> int:
        """
        Release processing items whose claim is older than a cutoff.

        Args:
            older_than: Claims made before this time are considered abandoned.

        Returns:
            Number of items released.
        """
        stmt = (
            select(QueueItemDB)
            .where(QueueItemDB.status == QueueStatus.PROCESSING.value)
            .where(or_(QueueItemDB.claimed_at.is_(None), QueueItemDB.claimed_at < older_than))
        )
        items = self.session.execute(stmt).scalars().all()
        for db_item in items:
            db_item.status = self._stage_input_status(db_item).value
            db_item.claimed_at = None
        self.session.flush()
        return len(items)

    @staticmethod
    def _stage_input_status(db_item: QueueItemDB) -> QueueStatus:
        return QueueStatus.PENDING if db_item.raw_content is None else QueueStatus.SCRAPED

    def _get_db(self, item_id: UUID | str) -> QueueItemDB | None:
        stmt = select(QueueItemDB).where(QueueItemDB.id == str(item_id))
        return self.session.execute(stmt).scalar_one_or_none()

    def _require_db(self, item_id: UUID | str) -> QueueItemDB:
        db_item = self._get_db(item_id)
        if db_item is None:
            raise ValueError(f"QueueItem with id {item_id} not found")
        return db_item

    def _to_domain(self, db_item: QueueItemDB) -> QueueItem:
        """Convert DB model to domain model."""
        return QueueItem(
            id=UUID(db_item.id),
            url=db_item.url,
            search_query=db_item.search_query,
            status=QueueStatus(db_item.status),
            raw_content=db_item.raw_content,
            source_page_url=db_item.source_page_url,
            extracted_data=json.loads(db_item.extracted_data_json)
            if db_item.extracted_data_json
            else None,
            confidence_score=db_item.confidence_score,
            error_message=db_item.error_message,
            rejection_reason=db_item.rejection_reason,
            reviewed_by=db_item.reviewed_by,
            created_at=db_item.created_at,
            claimed_at=db_item.claimed_at,
            processed_at=db_item.processed_at,
            reviewed_at=db_item.reviewed_at,
        )


@dataclass
class VenueFilters:
    """Filters for listing published venues."""

    city: str | None = None
    borough: str | None = None
    venue_types: list[str] = field(default_factory=list)
    min_age: int | None = None
    max_age: int | None = None
    limit: int = 50


class VenueRepository:
    """Repository for directory venues."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, venue: Venue) -> Venue:
        """
        Create a new venue. Packages are inserted separately.

        Args:
            venue: The Venue domain model to create.

        Returns:
            The created Venue.
        """
        db_venue = VenueDB(
            id=str(venue.id),
            slug=venue.slug,
            name=venue.name,
            description=venue.description,
            venue_type_json=json.dumps(venue.venue_type),
            address_line_1=venue.address_line_1,
            address_line_2=venue.address_line_2,
            city=venue.city,
            borough=venue.borough,
            postcode=venue.postcode,
            country=venue.country,
            phone=venue.phone,
            email=venue.email,
            website=venue.website,
            parking_info=venue.parking_info,
            parking_free=venue.parking_free,
            max_children=venue.max_children,
            max_adults=venue.max_adults,
            min_age=venue.min_age,
            max_age=venue.max_age,
            safety_certifications_json=json.dumps(venue.safety_certifications),
            staff_dbs_checked=venue.staff_dbs_checked,
            first_aid_trained=venue.first_aid_trained,
            food_provided=venue.food_provided,
            outside_food_allowed=venue.outside_food_allowed,
            allergy_accommodations=venue.allergy_accommodations,
            allergy_info=venue.allergy_info,
            private_party_room=venue.private_party_room,
            adults_must_stay=venue.adults_must_stay,
            status=venue.status.value,
            source_url=venue.source_url,
            queue_item_id=str(venue.queue_item_id) if venue.queue_item_id else None,
            created_at=venue.created_at,
            updated_at=venue.updated_at,
        )
        self.session.add(db_venue)
        self.session.flush()
        return self._to_domain(db_venue, include_packages=False)

    def slug_exists(self, slug: str) -> bool:
        """Check whether a slug is taken."""
        stmt = select(VenueDB.id).where(VenueDB.slug == slug)
        return self.session.execute(stmt).first() is not None

    def get_by_id(self, venue_id: UUID | str) -> Venue | None:
        """Get a venue with its packages by ID."""
        stmt = (
            select(VenueDB)
            .options(selectinload(VenueDB.packages))
            .where(VenueDB.id == str(venue_id))
        )
        db_venue = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_venue) if db_venue else None

    def get_by_slug(self, slug: str, published_only: bool = True) -> Venue | None:
        """
        Get a venue with its packages by slug.

        Args:
            slug: The venue slug.
            published_only: If True, drafts and archived venues are not returned.

        Returns:
            The Venue if found, None otherwise.
        """
        stmt = select(VenueDB).options(selectinload(VenueDB.packages)).where(VenueDB.slug == slug)
        if published_only:
            stmt = stmt.where(VenueDB.status == VenueStatus.PUBLISHED.value)
        db_venue = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_venue) if db_venue else None

    def find(self, ref: str) -> Venue | None:
        """
        Find a venue of any status by full ID, slug or unique ID prefix.

        Args:
            ref: Venue ID, slug, or the leading characters of an ID.

        Returns:
            The Venue if exactly one matches, None otherwise.
        """
        venue = self.get_by_id(ref) or self.get_by_slug(ref, published_only=False)
        if venue is not None:
            return venue

        stmt = select(VenueDB.id).where(VenueDB.id.startswith(ref, autoescape=True)).limit(2)
        matches = self.session.execute(stmt).scalars().all()
        return self.get_by_id(matches[0]) if len(matches) == 1 else None

    def list_all(self, status: VenueStatus | None = None) -> list[Venue]:
        """List venues, optionally filtered by status, newest first."""
        stmt = select(VenueDB).order_by(VenueDB.created_at.desc())
        if status is not None:
            stmt = stmt.where(VenueDB.status == status.value)
        result = self.session.execute(stmt).scalars().all()
        return [self._to_domain(v, include_packages=False) for v in result]

    def list_published(self, filters: VenueFilters | None = None) -> list[Venue]:
        """
        List published venues matching the given filters.

        City and borough match case-insensitively on a substring. Venue types
        match when any requested type is present. Age filters keep venues
        whose age range overlaps the requested one; unknown bounds match.

        Args:
            filters: Filters to apply.

        Returns:
            List of Venue domain models with packages, ordered by name.
        """
        filters = filters or VenueFilters()

        stmt = (
            select(VenueDB)
            .options(selectinload(VenueDB.packages))
            .where(VenueDB.status == VenueStatus.PUBLISHED.value)
        )
        if filters.city:
            stmt = stmt.where(VenueDB.city.ilike(f"%{filters.city}%"))
        if filters.borough:
            stmt = stmt.where(VenueDB.borough.ilike(f"%{filters.borough}%"))
        if filters.min_age is not None:
            stmt = stmt.where(or_(VenueDB.max_age.is_(None), VenueDB.max_age >= filters.min_age))
        if filters.max_age is not None:
            stmt = stmt.where(or_(VenueDB.min_age.is_(None), VenueDB.min_age <= filters.max_age))
        stmt = stmt.order_by(VenueDB.name.asc())

        venues = []
        wanted_types = set(filters.venue_types)
        for db_venue in self.session.execute(stmt).scalars().all():
            if wanted_types and not wanted_types & set(json.loads(db_venue.venue_type_json)):
                continue
            venues.append(self._to_domain(db_venue))
            if len(venues) >= filters.limit:
                break
        return venues

    def set_status(self, venue_id: UUID | str, status: VenueStatus) -> Venue | None:
        """
        Change a venue's publication status.

        Returns:
            The updated Venue, or None if not found.
        """
        stmt = select(VenueDB).where(VenueDB.id == str(venue_id))
        db_venue = self.session.execute(stmt).scalar_one_or_none()
        if db_venue is None:
            return None
        db_venue.status = status.value
        db_venue.updated_at = _utc_now()
        self.session.flush()
        return self._to_domain(db_venue)

    def publish(self, venue_id: UUID | str) -> Venue | None:
        """Publish a venue."""
        return self.set_status(venue_id, VenueStatus.PUBLISHED)

    def archive(self, venue_id: UUID | str) -> Venue | None:
        """Archive a venue."""
        return self.set_status(venue_id, VenueStatus.ARCHIVED)

    def delete(self, venue_id: UUID | str) -> bool:
        """
        Delete a venue and its packages.

        Returns:
            True if deleted, False if not found.
        """
        stmt = select(VenueDB).where(VenueDB.id == str(venue_id))
        db_venue = self.session.execute(stmt).scalar_one_or_none()
        if db_venue is None:
            return False
        self.session.delete(db_venue)
        self.session.flush()
        return True

    def _to_domain(self, db_venue: VenueDB, include_packages: bool = True) -> Venue:
        """Convert DB model to domain model."""
        packages = []
        if include_packages:
            packages = [PartyPackageRepository.to_domain(p) for p in db_venue.packages]
        return Venue(
            id=UUID(db_venue.id),
            slug=db_venue.slug,
            name=db_venue.name,
            description=db_venue.description,
            venue_type=json.loads(db_venue.venue_type_json),
            address_line_1=db_venue.address_line_1,
            address_line_2=db_venue.address_line_2,
            city=db_venue.city,
            borough=db_venue.borough,
            postcode=db_venue.postcode,
            country=db_venue.country,
            phone=db_venue.phone,
            email=db_venue.email,
            website=db_venue.website,
            parking_info=db_venue.parking_info,
            parking_free=db_venue.parking_free,
            max_children=db_venue.max_children,
            max_adults=db_venue.max_adults,
            min_age=db_venue.min_age,
            max_age=db_venue.max_age,
            safety_certifications=json.loads(db_venue.safety_certifications_json),
            staff_dbs_checked=db_venue.staff_dbs_checked,
            first_aid_trained=db_venue.first_aid_trained,
            food_provided=db_venue.food_provided,
            outside_food_allowed=db_venue.outside_food_allowed,
            allergy_accommodations=db_venue.allergy_accommodations,
            allergy_info=db_venue.allergy_info,
            private_party_room=db_venue.private_party_room,
            adults_must_stay=db_venue.adults_must_stay,
            status=VenueStatus(db_venue.status),
            source_url=db_venue.source_url,
            queue_item_id=UUID(db_venue.queue_item_id) if db_venue.queue_item_id else None,
            created_at=db_venue.created_at,
            updated_at=db_venue.updated_at,
            packages=packages,
        )


class PartyPackageRepository:
    """Repository for party packages. Packages are only created with their venue."""

    def __init__(self, session: Session):
        self.session = session

    def create_many(self, packages: list[PartyPackage]) -> list[PartyPackage]:
        """
        Insert a batch of packages.

        Args:
            packages: PartyPackage domain models, each referencing an existing venue.

        Returns:
            The created packages.
        """
        db_packages = [
            PartyPackageDB(
                id=str(package.id),
                venue_id=str(package.venue_id),
                name=package.name,
                description=package.description,
                base_price=package.base_price,
                base_includes_children=package.base_includes_children,
                additional_child_price=package.additional_child_price,
                duration_minutes=package.duration_minutes,
                activities_included_json=json.dumps(package.activities_included),
                food_included_json=json.dumps(package.food_included),
                decorations_included_json=json.dumps(package.decorations_included),
                additional_costs_json=json.dumps(package.additional_costs),
                deposit_required=package.deposit_required,
                advance_booking_days=package.advance_booking_days,
                created_at=package.created_at,
            )
            for package in packages
        ]
        self.session.add_all(db_packages)
        self.session.flush()
        return [self.to_domain(p) for p in db_packages]

    def list_by_venue(self, venue_id: UUID | str) -> list[PartyPackage]:
        """List a venue's packages, cheapest first."""
        stmt = (
            select(PartyPackageDB)
            .where(PartyPackageDB.venue_id == str(venue_id))
            .order_by(PartyPackageDB.base_price.asc(), PartyPackageDB.name.asc())
        )
        result = self.session.execute(stmt).scalars().all()
        return [self.to_domain(p) for p in result]

    def count(self, venue_id: UUID | str | None = None) -> int:
        """Count packages, optionally for a single venue."""
        stmt = select(func.count(PartyPackageDB.id))
        if venue_id is not None:
            stmt = stmt.where(PartyPackageDB.venue_id == str(venue_id))
        return self.session.execute(stmt).scalar_one()

    @staticmethod
    def to_domain(db_package: PartyPackageDB) -> PartyPackage:
        """Convert DB model to domain model."""
        return PartyPackage(
            id=UUID(db_package.id),
            venue_id=UUID(db_package.venue_id),
            name=db_package.name,
            description=db_package.description,
            base_price=db_package.base_price,
            base_includes_children=db_package.base_includes_children,
            additional_child_price=db_package.additional_child_price,
            duration_minutes=db_package.duration_minutes,
            activities_included=json.loads(db_package.activities_included_json),
            food_included=json.loads(db_package.food_included_json),
            decorations_included=json.loads(db_package.decorations_included_json),
            additional_costs=json.loads(db_package.additional_costs_json),
            deposit_required=db_package.deposit_required,
            advance_booking_days=db_package.advance_booking_days,
            created_at=db_package.created_at,
        )
