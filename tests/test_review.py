"""Tests for the review service."""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from party_venues.core.enums import QueueStatus, VenueStatus
from party_venues.db.repositories import PartyPackageRepository, QueueRepository, VenueRepository
from party_venues.ingestion.config import ReviewConfig
from party_venues.services.review_service import ReviewService


def _extraction(name: str = "Bounce Zone", city: str = "London", packages: list | None = None, confidence: float = 0.9) -> dict:
    return {
        "venue": {
            "name": name,
            "city": city,
            "borough": "Hackney",
            "postcode": "E8 1AB",
            "address_line_1": "12 Market Street",
            "venue_type": ["soft_play"],
            "min_age": 1,
            "max_age": 8,
        },
        "packages": packages
        if packages is not None
        else [
            {
                "name": "Bronze Party",
                "description": "Soft play and a hot meal",
                "base_price": 180.0,
                "base_includes_children": 10,
                "food_included": ["hot meal"],
            }
        ],
        "confidence_score": confidence,
        "extraction_notes": "",
    }


def _review_item(session: Session, url: str = "https://www.bouncezone.co.uk/", data: dict | None = None):
    repo = QueueRepository(session)
    data = data or _extraction()
    item = repo.create_if_absent(url, search_query="soft play party london")
    repo.claim(item.id, QueueStatus.PENDING)
    repo.mark_scraped(item.id, "<html>party</html>", source_page_url=url + "parties")
    repo.claim(item.id, QueueStatus.SCRAPED)
    item = repo.mark_review(item.id, data, data["confidence_score"])
    session.commit()
    return item


class TestApprove:
    """Tests for ReviewService.approve."""

    def test_approve_creates_venue_and_package(self, session: Session) -> None:
        """Test that approval writes one venue, one package and completes the item."""
        item = _review_item(session)
        service = ReviewService(session)

        result = service.approve(item.id, reviewed_by="alex")
        session.commit()

        assert result.success
        venue_repo = VenueRepository(session)
        package_repo = PartyPackageRepository(session)
        venues = venue_repo.list_all()
        packages = package_repo.list_by_venue(result.venue.id)

        assert len(venues) == 1
        assert package_repo.count() == 1
        assert packages[0].venue_id == venues[0].id
        assert packages[0].name == "Bronze Party"
        assert packages[0].decorations_included == []

        stored = QueueRepository(session).get_by_id(item.id)
        assert stored.status == QueueStatus.COMPLETED
        assert stored.reviewed_by == "alex"
        assert stored.reviewed_at is not None

    def test_venue_fields_mapped(self, session: Session) -> None:
        """Test the mapping from extraction to venue."""
        item = _review_item(session)

        result = ReviewService(session).approve(item.id)

        venue = result.venue
        assert venue.slug == "bounce-zone-london"
        assert venue.status == VenueStatus.DRAFT
        assert venue.borough == "Hackney"
        assert venue.venue_type == ["soft_play"]
        assert venue.website == "https://www.bouncezone.co.uk/"
        assert venue.source_url == "https://www.bouncezone.co.uk/parties"
        assert venue.queue_item_id == item.id
        assert len(venue.packages) == 1

    def test_publish_policy(self, session: Session) -> None:
        """Test that venues can be published on approval."""
        first = _review_item(session, "https://a.example/")
        second = _review_item(session, "https://b.example/", _extraction(name="Jump In"))
        service = ReviewService(session, ReviewConfig(publish_on_approve=True))

        assert service.approve(first.id).venue.status == VenueStatus.PUBLISHED
        assert service.approve(second.id, publish=False).venue.status == VenueStatus.DRAFT

    def test_duplicate_names_get_unique_slugs(self, session: Session) -> None:
        """Test that same-name venues in one city get suffixed slugs."""
        first = _review_item(session, "https://a.example/")
        second = _review_item(session, "https://b.example/")
        service = ReviewService(session)

        assert service.approve(first.id).venue.slug == "bounce-zone-london"
        assert service.approve(second.id).venue.slug == "bounce-zone-london-1"

    def test_missing_venue_type_defaults_to_other(self, session: Session) -> None:
        """Test the venue type fallback."""
        data = _extraction()
        data["venue"]["venue_type"] = []
        item = _review_item(session, data=data)

        result = ReviewService(session).approve(item.id)

        assert result.venue.venue_type == ["other"]

    def test_approve_without_packages(self, session: Session) -> None:
        """Test approving a venue with no packages."""
        item = _review_item(session, data=_extraction(packages=[]))

        result = ReviewService(session).approve(item.id)

        assert result.success
        assert result.packages == []

    def test_approve_is_atomic(self, session: Session) -> None:
        """Test that a failure while writing packages leaves no venue behind."""
        item = _review_item(session)
        service = ReviewService(session)

        with patch.object(
            PartyPackageRepository, "create_many", side_effect=SQLAlchemyError("disk I/O error")
        ):
            result = service.approve(item.id)
        session.commit()

        assert not result.success
        assert "disk I/O error" in result.error_message
        assert VenueRepository(session).list_all() == []
        assert PartyPackageRepository(session).count() == 0

        stored = QueueRepository(session).get_by_id(item.id)
        assert stored.status == QueueStatus.REVIEW
        assert "disk I/O error" in stored.error_message
        assert stored.extracted_data is not None

    def test_venue_insert_failure_writes_nothing(self, session: Session) -> None:
        """Test that a failed venue insert writes no packages and keeps the item in review."""
        item = _review_item(session)
        service = ReviewService(session)

        with patch.object(VenueRepository, "create", side_effect=SQLAlchemyError("constraint failed")):
            result = service.approve(item.id)
        session.commit()

        assert not result.success
        assert VenueRepository(session).list_all() == []
        assert PartyPackageRepository(session).count() == 0

        stored = QueueRepository(session).get_by_id(item.id)
        assert stored.status == QueueStatus.REVIEW
        assert "constraint failed" in stored.error_message

    def test_retry_after_failed_approval(self, session: Session) -> None:
        """Test that an item can be approved after a failed attempt."""
        item = _review_item(session)
        service = ReviewService(session)
        with patch.object(PartyPackageRepository, "create_many", side_effect=SQLAlchemyError("boom")):
            service.approve(item.id)

        result = service.approve(item.id)

        assert result.success
        assert result.item.error_message is None
        assert result.venue.slug == "bounce-zone-london"

    def test_only_review_items(self, session: Session) -> None:
        """Test that items outside review cannot be approved."""
        repo = QueueRepository(session)
        item = repo.create_if_absent("https://a.example/")
        session.commit()

        result = ReviewService(session).approve(item.id)

        assert not result.success
        assert "status is 'pending'" in result.error_message
        assert VenueRepository(session).list_all() == []

    def test_cannot_approve_twice(self, session: Session) -> None:
        """Test that a completed item is not approved again."""
        item = _review_item(session)
        service = ReviewService(session)
        service.approve(item.id)

        result = service.approve(item.id)

        assert not result.success
        assert len(VenueRepository(session).list_all()) == 1

    def test_unknown_item(self, session: Session) -> None:
        """Test approving an unknown item."""
        result = ReviewService(session).approve("00000000-0000-0000-0000-000000000000")
        assert not result.success
        assert "not found" in result.error_message


class TestReject:
    """Tests for ReviewService.reject."""

    def test_reject_writes_no_venue(self, session: Session) -> None:
        """Test that rejection only updates the queue item."""
        item = _review_item(session)

        result = ReviewService(session).reject(item.id, reason="Not a party venue", reviewed_by="alex")
        session.commit()

        assert result.success
        stored = QueueRepository(session).get_by_id(item.id)
        assert stored.status == QueueStatus.REJECTED
        assert stored.rejection_reason == "Not a party venue"
        assert stored.reviewed_by == "alex"
        assert VenueRepository(session).list_all() == []
        assert PartyPackageRepository(session).count() == 0

    def test_reject_only_review_items(self, session: Session) -> None:
        """Test that completed items cannot be rejected."""
        item = _review_item(session)
        service = ReviewService(session)
        service.approve(item.id)

        result = service.reject(item.id)

        assert not result.success
        assert QueueRepository(session).get_by_id(item.id).status == QueueStatus.COMPLETED


class TestRequeueAndEdit:
    """Tests for requeue and extraction corrections."""

    def test_requeue(self, session: Session) -> None:
        """Test sending an item back for extraction."""
        item = _review_item(session)

        result = ReviewService(session).requeue(item.id)

        assert result.success
        assert result.item.status == QueueStatus.SCRAPED
        assert result.item.extracted_data is None
        assert len(QueueRepository(session).list_for_extraction()) == 1

    def test_update_extraction(self, session: Session) -> None:
        """Test correcting an extraction before approval."""
        item = _review_item(session)
        service = ReviewService(session)
        corrected = _extraction(name="Bounce Zone Hackney", confidence=0.5)
        corrected["venue"]["phone"] = None
        del corrected["confidence_score"]

        result = service.update_extraction(item.id, corrected)

        assert result.success
        assert result.item.venue_name == "Bounce Zone Hackney"
        assert result.item.confidence_score == 0.9
        assert service.approve(item.id).venue.slug == "bounce-zone-hackney-london"

    def test_update_extraction_new_confidence(self, session: Session) -> None:
        """Test overriding the confidence while editing."""
        item = _review_item(session)

        result = ReviewService(session).update_extraction(item.id, _extraction(), confidence_score=1.5)

        assert result.item.confidence_score == 1.0

    def test_update_extraction_invalid(self, session: Session) -> None:
        """Test that invalid corrections are refused."""
        item = _review_item(session)
        service = ReviewService(session)

        bad_types = service.update_extraction(item.id, {"venue": {"name": "X", "max_age": "old"}})
        no_name = service.update_extraction(item.id, {"venue": {"name": ""}})

        assert not bad_types.success
        assert not no_name.success
        assert QueueRepository(session).get_by_id(item.id).venue_name == "Bounce Zone"


class TestReviewSummary:
    """Tests for confidence banding."""

    def test_bands(self, session: Session) -> None:
        """Test splitting the review set into bands."""
        _review_item(session, "https://a.example/", _extraction(confidence=0.95))
        _review_item(session, "https://b.example/", _extraction(confidence=0.65))
        _review_item(session, "https://c.example/", _extraction(confidence=0.2))
        _review_item(session, "https://d.example/", _extraction(confidence=0.8))

        summary = ReviewService(session).review_summary()

        assert [i.url for i in summary.high] == ["https://a.example/", "https://d.example/"]
        assert [i.url for i in summary.medium] == ["https://b.example/"]
        assert [i.url for i in summary.low] == ["https://c.example/"]
        assert summary.total == 4
        assert summary.counts() == {"high": 2, "medium": 1, "low": 1}

    def test_custom_thresholds(self, session: Session) -> None:
        """Test bands with configured thresholds."""
        _review_item(session, "https://a.example/", _extraction(confidence=0.65))

        summary = ReviewService(
            session, ReviewConfig(high_confidence_threshold=0.6, low_confidence_threshold=0.3)
        ).review_summary()

        assert len(summary.high) == 1

    @pytest.mark.parametrize("min_confidence,expected", [(None, 2), (0.8, 1)])
    def test_list_for_review(self, session: Session, min_confidence, expected) -> None:
        """Test listing with a confidence floor."""
        _review_item(session, "https://a.example/", _extraction(confidence=0.95))
        _review_item(session, "https://b.example/", _extraction(confidence=0.4))

        items = ReviewService(session).list_for_review(min_confidence=min_confidence)

        assert len(items) == expected
