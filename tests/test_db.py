"""Tests for database persistence layer."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from party_venues.core.enums import QueueStatus, VenueStatus
from party_venues.core.schema import PartyPackage, Venue
from party_venues.db.models import QueueItemDB
from party_venues.db.repositories import (
    PartyPackageRepository,
    QueueRepository,
    VenueFilters,
    VenueRepository,
)

EXTRACTION = {
    "venue": {"name": "Bounce Zone", "city": "London"},
    "packages": [],
    "confidence_score": 0.9,
    "extraction_notes": "",
}


def _scraped_item(repo: QueueRepository, url: str = "https://bouncezone.co.uk"):
    item = repo.create_if_absent(url, search_query="soft play party london")
    assert repo.claim(item.id, QueueStatus.PENDING)
    return repo.mark_scraped(item.id, "<html><body>Parties</body></html>", source_page_url=url + "/parties")


def _review_item(repo: QueueRepository, url: str = "https://bouncezone.co.uk", confidence: float = 0.9):
    item = _scraped_item(repo, url)
    assert repo.claim(item.id, QueueStatus.SCRAPED)
    return repo.mark_review(item.id, EXTRACTION, confidence)


class TestQueueRepository:
    """Tests for QueueRepository."""

    def test_create_if_absent(self, session: Session) -> None:
        """Test enqueuing a new URL."""
        repo = QueueRepository(session)

        item = repo.create_if_absent("https://bouncezone.co.uk", search_query="soft play london")
        session.commit()

        assert item is not None
        assert item.status == QueueStatus.PENDING
        assert item.search_query == "soft play london"
        assert repo.exists("https://bouncezone.co.uk")

    def test_duplicate_url_not_enqueued(self, session: Session) -> None:
        """Test that a URL is only ever queued once."""
        repo = QueueRepository(session)
        first = repo.create_if_absent("https://bouncezone.co.uk")
        session.commit()

        second = repo.create_if_absent("https://bouncezone.co.uk", search_query="other query")
        session.commit()

        assert first is not None
        assert second is None
        assert repo.count_by_status()[QueueStatus.PENDING.value] == 1
        assert repo.get_by_url("https://bouncezone.co.uk").search_query is None

    def test_url_unique_constraint(self, session: Session) -> None:
        """Test that the database itself rejects duplicate URLs."""
        session.add(QueueItemDB(url="https://bouncezone.co.uk", status="pending"))
        session.commit()

        session.add(QueueItemDB(url="https://bouncezone.co.uk", status="pending"))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_claim_is_compare_and_swap(self, session: Session) -> None:
        """Test that only one claim on an item succeeds."""
        repo = QueueRepository(session)
        item = repo.create_if_absent("https://bouncezone.co.uk")

        assert repo.claim(item.id, QueueStatus.PENDING) is True
        assert repo.claim(item.id, QueueStatus.PENDING) is False

        claimed = repo.get_by_id(item.id)
        assert claimed.status == QueueStatus.PROCESSING
        assert claimed.claimed_at is not None

    def test_claim_wrong_status(self, session: Session) -> None:
        """Test that claiming from the wrong stage fails."""
        repo = QueueRepository(session)
        item = repo.create_if_absent("https://bouncezone.co.uk")

        assert repo.claim(item.id, QueueStatus.SCRAPED) is False
        assert repo.get_by_id(item.id).status == QueueStatus.PENDING

    def test_mark_scraped(self, session: Session) -> None:
        """Test recording scraped content."""
        repo = QueueRepository(session)
        item = _scraped_item(repo)

        assert item.status == QueueStatus.SCRAPED
        assert item.raw_content.startswith("<html>")
        assert item.source_page_url == "https://bouncezone.co.uk/parties"
        assert item.processed_at is not None

    def test_list_for_extraction(self, session: Session) -> None:
        """Test that only scraped items with content are listed."""
        repo = QueueRepository(session)
        _scraped_item(repo, "https://a.example")
        repo.create_if_absent("https://b.example")

        items = repo.list_for_extraction()

        assert [i.url for i in items] == ["https://a.example"]

    def test_mark_review_stores_extraction(self, session: Session) -> None:
        """Test that review items carry extraction and confidence."""
        repo = QueueRepository(session)
        item = _review_item(repo, confidence=0.75)
        session.commit()

        stored = repo.get_by_id(item.id)
        assert stored.status == QueueStatus.REVIEW
        assert stored.extracted_data["venue"]["name"] == "Bounce Zone"
        assert stored.confidence_score == 0.75

    def test_mark_review_rejects_out_of_range_confidence(self, session: Session) -> None:
        """Test that confidence outside [0, 1] is refused."""
        repo = QueueRepository(session)
        item = _scraped_item(repo)

        with pytest.raises(ValueError):
            repo.mark_review(item.id, EXTRACTION, 1.2)

    def test_mark_failed_clears_extraction(self, session: Session) -> None:
        """Test that a failed item never keeps extraction data."""
        repo = QueueRepository(session)
        item = _review_item(repo)

        failed = repo.mark_failed(item.id, "[api] boom")

        assert failed.status == QueueStatus.FAILED
        assert failed.error_message == "[api] boom"
        assert failed.extracted_data is None
        assert failed.confidence_score is None

    def test_list_for_review_ordering_and_range(self, session: Session) -> None:
        """Test review listing order and confidence filters."""
        repo = QueueRepository(session)
        _review_item(repo, "https://low.example", 0.3)
        _review_item(repo, "https://high.example", 0.95)
        _review_item(repo, "https://mid.example", 0.6)

        all_items = repo.list_for_review()
        mid_only = repo.list_for_review(min_confidence=0.5, max_confidence=0.8)

        assert [i.url for i in all_items] == [
            "https://high.example",
            "https://mid.example",
            "https://low.example",
        ]
        assert [i.url for i in mid_only] == ["https://mid.example"]

    def test_requeue_for_extraction(self, session: Session) -> None:
        """Test sending a review item back to scraped."""
        repo = QueueRepository(session)
        item = _review_item(repo)

        requeued = repo.requeue_for_extraction(item.id)

        assert requeued.status == QueueStatus.SCRAPED
        assert requeued.extracted_data is None
        assert requeued.raw_content is not None

    def test_requeue_failed(self, session: Session) -> None:
        """Test that failed items return to the input of the stage that failed them."""
        repo = QueueRepository(session)
        scrape_failure = repo.create_if_absent("https://a.example")
        repo.claim(scrape_failure.id, QueueStatus.PENDING)
        repo.mark_failed(scrape_failure.id, "timeout")
        extract_failure = _scraped_item(repo, "https://b.example")
        repo.claim(extract_failure.id, QueueStatus.SCRAPED)
        repo.mark_failed(extract_failure.id, "[parse] bad json")

        count = repo.requeue_failed()

        assert count == 2
        assert repo.get_by_id(scrape_failure.id).status == QueueStatus.PENDING
        assert repo.get_by_id(extract_failure.id).status == QueueStatus.SCRAPED
        assert repo.get_by_id(extract_failure.id).error_message is None

    def test_release_stale(self, session: Session) -> None:
        """Test releasing abandoned claims."""
        repo = QueueRepository(session)
        item = repo.create_if_absent("https://a.example")
        repo.claim(item.id, QueueStatus.PENDING)
        session.commit()

        assert repo.release_stale(datetime.now(UTC) - timedelta(hours=1)) == 0
        assert repo.release_stale(datetime.now(UTC) + timedelta(minutes=1)) == 1
        assert repo.get_by_id(item.id).status == QueueStatus.PENDING

    def test_count_by_status_includes_every_status(self, session: Session) -> None:
        """Test that counts cover all statuses."""
        repo = QueueRepository(session)
        repo.create_if_absent("https://a.example")

        counts = repo.count_by_status()

        assert set(counts) == {s.value for s in QueueStatus}
        assert counts["pending"] == 1
        assert counts["review"] == 0

    def test_missing_item_raises(self, session: Session) -> None:
        """Test that transitions on unknown IDs raise."""
        repo = QueueRepository(session)
        with pytest.raises(ValueError):
            repo.mark_completed(uuid4())


def _venue(slug: str = "bounce-zone-london", **kwargs) -> Venue:
    data = {"slug": slug, "name": "Bounce Zone", "city": "London", "venue_type": ["soft_play"]}
    data.update(kwargs)
    return Venue(**data)


class TestVenueRepository:
    """Tests for VenueRepository."""

    def test_create_and_get(self, session: Session) -> None:
        """Test creating and retrieving a venue."""
        repo = VenueRepository(session)
        venue = repo.create(_venue(safety_certifications=["RoSPA"]))
        session.commit()

        retrieved = repo.get_by_slug("bounce-zone-london", published_only=False)

        assert retrieved.id == venue.id
        assert retrieved.venue_type == ["soft_play"]
        assert retrieved.safety_certifications == ["RoSPA"]
        assert retrieved.status == VenueStatus.DRAFT

    def test_draft_hidden_from_public_reads(self, session: Session) -> None:
        """Test that drafts are not returned by published-only reads."""
        repo = VenueRepository(session)
        repo.create(_venue())
        session.commit()

        assert repo.get_by_slug("bounce-zone-london") is None
        assert repo.list_published() == []

    def test_slug_unique(self, session: Session) -> None:
        """Test that slugs are unique."""
        repo = VenueRepository(session)
        repo.create(_venue())
        session.commit()

        assert repo.slug_exists("bounce-zone-london")
        with pytest.raises(IntegrityError):
            repo.create(_venue())
        session.rollback()

    def test_publish_and_archive(self, session: Session) -> None:
        """Test venue status changes."""
        repo = VenueRepository(session)
        venue = repo.create(_venue())

        assert repo.publish(venue.id).status == VenueStatus.PUBLISHED
        assert repo.get_by_slug("bounce-zone-london") is not None
        assert repo.archive(venue.id).status == VenueStatus.ARCHIVED
        assert repo.get_by_slug("bounce-zone-london") is None
        assert repo.publish(uuid4()) is None

    def test_find(self, session: Session) -> None:
        """Test finding a venue by ID, slug or ID prefix."""
        repo = VenueRepository(session)
        venue = repo.create(_venue())
        other = repo.create(_venue("jump-in-london", name="Jump In"))
        session.commit()

        assert repo.find(str(venue.id)).id == venue.id
        assert repo.find("jump-in-london").id == other.id
        assert repo.find(str(venue.id)[:8]).id == venue.id
        assert repo.find("") is None
        assert repo.find("no-such-venue") is None

    def test_list_published_filters(self, session: Session) -> None:
        """Test city, type and age filters on the directory listing."""
        repo = VenueRepository(session)
        repo.create(_venue("a", name="Alpha Soft Play", min_age=1, max_age=5, status=VenueStatus.PUBLISHED))
        repo.create(
            _venue(
                "b",
                name="Beta Trampolines",
                venue_type=["trampoline"],
                borough="Hackney",
                min_age=6,
                max_age=16,
                status=VenueStatus.PUBLISHED,
            )
        )
        repo.create(_venue("c", name="Gamma Bowl", city="Leeds", venue_type=["bowling"], status=VenueStatus.PUBLISHED))
        session.commit()

        def names(filters: VenueFilters) -> list[str]:
            return [v.name for v in repo.list_published(filters)]

        assert names(VenueFilters(city="london")) == ["Alpha Soft Play", "Beta Trampolines"]
        assert names(VenueFilters(borough="hack")) == ["Beta Trampolines"]
        assert names(VenueFilters(venue_types=["trampoline", "bowling"])) == [
            "Beta Trampolines",
            "Gamma Bowl",
        ]
        # Gamma has no age range so it matches any age
        assert names(VenueFilters(min_age=8, max_age=8)) == ["Beta Trampolines", "Gamma Bowl"]
        assert names(VenueFilters(limit=1)) == ["Alpha Soft Play"]

    def test_delete_cascades_to_packages(self, session: Session) -> None:
        """Test that deleting a venue removes its packages."""
        venue_repo = VenueRepository(session)
        package_repo = PartyPackageRepository(session)
        venue = venue_repo.create(_venue())
        package_repo.create_many(
            [
                PartyPackage(venue_id=venue.id, name="Bronze", base_price=180.0),
                PartyPackage(venue_id=venue.id, name="Gold", base_price=280.0),
            ]
        )
        session.commit()
        session.expire_all()

        assert venue_repo.delete(venue.id) is True
        session.commit()

        assert package_repo.count() == 0
        assert venue_repo.delete(venue.id) is False


class TestPartyPackageRepository:
    """Tests for PartyPackageRepository."""

    def test_create_many_and_list(self, session: Session) -> None:
        """Test creating packages and listing them cheapest first."""
        venue = VenueRepository(session).create(_venue())
        repo = PartyPackageRepository(session)

        repo.create_many(
            [
                PartyPackage(
                    venue_id=venue.id,
                    name="Gold",
                    base_price=280.0,
                    activities_included=["laser tag"],
                ),
                PartyPackage(venue_id=venue.id, name="Bronze", base_price=180.0),
            ]
        )
        session.commit()

        packages = repo.list_by_venue(venue.id)

        assert [p.name for p in packages] == ["Bronze", "Gold"]
        assert packages[1].activities_included == ["laser tag"]
        assert repo.count(venue.id) == 2

    def test_package_requires_existing_venue(self, session: Session) -> None:
        """Test that packages cannot reference a missing venue."""
        repo = PartyPackageRepository(session)

        with pytest.raises(IntegrityError):
            repo.create_many([PartyPackage(venue_id=uuid4(), name="Orphan")])
        session.rollback()

    def test_venue_packages_loaded(self, session: Session) -> None:
        """Test that venue reads include packages."""
        venue = VenueRepository(session).create(_venue(status=VenueStatus.PUBLISHED))
        PartyPackageRepository(session).create_many(
            [PartyPackage(venue_id=venue.id, name="Bronze", base_price=180.0)]
        )
        session.commit()
        session.expire_all()

        retrieved = VenueRepository(session).get_by_slug("bounce-zone-london")

        assert [p.name for p in retrieved.packages] == ["Bronze"]
