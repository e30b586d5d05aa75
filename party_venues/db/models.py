"""SQLAlchemy ORM models for the party venues database."""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class QueueItemDB(Base):
    """
    Database model for scraping queue items.

    One row per candidate venue URL. The status column is the only
    coordination mechanism between pipeline stages.
    """

    __tablename__ = "scraping_queue"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    url: Mapped[str] = mapped_column(String(2048), nullable=False, unique=True)
    search_query: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)

    # Stage payloads
    raw_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_page_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    extracted_data_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON object
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)

    # Failure and review audit
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, index=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<QueueItemDB(id={self.id}, url='{self.url}', status='{self.status}')>"


class VenueDB(Base):
    """
    Database model for directory venues.

    Key search fields are columns; list-valued fields are stored as JSON text.
    """

    __tablename__ = "venues"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    venue_type_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array

    # Location
    address_line_1: Mapped[str] = mapped_column(String(255), default="")
    address_line_2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str] = mapped_column(String(100), default="", index=True)
    borough: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    postcode: Mapped[str] = mapped_column(String(20), default="")
    country: Mapped[str] = mapped_column(String(50), default="UK")

    # Contact
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    website: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    # Parent info
    parking_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    parking_free: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # Capacity and ages
    max_children: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_adults: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_age: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Safety
    safety_certifications_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON array
    staff_dbs_checked: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    first_aid_trained: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # Food
    food_provided: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    outside_food_allowed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    allergy_accommodations: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    allergy_info: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Amenities
    private_party_room: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    adults_must_stay: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # Status and provenance
    status: Mapped[str] = mapped_column(String(20), default="draft", index=True)
    source_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    queue_item_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    packages: Mapped[list["PartyPackageDB"]] = relationship(
        back_populates="venue",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<VenueDB(id={self.id}, slug='{self.slug}', status='{self.status}')>"


class PartyPackageDB(Base):
    """Database model for party packages. Always owned by a venue."""

    __tablename__ = "party_packages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    venue_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("venues.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Pricing
    base_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    base_includes_children: Mapped[int | None] = mapped_column(Integer, nullable=True)
    additional_child_price: Mapped[float | None] = mapped_column(Float, nullable=True)

    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Inclusions (JSON arrays)
    activities_included_json: Mapped[str] = mapped_column(Text, default="[]")
    food_included_json: Mapped[str] = mapped_column(Text, default="[]")
    decorations_included_json: Mapped[str] = mapped_column(Text, default="[]")
    additional_costs_json: Mapped[str] = mapped_column(Text, default="[]")

    # Booking
    deposit_required: Mapped[float | None] = mapped_column(Float, nullable=True)
    advance_booking_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)

    venue: Mapped[VenueDB] = relationship(back_populates="packages")

    def __repr__(self) -> str:
        return f"<PartyPackageDB(id={self.id}, venue_id={self.venue_id}, name='{self.name}')>"
