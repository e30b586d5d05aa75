"""Initial schema for the party venues pipeline.

Revision ID: 0001
Revises:
Create Date: 2026-01-01

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create scraping_queue table
    op.create_table(
        "scraping_queue",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("search_query", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), default="pending"),
        sa.Column("raw_content", sa.Text(), nullable=True),
        sa.Column("source_page_url", sa.String(2048), nullable=True),
        sa.Column("extracted_data_json", sa.Text(), nullable=True),
        sa.Column("confidence_score", sa.Float(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("url", name="uq_scraping_queue_url"),
    )
    op.create_index("ix_scraping_queue_status", "scraping_queue", ["status"])
    op.create_index("ix_scraping_queue_confidence_score", "scraping_queue", ["confidence_score"])
    op.create_index("ix_scraping_queue_created_at", "scraping_queue", ["created_at"])

    # Create venues table
    op.create_table(
        "venues",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("venue_type_json", sa.Text(), default="[]"),
        # Location
        sa.Column("address_line_1", sa.String(255), default=""),
        sa.Column("address_line_2", sa.String(255), nullable=True),
        sa.Column("city", sa.String(100), default=""),
        sa.Column("borough", sa.String(100), nullable=True),
        sa.Column("postcode", sa.String(20), default=""),
        sa.Column("country", sa.String(50), default="UK"),
        # Contact
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("website", sa.String(2048), nullable=True),
        # Parent info
        sa.Column("parking_info", sa.Text(), nullable=True),
        sa.Column("parking_free", sa.Boolean(), nullable=True),
        sa.Column("max_children", sa.Integer(), nullable=True),
        sa.Column("max_adults", sa.Integer(), nullable=True),
        sa.Column("min_age", sa.Integer(), nullable=True),
        sa.Column("max_age", sa.Integer(), nullable=True),
        # Safety, food and amenities
        sa.Column("safety_certifications_json", sa.Text(), default="[]"),
        sa.Column("staff_dbs_checked", sa.Boolean(), nullable=True),
        sa.Column("first_aid_trained", sa.Boolean(), nullable=True),
        sa.Column("food_provided", sa.Boolean(), nullable=True),
        sa.Column("outside_food_allowed", sa.Boolean(), nullable=True),
        sa.Column("allergy_accommodations", sa.Boolean(), nullable=True),
        sa.Column("allergy_info", sa.Text(), nullable=True),
        sa.Column("private_party_room", sa.Boolean(), nullable=True),
        sa.Column("adults_must_stay", sa.Boolean(), nullable=True),
        # Status and provenance
        sa.Column("status", sa.String(20), default="draft"),
        sa.Column("source_url", sa.String(2048), nullable=True),
        sa.Column("queue_item_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("slug", name="uq_venues_slug"),
    )
    op.create_index("ix_venues_name", "venues", ["name"])
    op.create_index("ix_venues_city", "venues", ["city"])
    op.create_index("ix_venues_borough", "venues", ["borough"])
    op.create_index("ix_venues_status", "venues", ["status"])
    op.create_index("ix_venues_queue_item_id", "venues", ["queue_item_id"])

    # Create party_packages table
    op.create_table(
        "party_packages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "venue_id",
            sa.String(36),
            sa.ForeignKey("venues.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("base_price", sa.Float(), nullable=True),
        sa.Column("base_includes_children", sa.Integer(), nullable=True),
        sa.Column("additional_child_price", sa.Float(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("activities_included_json", sa.Text(), default="[]"),
        sa.Column("food_included_json", sa.Text(), default="[]"),
        sa.Column("decorations_included_json", sa.Text(), default="[]"),
        sa.Column("additional_costs_json", sa.Text(), default="[]"),
        sa.Column("deposit_required", sa.Float(), nullable=True),
        sa.Column("advance_booking_days", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_party_packages_venue_id", "party_packages", ["venue_id"])


def downgrade() -> None:
    op.drop_table("party_packages")
    op.drop_table("venues")
    op.drop_table("scraping_queue")
