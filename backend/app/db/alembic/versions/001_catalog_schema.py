"""Catalog schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates the vetted location catalog:
- cities, interests
- catalog_locations
- catalog_location_tags, catalog_location_interests, catalog_location_photos
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create catalog tables."""
    op.create_table(
        "cities",
        sa.Column("city_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False, unique=True),
        sa.Column("country", sa.Text(), nullable=True),
    )

    op.create_table(
        "interests",
        sa.Column("interest_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False, unique=True),
    )

    op.create_table(
        "catalog_locations",
        sa.Column("location_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("city_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("price_level", sa.Integer(), nullable=True),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("recommendations", sa.Text(), nullable=True),
        sa.Column("verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("source", sa.Text(), server_default="import", nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.ForeignKeyConstraint(["city_id"], ["cities.city_id"]),
    )
    op.create_index("idx_catalog_city_category", "catalog_locations", ["city_id", "category"])

    op.create_table(
        "catalog_location_tags",
        sa.Column("tag_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("tag", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(
            ["location_id"], ["catalog_locations.location_id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint("location_id", "tag", name="uq_location_tag"),
    )

    op.create_table(
        "catalog_location_interests",
        sa.Column("location_id", sa.Integer(), primary_key=True),
        sa.Column("interest_id", sa.Integer(), primary_key=True),
        sa.ForeignKeyConstraint(
            ["location_id"], ["catalog_locations.location_id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["interest_id"], ["interests.interest_id"], ondelete="CASCADE"),
    )

    op.create_table(
        "catalog_location_photos",
        sa.Column("photo_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(
            ["location_id"], ["catalog_locations.location_id"], ondelete="CASCADE"
        ),
    )


def downgrade() -> None:
    """Drop catalog tables."""
    op.drop_table("catalog_location_photos")
    op.drop_table("catalog_location_interests")
    op.drop_table("catalog_location_tags")
    op.drop_index("idx_catalog_city_category", table_name="catalog_locations")
    op.drop_table("catalog_locations")
    op.drop_table("interests")
    op.drop_table("cities")
