"""Initial schema.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "strava_verifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_email", sa.String(length=320), nullable=False),
        sa.Column("strava_athlete_id", sa.BigInteger(), nullable=False),
        sa.Column("strava_athlete_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("access_token", postgresql.JSONB(), nullable=False),
        sa.Column("refresh_token", postgresql.JSONB(), nullable=False),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("token_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_distance_km", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_activities", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("disconnected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_strava_verifications_user_email", "strava_verifications", ["user_email"], unique=True)

    op.create_table(
        "listings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("brand", sa.String(length=100), nullable=False),
        sa.Column("size", sa.Float(), nullable=False),
        sa.Column("condition", sa.String(length=32), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("country", sa.String(length=2), nullable=False, server_default="NL"),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("seller_email", sa.String(length=320), nullable=True),
        sa.Column("cleaning_status", sa.String(length=32), nullable=True),
        sa.Column("image_urls", postgresql.ARRAY(sa.Text()), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_listings_brand", "listings", ["brand"], unique=False)
    op.create_index("ix_listings_size", "listings", ["size"], unique=False)
    op.create_index("ix_listings_seller_email", "listings", ["seller_email"], unique=False)

    op.create_table(
        "offers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("listing_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("buyer_email", sa.String(length=320), nullable=False),
        sa.Column("buyer_name", sa.String(length=200), nullable=False),
        sa.Column("offer_price", sa.Float(), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["listing_id"], ["listings.id"]),
    )
    op.create_index("ix_offers_listing_id", "offers", ["listing_id"], unique=False)

    op.create_table(
        "launch_notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("lottery_consent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("shoe_interest", sa.Text(), nullable=True),
        sa.Column("signed_up_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_launch_notifications_email", "launch_notifications", ["email"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_launch_notifications_email", table_name="launch_notifications")
    op.drop_table("launch_notifications")
    op.drop_index("ix_offers_listing_id", table_name="offers")
    op.drop_table("offers")
    op.drop_index("ix_listings_seller_email", table_name="listings")
    op.drop_index("ix_listings_size", table_name="listings")
    op.drop_index("ix_listings_brand", table_name="listings")
    op.drop_table("listings")
    op.drop_index("ix_strava_verifications_user_email", table_name="strava_verifications")
    op.drop_table("strava_verifications")
