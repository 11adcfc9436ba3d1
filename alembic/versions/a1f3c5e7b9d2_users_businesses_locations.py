"""users, businesses, locations

Revision ID: a1f3c5e7b9d2
Revises:
Create Date: 2026-10-19

Initial schema. One location per business (locations.business_id unique) so a
location save can be a single INSERT .. ON CONFLICT (business_id) DO UPDATE.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "a1f3c5e7b9d2"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("external_auth_provider", sa.String(), nullable=True),
        sa.Column("external_auth_uid", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_external_auth_uid"), "users", ["external_auth_uid"], unique=True)

    op.create_table(
        "businesses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("website", sa.String(), nullable=True),
        sa.Column("opening_hours", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index(op.f("ix_businesses_owner_id"), "businesses", ["owner_id"])
    op.create_index(op.f("ix_businesses_name"), "businesses", ["name"])
    op.create_index(op.f("ix_businesses_category"), "businesses", ["category"])

    op.create_table(
        "locations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("business_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("businesses.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("street", sa.String(), server_default="", nullable=False),
        sa.Column("city", sa.String(), server_default="", nullable=False),
        sa.Column("postal_code", sa.String(), server_default="", nullable=False),
        sa.Column("country", sa.String(), server_default="Netherlands", nullable=False),
        sa.Column("formatted_address", sa.String(), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("radius", sa.Float(), server_default="5", nullable=False),
        sa.Column("place_id", sa.String(), nullable=True),
        sa.Column("verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("accuracy", sa.Float(), nullable=True),
        sa.Column("source", sa.String(length=32), server_default="user_input", nullable=False),
        sa.Column("timezone", sa.String(), nullable=True),
        sa.Column("utc_offset", sa.Float(), nullable=True),
        sa.Column("viewport", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("business_id", name="uq_locations_business_id"),
        sa.UniqueConstraint("place_id", name="uq_locations_place_id"),
        sa.CheckConstraint("lat >= -90 AND lat <= 90", name="ck_locations_lat_range"),
        sa.CheckConstraint("lng >= -180 AND lng <= 180", name="ck_locations_lng_range"),
        sa.CheckConstraint("radius >= 0 AND radius <= 100", name="ck_locations_radius_range"),
        sa.CheckConstraint("accuracy IS NULL OR accuracy >= 0", name="ck_locations_accuracy_positive"),
        sa.CheckConstraint(
            "source IN ('manual', 'google_places', 'user_input')",
            name="ck_locations_source",
        ),
    )
    op.create_index("ix_locations_business_id_verified", "locations", ["business_id", "verified"])
    op.create_index("ix_locations_city_verified", "locations", ["city", "verified"])
    op.create_index("ix_locations_lat_lng_verified", "locations", ["lat", "lng", "verified"])


def downgrade() -> None:
    op.drop_index("ix_locations_lat_lng_verified", table_name="locations")
    op.drop_index("ix_locations_city_verified", table_name="locations")
    op.drop_index("ix_locations_business_id_verified", table_name="locations")
    op.drop_table("locations")

    op.drop_index(op.f("ix_businesses_category"), table_name="businesses")
    op.drop_index(op.f("ix_businesses_name"), table_name="businesses")
    op.drop_index(op.f("ix_businesses_owner_id"), table_name="businesses")
    op.drop_table("businesses")

    op.drop_index(op.f("ix_users_external_auth_uid"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
