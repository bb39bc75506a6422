"""Initial migration — create the properties table.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── properties ──
    op.create_table(
        "properties",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("reference", sa.Text, nullable=False),
        sa.Column("listing_type", sa.String(20), nullable=False),
        sa.Column("property_type", sa.String(50), nullable=False),
        sa.Column("sub_community", sa.Text, nullable=True),
        sa.Column("community", sa.Text, nullable=False, server_default=""),
        sa.Column("region", sa.Text, nullable=False),
        sa.Column("country", sa.Text, nullable=False),
        sa.Column("agent", JSONB, nullable=True),
        sa.Column("price", sa.Integer, nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="AED"),
        sa.Column("bedrooms", sa.Integer, nullable=True),
        sa.Column("bathrooms", sa.Integer, nullable=True),
        sa.Column("property_status", sa.String(20), nullable=True),
        sa.Column("title", sa.Text, nullable=False, server_default=""),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("sqfeet_area", sa.Integer, nullable=True),
        sa.Column("sqfeet_builtup", sa.Integer, nullable=True),
        sa.Column("amenities", sa.Text, nullable=True),
        sa.Column("is_exclusive", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_featured", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_fitted", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_furnished", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_disabled", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("lifestyle", sa.Text, nullable=True),
        sa.Column("permit", sa.Text, nullable=True),
        sa.Column("brochure", sa.Text, nullable=True),
        sa.Column("images", JSONB, nullable=True),
        sa.Column("development", sa.Text, nullable=True),
        sa.Column("neighbourhood", sa.Text, nullable=True),
        sa.Column("sold", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("reference", name="uq_properties_reference"),
    )
    op.create_index("ix_properties_property_type", "properties", ["property_type"])
    op.create_index("ix_properties_listing_type", "properties", ["listing_type"])
    op.create_index("ix_properties_community", "properties", ["community"])


def downgrade() -> None:
    op.drop_index("ix_properties_community", table_name="properties")
    op.drop_index("ix_properties_listing_type", table_name="properties")
    op.drop_index("ix_properties_property_type", table_name="properties")
    op.drop_table("properties")
