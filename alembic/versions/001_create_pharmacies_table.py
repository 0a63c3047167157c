"""Create pharmacies table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the `pharmacies` table for directory listings.
How:   UUID primary key, JSONB for the embedded address / services / hours,
       unique index on license_number.

Rollback: downgrade() drops the table (destructive — all listings lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the pharmacies table with its indexes."""
    op.create_table(
        "pharmacies",

        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
            comment="Unique identifier",
        ),
        sa.Column("name", sa.String(255), nullable=False, comment="Pharmacy name"),

        # {street, city, state, zipCode, country, coordinates?}
        sa.Column(
            "address",
            postgresql.JSONB(),
            nullable=False,
            comment="Embedded address document",
        ),

        sa.Column("phone_number", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=True, comment="Lowercased contact email"),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column(
            "license_number",
            sa.String(100),
            nullable=False,
            comment="Pharmacy license number — natural business key",
        ),

        sa.Column(
            "services_offered",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
            comment="Ordered list of free-text services",
        ),
        sa.Column(
            "opening_hours",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
            comment="Ordered list of {dayOfWeek, openTime, closeTime}",
        ),

        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
            comment="Soft-delete flag; false once deleted",
        ),

        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),

        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "uq_pharmacies_license_number", "pharmacies", ["license_number"], unique=True
    )
    op.create_index("idx_pharmacies_name", "pharmacies", ["name"])
    op.create_index("idx_pharmacies_is_active", "pharmacies", ["is_active"])


def downgrade() -> None:
    """
    Drop the pharmacies table entirely.

    WARNING: destructive — every listing, active or not, is lost.
    """
    op.drop_index("idx_pharmacies_is_active", table_name="pharmacies")
    op.drop_index("idx_pharmacies_name", table_name="pharmacies")
    op.drop_index("uq_pharmacies_license_number", table_name="pharmacies")
    op.drop_table("pharmacies")
