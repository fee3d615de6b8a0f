"""Create health_records table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

Creates the table written by SQLRecordStore when a transcription is saved
as a prescription record. See app/models/record.py for column meanings.

Rollback: downgrade() drops the table and every record in it.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "health_records",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column(
            "owner_id",
            sa.String(128),
            nullable=False,
            comment="Authenticated user that owns the record",
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column(
            "type",
            sa.String(50),
            nullable=False,
            comment="Record discriminator, e.g. 'prescription'",
        ),
        sa.Column(
            "date",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            comment="Clinical date of the record (UTC)",
        ),
        sa.Column(
            "provider",
            sa.String(255),
            nullable=False,
            comment="Healthcare provider named by the user",
        ),
        sa.Column(
            "notes",
            sa.Text(),
            nullable=False,
            server_default=sa.text("''"),
            comment="Record body; for prescriptions the reviewed transcription",
        ),
        sa.Column(
            "attachment_path",
            sa.String(255),
            nullable=True,
            comment="Relative path from storage root to the original image",
        ),
        sa.Column("attachment_mime_type", sa.String(50), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "idx_health_records_owner_date",
        "health_records",
        ["owner_id", sa.text("date DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_health_records_owner_date", table_name="health_records")
    op.drop_table("health_records")
