"""
RxScribe Backend: HealthRecord SQLAlchemy Model
================================================

What:  ORM model for the `health_records` table written by SQLRecordStore.
How:   Inherits from the shared DeclarativeBase; Alembic reads it for
       migrations.

Table Design:
    - UUID primary key, returned to the client as the record identifier
    - owner_id: identifier from the authentication collaborator
    - type: record discriminator ('prescription' for transcribed notes)
    - date: when the record was taken (save time for transcriptions)
    - notes: transcription text, possibly edited, possibly empty
    - attachment_path: relative path of the original photo, if one was kept
    - Index on (owner_id, date DESC) for the dashboard's per-patient listing
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Index, String, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.schemas.records import OWNER_ID_MAX_LENGTH, PROVIDER_MAX_LENGTH, TITLE_MAX_LENGTH


class HealthRecord(Base):
    """A patient's health record. Rows are only ever inserted by this service."""

    __tablename__ = "health_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    owner_id: Mapped[str] = mapped_column(
        String(OWNER_ID_MAX_LENGTH),
        nullable=False,
        comment="Authenticated user that owns the record",
    )

    title: Mapped[str] = mapped_column(String(TITLE_MAX_LENGTH), nullable=False)

    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Record discriminator, e.g. 'prescription'",
    )

    date: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        comment="Clinical date of the record (UTC)",
    )

    provider: Mapped[str] = mapped_column(
        String(PROVIDER_MAX_LENGTH),
        nullable=False,
        comment="Healthcare provider named by the user",
    )

    notes: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default=text("''"),
        comment="Record body; for prescriptions the reviewed transcription",
    )

    attachment_path: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        default=None,
        comment="Relative path from storage root to the original image",
    )

    attachment_mime_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        default=None,
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_health_records_owner_date", owner_id, date.desc()),
    )

    def __repr__(self) -> str:
        return (
            f"<HealthRecord(id={self.id}, owner_id='{self.owner_id}', "
            f"type='{self.type}', date='{self.date}')>"
        )
