"""
RxScribe Backend: Health Record Schemas
========================================

What:  Pydantic models for the handwriting-to-record flow: the uploaded image,
       the record draft a user assembles, the field set handed to the
       persistence collaborator, and the save response.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from app.services.file_service import MIME_EXTENSIONS, encode_data_url

PRESCRIPTION_RECORD_TYPE = "prescription"

# Column widths of health_records
OWNER_ID_MAX_LENGTH = 128
TITLE_MAX_LENGTH = 255
PROVIDER_MAX_LENGTH = 255


class AuthenticatedUser(BaseModel):
    """Signed-in user as reported by the authentication collaborator."""

    user_id: str = Field(min_length=1, max_length=OWNER_ID_MAX_LENGTH)


class UploadedImage(BaseModel):
    """
    A selected prescription photo, held in memory only.

    The original bytes may be forwarded as a record attachment; the data URL
    is what gets previewed and sent for transcription.
    """

    filename: str
    mime_type: str
    content: bytes

    @property
    def data_url(self) -> str:
        return encode_data_url(self.content, self.mime_type)

    @property
    def extension(self) -> str:
        return MIME_EXTENSIONS.get(self.mime_type, ".jpg")


class RecordFields(BaseModel):
    """Exactly the fields the persistence collaborator's create_record() takes."""

    owner_id: str
    title: str
    type: str
    date: datetime
    provider: str
    notes: str


class RecordDraft(BaseModel):
    """
    In-memory record a user assembles before saving.

    title and provider must be non-empty before the draft may be submitted;
    notes may be empty.
    """

    title: str
    provider: str
    notes: str = ""
    type: str = PRESCRIPTION_RECORD_TYPE
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    image: Optional[UploadedImage] = None

    def to_fields(self, owner_id: str) -> RecordFields:
        return RecordFields(
            owner_id=owner_id,
            title=self.title,
            type=self.type,
            date=self.date,
            provider=self.provider,
            notes=self.notes,
        )


class SaveRecordResponse(BaseModel):
    """Returned by POST /api/handwriting/records with HTTP 201."""

    message: str = Field(default="Record saved successfully")
    record_id: str = Field(description="Identifier assigned by the record store")
    location: str = Field(description="Route of the new record's detail view")
