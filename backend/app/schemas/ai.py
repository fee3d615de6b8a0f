"""
RxScribe Backend: AI Capability Schemas
========================================

What:  Request and response models for transcription, summarization and
       cross-record pattern analysis.
Who:   Returned by MedicalAIService and by the /api/handwriting and
       /api/records routes.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class Audience(str, Enum):
    """Who a record summary is written for."""

    LAYMAN = "layman"
    DOCTOR = "doctor"


class AIResult(BaseModel):
    """
    Outcome of one AI capability call.

    `text` is always displayable: the provider's answer verbatim, or the
    capability's fixed fallback message when `failed` is true.
    """

    text: str = Field(description="Generated text, or the fixed fallback message on failure")
    failed: bool = Field(default=False, description="True when the provider request failed")


class RecognizeRequest(BaseModel):
    image: str = Field(
        description="Prescription photo as a base64 data URL (data:image/png;base64,...)",
        min_length=1,
    )


class RecognizeUploadResponse(AIResult):
    """Transcription of an uploaded file plus its data URL for on-screen preview."""

    image: str = Field(description="The uploaded image as a base64 data URL")


class SummarizeRequest(BaseModel):
    text: str = Field(description="Full text of the record to summarize")
    audience: Audience = Field(
        default=Audience.LAYMAN,
        description="'layman' for plain language, 'doctor' for clinical terminology",
    )


class AnalyzeRequest(BaseModel):
    """
    Records for one patient, in the order the provider should reason over
    them (typically oldest first). An empty list is accepted.
    """

    records: List[str] = Field(default_factory=list, description="Ordered record texts")
