"""
RxScribe Backend: Handwriting Recognition Routes
=================================================

What:  Prescription transcription and save-as-record endpoints.
How:   Thin handlers: pull data out of the request, hand it to the AI service
       or a HandwritingSession, shape the response.

Endpoints:
    POST /api/handwriting/recognize          data URL JSON → AIResult
    POST /api/handwriting/recognize/upload   multipart file → AIResult + preview
    POST /api/handwriting/records            multipart save form → 201 record

A failed transcription is still HTTP 200: the body carries the fixed
fallback message with failed=true.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from app.dependencies import get_ai_service, get_current_user, get_record_store
from app.exceptions import ValidationError
from app.schemas.ai import AIResult, RecognizeRequest, RecognizeUploadResponse
from app.schemas.common import ErrorResponse
from app.schemas.records import AuthenticatedUser, SaveRecordResponse, UploadedImage
from app.services.ai_service import MedicalAIService
from app.services.file_service import file_service
from app.services.handwriting_flow import HandwritingSession
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/handwriting", tags=["Handwriting"])


async def _read_image(file: UploadFile) -> UploadedImage:
    """Read and validate an uploaded photo, always closing the upload."""
    try:
        content = await file.read()
    finally:
        await file.close()

    filename = file.filename or "upload.jpg"
    logger.info("Received image upload: filename=%s, size=%d bytes", filename, len(content))
    mime_type = file_service.validate_image(filename, content, file.size)
    return UploadedImage(filename=filename, mime_type=mime_type, content=content)


@router.post(
    "/recognize",
    response_model=AIResult,
    responses={422: {"description": "Request body is not JSON with an 'image' field"}},
    summary="Transcribe a handwritten prescription image",
)
async def recognize(
    payload: RecognizeRequest,
    ai: MedicalAIService = Depends(get_ai_service),
) -> AIResult:
    return await ai.recognize_handwriting(payload.image)


@router.post(
    "/recognize/upload",
    response_model=RecognizeUploadResponse,
    responses={400: {"description": "Unsupported or oversized image", "model": ErrorResponse}},
    summary="Upload a prescription photo and transcribe it",
    description=(
        "Validates the photo (PNG, JPEG or WEBP), encodes it as a data URL for "
        "preview and sends it for transcription."
    ),
)
async def recognize_upload(
    file: UploadFile = File(..., description="Prescription photo"),
    ai: MedicalAIService = Depends(get_ai_service),
) -> RecognizeUploadResponse:
    image = await _read_image(file)
    data_url = image.data_url
    result = await ai.recognize_handwriting(data_url)
    return RecognizeUploadResponse(text=result.text, failed=result.failed, image=data_url)


@router.post(
    "/records",
    status_code=201,
    response_model=SaveRecordResponse,
    responses={
        400: {"description": "Missing fields, no user or no text", "model": ErrorResponse},
        502: {"description": "Record store failed", "model": ErrorResponse},
    },
    summary="Save a transcription as a prescription record",
    description=(
        "Creates a 'prescription' record from the reviewed transcription and "
        "the title/provider entered by the user. The original photo, if sent, "
        "is kept as the record's attachment."
    ),
)
async def save_record(
    response: Response,
    title: Optional[str] = Form(default=None),
    provider: Optional[str] = Form(default=None),
    notes: str = Form(default=""),
    file: Optional[UploadFile] = File(default=None),
    user: Optional[AuthenticatedUser] = Depends(get_current_user),
    record_store: RecordStore = Depends(get_record_store),
) -> SaveRecordResponse:
    if user is None:
        if file is not None:
            await file.close()
        raise ValidationError(message="You must be signed in to save a record.")

    image = await _read_image(file) if file is not None and file.filename else None

    session = HandwritingSession.resume(record_store, recognized_text=notes, image=image)
    result = await session.save(title=title, provider=provider, user=user)
    if result is None:
        # save() is a guarded no-op without text
        raise ValidationError(
            message="Recognize the handwriting before saving it as a record.",
            field="notes",
        )

    response.headers["Location"] = result.location
    return result
