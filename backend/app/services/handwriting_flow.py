"""
RxScribe Backend: Upload → Transcribe → Edit → Save Flow
=========================================================

What:  State machine for turning a prescription photo into a saved record.
How:   HandwritingSession holds one editing session's image, transcription
       text and FlowState; each user action is a method that checks the
       current state, performs at most one outbound request, and moves to
       the next state.
Who:   POST /api/handwriting/records (via HandwritingSession.resume) and any
       client driving the whole flow in-process.

State machine:
    IDLE ──select_image──▶ IMAGE_SELECTED ──recognize──▶ TRANSCRIBING
                                   ▲                          │
                                   └──── provider failed ─────┤
                                                              ▼
          SAVED ◀──ok── SAVING ◀──save── TRANSCRIPTION_READY ◀┘
                          │                      ▲
                          └──── store failed ────┘

    - select_image is allowed again from TRANSCRIPTION_READY; the existing
      text is kept.
    - edit_text only in TRANSCRIPTION_READY.
    - Results and Save views are unlocked while the text is non-empty
      (can_view_results).
    - save with no signed-in user or no text is a no-op returning None.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from app.config import settings
from app.exceptions import InvalidTransitionError, RecordSaveError, ValidationError
from app.schemas.ai import AIResult
from app.schemas.records import (
    PROVIDER_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    AuthenticatedUser,
    RecordDraft,
    SaveRecordResponse,
    UploadedImage,
)
from app.services.ai_service import ai_service
from app.services.file_service import FileService, file_service
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "Please fill in all required fields"
SAVE_FAILED_MESSAGE = "Failed to save record. Please try again."
FIELD_TOO_LONG_MESSAGE = (
    f"Title and provider must be at most {TITLE_MAX_LENGTH} characters"
)

Transcriber = Callable[[str], Awaitable[AIResult]]
Navigator = Callable[[str], str]


class FlowState(str, Enum):
    IDLE = "idle"
    IMAGE_SELECTED = "image_selected"
    TRANSCRIBING = "transcribing"
    TRANSCRIPTION_READY = "transcription_ready"
    SAVING = "saving"
    SAVED = "saved"


def record_location(record_id: str) -> str:
    """Route of a saved record's detail view."""
    return settings.record_detail_route.format(record_id=record_id)


class HandwritingSession:
    """
    One user's handwriting-recognition editing session.

    Attributes:
        state:            Current FlowState
        image:            Selected photo, dropped after a successful save
        recognized_text:  Current (possibly edited) transcription
        notice:           Last user-facing failure message, None after success
        location:         Detail route of the saved record once SAVED
    """

    def __init__(
        self,
        record_store: RecordStore,
        transcribe: Optional[Transcriber] = None,
        navigate: Navigator = record_location,
        files: Optional[FileService] = None,
    ):
        self.record_store = record_store
        self._transcribe = transcribe or ai_service.recognize_handwriting
        self._navigate = navigate
        self._files = files or file_service

        self.state = FlowState.IDLE
        self.image: Optional[UploadedImage] = None
        self.recognized_text = ""
        self.notice: Optional[str] = None
        self.location: Optional[str] = None

    @classmethod
    def resume(
        cls,
        record_store: RecordStore,
        recognized_text: str,
        image: Optional[UploadedImage] = None,
        **kwargs,
    ) -> "HandwritingSession":
        """
        Rebuild a session from what a stateless client sends back on save:
        the (edited) text and, optionally, the original photo.
        """
        session = cls(record_store, **kwargs)
        session.image = image
        session.recognized_text = recognized_text
        if recognized_text:
            session.state = FlowState.TRANSCRIPTION_READY
        elif image is not None:
            session.state = FlowState.IMAGE_SELECTED
        return session

    @property
    def can_view_results(self) -> bool:
        return bool(self.recognized_text)

    def _require(self, action: str, *allowed: FlowState) -> None:
        if self.state not in allowed:
            raise InvalidTransitionError(action=action, state=self.state.value)

    def select_image(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> UploadedImage:
        """
        Validate and hold a newly selected photo in memory.

        Raises:
            ValidationError: Not a supported image, empty or too large.
        """
        self._require(
            "select an image",
            FlowState.IDLE,
            FlowState.IMAGE_SELECTED,
            FlowState.TRANSCRIPTION_READY,
        )
        mime_type = self._files.validate_image(filename, content, content_length)
        self.image = UploadedImage(filename=filename, mime_type=mime_type, content=content)
        if self.state == FlowState.IDLE:
            self.state = FlowState.IMAGE_SELECTED
        logger.info("Image selected: %s (%s, %d bytes)", filename, mime_type, len(content))
        return self.image

    async def recognize(self) -> AIResult:
        """
        Send the selected photo for transcription.

        On success the text replaces recognized_text. On failure the fallback
        message becomes the notice and the session returns to the state it
        was in, with any earlier text untouched.
        """
        self._require("recognize text", FlowState.IMAGE_SELECTED, FlowState.TRANSCRIPTION_READY)
        if self.image is None:
            raise InvalidTransitionError(action="recognize text", state=self.state.value)

        previous = self.state
        self.state = FlowState.TRANSCRIBING
        try:
            result = await self._transcribe(self.image.data_url)
        except Exception:
            self.state = previous
            raise

        if result.failed:
            self.notice = result.text
            self.state = previous
            return result

        self.recognized_text = result.text
        self.notice = None
        self.state = FlowState.TRANSCRIPTION_READY
        return result

    def edit_text(self, text: str) -> None:
        """Replace the transcription with the user's edited version."""
        self._require("edit the transcription", FlowState.TRANSCRIPTION_READY)
        self.recognized_text = text

    def build_draft(
        self,
        title: Optional[str],
        provider: Optional[str],
        now: Optional[datetime] = None,
    ) -> RecordDraft:
        """
        Compose a prescription draft from the form fields and current text.

        Raises:
            ValidationError: title or provider is blank or longer than its
                column allows.
        """
        title = (title or "").strip()
        provider = (provider or "").strip()
        missing = [name for name, value in (("title", title), ("provider", provider)) if not value]
        if missing:
            self.notice = REQUIRED_FIELDS_MESSAGE
            raise ValidationError(message=REQUIRED_FIELDS_MESSAGE, context={"missing": missing})

        too_long = [
            name
            for name, value, limit in (
                ("title", title, TITLE_MAX_LENGTH),
                ("provider", provider, PROVIDER_MAX_LENGTH),
            )
            if len(value) > limit
        ]
        if too_long:
            self.notice = FIELD_TOO_LONG_MESSAGE
            raise ValidationError(
                message=FIELD_TOO_LONG_MESSAGE,
                context={
                    "too_long": too_long,
                    "max_length": {"title": TITLE_MAX_LENGTH, "provider": PROVIDER_MAX_LENGTH},
                },
            )

        return RecordDraft(
            title=title,
            provider=provider,
            notes=self.recognized_text,
            date=now or datetime.now(timezone.utc),
            image=self.image,
        )

    async def save(
        self,
        title: Optional[str],
        provider: Optional[str],
        user: Optional[AuthenticatedUser],
        now: Optional[datetime] = None,
    ) -> Optional[SaveRecordResponse]:
        """
        Persist the session as a prescription record.

        Returns:
            SaveRecordResponse with the new record's id and detail route, or
            None when there is no signed-in user or no transcription text
            (nothing is attempted).

        Raises:
            ValidationError: title or provider blank or too long; the store is
                not called.
            RecordSaveError: the store failed; the session is back in
                TRANSCRIPTION_READY with its text and image intact.
        """
        if user is None or not self.recognized_text:
            logger.info(
                "Save skipped: %s",
                "no authenticated user" if user is None else "no transcription text",
            )
            return None

        self._require("save the record", FlowState.TRANSCRIPTION_READY)
        draft = self.build_draft(title, provider, now)

        self.state = FlowState.SAVING
        try:
            record_id = await self.record_store.create_record(
                draft.to_fields(user.user_id), draft.image
            )
        except Exception as e:
            logger.error("Error saving record: %s", str(e), exc_info=True)
            self.state = FlowState.TRANSCRIPTION_READY
            self.notice = SAVE_FAILED_MESSAGE
            raise RecordSaveError(
                message=SAVE_FAILED_MESSAGE,
                context={"error_type": type(e).__name__},
            ) from e

        self.state = FlowState.SAVED
        self.notice = None
        self.image = None
        self.location = self._navigate(record_id)
        logger.info("Prescription record %s saved for user %s", record_id, user.user_id)
        return SaveRecordResponse(record_id=record_id, location=self.location)
