"""
RxScribe Backend: Handwriting Flow Tests
=========================================

What:  Tests for the upload → transcribe → edit → save state machine.
How:   HandwritingSession driven with a FakeLLMService-backed transcriber
       and an InMemoryRecordStore; no network, no database.

What we test:
    ✅ Legal transitions and rejected ones (InvalidTransitionError)
    ✅ Failed transcription keeps the previous state and text
    ✅ Blank or over-long title/provider never reaches the record store
    ✅ Save is refused while SAVING and after SAVED (one store call)
    ✅ A valid save calls the store exactly once with the prescription fields
    ✅ Store failure returns to TRANSCRIPTION_READY with the draft intact
    ✅ No user or no text makes save a no-op
    ✅ End-to-end: image → transcription → save → detail route
"""

from datetime import datetime, timezone

import pytest

from app.exceptions import InvalidTransitionError, RecordSaveError, ValidationError
from app.schemas.records import (
    PROVIDER_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    AuthenticatedUser,
    UploadedImage,
)
from app.services.ai_service import TRANSCRIPTION_FALLBACK, MedicalAIService
from app.services.file_service import FileService
from app.services.handwriting_flow import (
    FIELD_TOO_LONG_MESSAGE,
    REQUIRED_FIELDS_MESSAGE,
    SAVE_FAILED_MESSAGE,
    FlowState,
    HandwritingSession,
    record_location,
)

USER = AuthenticatedUser(user_id="user-42")
NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def session(fake_llm, record_store, temp_storage):
    return HandwritingSession(
        record_store,
        transcribe=MedicalAIService(fake_llm).recognize_handwriting,
        files=FileService(storage_root=temp_storage),
    )


@pytest.fixture
def ready_session(session):
    """Session already in TRANSCRIPTION_READY with some text."""
    session.state = FlowState.TRANSCRIPTION_READY
    session.recognized_text = "Ibuprofen 400mg as needed"
    return session


class TestImageSelection:
    def test_starts_idle(self, session):
        assert session.state == FlowState.IDLE
        assert session.can_view_results is False

    def test_select_image_moves_to_image_selected(self, session, png_bytes):
        image = session.select_image("rx.png", png_bytes)

        assert session.state == FlowState.IMAGE_SELECTED
        assert image.mime_type == "image/png"
        assert image.data_url.startswith("data:image/png;base64,")

    def test_invalid_image_keeps_state(self, session):
        with pytest.raises(ValidationError):
            session.select_image("rx.gif", b"GIF89a")
        assert session.state == FlowState.IDLE
        assert session.image is None

    def test_reselect_after_transcription_keeps_text(self, ready_session, jpeg_bytes):
        ready_session.select_image("second.jpg", jpeg_bytes)

        assert ready_session.state == FlowState.TRANSCRIPTION_READY
        assert ready_session.recognized_text == "Ibuprofen 400mg as needed"
        assert ready_session.image.filename == "second.jpg"

    def test_cannot_select_while_saving(self, session, png_bytes):
        session.state = FlowState.SAVING
        with pytest.raises(InvalidTransitionError):
            session.select_image("rx.png", png_bytes)


class TestRecognize:
    @pytest.mark.asyncio
    async def test_recognize_requires_image(self, session):
        with pytest.raises(InvalidTransitionError):
            await session.recognize()

    @pytest.mark.asyncio
    async def test_success_moves_to_ready(self, session, fake_llm, png_bytes):
        session.select_image("rx.png", png_bytes)

        result = await session.recognize()

        assert result.failed is False
        assert session.state == FlowState.TRANSCRIPTION_READY
        assert session.recognized_text == fake_llm.reply
        assert session.can_view_results is True
        assert len(fake_llm.calls) == 1

    @pytest.mark.asyncio
    async def test_failure_restores_previous_state(self, session, fake_llm, png_bytes):
        fake_llm.fail = True
        session.select_image("rx.png", png_bytes)

        result = await session.recognize()

        assert result.failed is True
        assert session.state == FlowState.IMAGE_SELECTED
        assert session.recognized_text == ""
        assert session.notice == TRANSCRIPTION_FALLBACK

    @pytest.mark.asyncio
    async def test_failure_after_success_keeps_earlier_text(self, session, fake_llm, png_bytes):
        session.select_image("rx.png", png_bytes)
        await session.recognize()
        first_text = session.recognized_text

        fake_llm.fail = True
        await session.recognize()

        assert session.state == FlowState.TRANSCRIPTION_READY
        assert session.recognized_text == first_text

    @pytest.mark.asyncio
    async def test_cannot_recognize_while_transcribing(self, session, png_bytes):
        session.select_image("rx.png", png_bytes)
        session.state = FlowState.TRANSCRIBING

        with pytest.raises(InvalidTransitionError):
            await session.recognize()


class TestEditText:
    def test_edit_replaces_text(self, ready_session):
        ready_session.edit_text("Ibuprofen 200mg as needed")
        assert ready_session.recognized_text == "Ibuprofen 200mg as needed"

    def test_edit_before_transcription_rejected(self, session):
        with pytest.raises(InvalidTransitionError):
            session.edit_text("anything")


class TestSave:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "title,provider",
        [("", "Dr. Lee"), ("Follow-up note", ""), ("   ", "Dr. Lee"), (None, None)],
    )
    async def test_blank_required_field_never_calls_store(
        self, ready_session, record_store, title, provider
    ):
        with pytest.raises(ValidationError, match=REQUIRED_FIELDS_MESSAGE):
            await ready_session.save(title=title, provider=provider, user=USER, now=NOW)

        assert record_store.calls == []
        assert ready_session.state == FlowState.TRANSCRIPTION_READY
        assert ready_session.notice == REQUIRED_FIELDS_MESSAGE

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "title,provider,field",
        [
            ("T" * (TITLE_MAX_LENGTH + 1), "Dr. Lee", "title"),
            ("Follow-up note", "D" * (PROVIDER_MAX_LENGTH + 1), "provider"),
        ],
    )
    async def test_over_long_field_never_calls_store(
        self, ready_session, record_store, title, provider, field
    ):
        with pytest.raises(ValidationError, match=FIELD_TOO_LONG_MESSAGE) as exc_info:
            await ready_session.save(title=title, provider=provider, user=USER, now=NOW)

        assert exc_info.value.context["too_long"] == [field]
        assert record_store.calls == []
        assert ready_session.state == FlowState.TRANSCRIPTION_READY

    @pytest.mark.asyncio
    async def test_title_at_column_width_is_accepted(self, ready_session, record_store):
        await ready_session.save(
            title="T" * TITLE_MAX_LENGTH, provider="Dr. Lee", user=USER, now=NOW
        )
        assert len(record_store.calls) == 1

    @pytest.mark.asyncio
    async def test_cannot_save_while_saving(self, ready_session, record_store):
        ready_session.state = FlowState.SAVING

        with pytest.raises(InvalidTransitionError):
            await ready_session.save(title="Rx", provider="Dr. Lee", user=USER, now=NOW)

        assert record_store.calls == []

    @pytest.mark.asyncio
    async def test_cannot_save_twice(self, ready_session, record_store):
        await ready_session.save(title="Rx", provider="Dr. Lee", user=USER, now=NOW)
        ready_session.recognized_text = "Ibuprofen 400mg as needed"

        with pytest.raises(InvalidTransitionError):
            await ready_session.save(title="Rx", provider="Dr. Lee", user=USER, now=NOW)

        assert len(record_store.calls) == 1

    @pytest.mark.asyncio
    async def test_valid_save_calls_store_once_with_edited_text(self, ready_session, record_store):
        ready_session.edit_text("Ibuprofen 200mg, max 3 per day")

        response = await ready_session.save(
            title="  Knee pain  ", provider="Dr. Patel", user=USER, now=NOW
        )

        assert len(record_store.calls) == 1
        fields, attachment = record_store.calls[0]
        assert fields.type == "prescription"
        assert fields.notes == "Ibuprofen 200mg, max 3 per day"
        assert fields.title == "Knee pain"
        assert fields.provider == "Dr. Patel"
        assert fields.owner_id == "user-42"
        assert fields.date == NOW
        assert attachment is None

        assert response.record_id == "rec-123"
        assert ready_session.state == FlowState.SAVED

    @pytest.mark.asyncio
    async def test_store_failure_keeps_draft(self, ready_session, record_store, png_bytes):
        record_store.fail = True
        ready_session.select_image("rx.png", png_bytes)

        with pytest.raises(RecordSaveError, match=SAVE_FAILED_MESSAGE):
            await ready_session.save(title="Rx", provider="Dr. Lee", user=USER, now=NOW)

        assert ready_session.state == FlowState.TRANSCRIPTION_READY
        assert ready_session.recognized_text == "Ibuprofen 400mg as needed"
        assert ready_session.image is not None
        assert ready_session.notice == SAVE_FAILED_MESSAGE
        assert ready_session.location is None

    @pytest.mark.asyncio
    async def test_retry_after_store_failure_succeeds(self, ready_session, record_store):
        record_store.fail = True
        with pytest.raises(RecordSaveError):
            await ready_session.save(title="Rx", provider="Dr. Lee", user=USER, now=NOW)

        record_store.fail = False
        response = await ready_session.save(title="Rx", provider="Dr. Lee", user=USER, now=NOW)

        assert response is not None
        assert len(record_store.calls) == 2
        assert ready_session.notice is None

    @pytest.mark.asyncio
    async def test_no_user_is_noop(self, ready_session, record_store):
        result = await ready_session.save(title="Rx", provider="Dr. Lee", user=None)

        assert result is None
        assert record_store.calls == []
        assert ready_session.state == FlowState.TRANSCRIPTION_READY

    @pytest.mark.asyncio
    async def test_no_text_is_noop(self, session, record_store):
        result = await session.save(title="Rx", provider="Dr. Lee", user=USER)

        assert result is None
        assert record_store.calls == []

    @pytest.mark.asyncio
    async def test_attachment_forwarded(self, ready_session, record_store, png_bytes):
        ready_session.select_image("rx.png", png_bytes)

        await ready_session.save(title="Rx", provider="Dr. Lee", user=USER, now=NOW)

        _, attachment = record_store.calls[0]
        assert isinstance(attachment, UploadedImage)
        assert attachment.content == png_bytes
        assert ready_session.image is None


class TestResume:
    def test_resume_with_text_is_ready(self, record_store):
        session = HandwritingSession.resume(record_store, recognized_text="Take daily")
        assert session.state == FlowState.TRANSCRIPTION_READY

    def test_resume_with_image_only(self, record_store):
        image = UploadedImage(filename="rx.png", mime_type="image/png", content=b"x")
        session = HandwritingSession.resume(record_store, recognized_text="", image=image)
        assert session.state == FlowState.IMAGE_SELECTED

    def test_resume_empty_is_idle(self, record_store):
        session = HandwritingSession.resume(record_store, recognized_text="")
        assert session.state == FlowState.IDLE


@pytest.mark.asyncio
async def test_end_to_end_prescription_flow(fake_llm, record_store, temp_storage, png_bytes):
    fake_llm.reply = "Take 1 tablet twice daily"
    record_store.record_id = "9f1c2d3e"
    session = HandwritingSession(
        record_store,
        transcribe=MedicalAIService(fake_llm).recognize_handwriting,
        files=FileService(storage_root=temp_storage),
    )

    session.select_image("prescription.png", png_bytes)
    await session.recognize()
    response = await session.save(
        title="Follow-up note", provider="Dr. Lee", user=USER, now=NOW
    )

    assert len(record_store.calls) == 1
    fields, attachment = record_store.calls[0]
    assert fields.type == "prescription"
    assert fields.notes == "Take 1 tablet twice daily"
    assert fields.title == "Follow-up note"
    assert fields.provider == "Dr. Lee"
    assert attachment.content == png_bytes

    assert session.state == FlowState.SAVED
    assert session.location == record_location("9f1c2d3e")
    assert session.location == "/dashboard/records/9f1c2d3e"
    assert response.location == session.location
