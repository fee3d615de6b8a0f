"""
RxScribe Backend: Medical AI Capabilities
==========================================

What:  The three AI capabilities: handwriting transcription, record
       summarization and cross-record pattern analysis.
How:   Each builds a fixed prompt, makes exactly one LLMService.generate()
       call and returns the provider's text verbatim. Any failure is caught
       here and replaced by the capability's fixed fallback message.
Who:   The handwriting/records routes and HandwritingSession.

Result contract:
    MedicalAIService methods return AIResult(text, failed). The module-level
    functions of the same names return only the text, so a caller that just
    displays the answer never has to handle an exception.
"""

import logging
from typing import Optional, Sequence, Union

from app.exceptions import ValidationError
from app.prompts import (
    DOCTOR_SUMMARY_PROMPT,
    HANDWRITING_PROMPT,
    LAYMAN_SUMMARY_PROMPT,
    PATTERN_ANALYSIS_PROMPT,
    RECORD_DELIMITER,
)
from app.schemas.ai import AIResult, Audience
from app.services.file_service import FileService, decode_data_url, file_service
from app.services.gemini_service import gemini_service
from app.services.llm_base import LLMService

logger = logging.getLogger(__name__)

TRANSCRIPTION_FALLBACK = "Failed to recognize handwriting. Please try again later."
SUMMARY_FALLBACK = "Failed to generate summary. Please try again later."
ANALYSIS_FALLBACK = "Failed to analyze patterns. Please try again later."

SUMMARY_PROMPTS = {
    Audience.LAYMAN: LAYMAN_SUMMARY_PROMPT,
    Audience.DOCTOR: DOCTOR_SUMMARY_PROMPT,
}


def build_summary_prompt(record_text: str, audience: Union[Audience, str]) -> str:
    """
    Template for the audience followed by the record text.

    Raises:
        ValidationError: audience is neither 'layman' nor 'doctor'.
    """
    try:
        audience = Audience(audience)
    except ValueError as e:
        raise ValidationError(
            message=f"Unknown audience '{audience}'. Use 'layman' or 'doctor'.",
            field="audience",
        ) from e
    return f"{SUMMARY_PROMPTS[audience]}{record_text}"


def build_analysis_prompt(records: Sequence[str]) -> str:
    """Records joined in caller order, embedded in the analysis template."""
    return f"{PATTERN_ANALYSIS_PROMPT}{RECORD_DELIMITER.join(records)}"


class MedicalAIService:
    """
    Stateless wrapper around one LLM provider.

    Every method is single-shot: one provider request, no retry. Identical
    inputs may legitimately produce different text.
    """

    def __init__(self, llm: LLMService, files: Optional[FileService] = None):
        self.llm = llm
        self.files = files or file_service

    async def recognize_handwriting(self, image: str) -> AIResult:
        """
        Transcribe a handwritten prescription photo.

        Args:
            image: Base64 data URL of the photo.

        Returns:
            AIResult with the transcription, or TRANSCRIPTION_FALLBACK with
            failed=True. A malformed data URL, an oversized payload or bytes
            that are not a PNG/JPEG/WEBP image count as failures and never
            reach the provider.
        """
        try:
            image_part = decode_data_url(image)
            # Sent with the media type detected from the bytes
            image_part.mime_type = self.files.validate_image_bytes(image_part.data)
            text = await self.llm.generate(HANDWRITING_PROMPT, image=image_part)
        except Exception as e:
            logger.error("Error recognizing handwriting: %s", str(e))
            return AIResult(text=TRANSCRIPTION_FALLBACK, failed=True)
        return AIResult(text=text)

    async def summarize_record(
        self, record_text: str, audience: Union[Audience, str]
    ) -> AIResult:
        """Rewrite a record for a patient ('layman') or a clinician ('doctor')."""
        prompt = build_summary_prompt(record_text, audience)
        try:
            text = await self.llm.generate(prompt)
        except Exception as e:
            logger.error("Error summarizing record: %s", str(e))
            return AIResult(text=SUMMARY_FALLBACK, failed=True)
        return AIResult(text=text)

    async def analyze_pattern_across_records(self, records: Sequence[str]) -> AIResult:
        """
        Narrative of trends and concerns across one patient's records.

        Order is the caller's and is kept as given; an empty list still
        results in a provider request.
        """
        prompt = build_analysis_prompt(records)
        try:
            text = await self.llm.generate(prompt)
        except Exception as e:
            logger.error("Error analyzing patterns across %d records: %s", len(records), str(e))
            return AIResult(text=ANALYSIS_FALLBACK, failed=True)
        return AIResult(text=text)


ai_service = MedicalAIService(gemini_service)


async def recognize_handwriting(image: str) -> str:
    return (await ai_service.recognize_handwriting(image)).text


async def summarize_record(record_text: str, audience: Union[Audience, str]) -> str:
    return (await ai_service.summarize_record(record_text, audience)).text


async def analyze_pattern_across_records(records: Sequence[str]) -> str:
    return (await ai_service.analyze_pattern_across_records(records)).text
