"""
RxScribe Backend: Google Gemini Provider Adapter
=================================================

What:  Concrete LLMService backed by the Google Gemini API.
How:   One generate_content_async() call per generate(); the image, when
       present, travels inline as {"mime_type", "data"} next to the prompt.
Who:   Instantiated once at import; used by MedicalAIService for every
       transcription, summary and pattern analysis.

Failure policy:
    Every request is single-shot. SDK exceptions, safety-blocked candidates
    (response.text raises ValueError) and empty answers all surface as
    ProviderRequestError. No retry, no backoff and no timeout beyond the
    SDK's own default.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, List, Optional

import google.generativeai as genai

from app.config import settings
from app.exceptions import ProviderRequestError
from app.services.llm_base import ImagePart, LLMService

logger = logging.getLogger(__name__)


def _list_model_names() -> List[str]:
    return [m.name for m in genai.list_models()]


class GeminiService(LLMService):
    """
    Google Gemini implementation of the provider boundary.

    The model object is created once and shared by all requests; it holds no
    per-request state.
    """

    def __init__(self, model_name: Optional[str] = None, api_key: Optional[str] = None):
        api_key = api_key if api_key is not None else settings.gemini_api_key
        if api_key and api_key != "your_gemini_api_key_here":
            genai.configure(api_key=api_key)

        self.model_name = model_name or settings.gemini_model
        self.model = genai.GenerativeModel(self.model_name)

        logger.info("GeminiService initialized with model=%s", self.model_name)

    @staticmethod
    def _build_contents(prompt: str, image: Optional[ImagePart]) -> List[Any]:
        contents: List[Any] = [prompt]
        if image is not None:
            contents.append({"mime_type": image.mime_type, "data": image.data})
        return contents

    async def generate(self, prompt: str, image: Optional[ImagePart] = None) -> str:
        """
        Issue one Gemini request and return the generated text verbatim.

        Raises:
            ProviderRequestError: SDK/network failure, blocked or empty response.
        """
        request_id = str(uuid.uuid4())[:8]
        kind = "multimodal" if image is not None else "text"
        start_time = time.time()

        logger.info(
            "[%s] Gemini %s request (prompt=%d chars, image=%d bytes)",
            request_id,
            kind,
            len(prompt),
            len(image.data) if image is not None else 0,
        )

        try:
            response = await self.model.generate_content_async(
                self._build_contents(prompt, image)
            )
            # .text raises ValueError when the candidate was blocked
            text = response.text
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "[%s] Gemini request failed after %.0fms: %s",
                request_id,
                duration_ms,
                str(e),
            )
            raise ProviderRequestError(
                message="The AI provider request failed.",
                context={"request_id": request_id, "error_type": type(e).__name__},
            ) from e

        duration_ms = (time.time() - start_time) * 1000

        if not text or not text.strip():
            logger.warning("[%s] Gemini returned an empty response", request_id)
            raise ProviderRequestError(
                message="The AI provider returned an empty response.",
                context={"request_id": request_id},
            )

        logger.info(
            "[%s] Gemini request completed in %.0fms, generated %d chars",
            request_id,
            duration_ms,
            len(text),
        )
        return text

    async def health_check(self) -> bool:
        """
        Check if the Gemini API is reachable with the configured key.

        Lists models (no token cost) in a worker thread, since the SDK call
        blocks, and reports whether the call succeeded.
        """
        try:
            model_names = await asyncio.to_thread(_list_model_names)
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False

        target = f"models/{self.model_name}"
        if target not in model_names:
            logger.warning("Configured model %s not found in available models", target)
        return True


gemini_service = GeminiService()
