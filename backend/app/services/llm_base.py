"""
RxScribe Backend: Abstract LLM Provider Interface
==================================================

What:  The narrow contract every generative-language provider adapter honours.
How:   Concrete adapters inherit from LLMService and implement generate() and
       health_check(). The AI capabilities only ever talk to this interface,
       so tests substitute a deterministic fake provider.
Who:   Used by MedicalAIService (transcription, summarization, analysis).
"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, Field


class ImagePart(BaseModel):
    """Decoded image bytes attached to a multimodal request."""

    mime_type: str = Field(default="image/jpeg", description="IANA media type of the image")
    data: bytes = Field(description="Raw image bytes (not base64)")


class LLMService(ABC):
    """
    Abstract interface for a hosted generative-language provider.

    Contract:
        - generate() issues exactly one provider request and returns its text.
        - Every provider-side failure is raised as ProviderRequestError.
        - No retries: callers decide what a failure means for the user.
    """

    @abstractmethod
    async def generate(self, prompt: str, image: Optional[ImagePart] = None) -> str:
        """
        Send a text-only or text+image request to the provider.

        Args:
            prompt: Full instructional prompt, including any embedded record text.
            image:  Optional image to send alongside the prompt.

        Returns:
            The provider's generated text, unmodified. Never empty.

        Raises:
            ProviderRequestError: On any failure between us and the provider,
                including blocked or empty responses.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability check; True if the provider answers."""
        ...
