"""
RxScribe Backend: Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions for every failure the service reports.
How:   Each exception carries a user-facing message and an optional context
       dict. Global exception handlers (registered in main.py) turn them into
       structured JSON error responses with the right HTTP status.
Who:   Raised by services and the flow orchestrator; caught by the AI
       capability boundary or by the global handlers.

Exception Hierarchy:
    RxScribeError (base)
    ├── ValidationError          → 400 Bad Request  (ValidationFailed)
    ├── InvalidTransitionError   → 409 Conflict
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── FileStorageError         → 500 Internal Server Error
    ├── RecordSaveError          → 502 Bad Gateway
    └── ProviderRequestError     → 503 Service Unavailable (ProviderRequestFailed)

ProviderRequestError normally never reaches a handler: the AI capabilities
catch it and answer with their fixed fallback message.
"""

from typing import Any, Dict, Optional


class RxScribeError(Exception):
    """
    Base exception for all RxScribe application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned for server errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RxScribeError):
    """
    Raised when client input fails validation.

    When:    Missing title/provider on save, unsupported or oversized image,
             unknown summary audience, save attempted without a signed-in
             user or without transcription text.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class ProviderRequestError(RxScribeError):
    """
    Raised by an LLM provider adapter when a generation request fails.

    What:    Network failure, authentication, quota, content-safety block,
             malformed input or an empty response from the provider.
    When:    Exactly once per failed call; requests are never retried.
    HTTP:    503 Service Unavailable
    """

    def __init__(
        self,
        message: str = "The AI provider request failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RecordSaveError(RxScribeError):
    """
    Raised when the record-persistence collaborator rejects or fails a save.

    The message is the fixed text shown to the user; the draft that was being
    saved is left untouched so the user can retry.
    HTTP:    502 Bad Gateway
    """

    def __init__(
        self,
        message: str = "Failed to save record. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(RxScribeError):
    """
    Raised when an attachment cannot be written to the storage volume.

    HTTP:    500 Internal Server Error (file system paths are never returned)
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidTransitionError(RxScribeError):
    """
    Raised when the handwriting flow is asked to do something its current
    state does not allow (e.g. recognizing twice while a request is pending).

    HTTP:    409 Conflict
    """

    def __init__(
        self,
        action: str,
        state: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx.update({"action": action, "state": state})
        super().__init__(
            message=f"Cannot {action} while the flow is in state '{state}'",
            context=ctx,
        )
        self.action = action
        self.state = state


class RateLimitExceededError(RxScribeError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests, with a Retry-After header
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many requests. Please wait {retry_after} seconds before retrying."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
