"""
Error handling.

Custom exception classes for consistent error handling across the pipeline.
"""

from typing import Any, Optional


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    # Wire code reported on the progress channel for this category
    default_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        session_id: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[str] = None
    ):
        """
        Initialize pipeline error.

        Args:
            message: Error message
            session_id: Optional session ID associated with the error
            code: Optional error code for categorization
            details: Optional human-readable hint for the caller
        """
        self.message = message
        self.session_id = session_id
        self.code = code or self.default_code
        self.details = details
        super().__init__(self.message)


class ConfigError(PipelineError):
    """Configuration errors (missing env vars, invalid settings)."""
    default_code = "CONFIG_ERROR"


class ValidationError(PipelineError):
    """Input validation errors, raised before any pipeline run starts."""
    default_code = "VALIDATION_ERROR"


class ProviderError(PipelineError):
    """Failure reported by an upstream synthesis provider."""

    def __init__(
        self,
        message: str,
        reason: str = "provider_error",
        status_code: Optional[int] = None,
        retry_after: Optional[int] = None,
        session_id: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[str] = None
    ):
        """
        Initialize provider error.

        Args:
            message: Error message
            reason: Failure category (timeout, rate_limited, out_of_credits, ...)
            status_code: Upstream HTTP status, when there was a response
            retry_after: Seconds the upstream asked us to wait, if given
            session_id: Optional session ID associated with the error
            code: Optional error code for categorization
            details: Optional human-readable hint for the caller
        """
        self.reason = reason
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(message, session_id, code, details)

    @property
    def is_timeout(self) -> bool:
        return self.reason == "timeout"

    @property
    def is_rate_limited(self) -> bool:
        return self.reason == "rate_limited"


class NarrationServiceError(ProviderError):
    """Text-to-speech provider failures."""
    default_code = "TTS_SERVICE_ERROR"


class ImageServiceError(ProviderError):
    """Image generation provider failures."""
    default_code = "IMAGE_SERVICE_ERROR"

    @property
    def is_out_of_credits(self) -> bool:
        return self.reason == "out_of_credits"


class VideoProcessingError(PipelineError):
    """Probing or encoding failures, including encoder timeouts."""
    default_code = "VIDEO_PROCESSING_ERROR"


class InternalError(PipelineError):
    """Anything unanticipated that escaped a pipeline stage."""
    default_code = "INTERNAL_ERROR"


class SessionClosedError(PipelineError):
    """Subscription attempted on a session that already finished."""
    default_code = "SESSION_CLOSED"


class SubscriberLimitError(PipelineError):
    """Too many live subscribers on one session."""
    default_code = "TOO_MANY_SUBSCRIBERS"


def error_payload(error: PipelineError) -> dict[str, Any]:
    """Build the `{error: {code, message, details}}` payload sent to clients."""
    return {
        "error": {
            "code": error.code,
            "message": error.message,
            "details": error.details,
        }
    }


__all__ = [
    "PipelineError",
    "ConfigError",
    "ValidationError",
    "ProviderError",
    "NarrationServiceError",
    "ImageServiceError",
    "VideoProcessingError",
    "InternalError",
    "SessionClosedError",
    "SubscriberLimitError",
    "error_payload",
]
