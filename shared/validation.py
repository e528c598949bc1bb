"""
Validation utilities.

Shared validation utilities for request payloads.
"""

from typing import Any, List

import pydantic

from shared.errors import ValidationError
from shared.models.video import MAX_SEGMENTS, GenerateVideoRequest


def _describe_errors(errors: List[dict]) -> str:
    """
    Flatten pydantic error entries into one readable line.

    Args:
        errors: Output of `pydantic.ValidationError.errors()`

    Returns:
        Semicolon-separated "location: message" pairs
    """
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg', 'invalid value')}" if location else error.get("msg", ""))
    return "; ".join(parts)


def validate_generate_video_request(payload: Any) -> GenerateVideoRequest:
    """
    Validate a video submission body.

    Args:
        payload: Decoded JSON body

    Returns:
        Parsed request

    Raises:
        ValidationError: If the body is malformed, has 0 or more than
            MAX_SEGMENTS segments, or contains blank text fields
    """
    if not isinstance(payload, dict):
        raise ValidationError(
            "Invalid request format",
            details="Request body must be a JSON object"
        )

    segments = payload.get("imagePrompts", payload.get("segments"))
    if isinstance(segments, list) and len(segments) > MAX_SEGMENTS:
        raise ValidationError(
            "Too many segments",
            details=f"A video supports at most {MAX_SEGMENTS} segments (got {len(segments)})"
        )

    try:
        return GenerateVideoRequest.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(
            "Invalid request format",
            details=_describe_errors(e.errors())
        ) from e
