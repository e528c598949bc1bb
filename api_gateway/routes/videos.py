"""
Video submission endpoint.

Validates a slideshow request and schedules its pipeline run.
"""

import json
import uuid

from fastapi import APIRouter, Depends, Request

from shared.errors import ValidationError
from shared.logging import get_logger
from shared.validation import validate_generate_video_request
from api_gateway.dependencies import get_supervisor
from api_gateway.worker import RunSupervisor

logger = get_logger(__name__)

router = APIRouter()


@router.post("/generate-video")
async def generate_video(
    request: Request,
    supervisor: RunSupervisor = Depends(get_supervisor)
):
    """
    Start video generation.

    Args:
        request: Body `{imagePrompts: [{visual, voiceover}], voiceId?}`
        supervisor: Run supervisor

    Returns:
        `{sessionId, message}`; progress is streamed on /ws/progress

    Raises:
        ValidationError: If the body is invalid (no session is created)
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(
            "Invalid request format",
            details="Request body must be valid JSON"
        ) from e

    video_request = validate_generate_video_request(payload)

    session_id = str(uuid.uuid4())
    supervisor.submit(session_id, video_request, base_url=str(request.base_url))

    logger.info(
        "Video generation started",
        extra={"session_id": session_id, "segments": len(video_request.segments)}
    )

    return {
        "sessionId": session_id,
        "message": "Video generation started. Monitor progress via WebSocket."
    }
