"""
Media endpoint.

Serves finished videos from the output directory.
"""

import re
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from shared.config import Settings
from shared.logging import get_logger
from api_gateway.dependencies import get_settings

logger = get_logger(__name__)

router = APIRouter()

# Only uuid-named MP4s produced by the pipeline are served
_VIDEO_NAME = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")


@router.get("/video/{name}.mp4")
async def get_video(name: str, settings: Settings = Depends(get_settings)):
    """
    Stream a finished video.

    Args:
        name: Video id (uuid4, lowercase)
        settings: Application settings

    Returns:
        The MP4 file

    Raises:
        HTTPException: 404 for unknown or malformed names
    """
    if not _VIDEO_NAME.match(name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")

    path = Path(settings.video_output_dir) / f"{name}.mp4"
    if not path.is_file():
        logger.info("Video not found", extra={"video_id": name})
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")

    return FileResponse(path, media_type="video/mp4", filename=f"{name}.mp4")
