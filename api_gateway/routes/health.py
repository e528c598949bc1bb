"""
Health check endpoint.

Monitors service health (encoder binaries, output storage, Redis).
"""

import json
import os
import shutil
from datetime import datetime, timezone
from pathlib import Path

from fastapi import APIRouter, Depends, Response

from shared.config import Settings
from shared.logging import get_logger
from api_gateway.dependencies import get_broadcaster, get_publisher, get_settings, get_supervisor
from api_gateway.services.event_publisher import EventPublisher
from api_gateway.services.progress_broadcaster import ProgressBroadcaster
from api_gateway.worker import RunSupervisor

logger = get_logger(__name__)

router = APIRouter()


def _output_dir_writable(path: str) -> bool:
    directory = Path(path)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(directory, os.W_OK)


@router.get("/health")
async def health_check(
    settings: Settings = Depends(get_settings),
    broadcaster: ProgressBroadcaster = Depends(get_broadcaster),
    publisher: EventPublisher = Depends(get_publisher),
    supervisor: RunSupervisor = Depends(get_supervisor)
):
    """
    Health check endpoint.

    Returns:
        Health status with service checks
    """
    issues = []
    status_code = 200

    ffmpeg_ok = shutil.which(settings.ffmpeg_binary) is not None
    if not ffmpeg_ok:
        issues.append(f"{settings.ffmpeg_binary} not found")
        status_code = 503

    ffprobe_ok = shutil.which(settings.ffprobe_binary) is not None
    if not ffprobe_ok:
        issues.append(f"{settings.ffprobe_binary} not found")
        status_code = 503

    storage_ok = _output_dir_writable(settings.video_output_dir)
    if not storage_ok:
        issues.append("video output directory not writable")
        status_code = 503

    redis_status = "disabled"
    redis_healthy = await publisher.health_check()
    if redis_healthy is not None:
        redis_status = "connected" if redis_healthy else "disconnected"
        if not redis_healthy:
            issues.append("redis connection failed")
            status_code = 503

    response = {
        "status": "healthy" if status_code == 200 else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "ffmpeg": "available" if ffmpeg_ok else "missing",
        "ffprobe": "available" if ffprobe_ok else "missing",
        "storage": "writable" if storage_ok else "unwritable",
        "redis": redis_status,
        "runs": {
            "active": supervisor.active_runs,
            "max_concurrent": supervisor.max_concurrent_runs
        },
        "sessions": {
            "active": broadcaster.session_count(),
            "subscribers": broadcaster.subscriber_count()
        }
    }

    if issues:
        response["issues"] = issues
        logger.warning("Health check failed", extra={"issues": issues})

    return Response(
        content=json.dumps(response),
        status_code=status_code,
        media_type="application/json"
    )
