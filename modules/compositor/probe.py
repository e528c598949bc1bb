"""
Media probing via ffprobe.
"""

import asyncio
from pathlib import Path

import ffmpeg

from shared.errors import VideoProcessingError
from shared.logging import get_logger

logger = get_logger("compositor")


async def probe_media_duration(path: Path, ffprobe_binary: str = "ffprobe", timeout: float = 30.0) -> float:
    """
    Read the container duration of a media file.

    Args:
        path: Audio or video file
        ffprobe_binary: ffprobe executable
        timeout: Wall-clock bound in seconds

    Returns:
        Duration in seconds

    Raises:
        VideoProcessingError: If probing fails, times out, or reports no duration
    """
    loop = asyncio.get_running_loop()

    def _probe():
        return ffmpeg.probe(str(path), cmd=ffprobe_binary)

    try:
        info = await asyncio.wait_for(loop.run_in_executor(None, _probe), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise VideoProcessingError(
            f"Media probe timed out after {timeout:.0f} seconds: {path.name}"
        ) from e
    except ffmpeg.Error as e:
        stderr = e.stderr.decode(errors="replace") if e.stderr else str(e)
        raise VideoProcessingError(
            f"Failed to probe {path.name}",
            details=stderr[-500:]
        ) from e
    except FileNotFoundError as e:
        raise VideoProcessingError(f"ffprobe not found: {ffprobe_binary}") from e

    try:
        duration = float(info["format"]["duration"])
    except (KeyError, TypeError, ValueError) as e:
        raise VideoProcessingError(f"No duration reported for {path.name}") from e

    logger.debug(f"Probed {path.name}: {duration:.2f}s")
    return duration
