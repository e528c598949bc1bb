"""
Slideshow compositor.

Reconciles segment timings with the narration length, then drives the
encoder process with a wall-clock bound and reports its progress.
"""

import asyncio
import re
from collections import deque
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from shared.config import Settings
from shared.errors import VideoProcessingError
from shared.logging import get_logger
from shared.models.video import CompositionResult
from modules.compositor.filter_graph import (
    TRANSITION_DURATION,
    build_encoder_args,
    build_filter_graph,
)
from modules.compositor.probe import probe_media_duration

logger = get_logger("compositor")

MIN_VIDEO_DURATION = 25.0
MAX_VIDEO_DURATION = 40.0
SYNC_TOLERANCE = 0.5

# Step-local progress milestones
PROGRESS_SETUP = 0
PROGRESS_AUDIO_PROBED = 10
PROGRESS_GRAPH_BUILT = 20
PROGRESS_ENCODE_START = 30
PROGRESS_ENCODE_END = 95
PROGRESS_DONE = 100

STDERR_TAIL_LINES = 20

_TIME_PATTERN = re.compile(r"time=(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")

ProgressCallback = Callable[[float, str], Awaitable[None]]
DurationProbe = Callable[[Path], Awaitable[float]]


def parse_progress_time(line: str) -> Optional[float]:
    """
    Extract the encoded position from an encoder status line.

    Args:
        line: One stderr line, e.g. "frame= 120 ... time=00:00:04.00 ..."

    Returns:
        Position in seconds, or None if the line carries no time
    """
    match = _TIME_PATTERN.search(line)
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def encode_progress(position: float, target: float) -> float:
    """Map an encoded position onto the 30..95 encode band."""
    if target <= 0:
        return PROGRESS_ENCODE_START
    span = PROGRESS_ENCODE_END - PROGRESS_ENCODE_START
    return min(PROGRESS_ENCODE_END, PROGRESS_ENCODE_START + position / target * span)


def reconcile_timings(
    timings: Sequence[float],
    audio_duration: float,
    fade: float = TRANSITION_DURATION
) -> Tuple[List[float], float]:
    """
    Fit segment timings to the narration.

    The displayed length is the timing sum minus one fade per transition.
    When it is more than SYNC_TOLERANCE away from the audio, every timing is
    scaled so the displayed length equals the audio length clamped to
    [25, 40]. Scaled timings are not re-clamped to the per-segment band.

    Args:
        timings: Planned segment durations
        audio_duration: Measured narration length in seconds
        fade: Crossfade duration

    Returns:
        (adjusted timings, target displayed duration)
    """
    n = len(timings)
    overlap = (n - 1) * fade if n > 1 else 0.0
    raw_sum = sum(timings)
    displayed = raw_sum - overlap
    target = max(MIN_VIDEO_DURATION, min(MAX_VIDEO_DURATION, audio_duration))

    if abs(displayed - audio_duration) <= SYNC_TOLERANCE or raw_sum <= 0:
        return list(timings), target

    scale = (target + overlap) / raw_sum
    return [t * scale for t in timings], target


def _remove_partial(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to remove partial output {path}: {str(e)}")


async def _terminate(process: asyncio.subprocess.Process, output_path: Path) -> None:
    """Kill a running encoder, reap it and drop its partial output."""
    try:
        process.kill()
    except ProcessLookupError:
        pass
    await process.wait()
    _remove_partial(output_path)


class Compositor:
    """Encodes image sequences plus narration into a vertical slideshow."""

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        encoder_timeout: float = 120.0,
        probe_timeout: float = 30.0,
        probe: Optional[DurationProbe] = None
    ):
        """
        Args:
            ffmpeg_binary: Encoder executable
            ffprobe_binary: Probe executable
            encoder_timeout: Wall-clock bound on one encode, in seconds
            probe_timeout: Wall-clock bound on one probe, in seconds
            probe: Duration probe override (tests)
        """
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.encoder_timeout = encoder_timeout
        self.probe_timeout = probe_timeout
        self._probe = probe or self._ffprobe

    @classmethod
    def from_settings(cls, settings: Settings) -> "Compositor":
        return cls(
            ffmpeg_binary=settings.ffmpeg_binary,
            ffprobe_binary=settings.ffprobe_binary,
            encoder_timeout=settings.encoder_timeout_seconds,
            probe_timeout=settings.probe_timeout_seconds,
        )

    async def _ffprobe(self, path: Path) -> float:
        return await probe_media_duration(path, self.ffprobe_binary, self.probe_timeout)

    async def compose(
        self,
        images: Sequence[Path],
        audio: Path,
        timings: Sequence[float],
        output_path: Path,
        on_progress: Optional[ProgressCallback] = None
    ) -> CompositionResult:
        """
        Render the slideshow.

        Args:
            images: Still image per segment, in order
            audio: Narration track
            timings: Planned durations, one per image
            output_path: Destination MP4 (removed again on failure)
            on_progress: Awaited with (progress 0..100, message)

        Returns:
            CompositionResult with the duration probed from the output

        Raises:
            VideoProcessingError: On probe, encode or timeout failure
        """
        async def report(progress: float, message: str) -> None:
            if on_progress is not None:
                await on_progress(progress, message)

        if not images or len(images) != len(timings):
            raise VideoProcessingError(
                f"Expected one timing per image, got {len(images)} images and {len(timings)} timings"
            )

        await report(PROGRESS_SETUP, "Preparing video composition...")

        audio_duration = await self._probe(audio)
        await report(PROGRESS_AUDIO_PROBED, f"Narration length {audio_duration:.1f}s")

        adjusted, target = reconcile_timings(timings, audio_duration)
        if list(adjusted) != list(timings):
            logger.info(
                "Timings rescaled to narration",
                extra={
                    "audio_duration": audio_duration,
                    "target_duration": target,
                    "planned": list(timings),
                    "adjusted": [round(t, 3) for t in adjusted],
                }
            )

        graph = build_filter_graph(adjusted)
        args = build_encoder_args(images, audio, adjusted, graph, output_path, self.ffmpeg_binary)
        await report(PROGRESS_GRAPH_BUILT, f"Built filter graph with {len(graph.transitions)} transitions")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        await report(PROGRESS_ENCODE_START, "Encoding video...")
        await self._run_encoder(args, output_path, target, report)

        if not output_path.exists():
            raise VideoProcessingError("Encoder finished without producing an output file")

        await report(PROGRESS_ENCODE_END, "Verifying output...")
        measured = await self._probe(output_path)
        await report(PROGRESS_DONE, "Video created")

        logger.info(
            "Composition complete",
            extra={"output": str(output_path), "duration": measured, "segments": len(adjusted)}
        )

        return CompositionResult(
            video_path=output_path,
            measured_duration_seconds=measured,
            final_timings=[round(t, 3) for t in adjusted],
            transition_count=len(graph.transitions),
        )

    async def _spawn(self, args: List[str]) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE
        )

    async def _run_encoder(
        self,
        args: List[str],
        output_path: Path,
        target: float,
        report: ProgressCallback
    ) -> None:
        """Run the encoder to completion, streaming progress from stderr."""
        logger.debug(f"Running encoder: {' '.join(args)}")

        try:
            process = await self._spawn(args)
        except FileNotFoundError as e:
            raise VideoProcessingError(f"Encoder not found: {self.ffmpeg_binary}") from e

        tail: deque = deque(maxlen=STDERR_TAIL_LINES)
        last_reported = int(PROGRESS_ENCODE_START)

        async def consume() -> int:
            nonlocal last_reported
            pending = ""
            while True:
                chunk = await process.stderr.read(4096)
                if not chunk:
                    break
                pending += chunk.decode(errors="replace")
                # Status lines end in \r, log lines in \n
                parts = re.split(r"[\r\n]", pending)
                pending = parts.pop()
                for line in parts:
                    line = line.strip()
                    if not line:
                        continue
                    tail.append(line)
                    position = parse_progress_time(line)
                    if position is None:
                        continue
                    progress = encode_progress(position, target)
                    if int(progress) > last_reported:
                        last_reported = int(progress)
                        await report(progress, "Encoding video...")
            if pending.strip():
                tail.append(pending.strip())
            return await process.wait()

        try:
            returncode = await asyncio.wait_for(consume(), timeout=self.encoder_timeout)
        except asyncio.TimeoutError as e:
            await _terminate(process, output_path)
            logger.error(
                "Encoder timed out",
                extra={"timeout_seconds": self.encoder_timeout, "stderr_tail": list(tail)}
            )
            raise VideoProcessingError(
                f"Video encoding timed out after {self.encoder_timeout:.0f} seconds",
                details="The video took too long to encode"
            ) from e
        finally:
            # Cancellation or a failing progress callback leaves the encoder running
            if process.returncode is None:
                logger.warning("Stopping encoder after interrupted composition")
                await _terminate(process, output_path)

        if returncode != 0:
            _remove_partial(output_path)
            stderr_tail = "\n".join(tail)
            logger.error(
                "Encoder failed",
                extra={"returncode": returncode, "stderr_tail": list(tail)}
            )
            raise VideoProcessingError(
                f"Video encoding failed with exit code {returncode}",
                details=stderr_tail or None
            )
