"""
Pipeline orchestration logic.

Runs one video request through timings, narration, images and composition
with progress tracking, error mapping and temporary file cleanup.
"""

import asyncio
import re
import shutil
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from shared.errors import (
    ImageServiceError,
    InternalError,
    NarrationServiceError,
    PipelineError,
    VideoProcessingError,
    error_payload,
)
from shared.logging import get_logger, set_session_id
from shared.models.video import (
    GenerateVideoRequest,
    ImageArtifact,
    PipelineResult,
    PipelineStep,
    ProgressEvent,
    Segment,
    TimingPlan,
)
from modules.asset_provider.base import AssetProvider
from modules.compositor.compositor import Compositor
from modules.timing_allocator.allocator import allocate
from api_gateway.services.event_publisher import EventPublisher
from api_gateway.services.progress_broadcaster import ProgressBroadcaster

logger = get_logger(__name__)

# Forward-only order of non-terminal steps
STEP_ORDER = [
    PipelineStep.INITIALIZING,
    PipelineStep.CALCULATING_TIMINGS,
    PipelineStep.GENERATING_AUDIO,
    PipelineStep.GENERATING_IMAGES,
    PipelineStep.CREATING_VIDEO,
    PipelineStep.FINALIZING,
]

NARRATION_FILENAME = "voiceover.mp3"
VIDEO_FILENAME = "video.mp4"


def narration_text(segments: Sequence[Segment]) -> str:
    """Join voiceovers into one narration string with normalised whitespace."""
    return re.sub(r"\s+", " ", " ".join(s.voiceover for s in segments)).strip()


def failure_payload(error: BaseException) -> Dict[str, Any]:
    """
    Map a pipeline failure onto the error payload sent to subscribers.

    Args:
        error: Exception that ended the run

    Returns:
        `{error: {code, message, details}}`
    """
    if isinstance(error, NarrationServiceError):
        mapped = PipelineError(
            "Failed to generate audio for video",
            code=error.code,
            details=error.details or error.message
        )
    elif isinstance(error, ImageServiceError):
        if error.is_out_of_credits:
            details = "Image generation account is out of credits. Please add credits to continue"
        else:
            details = error.details or error.message
        mapped = PipelineError("Failed to generate images for video", code=error.code, details=details)
    elif isinstance(error, VideoProcessingError):
        # Keep the encoder's own message; it carries the timeout wording
        mapped = PipelineError(
            f"Failed to process video: {error.message}",
            code=error.code,
            details=error.details or "Video encoding failed. Please try again"
        )
    else:
        mapped = InternalError("Video generation failed", details="An unexpected error occurred")
    return error_payload(mapped)


class _Run:
    """Mutable state of one run: current step and the files it owns."""

    def __init__(self, session_id: str, run_dir: Path):
        self.session_id = session_id
        self.run_dir = run_dir
        self.step: Optional[PipelineStep] = None
        self.files: List[Path] = []

    def track(self, *paths: Path) -> None:
        self.files.extend(paths)

    def untrack(self, path: Path) -> None:
        if path in self.files:
            self.files.remove(path)


class PipelineCoordinator:
    """Drives pipeline runs and reports their progress per session."""

    def __init__(
        self,
        assets: AssetProvider,
        compositor: Compositor,
        broadcaster: ProgressBroadcaster,
        publisher: Optional[EventPublisher] = None,
        temp_dir: str = "/tmp",
        output_dir: str = "public/videos",
        default_voice_id: str = "en-US-terrell",
        image_concurrency: int = 1,
        public_base_url: Optional[str] = None
    ):
        """
        Args:
            assets: Narration and image provider
            compositor: Video compositor
            broadcaster: Live progress fan-out
            publisher: Optional Redis mirror of progress events
            temp_dir: Parent directory for per-run working directories
            output_dir: Directory finished videos are moved into
            default_voice_id: Voice used when a request names none
            image_concurrency: Max image requests in flight (1 = sequential)
            public_base_url: Base for video URLs; the request's base URL otherwise
        """
        self.assets = assets
        self.compositor = compositor
        self.broadcaster = broadcaster
        self.publisher = publisher
        self.temp_dir = Path(temp_dir)
        self.output_dir = Path(output_dir)
        self.default_voice_id = default_voice_id
        self.image_concurrency = max(1, image_concurrency)
        self.public_base_url = public_base_url

    async def _publish(
        self,
        run: _Run,
        step: PipelineStep,
        progress: float,
        message: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> None:
        if not step.is_terminal:
            if run.step is not None and STEP_ORDER.index(step) < STEP_ORDER.index(run.step):
                raise InternalError(
                    f"Pipeline step {step.value} cannot follow {run.step.value}",
                    session_id=run.session_id
                )
            if step != run.step:
                logger.info("Pipeline step started", extra={"step": step.value})
        run.step = step

        event = ProgressEvent(
            session_id=run.session_id,
            step=step,
            progress=max(0.0, min(100.0, progress)),
            message=message,
            payload=payload
        )
        self.broadcaster.publish(run.session_id, event)
        if self.publisher is not None:
            await self.publisher.publish(event)

    def video_url(self, filename: str, base_url: str) -> str:
        base = (self.public_base_url or base_url).rstrip("/")
        return f"{base}/video/{filename}"

    async def run(
        self,
        session_id: str,
        request: GenerateVideoRequest,
        base_url: str = ""
    ) -> Optional[PipelineResult]:
        """
        Execute one pipeline run.

        Publishes a progress event at each step and exactly one terminal
        event (completed or error) after temporary files are removed.

        Args:
            session_id: Session progress is published under
            request: Validated request
            base_url: Request base URL used when no public base URL is configured

        Returns:
            PipelineResult on success, None on failure. Never raises.
        """
        set_session_id(session_id)
        run = _Run(session_id, self.temp_dir / f"run_{session_id}")
        result: Optional[PipelineResult] = None
        failure: Optional[BaseException] = None

        try:
            result = await self._execute(run, request, base_url)
        except Exception as e:
            failure = e
            logger.error(
                "Pipeline execution failed",
                exc_info=e,
                extra={"step": run.step.value if run.step else None}
            )
        finally:
            self._cleanup(run)

        try:
            if failure is None:
                await self._publish(
                    run,
                    PipelineStep.COMPLETED,
                    100,
                    "Video generation completed successfully!",
                    payload={
                        "videoUrl": result.video_url,
                        "duration": result.measured_duration_seconds,
                        "finalTimings": result.final_timings,
                        "optimizedTimings": result.optimized_timings,
                    }
                )
                logger.info(
                    "Pipeline completed successfully",
                    extra={"video_url": result.video_url, "duration": result.measured_duration_seconds}
                )
            else:
                payload = failure_payload(failure)
                await self._publish(
                    run,
                    PipelineStep.ERROR,
                    0,
                    f"Error: {payload['error']['message']}",
                    payload=payload
                )
        except Exception as e:
            logger.error("Failed to publish terminal event", exc_info=e)

        return result if failure is None else None

    async def _execute(self, run: _Run, request: GenerateVideoRequest, base_url: str) -> PipelineResult:
        segments = request.segments
        voice_id = request.voice_id or self.default_voice_id

        await self._publish(run, PipelineStep.INITIALIZING, 0, "Starting video generation process...")
        run.run_dir.mkdir(parents=True, exist_ok=True)

        await self._publish(run, PipelineStep.CALCULATING_TIMINGS, 0, "Calculating optimal timings for segments...")
        plan: TimingPlan = allocate(segments)
        logger.info(
            "Timings calculated",
            extra={"timings": plan.timings, "target_duration": plan.target_duration}
        )
        await self._publish(run, PipelineStep.CALCULATING_TIMINGS, 100, "Timings calculated")

        audio_path = run.run_dir / NARRATION_FILENAME
        run.track(audio_path)
        await self._publish(run, PipelineStep.GENERATING_AUDIO, 0, "Generating voiceover audio...")
        audio = await self.assets.synthesize_narration(narration_text(segments), voice_id, audio_path)
        await self._publish(run, PipelineStep.GENERATING_AUDIO, 100, "Audio generation completed")

        images = await self._generate_images(run, segments)

        video_path = run.run_dir / VIDEO_FILENAME
        run.track(video_path)

        async def on_compositor_progress(progress: float, message: str) -> None:
            await self._publish(run, PipelineStep.CREATING_VIDEO, progress, message)

        composition = await self.compositor.compose(
            [image.path for image in images],
            audio.path,
            plan.timings,
            video_path,
            on_progress=on_compositor_progress
        )

        await self._publish(run, PipelineStep.FINALIZING, 0, "Saving video...")
        filename = f"{uuid.uuid4()}.mp4"
        self.output_dir.mkdir(parents=True, exist_ok=True)
        final_path = self.output_dir / filename
        shutil.move(str(composition.video_path), str(final_path))
        run.untrack(video_path)
        await self._publish(run, PipelineStep.FINALIZING, 50, "Cleaning up temporary files...")

        return PipelineResult(
            video_path=final_path,
            video_url=self.video_url(filename, base_url),
            measured_duration_seconds=composition.measured_duration_seconds,
            final_timings=composition.final_timings,
            optimized_timings=plan.timings,
        )

    async def _generate_images(self, run: _Run, segments: Sequence[Segment]) -> List[ImageArtifact]:
        """Request one image per segment; results are in segment order."""
        n = len(segments)
        paths = [run.run_dir / f"image_{i}.png" for i in range(n)]
        run.track(*paths)

        if self.image_concurrency == 1:
            images = []
            for i, segment in enumerate(segments):
                await self._publish(run, PipelineStep.GENERATING_IMAGES, i / n * 100, f"Generating image {i + 1} of {n}")
                images.append(await self.assets.synthesize_image(segment.visual, paths[i]))
            await self._publish(run, PipelineStep.GENERATING_IMAGES, 100, f"All {n} images generated successfully")
            return images

        semaphore = asyncio.Semaphore(self.image_concurrency)
        finished = 0

        async def generate_one(i: int, segment: Segment) -> ImageArtifact:
            nonlocal finished
            async with semaphore:
                image = await self.assets.synthesize_image(segment.visual, paths[i])
            finished += 1
            await self._publish(run, PipelineStep.GENERATING_IMAGES, finished / n * 100, f"Generated image {finished} of {n}")
            return image

        await self._publish(run, PipelineStep.GENERATING_IMAGES, 0, f"Generating {n} images...")
        tasks = [asyncio.create_task(generate_one(i, s)) for i, s in enumerate(segments)]
        try:
            images = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return list(images)

    def _cleanup(self, run: _Run) -> None:
        """Remove run-owned files and the run directory; errors are logged."""
        for path in run.files:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to delete temporary file {path}", exc_info=e)

        if run.run_dir.exists():
            try:
                shutil.rmtree(run.run_dir)
            except OSError as e:
                logger.warning(f"Failed to remove run directory {run.run_dir}", exc_info=e)
