"""
Run supervisor.

Launches pipeline runs as background tasks with a concurrency limit.
"""

import asyncio
from typing import Set

from shared.logging import get_logger
from shared.models.video import GenerateVideoRequest
from api_gateway.orchestrator import PipelineCoordinator

logger = get_logger(__name__)

MAX_CONCURRENT_RUNS = 4


class RunSupervisor:
    """Schedules coordinator runs and keeps track of the in-flight ones."""

    def __init__(self, coordinator: PipelineCoordinator, max_concurrent_runs: int = MAX_CONCURRENT_RUNS):
        self.coordinator = coordinator
        self.max_concurrent_runs = max_concurrent_runs
        self._semaphore = asyncio.Semaphore(max_concurrent_runs)
        # Strong references; the event loop only keeps weak ones
        self._tasks: Set[asyncio.Task] = set()

    def submit(self, session_id: str, request: GenerateVideoRequest, base_url: str = "") -> asyncio.Task:
        """
        Start a run in the background.

        Args:
            session_id: Session the run publishes progress under
            request: Validated request
            base_url: Request base URL for the video link

        Returns:
            The scheduled task
        """
        task = asyncio.create_task(
            self._run_with_limit(session_id, request, base_url),
            name=f"pipeline-{session_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Run scheduled", extra={"session_id": session_id, "active_runs": len(self._tasks)})
        return task

    async def _run_with_limit(self, session_id: str, request: GenerateVideoRequest, base_url: str) -> None:
        logger.info(
            "Acquiring run slot",
            extra={"session_id": session_id, "available_slots": self._semaphore._value}
        )
        async with self._semaphore:
            try:
                await self.coordinator.run(session_id, request, base_url)
            except Exception as e:
                logger.error("Run crashed", exc_info=e, extra={"session_id": session_id})

    @property
    def active_runs(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait for every in-flight run to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight runs at application shutdown."""
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()
