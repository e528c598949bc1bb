"""
Event publisher service.

Mirrors pipeline progress events to Redis pub/sub so other processes can
observe runs. Without a Redis URL every publish is a no-op.
"""

from typing import Optional

from shared.logging import get_logger
from shared.models.video import ProgressEvent
from shared.redis_client import RedisClient

logger = get_logger(__name__)


class EventPublisher:
    """Best-effort Redis mirror of progress events."""

    def __init__(self, redis_client: Optional[RedisClient] = None):
        self.redis_client = redis_client

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None

    @staticmethod
    def channel(session_id: str) -> str:
        return f"session_events:{session_id}"

    async def publish(self, event: ProgressEvent) -> None:
        """
        Publish an event to the session's Redis channel.

        Failures are logged and swallowed; the mirror never fails a run.

        Args:
            event: Progress event to mirror
        """
        if self.redis_client is None:
            return

        try:
            await self.redis_client.publish_json(self.channel(event.session_id), event.to_message())
            logger.debug(
                "Event published",
                extra={"session_id": event.session_id, "step": event.step.value}
            )
        except Exception as e:
            logger.error(
                "Failed to publish event",
                exc_info=e,
                extra={"session_id": event.session_id, "step": event.step.value}
            )

    async def health_check(self) -> Optional[bool]:
        """Redis health, or None when the mirror is disabled."""
        if self.redis_client is None:
            return None
        return await self.redis_client.health_check()

    async def close(self) -> None:
        if self.redis_client is not None:
            await self.redis_client.close()
