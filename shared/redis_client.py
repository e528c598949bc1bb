"""
Redis client.

Redis connection used to mirror progress events to other processes.
"""

import json
from typing import Any
import redis.asyncio as aioredis
from shared.errors import ConfigError


class RedisClient:
    """Async Redis client with connection pooling and JSON support."""

    def __init__(self, url: str, prefix: str = "slideshow:"):
        """
        Initialize Redis client.

        Args:
            url: redis:// or rediss:// connection URL
            prefix: Namespace prefix for channels
        """
        try:
            self.client: aioredis.Redis = aioredis.from_url(
                url,
                encoding="utf-8",
                decode_responses=False  # We'll handle encoding ourselves
            )
            self.prefix = prefix
        except Exception as e:
            raise ConfigError(f"Failed to initialize Redis client: {str(e)}") from e

    def _prefix_key(self, key: str) -> str:
        """Add namespace prefix to key."""
        return f"{self.prefix}{key}"

    async def publish_json(self, channel: str, data: Any) -> int:
        """
        Publish a JSON-serialized message on a pub/sub channel.

        Args:
            channel: Channel name (prefixed automatically)
            data: Python object to serialize

        Returns:
            Number of Redis subscribers that received the message
        """
        message = json.dumps(data, default=str)  # default=str handles datetime, Path, etc.
        return await self.client.publish(self._prefix_key(channel), message.encode("utf-8"))

    async def health_check(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            await self.client.ping()
            return True
        except Exception:
            return False

    async def close(self):
        """Close Redis connection."""
        await self.client.aclose()
