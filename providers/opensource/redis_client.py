"""
Redis implementation of cache client

Holds the last-good indicator snapshots so a restarted service can serve an
approximate value before its first successful fetch.
"""

import logging
from datetime import timedelta

from redis.asyncio import Redis

from config.settings import get_settings
from core.interfaces.cache import BaseCacheClient

logger = logging.getLogger(__name__)


class RedisClient(BaseCacheClient):
    """
    Redis implementation

    Values are plain strings (snapshots are stored as JSON); expiry is set
    per key with `ttl`.
    """

    def __init__(self):
        self.settings = get_settings()
        self.client: Redis | None = None

    async def connect(self) -> None:
        """Connect to Redis"""
        try:
            self.client = Redis.from_url(self.settings.redis_url, decode_responses=True)
            # Test connection
            await self.client.ping()
            logger.info(
                f"✓ Connected to Redis: {self.settings.REDIS_HOST}:{self.settings.REDIS_PORT}"
            )
        except Exception as e:
            logger.error(f"✗ Failed to connect to Redis: {e}")
            raise

    def _require_client(self) -> Redis:
        if not self.client:
            raise RuntimeError("Redis client not connected")
        return self.client

    async def get(self, key: str) -> str | None:
        """Get value by key"""
        client = self._require_client()

        try:
            return await client.get(key)
        except Exception as e:
            logger.error(f"✗ Redis GET {key} error: {e}")
            raise

    async def set(self, key: str, value: str, ttl: timedelta | None = None) -> bool:
        """
        Set key-value with optional TTL

        Args:
            key: Redis key
            value: Value to set
            ttl: TTL as timedelta (optional, no expiry when omitted)
        """
        client = self._require_client()

        try:
            ex = int(ttl.total_seconds()) if ttl else None
            return bool(await client.set(key, value, ex=ex))
        except Exception as e:
            logger.error(f"✗ Redis SET {key} error: {e}")
            raise

    async def delete(self, *keys: str) -> int:
        """Delete one or more keys"""
        client = self._require_client()

        try:
            return await client.delete(*keys)
        except Exception as e:
            logger.error(f"✗ Redis DELETE error: {e}")
            raise

    async def close(self) -> None:
        """Close connection"""
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.info("✓ Redis connection closed")
