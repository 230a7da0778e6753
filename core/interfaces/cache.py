"""
Abstract interface for the snapshot cache

Keys used by the pipeline:
- snapshots:{indicator_id}  last authoritative IndicatorSnapshot (JSON),
                            TTL = staleness ceiling
"""

from abc import ABC, abstractmethod
from datetime import timedelta


class BaseCacheClient(ABC):
    """
    String key-value cache with per-key expiry

    Implementations:
    - RedisClient (providers/opensource/redis_client.py)

    Read errors are treated as a miss by callers.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to cache service"""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """
        Get value by key

        Args:
            key: Cache key

        Returns:
            Value as string, or None if not found
        """

    @abstractmethod
    async def set(self, key: str, value: str, ttl: timedelta | None = None) -> bool:
        """
        Set key-value with optional TTL

        Args:
            key: Cache key
            value: Value to store (string)
            ttl: Time to live (optional)

        Returns:
            True if successful
        """

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys, returns number removed"""

    @abstractmethod
    async def close(self) -> None:
        """Close connection"""
