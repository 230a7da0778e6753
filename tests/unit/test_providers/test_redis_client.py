"""
Unit tests for the Redis cache client

redis.asyncio.Redis is replaced by an AsyncMock.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from providers.opensource.redis_client import RedisClient


@pytest.fixture
def mock_redis():
    with patch("providers.opensource.redis_client.Redis") as mock_redis_class:
        conn = MagicMock()
        conn.ping = AsyncMock(return_value=True)
        conn.get = AsyncMock(return_value='{"value": 0.9}')
        conn.set = AsyncMock(return_value=True)
        conn.delete = AsyncMock(return_value=1)
        conn.aclose = AsyncMock()
        mock_redis_class.from_url.return_value = conn
        yield conn


@pytest.mark.unit
class TestRedisClient:
    """Thin wrapper behaviour"""

    async def test_set_with_ttl_in_seconds(self, mock_redis):
        client = RedisClient()
        await client.connect()

        assert await client.set("snapshots:put-call-ratio", "{}", ttl=timedelta(days=1)) is True
        mock_redis.set.assert_awaited_once_with("snapshots:put-call-ratio", "{}", ex=86400)

    async def test_set_without_ttl(self, mock_redis):
        client = RedisClient()
        await client.connect()

        await client.set("key", "value")
        mock_redis.set.assert_awaited_once_with("key", "value", ex=None)

    async def test_get_and_delete(self, mock_redis):
        client = RedisClient()
        await client.connect()

        assert await client.get("key") == '{"value": 0.9}'
        assert await client.delete("a", "b") == 1
        mock_redis.delete.assert_awaited_once_with("a", "b")

    async def test_requires_connection(self, mock_redis):
        client = RedisClient()

        with pytest.raises(RuntimeError, match="not connected"):
            await client.get("key")

    async def test_errors_propagate(self, mock_redis):
        mock_redis.get.side_effect = ConnectionError("redis down")
        client = RedisClient()
        await client.connect()

        with pytest.raises(ConnectionError):
            await client.get("key")

    async def test_close(self, mock_redis):
        client = RedisClient()
        await client.connect()
        await client.close()

        mock_redis.aclose.assert_awaited_once()
        assert client.client is None
