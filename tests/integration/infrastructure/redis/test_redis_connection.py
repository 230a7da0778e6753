"""
Integration test for Redis basic connectivity (TIER 2)

Verifies Redis client connects and round-trips a keyed value with TTL.
"""

import uuid
from datetime import timedelta

import pytest


@pytest.mark.integration
@pytest.mark.tier2  # 🔧 TIER 2 - Infrastructure
async def test_redis_basic_connectivity(redis_client):
    """Verify Redis client connects successfully"""
    assert await redis_client.client.ping()
    print("\n✓ Redis client connected successfully")


@pytest.mark.integration
@pytest.mark.tier2
async def test_redis_set_get_delete(redis_client):
    key = f"test:snapshots:{uuid.uuid4().hex}"

    await redis_client.set(key, '{"value": 0.9}', ttl=timedelta(minutes=1))
    assert await redis_client.get(key) == '{"value": 0.9}'
    assert await redis_client.client.ttl(key) > 0

    await redis_client.delete(key)
    assert await redis_client.get(key) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
