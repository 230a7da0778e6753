"""
Pytest configuration for integration tests

This conftest patches YAML loading at MODULE LEVEL to replace Docker hostnames
with localhost for tests running on the host machine.

Tests needing a backend use the clickhouse_client / redis_client fixtures,
which skip when the service is not reachable.
"""

import os
import uuid
from unittest import mock

import pytest

# ============================================================================
# CRITICAL: Patch YAML loading at MODULE LEVEL
# This runs BEFORE any test modules are imported by pytest
# ============================================================================
# Import original function
from core.utils.config import load_yaml_safe as _original_load_yaml_safe


def _patched_load_yaml_safe(path):
    """Load YAML and replace Docker hostnames with localhost for integration tests"""
    config = _original_load_yaml_safe(path)

    # Patch databases.yaml - replace Docker hostnames with localhost
    if "databases.yaml" in path:
        if "clickhouse" in config:
            config["clickhouse"]["host"] = "localhost"
        if "redis" in config:
            config["redis"]["host"] = "localhost"

    return config


# Apply global patch
mock.patch("core.utils.config.load_yaml_safe", side_effect=_patched_load_yaml_safe).start()

# Also set environment variables as backup
os.environ["CLICKHOUSE_HOST"] = "localhost"
os.environ["REDIS_HOST"] = "localhost"

# Reset Settings singleton to force reload with patched YAML loader
import config.settings as settings_module
from config.settings import Settings

if hasattr(Settings, "_yaml_loaded"):
    delattr(Settings, "_yaml_loaded")
settings_module._settings_instance = None

# ============================================================================
# Now all test files will use localhost when they load Settings/YAML configs
# ============================================================================


@pytest.fixture
async def clickhouse_client():
    """Connected ClickHouseClient (skips when ClickHouse is down)"""
    from providers.opensource.clickhouse import ClickHouseClient

    client = ClickHouseClient()
    try:
        await client.connect()
    except Exception as e:
        pytest.skip(f"ClickHouse not reachable: {e}")

    yield client
    await client.close()


@pytest.fixture
async def redis_client():
    """Connected RedisClient (skips when Redis is down)"""
    from providers.opensource.redis_client import RedisClient

    client = RedisClient()
    try:
        await client.connect()
    except Exception as e:
        pytest.skip(f"Redis not reachable: {e}")

    yield client
    await client.close()


@pytest.fixture
def test_date():
    """A far-past date no real data uses, unique per run"""
    from datetime import date, timedelta

    return date(1990, 1, 1) + timedelta(days=uuid.uuid4().int % 3000)
