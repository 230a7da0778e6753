"""
Pytest configuration for test suite

Markers:
- unit: Fast unit tests (no external dependencies)
- integration: Integration tests (requires Docker services)
- tier1 / tier2: Critical data-correctness / infrastructure tests
- slow: Slow-running tests (>10 seconds)

Shared fixtures:
- memory_db: in-memory BaseTimeSeriesDB honouring upsert keys (tests/fakes.py)
- store: TimeSeriesStore over memory_db
- indicator_configs: validated configs independent of the YAML files
"""

import copy

import pytest

from config.loader import load_indicators_config
from core.models.indicators import DEFAULT_RETENTION_DAYS
from tests.fakes import InMemoryTimeSeriesDB


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "unit: Fast unit tests (no dependencies)")
    config.addinivalue_line(
        "markers", "integration: Integration tests (requires Docker)"
    )
    config.addinivalue_line("markers", "tier1: Critical data-correctness tests")
    config.addinivalue_line("markers", "tier2: Infrastructure tests")
    config.addinivalue_line("markers", "slow: Slow tests (>10 seconds)")


RAW_INDICATOR_CONFIG = {
    "put-call-ratio": {
        "source": "cboe",
        "fallback_source": "yahoo",
        "min_observations": 1,
        "trailing_window": 20,
        "history_length": 30,
    },
    "yield-curve-spread": {
        "source": "fred",
        "series_id": "T10Y2Y",
        "fetch_limit": 30,
        "min_observations": 2,
        "trailing_window": 20,
        "history_length": 30,
    },
}


@pytest.fixture
def memory_db():
    return InMemoryTimeSeriesDB()


@pytest.fixture
def store(memory_db):
    from services.indicator_service.store import TimeSeriesStore

    return TimeSeriesStore(
        memory_db,
        retention_days=dict(DEFAULT_RETENTION_DAYS),
        market_timezone="America/New_York",
    )


@pytest.fixture
def indicator_configs():
    return load_indicators_config(copy.deepcopy(RAW_INDICATOR_CONFIG))
