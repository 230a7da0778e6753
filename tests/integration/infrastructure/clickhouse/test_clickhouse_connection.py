"""
Integration test for ClickHouse basic connectivity (TIER 2)

Verifies ClickHouse client connects and the indicator tables exist
(scripts/sql/create_indicator_tables.sql).
"""

import pytest

from services.indicator_service.store import DAILY_TABLE, INTRADAY_TABLE, SPARKLINE_TABLE


@pytest.mark.integration
@pytest.mark.tier2  # 🔧 TIER 2 - Infrastructure
async def test_clickhouse_basic_connectivity(clickhouse_client):
    """Verify ClickHouse client connects successfully"""
    assert clickhouse_client.client is not None
    print("\n✓ ClickHouse client connected successfully")


@pytest.mark.integration
@pytest.mark.tier2
@pytest.mark.parametrize("table", [INTRADAY_TABLE, DAILY_TABLE, SPARKLINE_TABLE])
async def test_indicator_tables_exist(clickhouse_client, table):
    """SELECT ... FINAL succeeds on every tier"""
    rows = await clickhouse_client.select_rows(table, limit=1)
    assert isinstance(rows, list)


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
