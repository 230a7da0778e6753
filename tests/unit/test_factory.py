"""
Unit tests for factory pattern

Tests that correct client implementations are created based on config
"""

import pytest

from factory.client_factory import (
    create_cache_client,
    create_indicator_source,
    create_indicator_sources,
    create_timeseries_db,
)
from providers.cboe.rest_api import CboeRestAPI
from providers.fred.rest_api import FredRestAPI
from providers.opensource.clickhouse import ClickHouseClient
from providers.opensource.redis_client import RedisClient
from providers.yahoo.options import YahooOptionsSource
from providers.yahoo.vix import YahooVixSource


@pytest.mark.unit
class TestStoreClientFactories:
    """Cache and time-series database"""

    def test_create_cache_client(self):
        assert isinstance(create_cache_client(), RedisClient)

    def test_create_timeseries_db(self):
        assert isinstance(create_timeseries_db(), ClickHouseClient)


@pytest.mark.unit
class TestIndicatorSourceFactory:
    """Upstream source adapters"""

    @pytest.mark.parametrize(
        "name, expected",
        [("fred", FredRestAPI), ("cboe", CboeRestAPI), ("yahoo", YahooOptionsSource),
         ("yahoo_vix", YahooVixSource), ("FRED", FredRestAPI)],
    )
    def test_create_source(self, name, expected):
        assert isinstance(create_indicator_source(name), expected)

    def test_unknown_source_raises_error(self):
        with pytest.raises(ValueError, match="Unknown source"):
            create_indicator_source("bloomberg")

    def test_create_named_sources(self):
        sources = create_indicator_sources({"cboe", "yahoo"})

        assert set(sources) == {"cboe", "yahoo"}
        assert isinstance(sources["yahoo"], YahooOptionsSource)

    def test_sources_from_enabled_indicators(self):
        # indicators.yaml: cboe with yahoo fallback, fred, yahoo_vix
        sources = create_indicator_sources()

        assert set(sources) == {"cboe", "fred", "yahoo", "yahoo_vix"}
