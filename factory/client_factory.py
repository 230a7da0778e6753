"""
Client factory - Auto-create clients based on configuration

Dependency injection pattern: services depend on the interfaces in
core/interfaces, this module picks the implementations.
"""

import logging

from core.interfaces.cache import BaseCacheClient
from core.interfaces.database import BaseTimeSeriesDB
from core.interfaces.sources import BaseIndicatorSource

logger = logging.getLogger(__name__)


def create_cache_client() -> BaseCacheClient:
    """
    Create cache client

    Currently always returns RedisClient

    Returns:
        BaseCacheClient: Redis client
    """
    from providers.opensource.redis_client import RedisClient

    logger.info("Creating RedisClient")
    return RedisClient()


def create_timeseries_db() -> BaseTimeSeriesDB:
    """
    Create time-series database client

    Currently always returns ClickHouseClient

    Returns:
        BaseTimeSeriesDB: ClickHouse client
    """
    from providers.opensource.clickhouse import ClickHouseClient

    logger.info("Creating ClickHouseClient")
    return ClickHouseClient()


def create_indicator_source(source_name: str) -> BaseIndicatorSource:
    """
    Factory method for creating upstream indicator sources

    Args:
        source_name: Source identifier ("fred", "cboe", "yahoo", "yahoo_vix")

    Returns:
        BaseIndicatorSource implementation for the specified source

    Examples:
        >>> source = create_indicator_source("fred")
        >>> batch = await source.fetch_latest(IndicatorKind.YIELD_CURVE_SPREAD)
        >>> await source.close()

    Raises:
        ValueError: If source_name is not supported
    """
    source_lower = source_name.lower()

    if source_lower == "fred":
        from providers.fred.rest_api import FredRestAPI

        logger.info("✓ Creating FredRestAPI")
        return FredRestAPI()

    elif source_lower == "cboe":
        from providers.cboe.rest_api import CboeRestAPI

        logger.info("✓ Creating CboeRestAPI")
        return CboeRestAPI()

    elif source_lower == "yahoo":
        from providers.yahoo.options import YahooOptionsSource

        logger.info("✓ Creating YahooOptionsSource")
        return YahooOptionsSource()

    elif source_lower == "yahoo_vix":
        from providers.yahoo.vix import YahooVixSource

        logger.info("✓ Creating YahooVixSource")
        return YahooVixSource()

    else:
        raise ValueError(f"Unknown source: {source_name}. Supported: fred, cboe, yahoo, yahoo_vix")


def create_indicator_sources(source_names: set[str] | None = None) -> dict[str, BaseIndicatorSource]:
    """
    Create every source referenced by the enabled indicators

    Reads from: config/providers/indicators.yaml (source + fallback_source)

    Returns:
        Dict of source name → client, one client per source
    """
    if source_names is None:
        from config.loader import get_enabled_indicators

        source_names = {
            name for config in get_enabled_indicators().values() for name in config.source_chain
        }

    sources = {name: create_indicator_source(name) for name in sorted(source_names)}
    logger.info(f"✓ Created {len(sources)} indicator sources: {list(sources.keys())}")
    return sources
