"""Factory package - Dependency injection for storage and upstream clients"""

from .client_factory import (
    create_cache_client,
    create_indicator_source,
    create_indicator_sources,
    create_timeseries_db,
)

__all__ = [
    "create_cache_client",
    "create_timeseries_db",
    "create_indicator_source",
    "create_indicator_sources",
]
