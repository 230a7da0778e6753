"""
Runtime wiring - build the indicator pipeline from configuration

Shared by the API server, the refresh trigger, the end-of-day recorder and
the backfill script. Store and cache are optional at runtime: when they
cannot be reached the service still serves snapshots (without history).
"""

import logging
from datetime import timedelta

from config.loader import IndicatorConfig, get_enabled_indicators
from config.settings import get_settings
from core.interfaces.cache import BaseCacheClient
from core.interfaces.database import BaseTimeSeriesDB
from core.interfaces.sources import BaseIndicatorSource
from core.models.indicators import IndicatorKind
from factory.client_factory import (
    create_cache_client,
    create_indicator_sources,
    create_timeseries_db,
)
from services.indicator_service.approximation import ApproximationEngine
from services.indicator_service.persistence import SnapshotPersistence
from services.indicator_service.recorder import EndOfDayRecorder
from services.indicator_service.service import IndicatorService
from services.indicator_service.store import TimeSeriesStore

logger = logging.getLogger(__name__)


class IndicatorRuntime:
    """Owns the clients; builds services on top of them"""

    def __init__(
        self,
        configs: dict[IndicatorKind, IndicatorConfig] | None = None,
        db: BaseTimeSeriesDB | None = None,
        cache: BaseCacheClient | None = None,
        sources: dict[str, BaseIndicatorSource] | None = None,
    ):
        self.settings = get_settings()
        self.configs = configs if configs is not None else get_enabled_indicators()
        self.db = db
        self.cache = cache
        self.sources = sources if sources is not None else {}
        self.store: TimeSeriesStore | None = None

    async def connect(self, with_sources: bool = True, require_store: bool = False) -> None:
        """
        Connect store, cache and (optionally) upstream sources

        Args:
            with_sources: Create upstream clients (the recorder does not need them)
            require_store: Raise instead of degrading when the store is unreachable
        """
        if self.db is None:
            self.db = create_timeseries_db()
        try:
            await self.db.connect()
            self.store = TimeSeriesStore(self.db)
            logger.info("✅ Connected to time-series store")
        except Exception as e:
            if require_store:
                raise
            logger.error(f"❌ Store unavailable, running without history: {e}")
            self.db = None

        if self.cache is None:
            self.cache = create_cache_client()
        try:
            await self.cache.connect()
            logger.info("✅ Connected to cache")
        except Exception as e:
            logger.error(f"❌ Cache unavailable, running without last-good cache: {e}")
            self.cache = None

        if with_sources and not self.sources:
            self.sources = create_indicator_sources(
                {name for config in self.configs.values() for name in config.source_chain}
            )

    def build_service(self) -> IndicatorService:
        """IndicatorService over the connected clients"""
        staleness = timedelta(seconds=self.settings.INDICATOR_STALENESS_CEILING_SECONDS)
        persistence = None
        if self.store is not None or self.cache is not None:
            persistence = SnapshotPersistence(
                self.store,
                self.cache,
                cache_ttl=staleness,
                persist_approximate=self.settings.INDICATOR_PERSIST_APPROXIMATE,
            )

        return IndicatorService(
            configs=self.configs,
            sources=self.sources,
            store=self.store,
            persistence=persistence,
            approximation=ApproximationEngine(
                self.store,
                staleness_ceiling=staleness,
                configs=self.configs,
                market_timezone=self.settings.MARKET_TIMEZONE,
            ),
            freshness=timedelta(seconds=self.settings.INDICATOR_FRESHNESS_SECONDS),
            refresh_interval=timedelta(seconds=self.settings.INDICATOR_REFRESH_INTERVAL_SECONDS),
        )

    def build_recorder(self) -> EndOfDayRecorder:
        """EndOfDayRecorder for the indicators with record_eod enabled"""
        if self.store is None:
            raise RuntimeError("End-of-day recording requires a connected store")
        return EndOfDayRecorder(
            self.store,
            [kind for kind, config in self.configs.items() if config.record_eod],
            market_timezone=self.settings.MARKET_TIMEZONE,
        )

    async def close(self) -> None:
        """Close every client (errors logged, not raised)"""
        for name, source in self.sources.items():
            try:
                await source.close()
            except Exception as e:
                logger.error(f"✗ Failed to close source {name}: {e}")

        for client in (self.cache, self.db):
            if client is None:
                continue
            try:
                await client.close()
            except Exception as e:
                logger.error(f"✗ Failed to close {type(client).__name__}: {e}")
