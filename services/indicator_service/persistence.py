"""
Snapshot Persistence - Save to cache + time-series store

Strategy:
1. Cache-first (critical path) - last-good snapshot, TTL = staleness ceiling
2. Store write-through - intraday row + sparkline points

Failures on either side are logged, never raised: a snapshot is served even
when it could not be persisted.

Architecture:
    save_snapshot() →
        ├─ _write_cache()  snapshots:{kind}
        └─ _write_store()  indicator_intraday + indicator_sparklines
"""

import logging
from datetime import datetime, timedelta

from pydantic import ValidationError

from core.exceptions import StoreError
from core.interfaces.cache import BaseCacheClient
from core.models.indicators import IndicatorKind, IndicatorSnapshot, Status
from services.indicator_service.store import TimeSeriesStore

logger = logging.getLogger(__name__)


def snapshot_cache_key(kind: IndicatorKind) -> str:
    return f"snapshots:{kind.value}"


class SnapshotPersistence:
    """Save snapshots to cache (last-good) + store (history tiers)"""

    def __init__(
        self,
        store: TimeSeriesStore | None,
        cache: BaseCacheClient | None = None,
        cache_ttl: timedelta = timedelta(days=1),
        persist_approximate: bool = False,
    ):
        self.store = store
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.persist_approximate = persist_approximate

    async def save_snapshot(self, snapshot: IndicatorSnapshot) -> bool:
        """
        Save a snapshot to cache + store

        Error snapshots are skipped entirely. Approximate readings from a live
        secondary source go to the store only when persist_approximate is on
        (and then carry the flag); a degraded snapshot re-serving the last
        known value is never written back. Neither reaches the daily tier.

        Returns:
            True if the store write-through succeeded (or was not required)
        """
        if snapshot.value is None or snapshot.status == Status.ERROR:
            logger.debug(f"Skipping persistence of error snapshot for {snapshot.indicator_id.value}")
            return True

        # Step 1: Cache-first (authoritative only, it is the last-good fallback)
        if not snapshot.is_approximate:
            await self._write_cache(snapshot)

        # Step 2: Store write-through
        if snapshot.is_approximate:
            if not self.persist_approximate:
                return True
            if snapshot.error is not None:
                # Re-served last-good value: its reading is already recorded
                logger.debug(f"Not re-recording last known {snapshot.indicator_id.value} value")
                return True

        return await self._write_store(snapshot)

    async def _write_cache(self, snapshot: IndicatorSnapshot) -> None:
        """
        Write to cache with TTL

        Key: snapshots:{kind}
        Value: snapshot JSON
        """
        if self.cache is None:
            return

        kind = snapshot.indicator_id
        try:
            await self.cache.set(
                snapshot_cache_key(kind), snapshot.model_dump_json(), ttl=self.cache_ttl
            )
            logger.debug(f"✓ Cached last-good snapshot for {kind.value}")

        except Exception as e:
            # Cache miss is acceptable - log but don't crash
            logger.error(f"✗ Cache write failed for {kind.value}: {e}")

    async def _write_store(self, snapshot: IndicatorSnapshot) -> bool:
        """
        Write intraday observation + sparkline points

        Upserts only, so a retried refresh never duplicates rows.
        """
        if self.store is None:
            return True

        kind = snapshot.indicator_id
        try:
            record = await self.store.upsert_intraday(
                kind,
                snapshot.fetched_at,
                snapshot.value,
                snapshot.status,
                is_approximate=snapshot.is_approximate,
            )
            # An approximate snapshot only owns its newest point
            points = snapshot.history[-1:] if snapshot.is_approximate else snapshot.history
            if points:
                await self.store.write_sparkline(
                    kind, points, record.date, is_approximate=snapshot.is_approximate
                )

            logger.debug(f"✓ Store saved {kind.value} snapshot ({len(snapshot.history)} points)")
            return True

        except StoreError as e:
            logger.error(f"✗ Store write failed for {kind.value}: {e}", exc_info=True)
            return False

    async def get_from_cache(
        self, kind: IndicatorKind, now: datetime | None = None
    ) -> IndicatorSnapshot | None:
        """
        Get the last-good snapshot from cache

        Returns:
            Snapshot or None on cache miss, unreadable payload or cache error
        """
        if self.cache is None:
            return None

        try:
            cached = await self.cache.get(snapshot_cache_key(kind))
            if not cached:
                return None

            snapshot = IndicatorSnapshot.model_validate_json(cached)
            if now is not None and snapshot.age_seconds(now) < 0:
                logger.warning(f"Cached {kind.value} snapshot is dated in the future, ignoring")
                return None
            return snapshot

        except ValidationError as e:
            logger.warning(f"Discarding unreadable cached snapshot for {kind.value}: {e}")
            return None

        except Exception as e:
            logger.error(f"Cache read error for {kind.value}: {e}")
            return None
