"""
Indicator Service - current snapshot per indicator

Per refresh:
    idle → fetching → classifying → persisting → served
                 └─→ degraded (every source failed → ApproximationEngine)

- In-memory snapshot served unchanged while younger than the freshness window
- At most one in-flight refresh per indicator; concurrent callers share it
- Store failures are logged, the snapshot is still returned
- Periodic refresh loop between start() and stop()
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from enum import Enum

from config.loader import IndicatorConfig
from core.exceptions import FetchError, StoreError, UnknownIndicator
from core.interfaces.sources import BaseIndicatorSource
from core.models.indicators import (
    HistoryPoint,
    IndicatorKind,
    IndicatorSnapshot,
    ObservationBatch,
)
from domain.indicators.classifier import change_from_average, classify, trailing_average
from services.indicator_service.approximation import ApproximationEngine
from services.indicator_service.persistence import SnapshotPersistence
from services.indicator_service.store import TimeSeriesStore

logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    CLASSIFYING = "classifying"
    PERSISTING = "persisting"
    SERVED = "served"
    DEGRADED = "degraded"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class IndicatorService:
    """
    Owns the current snapshot of every configured indicator

    Args:
        configs: Enabled indicators (config/providers/indicators.yaml)
        sources: Source name → adapter (fred, cboe, yahoo)
        store: Time-series store (None runs without history)
        persistence: Write-through to cache + store
        approximation: Degraded-snapshot policy
        freshness: Snapshot age under which no refetch happens
        refresh_interval: Period of the background refresh loop
        clock: Returns the current UTC instant
    """

    def __init__(
        self,
        configs: dict[IndicatorKind, IndicatorConfig],
        sources: dict[str, BaseIndicatorSource],
        store: TimeSeriesStore | None = None,
        persistence: SnapshotPersistence | None = None,
        approximation: ApproximationEngine | None = None,
        freshness: timedelta = timedelta(hours=1),
        refresh_interval: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.configs = configs
        self.sources = sources
        self.store = store
        self.persistence = persistence
        self.approximation = approximation or ApproximationEngine(
            store, staleness_ceiling=timedelta(days=1), configs=configs
        )
        self.freshness = freshness
        self.refresh_interval = refresh_interval
        self.clock = clock

        self.states: dict[IndicatorKind, RefreshState] = {k: RefreshState.IDLE for k in configs}
        self._snapshots: dict[IndicatorKind, IndicatorSnapshot] = {}
        self._last_good: dict[IndicatorKind, IndicatorSnapshot] = {}
        self._inflight: dict[IndicatorKind, asyncio.Task] = {}
        self._periodic_task: asyncio.Task | None = None
        self._closed = False

    # ============================================
    # PUBLIC API
    # ============================================
    def resolve_kind(self, kind: IndicatorKind | str) -> IndicatorKind:
        """Validate an indicator id against the configured indicators"""
        try:
            resolved = IndicatorKind(kind)
        except ValueError:
            raise UnknownIndicator(str(kind)) from None
        if resolved not in self.configs:
            raise UnknownIndicator(resolved.value)
        return resolved

    async def get_snapshot(
        self, kind: IndicatorKind | str, force_refresh: bool = False
    ) -> IndicatorSnapshot:
        """
        Current snapshot of `kind`

        Args:
            kind: Indicator id
            force_refresh: Bypass the freshness window

        Returns:
            Fresh, cached or approximate snapshot (never raises on upstream
            or store failure)
        """
        kind = self.resolve_kind(kind)

        if not force_refresh:
            cached = self._snapshots.get(kind)
            if cached is not None and cached.age_seconds(self.clock()) < self.freshness.total_seconds():
                logger.debug(f"Serving cached {kind.value} snapshot")
                return cached

        return await self._single_flight(kind)

    async def refresh(
        self, kinds: Iterable[IndicatorKind | str] | None = None
    ) -> dict[IndicatorKind, IndicatorSnapshot]:
        """
        Force-refresh several indicators concurrently

        Returns:
            Snapshots of the indicators whose refresh completed
        """
        targets = [self.resolve_kind(k) for k in kinds] if kinds is not None else list(self.configs)

        results = await asyncio.gather(
            *[self.get_snapshot(kind, force_refresh=True) for kind in targets],
            return_exceptions=True,
        )

        snapshots = {}
        for kind, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.error(f"✗ Refresh of {kind.value} failed: {result!r}")
                continue
            snapshots[kind] = result

        logger.info(f"Refreshed {len(snapshots)}/{len(targets)} indicators")
        return snapshots

    async def start(self) -> None:
        """Start the periodic refresh loop"""
        if self._periodic_task is not None and not self._periodic_task.done():
            return

        self._closed = False
        self._periodic_task = asyncio.create_task(self._run_periodic(), name="indicator-refresh")
        logger.info(
            f"✅ Indicator Service started "
            f"({len(self.configs)} indicators, every {self.refresh_interval.total_seconds():.0f}s)"
        )

    async def stop(self) -> None:
        """
        Stop the periodic loop and cancel in-flight refreshes

        A refresh finishing after this point is discarded.
        """
        logger.info("🛑 Stopping Indicator Service...")
        self._closed = True

        tasks = list(self._inflight.values())
        if self._periodic_task is not None:
            tasks.append(self._periodic_task)
            self._periodic_task = None

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()

        logger.info("✅ Indicator Service stopped")

    def get_state(self, kind: IndicatorKind) -> RefreshState:
        return self.states.get(kind, RefreshState.IDLE)

    # ============================================
    # REFRESH PIPELINE
    # ============================================
    async def _run_periodic(self) -> None:
        while not self._closed:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in refresh cycle: {e}", exc_info=True)

            await asyncio.sleep(self.refresh_interval.total_seconds())

    async def _single_flight(self, kind: IndicatorKind) -> IndicatorSnapshot:
        """Join the in-flight refresh of `kind`, or start one"""
        task = self._inflight.get(kind)
        if task is None or task.done():
            task = asyncio.create_task(self._refresh_one(kind), name=f"refresh:{kind.value}")
            self._inflight[kind] = task
            task.add_done_callback(lambda t, k=kind: self._clear_inflight(k, t))

        # Shield: one caller going away must not cancel the shared refresh
        return await asyncio.shield(task)

    def _clear_inflight(self, kind: IndicatorKind, task: asyncio.Task) -> None:
        if self._inflight.get(kind) is task:
            del self._inflight[kind]

    def _set_state(self, kind: IndicatorKind, state: RefreshState) -> None:
        self.states[kind] = state
        logger.debug(f"{kind.value}: {state.value}")

    async def _refresh_one(self, kind: IndicatorKind) -> IndicatorSnapshot:
        config = self.configs[kind]

        self._set_state(kind, RefreshState.FETCHING)
        batch, reason = await self._fetch(kind, config)
        now = self.clock()

        if batch is None:
            self._set_state(kind, RefreshState.DEGRADED)
            last_good = self._last_good.get(kind)
            if last_good is None and self.persistence is not None:
                last_good = await self.persistence.get_from_cache(kind, now)
            snapshot = await self.approximation.approximate(kind, last_good, reason, now)
        else:
            self._set_state(kind, RefreshState.CLASSIFYING)
            snapshot = await self._build_snapshot(kind, config, batch, now)

        if self._closed:
            logger.info(f"Discarding {kind.value} refresh completed after shutdown")
            return snapshot

        if self.persistence is not None:
            self._set_state(kind, RefreshState.PERSISTING)
            try:
                await self.persistence.save_snapshot(snapshot)
            except StoreError as e:
                logger.error(f"✗ Persisting {kind.value} failed: {e}")

        self._snapshots[kind] = snapshot
        if not snapshot.is_approximate:
            self._last_good[kind] = snapshot

        self._set_state(kind, RefreshState.SERVED if batch is not None else RefreshState.DEGRADED)
        logger.info(
            f"✓ {kind.value} = {snapshot.value} ({snapshot.status.value}"
            f"{', approximate' if snapshot.is_approximate else ''}) from {snapshot.source}"
        )
        return snapshot

    async def _fetch(
        self, kind: IndicatorKind, config: IndicatorConfig
    ) -> tuple[ObservationBatch | None, str]:
        """
        Try each configured source in order

        Returns:
            (batch, "") on success, (None, reason) when every source failed
        """
        failures = []
        for name in config.source_chain:
            source = self.sources.get(name)
            if source is None:
                failures.append(f"{name}: source not available")
                continue

            try:
                batch = await source.fetch_latest(kind, config.fetch_options)
            except FetchError as e:
                logger.warning(f"✗ {name} fetch failed for {kind.value}: {e}")
                failures.append(f"{name}: {e}")
                continue
            except Exception as e:
                logger.error(f"✗ {name} raised unexpectedly for {kind.value}: {e!r}", exc_info=True)
                failures.append(f"{name}: {e}")
                continue

            observed = len(batch.valid_observations)
            if observed < config.min_observations:
                logger.warning(
                    f"✗ {name} returned {observed} observations for {kind.value}, "
                    f"need {config.min_observations}"
                )
                failures.append(f"{name}: insufficient data ({observed} observations)")
                continue

            return batch, ""

        return None, "; ".join(failures) or "no source configured"

    async def _build_snapshot(
        self,
        kind: IndicatorKind,
        config: IndicatorConfig,
        batch: ObservationBatch,
        now: datetime,
    ) -> IndicatorSnapshot:
        latest = batch.latest
        value = float(latest.value)
        history = await self._history(kind, config, batch)

        average = batch.trailing_average
        if average is None:
            prior = [p.value for p in history if p.date < latest.observation_date]
            average = trailing_average(prior, config.trailing_window)

        status = classify(value, average, kind, config.thresholds.to_domain())

        return IndicatorSnapshot(
            indicator_id=kind,
            value=value,
            trailing_average=average,
            status=status,
            change_from_average=change_from_average(value, average),
            history=history,
            is_approximate=batch.is_approximate,
            fetched_at=now,
            source=batch.source_label,
            details=dict(batch.details),
        )

    async def _history(
        self, kind: IndicatorKind, config: IndicatorConfig, batch: ObservationBatch
    ) -> tuple[HistoryPoint, ...]:
        """
        Persisted daily values merged with the batch (batch wins per date)

        Oldest first, at most history_length points.
        """
        by_date = {}
        if self.store is not None:
            try:
                for record in await self.store.query_daily(kind, limit=config.history_length):
                    by_date[record.date] = record.value
            except StoreError as e:
                logger.warning(f"Daily history unavailable for {kind.value}: {e}")

        for observation in batch.valid_observations:
            by_date[observation.observation_date] = float(observation.value)

        points = [HistoryPoint(date=d, value=v) for d, v in sorted(by_date.items())]
        return tuple(points[-config.history_length :])
