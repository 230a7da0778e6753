"""
Approximation Engine - degraded snapshots when every source failed

Policy:
- Last-known-good younger than the staleness ceiling → served again, flagged
  approximate with an explanatory note
- Otherwise → placeholder (value None, status error, approximate) carrying
  only persisted daily history

Without an in-memory last-known-good, one is rebuilt from the store: the
latest authoritative intraday row of today, else the latest daily record.
Values are never invented.
"""

import logging
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

from config.loader import IndicatorConfig
from core.exceptions import StoreReadFailed
from core.models.indicators import HistoryPoint, IndicatorKind, IndicatorSnapshot, Status
from domain.indicators.classifier import change_from_average, trailing_average
from services.indicator_service.store import TimeSeriesStore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LENGTH = 30
DEFAULT_TRAILING_WINDOW = 20
PLACEHOLDER_SOURCE = "unavailable"


class ApproximationEngine:
    """Produce a servable snapshot from last-known-good state"""

    def __init__(
        self,
        store: TimeSeriesStore | None,
        staleness_ceiling: timedelta,
        configs: dict[IndicatorKind, IndicatorConfig] | None = None,
        market_timezone: str = "America/New_York",
    ):
        self.store = store
        self.staleness_ceiling = staleness_ceiling
        self.configs = configs or {}
        self.market_tz = ZoneInfo(market_timezone)

    def _history_length(self, kind: IndicatorKind) -> int:
        config = self.configs.get(kind)
        return config.history_length if config else DEFAULT_HISTORY_LENGTH

    def _trailing_window(self, kind: IndicatorKind) -> int:
        config = self.configs.get(kind)
        return config.trailing_window if config else DEFAULT_TRAILING_WINDOW

    async def approximate(
        self,
        kind: IndicatorKind,
        last_known_good: IndicatorSnapshot | None,
        reason: str,
        now: datetime | None = None,
    ) -> IndicatorSnapshot:
        """
        Build a degraded snapshot

        Args:
            kind: Indicator kind
            last_known_good: Most recent authoritative snapshot, if any
            reason: Why the fresh fetch failed (surfaced as `error`)
            now: Current instant (default: utcnow)

        Returns:
            Snapshot with is_approximate=True
        """
        now = now or datetime.now(UTC)

        if last_known_good is None:
            last_known_good = await self._reconstruct(kind, now)

        if last_known_good is not None and last_known_good.value is not None:
            age = last_known_good.age_seconds(now)
            if age <= self.staleness_ceiling.total_seconds():
                logger.warning(
                    f"⚠️  Serving last known {kind.value} value "
                    f"({age / 3600:.1f}h old) after failure: {reason}"
                )
                return last_known_good.model_copy(
                    update={
                        "is_approximate": True,
                        "error": f"Showing last known value: {reason}",
                    }
                )
            logger.warning(
                f"Last known {kind.value} value is {age / 3600:.1f}h old, "
                f"beyond the {self.staleness_ceiling} ceiling"
            )

        logger.error(f"❌ No usable {kind.value} value: {reason}")
        return IndicatorSnapshot(
            indicator_id=kind,
            value=None,
            status=Status.ERROR,
            history=await self._daily_history(kind),
            is_approximate=True,
            fetched_at=now,
            source=last_known_good.source if last_known_good else PLACEHOLDER_SOURCE,
            error=reason,
        )

    async def _daily_history(self, kind: IndicatorKind) -> tuple[HistoryPoint, ...]:
        """Persisted daily values, oldest first (empty if unreadable)"""
        if self.store is None:
            return ()
        try:
            records = await self.store.query_daily(kind, limit=self._history_length(kind))
        except StoreReadFailed as e:
            logger.warning(f"Daily history unavailable for {kind.value}: {e}")
            return ()
        return tuple(HistoryPoint(date=r.date, value=r.value) for r in records)

    async def _reconstruct(self, kind: IndicatorKind, now: datetime) -> IndicatorSnapshot | None:
        """
        Rebuild a last-known-good snapshot from persisted state

        Store read failures count as "no state".
        """
        if self.store is None:
            return None

        today = now.astimezone(self.market_tz).date()
        try:
            intraday = await self.store.query_latest_intraday(kind, today)
            daily = await self.store.query_daily(kind, limit=self._history_length(kind))
        except StoreReadFailed as e:
            logger.warning(f"Cannot reconstruct {kind.value} from store: {e}")
            return None

        if intraday is not None:
            value, status, fetched_at = intraday.value, intraday.status, intraday.timestamp
            prior = [r.value for r in daily if r.date < intraday.date]
        elif daily:
            latest = daily[-1]
            end_of_day = datetime.combine(
                latest.date + timedelta(days=1), time.min, tzinfo=self.market_tz
            ).astimezone(UTC)
            value, status = latest.value, latest.status
            fetched_at = min(latest.updated_at, end_of_day, now)
            prior = [r.value for r in daily[:-1]]
        else:
            return None

        average = trailing_average(prior, self._trailing_window(kind))
        logger.info(f"Reconstructed last known {kind.value} = {value} from store")
        return IndicatorSnapshot(
            indicator_id=kind,
            value=value,
            trailing_average=average,
            status=status,
            change_from_average=change_from_average(value, average),
            history=tuple(HistoryPoint(date=r.date, value=r.value) for r in daily),
            fetched_at=fetched_at,
            source="store",
        )
