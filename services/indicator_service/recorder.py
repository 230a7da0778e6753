"""
End-of-Day Recorder

Promotes today's latest authoritative intraday observation to the daily
tier. Never fetches upstream; approximate intraday rows are ignored.
Re-running on the same day overwrites the same daily row.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from core.exceptions import NoIntradayData, StoreError
from core.models.indicators import IndicatorKind
from services.indicator_service.store import TimeSeriesStore

logger = logging.getLogger(__name__)


class EndOfDayRecorder:
    """Commit one daily record per indicator for the current market day"""

    def __init__(
        self,
        store: TimeSeriesStore,
        kinds: Iterable[IndicatorKind],
        market_timezone: str = "America/New_York",
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        self.store = store
        self.kinds = list(kinds)
        self.market_tz = ZoneInfo(market_timezone)
        self.clock = clock

    def today(self) -> date:
        """Calendar date in the market timezone"""
        return self.clock().astimezone(self.market_tz).date()

    async def record(self, kind: IndicatorKind, on_date: date) -> None:
        """
        Upsert the daily record of `kind` for `on_date`

        Raises:
            NoIntradayData: No authoritative intraday row exists for the date
            StoreError: Store read or write failed
        """
        latest = await self.store.query_latest_intraday(kind, on_date)
        if latest is None:
            raise NoIntradayData(f"No intraday {kind.value} data for {on_date}")

        await self.store.upsert_daily(kind, on_date, latest.value, latest.status)
        logger.info(
            f"✓ Recorded {kind.value} for {on_date}: {latest.value} ({latest.status.value}, "
            f"observed {latest.timestamp.isoformat()})"
        )

    async def record_today(self, kind: IndicatorKind) -> bool:
        """
        Record today's value of one indicator

        Returns:
            True if the daily record was written
        """
        on_date = self.today()
        try:
            await self.record(kind, on_date)
            return True
        except NoIntradayData as e:
            logger.error(f"❌ {e}")
            return False
        except StoreError as e:
            logger.error(f"❌ Failed to record {kind.value} for {on_date}: {e}", exc_info=True)
            return False

    async def record_all(self) -> bool:
        """
        Record today's value of every indicator

        Returns:
            True only if every indicator was recorded
        """
        results = {kind: await self.record_today(kind) for kind in self.kinds}
        recorded = sum(results.values())

        if recorded == len(results):
            logger.info(f"✅ End-of-day recording complete ({recorded} indicators)")
        else:
            failed = [k.value for k, ok in results.items() if not ok]
            logger.error(f"❌ End-of-day recording incomplete, failed: {', '.join(failed)}")

        return recorded == len(results)
