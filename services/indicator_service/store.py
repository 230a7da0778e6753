"""
Time-series store access layer

Typed per-indicator operations over the three persisted tiers:
- indicator_intraday:   every refreshed observation, keyed (indicator_id, timestamp)
- indicator_daily:      one committed value per (indicator_id, date)
- indicator_sparklines: chart points per (indicator_id, timeframe, date)

All writes are upserts, so a retried write never duplicates data. Backend
failures surface as StoreWriteFailed / StoreReadFailed.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from config.settings import get_settings
from core.exceptions import StoreReadFailed, StoreWriteFailed
from core.interfaces.database import BaseTimeSeriesDB
from core.models.indicators import (
    DEFAULT_RETENTION_DAYS,
    DailyRecord,
    HistoryPoint,
    IndicatorKind,
    IntradayRecord,
    SparklinePoint,
    Status,
    Timeframe,
)

logger = logging.getLogger(__name__)

INTRADAY_TABLE = "indicator_intraday"
DAILY_TABLE = "indicator_daily"
SPARKLINE_TABLE = "indicator_sparklines"

INTRADAY_KEY = ("indicator_id", "timestamp")
DAILY_KEY = ("indicator_id", "date")
SPARKLINE_KEY = ("indicator_id", "timeframe", "date")


def _as_utc(value: datetime) -> datetime:
    """ClickHouse returns naive datetimes for UTC columns"""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


class TimeSeriesStore:
    """Indicator-aware facade over a BaseTimeSeriesDB"""

    def __init__(
        self,
        db: BaseTimeSeriesDB,
        retention_days: dict[Timeframe, int] | None = None,
        market_timezone: str | None = None,
    ):
        settings = get_settings()
        self.db = db
        self.retention_days = retention_days or {
            Timeframe(k): v for k, v in settings.SPARKLINE_TIMEFRAMES.items()
        } or dict(DEFAULT_RETENTION_DAYS)
        self.market_tz = ZoneInfo(market_timezone or settings.MARKET_TIMEZONE)

    def market_date(self, timestamp: datetime) -> date:
        """Calendar date of `timestamp` in the market timezone"""
        return _as_utc(timestamp).astimezone(self.market_tz).date()

    async def _upsert(self, table: str, rows: list[dict[str, Any]], key: tuple[str, ...]) -> int:
        try:
            return await self.db.upsert_rows(table, rows, key)
        except Exception as e:
            raise StoreWriteFailed(f"Upsert into {table} failed: {e}") from e

    async def _select(self, table: str, **query) -> list[dict[str, Any]]:
        try:
            return await self.db.select_rows(table, **query)
        except Exception as e:
            raise StoreReadFailed(f"Query on {table} failed: {e}") from e

    # ============================================
    # INTRADAY
    # ============================================
    async def upsert_intraday(
        self,
        kind: IndicatorKind,
        timestamp: datetime,
        value: float,
        status: Status,
        is_approximate: bool = False,
    ) -> IntradayRecord:
        """
        Record one observation of the current day

        An approximate value never replaces an authoritative row at the same
        timestamp; the existing row is returned instead.
        """
        record = IntradayRecord(
            indicator_id=kind,
            timestamp=_as_utc(timestamp),
            date=self.market_date(timestamp),
            value=value,
            status=status,
            is_approximate=is_approximate,
        )
        if is_approximate:
            existing = await self._select(
                INTRADAY_TABLE,
                where={"indicator_id": kind.value, "timestamp": record.timestamp, "is_approximate": 0},
                limit=1,
            )
            if existing:
                logger.debug(f"Keeping authoritative intraday {kind.value} {record.timestamp.isoformat()}")
                return IntradayRecord(**{**existing[0], "timestamp": _as_utc(existing[0]["timestamp"])})

        await self._upsert(INTRADAY_TABLE, [record.to_row()], INTRADAY_KEY)
        logger.debug(f"✓ Intraday {kind.value} {record.timestamp.isoformat()} = {value}")
        return record

    async def query_latest_intraday(
        self, kind: IndicatorKind, on_date: date, include_approximate: bool = False
    ) -> IntradayRecord | None:
        """Most recent intraday record for `on_date` (authoritative only by default)"""
        where: dict[str, Any] = {"indicator_id": kind.value, "date": on_date}
        if not include_approximate:
            where["is_approximate"] = 0

        rows = await self._select(
            INTRADAY_TABLE, where=where, order_by="timestamp", descending=True, limit=1
        )
        if not rows:
            return None

        row = rows[0]
        return IntradayRecord(
            indicator_id=row["indicator_id"],
            timestamp=_as_utc(row["timestamp"]),
            date=row["date"],
            value=row["value"],
            status=row["status"],
            is_approximate=bool(row.get("is_approximate", 0)),
        )

    # ============================================
    # DAILY
    # ============================================
    async def upsert_daily(
        self, kind: IndicatorKind, on_date: date, value: float, status: Status
    ) -> DailyRecord:
        """
        Commit the value for `on_date` (last write wins)

        created_at survives a re-upsert of the same date when it can be read.
        """
        now = datetime.now(UTC)
        created_at = now
        try:
            existing = await self._select(
                DAILY_TABLE, where={"indicator_id": kind.value, "date": on_date}, limit=1
            )
            if existing and existing[0].get("created_at"):
                created_at = _as_utc(existing[0]["created_at"])
        except StoreReadFailed as e:
            logger.warning(f"Could not read existing daily {kind.value} {on_date}: {e}")

        record = DailyRecord(
            indicator_id=kind,
            date=on_date,
            value=value,
            status=status,
            created_at=created_at,
            updated_at=now,
        )
        await self._upsert(DAILY_TABLE, [record.to_row()], DAILY_KEY)
        logger.debug(f"✓ Daily {kind.value} {on_date} = {value}")
        return record

    async def upsert_daily_many(self, records: Iterable[DailyRecord]) -> int:
        """Bulk daily upsert (backfill)"""
        rows = [r.to_row() for r in records]
        if not rows:
            return 0
        return await self._upsert(DAILY_TABLE, rows, DAILY_KEY)

    async def query_daily(
        self,
        kind: IndicatorKind,
        start: date | None = None,
        end: date | None = None,
        limit: int | None = None,
    ) -> list[DailyRecord]:
        """
        Daily records in [start, end], ordered by date ascending

        With `limit`, the most recent `limit` records of the range are returned.
        """
        rows = await self._select(
            DAILY_TABLE,
            where={"indicator_id": kind.value},
            ranges={"date": (start, end)} if start or end else None,
            order_by="date",
            descending=limit is not None,
            limit=limit,
        )
        records = [
            DailyRecord(
                indicator_id=row["indicator_id"],
                date=row["date"],
                value=row["value"],
                status=row["status"],
                created_at=_as_utc(row["created_at"]),
                updated_at=_as_utc(row["updated_at"]),
            )
            for row in rows
        ]
        records.sort(key=lambda r: r.date)
        return records

    # ============================================
    # SPARKLINES
    # ============================================
    async def upsert_sparkline_point(
        self,
        kind: IndicatorKind,
        on_date: date,
        timeframe: Timeframe,
        value: float,
        is_approximate: bool = False,
    ) -> SparklinePoint:
        point = SparklinePoint(
            indicator_id=kind,
            date=on_date,
            timeframe=timeframe,
            value=value,
            is_approximate=is_approximate,
        )
        await self._upsert(SPARKLINE_TABLE, [point.to_row()], SPARKLINE_KEY)
        return point

    async def write_sparkline(
        self,
        kind: IndicatorKind,
        points: Iterable[HistoryPoint],
        today: date,
        is_approximate: bool = False,
    ) -> int:
        """
        Fan points into every timeframe whose retention window contains them

        A point dated `today - days` or later belongs to a bucket retaining `days`.
        Approximate points never replace authoritative ones.

        Returns:
            Number of sparkline rows written
        """
        points = list(points)
        protected: set[tuple[str, date]] = set()
        if is_approximate and points:
            existing = await self._select(
                SPARKLINE_TABLE,
                where={"indicator_id": kind.value, "is_approximate": 0},
                ranges={"date": (min(p.date for p in points), max(p.date for p in points))},
            )
            protected = {(row["timeframe"], row["date"]) for row in existing}

        rows = []
        for timeframe, days in self.retention_days.items():
            cutoff = today - timedelta(days=days)
            rows.extend(
                SparklinePoint(
                    indicator_id=kind,
                    date=p.date,
                    timeframe=timeframe,
                    value=p.value,
                    is_approximate=is_approximate,
                ).to_row()
                for p in points
                if cutoff <= p.date <= today and (timeframe.value, p.date) not in protected
            )

        if not rows:
            return 0

        count = await self._upsert(SPARKLINE_TABLE, rows, SPARKLINE_KEY)
        logger.debug(f"✓ Sparkline {kind.value}: {count} rows from {len(points)} points")
        return count

    async def query_sparkline(
        self,
        kind: IndicatorKind,
        timeframe: Timeframe,
        limit: int | None = None,
        since: date | None = None,
    ) -> list[SparklinePoint]:
        """Sparkline points of one bucket (optionally dated `since` or later), date descending"""
        rows = await self._select(
            SPARKLINE_TABLE,
            where={"indicator_id": kind.value, "timeframe": timeframe.value},
            ranges={"date": (since, None)} if since else None,
            order_by="date",
            descending=True,
            limit=limit,
        )
        return [
            SparklinePoint(
                indicator_id=row["indicator_id"],
                date=row["date"],
                timeframe=row["timeframe"],
                value=row["value"],
                is_approximate=bool(row.get("is_approximate", 0)),
            )
            for row in rows
        ]
