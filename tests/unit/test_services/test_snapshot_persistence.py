"""
Unit tests for SnapshotPersistence

Tests saving snapshots to the Redis last-good cache and the store tiers.
"""

from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import StoreWriteFailed
from core.models.indicators import HistoryPoint, IndicatorKind, IndicatorSnapshot, Status, Timeframe
from services.indicator_service.persistence import SnapshotPersistence, snapshot_cache_key
from services.indicator_service.store import INTRADAY_TABLE, SPARKLINE_TABLE

PCR = IndicatorKind.PUT_CALL_RATIO
FETCHED_AT = datetime(2024, 3, 1, 20, 0, tzinfo=UTC)


def make_snapshot(**overrides) -> IndicatorSnapshot:
    fields = {
        "indicator_id": PCR,
        "value": 0.92,
        "trailing_average": 0.85,
        "status": Status.WARNING,
        "change_from_average": 8.2,
        "history": (
            HistoryPoint(date=date(2024, 2, 29), value=0.88),
            HistoryPoint(date=date(2024, 3, 1), value=0.92),
        ),
        "fetched_at": FETCHED_AT,
        "source": "CBOE",
    }
    fields.update(overrides)
    return IndicatorSnapshot(**fields)


@pytest.fixture
def mock_cache():
    """Mock BaseCacheClient"""
    cache = MagicMock()
    cache.set = AsyncMock(return_value=True)
    cache.get = AsyncMock(return_value=None)
    return cache


@pytest.mark.unit
class TestSaveSnapshot:
    """Cache + store write-through"""

    async def test_authoritative_snapshot_saved_everywhere(self, store, memory_db, mock_cache):
        persistence = SnapshotPersistence(store, cache=mock_cache, cache_ttl=timedelta(hours=36))

        assert await persistence.save_snapshot(make_snapshot()) is True

        key, payload = mock_cache.set.call_args[0]
        assert key == "snapshots:put-call-ratio"
        assert mock_cache.set.call_args[1] == {"ttl": timedelta(hours=36)}
        assert IndicatorSnapshot.model_validate_json(payload) == make_snapshot()

        intraday = memory_db.rows(INTRADAY_TABLE)
        assert len(intraday) == 1
        assert intraday[0]["value"] == 0.92
        assert intraday[0]["is_approximate"] == 0

        one_month = await store.query_sparkline(PCR, Timeframe.ONE_MONTH)
        assert [p.value for p in one_month] == [0.92, 0.88]

    async def test_error_snapshot_not_persisted(self, store, memory_db, mock_cache):
        persistence = SnapshotPersistence(store, cache=mock_cache)
        snapshot = make_snapshot(value=None, status=Status.ERROR, is_approximate=True)

        assert await persistence.save_snapshot(snapshot) is True

        mock_cache.set.assert_not_called()
        assert memory_db.upsert_calls == 0

    async def test_approximate_snapshot_skipped_by_default(self, store, memory_db, mock_cache):
        persistence = SnapshotPersistence(store, cache=mock_cache)

        await persistence.save_snapshot(make_snapshot(is_approximate=True))

        mock_cache.set.assert_not_called()
        assert memory_db.upsert_calls == 0

    async def test_approximate_snapshot_flagged_when_enabled(self, store, memory_db, mock_cache):
        persistence = SnapshotPersistence(store, cache=mock_cache, persist_approximate=True)

        await persistence.save_snapshot(make_snapshot(is_approximate=True, source="Yahoo"))

        # Never becomes the last-good fallback
        mock_cache.set.assert_not_called()
        assert memory_db.rows(INTRADAY_TABLE)[0]["is_approximate"] == 1
        sparkline = memory_db.rows(SPARKLINE_TABLE)
        # Only the newest point, in every bucket
        assert {row["date"] for row in sparkline} == {date(2024, 3, 1)}
        assert all(row["is_approximate"] == 1 for row in sparkline)

    async def test_reserved_last_good_not_written_back(self, store, memory_db, mock_cache):
        persistence = SnapshotPersistence(store, cache=mock_cache, persist_approximate=True)
        good = make_snapshot()
        await persistence.save_snapshot(good)
        writes = memory_db.upsert_calls

        degraded = good.model_copy(
            update={"is_approximate": True, "error": "Showing last known value: CBOE down"}
        )
        assert await persistence.save_snapshot(degraded) is True

        assert memory_db.upsert_calls == writes
        assert [row["is_approximate"] for row in memory_db.rows(INTRADAY_TABLE)] == [0]
        assert all(row["is_approximate"] == 0 for row in memory_db.rows(SPARKLINE_TABLE))

    async def test_approximate_never_replaces_authoritative(self, store, memory_db, mock_cache):
        persistence = SnapshotPersistence(store, cache=mock_cache, persist_approximate=True)
        await persistence.save_snapshot(make_snapshot())

        # Live secondary reading landing on the same instant and date
        await persistence.save_snapshot(
            make_snapshot(value=1.1, is_approximate=True, source="Yahoo")
        )

        intraday = memory_db.rows(INTRADAY_TABLE)
        assert [(row["value"], row["is_approximate"]) for row in intraday] == [(0.92, 0)]
        latest = await store.query_sparkline(PCR, Timeframe.ONE_MONTH, limit=1)
        assert (latest[0].value, latest[0].is_approximate) == (0.92, False)

    async def test_store_failure_reported_not_raised(self, mock_cache):
        store = MagicMock()
        store.upsert_intraday = AsyncMock(side_effect=StoreWriteFailed("clickhouse down"))
        persistence = SnapshotPersistence(store, cache=mock_cache)

        assert await persistence.save_snapshot(make_snapshot()) is False
        # Cache write still happened first
        mock_cache.set.assert_called_once()

    async def test_cache_failure_does_not_block_store(self, store, memory_db, mock_cache):
        mock_cache.set.side_effect = ConnectionError("redis down")
        persistence = SnapshotPersistence(store, cache=mock_cache)

        assert await persistence.save_snapshot(make_snapshot()) is True
        assert len(memory_db.rows(INTRADAY_TABLE)) == 1

    async def test_without_store(self, mock_cache):
        persistence = SnapshotPersistence(None, cache=mock_cache)

        assert await persistence.save_snapshot(make_snapshot()) is True
        mock_cache.set.assert_called_once()


@pytest.mark.unit
class TestGetFromCache:
    """Last-good snapshot lookup"""

    async def test_hit(self, mock_cache):
        mock_cache.get.return_value = make_snapshot().model_dump_json()
        persistence = SnapshotPersistence(None, cache=mock_cache)

        snapshot = await persistence.get_from_cache(PCR, now=FETCHED_AT + timedelta(hours=1))

        assert snapshot == make_snapshot()
        mock_cache.get.assert_called_once_with(snapshot_cache_key(PCR))

    async def test_miss(self, mock_cache):
        persistence = SnapshotPersistence(None, cache=mock_cache)
        assert await persistence.get_from_cache(PCR) is None

    async def test_unreadable_payload(self, mock_cache):
        mock_cache.get.return_value = '{"value": "not a snapshot"}'
        persistence = SnapshotPersistence(None, cache=mock_cache)

        assert await persistence.get_from_cache(PCR) is None

    async def test_future_dated_snapshot_ignored(self, mock_cache):
        mock_cache.get.return_value = make_snapshot().model_dump_json()
        persistence = SnapshotPersistence(None, cache=mock_cache)

        assert await persistence.get_from_cache(PCR, now=FETCHED_AT - timedelta(hours=1)) is None

    async def test_cache_error(self, mock_cache):
        mock_cache.get.side_effect = ConnectionError("redis down")
        persistence = SnapshotPersistence(None, cache=mock_cache)

        assert await persistence.get_from_cache(PCR) is None

    async def test_no_cache_configured(self):
        assert await SnapshotPersistence(None).get_from_cache(PCR) is None
