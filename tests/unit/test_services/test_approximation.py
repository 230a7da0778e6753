"""
Unit tests for the ApproximationEngine

Degraded snapshots from last-known-good state, never invented values.
"""

from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import StoreReadFailed
from core.models.indicators import HistoryPoint, IndicatorKind, IndicatorSnapshot, Status
from services.indicator_service.approximation import ApproximationEngine

PCR = IndicatorKind.PUT_CALL_RATIO
SPREAD = IndicatorKind.YIELD_CURVE_SPREAD
NOW = datetime(2024, 3, 1, 20, 0, tzinfo=UTC)


def last_good(age: timedelta, **overrides) -> IndicatorSnapshot:
    fields = {
        "indicator_id": PCR,
        "value": 0.92,
        "trailing_average": 0.85,
        "status": Status.WARNING,
        "history": (HistoryPoint(date=date(2024, 3, 1), value=0.92),),
        "fetched_at": NOW - age,
        "source": "CBOE",
    }
    fields.update(overrides)
    return IndicatorSnapshot(**fields)


@pytest.mark.unit
class TestLastKnownGood:
    """In-memory last-known-good snapshot"""

    async def test_recent_value_served_as_approximate(self):
        engine = ApproximationEngine(None, staleness_ceiling=timedelta(hours=24))
        previous = last_good(timedelta(hours=3))

        snapshot = await engine.approximate(PCR, previous, "cboe: timeout", now=NOW)

        assert snapshot.value == 0.92
        assert snapshot.status == Status.WARNING
        assert snapshot.is_approximate is True
        assert snapshot.fetched_at == previous.fetched_at
        assert snapshot.source == "CBOE"
        assert "cboe: timeout" in snapshot.error
        # Original is untouched
        assert previous.is_approximate is False

    async def test_value_at_ceiling_still_served(self):
        engine = ApproximationEngine(None, staleness_ceiling=timedelta(hours=24))

        snapshot = await engine.approximate(PCR, last_good(timedelta(hours=24)), "down", now=NOW)

        assert snapshot.value == 0.92

    async def test_stale_value_becomes_placeholder(self):
        engine = ApproximationEngine(None, staleness_ceiling=timedelta(hours=24))

        snapshot = await engine.approximate(PCR, last_good(timedelta(hours=30)), "down", now=NOW)

        assert snapshot.value is None
        assert snapshot.status == Status.ERROR
        assert snapshot.is_approximate is True
        assert snapshot.source == "CBOE"
        assert snapshot.error == "down"
        assert snapshot.fetched_at == NOW

    async def test_nothing_known(self):
        engine = ApproximationEngine(None, staleness_ceiling=timedelta(hours=24))

        snapshot = await engine.approximate(SPREAD, None, "fred: 503", now=NOW)

        assert snapshot.value is None
        assert snapshot.status == Status.ERROR
        assert snapshot.source == "unavailable"
        assert snapshot.history == ()
        assert snapshot.to_response()["error"] == "fred: 503"


@pytest.mark.unit
class TestReconstructFromStore:
    """Last-known-good rebuilt from persisted tiers"""

    async def test_from_todays_intraday(self, store):
        await store.upsert_daily(PCR, date(2024, 2, 28), 0.8, Status.NORMAL)
        await store.upsert_daily(PCR, date(2024, 2, 29), 0.9, Status.NORMAL)
        await store.upsert_intraday(PCR, NOW - timedelta(hours=2), 1.1, Status.DANGER)
        engine = ApproximationEngine(store, staleness_ceiling=timedelta(hours=24))

        snapshot = await engine.approximate(PCR, None, "cboe: 500", now=NOW)

        assert snapshot.value == 1.1
        assert snapshot.status == Status.DANGER
        assert snapshot.is_approximate is True
        assert snapshot.trailing_average == pytest.approx(0.85)
        assert snapshot.fetched_at == NOW - timedelta(hours=2)
        assert [p.value for p in snapshot.history] == [0.8, 0.9]

    async def test_approximate_intraday_rows_not_reused(self, store):
        await store.upsert_intraday(
            PCR, NOW - timedelta(hours=1), 1.4, Status.DANGER, is_approximate=True
        )
        engine = ApproximationEngine(store, staleness_ceiling=timedelta(hours=24))

        snapshot = await engine.approximate(PCR, None, "down", now=NOW)

        assert snapshot.value is None

    async def test_from_recent_daily_record(self, store):
        await store.upsert_daily(SPREAD, date(2024, 2, 29), 0.0041, Status.NORMAL)
        await store.upsert_daily(SPREAD, date(2024, 3, 1), 0.0035, Status.NORMAL)
        engine = ApproximationEngine(store, staleness_ceiling=timedelta(hours=24))

        snapshot = await engine.approximate(SPREAD, None, "fred: timeout", now=NOW)

        assert snapshot.value == 0.0035
        assert snapshot.source == "store"
        assert snapshot.is_approximate is True

    async def test_old_daily_record_gives_placeholder_with_history(self, store):
        await store.upsert_daily(SPREAD, date(2024, 1, 2), 0.0041, Status.NORMAL)
        await store.upsert_daily(SPREAD, date(2024, 1, 3), 0.0039, Status.NORMAL)
        engine = ApproximationEngine(store, staleness_ceiling=timedelta(hours=24))

        snapshot = await engine.approximate(SPREAD, None, "fred: timeout", now=NOW)

        # Record was written "now" but describes a market day long past
        assert snapshot.value is None
        assert snapshot.status == Status.ERROR
        assert [p.value for p in snapshot.history] == [0.0041, 0.0039]

    async def test_unreadable_store(self):
        store = MagicMock()
        store.query_latest_intraday = AsyncMock(side_effect=StoreReadFailed("down"))
        store.query_daily = AsyncMock(side_effect=StoreReadFailed("down"))
        engine = ApproximationEngine(store, staleness_ceiling=timedelta(hours=24))

        snapshot = await engine.approximate(PCR, None, "cboe: 500", now=NOW)

        assert snapshot.value is None
        assert snapshot.history == ()
