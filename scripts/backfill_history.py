#!/usr/bin/env python3
"""
Backfill yield-curve spread history from FRED into the daily + sparkline tiers

Idempotent: every row is an upsert keyed on its date.

Usage:
    python scripts/backfill_history.py
    python scripts/backfill_history.py --limit 365
"""

import argparse
import asyncio
import sys
from datetime import UTC, datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.loader import load_indicators_config
from config.settings import get_settings
from core.exceptions import FetchError, StoreError
from core.models.indicators import DailyRecord, HistoryPoint, IndicatorKind
from core.utils.logging import setup_logging
from domain.indicators.classifier import classify, trailing_average
from factory.client_factory import create_indicator_source, create_timeseries_db
from services.indicator_service.store import TimeSeriesStore

logger = setup_logging("backfill_history", get_settings().LOG_LEVEL)

DEFAULT_LIMIT = 1825  # ~5 years of FRED observations


def build_daily_records(kind, observations, thresholds, trailing_window: int) -> list[DailyRecord]:
    """
    Classify each observation against the trailing average of its predecessors

    Args:
        observations: Oldest first
    """
    now = datetime.now(UTC)
    records = []
    values: list[float] = []
    for observation in observations:
        value = float(observation.value)
        average = trailing_average(values, trailing_window)
        records.append(
            DailyRecord(
                indicator_id=kind,
                date=observation.observation_date,
                value=value,
                status=classify(value, average, kind, thresholds),
                created_at=now,
                updated_at=now,
            )
        )
        values.append(value)
    return records


async def backfill(limit: int) -> bool:
    kind = IndicatorKind.YIELD_CURVE_SPREAD
    config = load_indicators_config()[kind]

    source = create_indicator_source("fred")
    db = create_timeseries_db()
    try:
        await db.connect()
        store = TimeSeriesStore(db)

        logger.info(f"Fetching {limit} FRED observations for {kind.value}...")
        batch = await source.fetch_latest(kind, {**config.fetch_options, "limit": limit})
        observations = batch.valid_observations
        logger.info(
            f"✓ Fetched {len(observations)} observations "
            f"({observations[0].observation_date} → {observations[-1].observation_date})"
        )

        records = build_daily_records(
            kind, observations, config.thresholds.to_domain(), config.trailing_window
        )
        daily_count = await store.upsert_daily_many(records)
        logger.info(f"✓ Upserted {daily_count} daily records")

        today = store.market_date(datetime.now(UTC))
        points = [HistoryPoint(date=r.date, value=r.value) for r in records]
        sparkline_count = await store.write_sparkline(kind, points, today)
        logger.info(f"✓ Upserted {sparkline_count} sparkline points")

        logger.info("✅ Backfill complete")
        return True

    except (FetchError, StoreError) as e:
        logger.error(f"❌ Backfill failed: {e}", exc_info=True)
        return False

    finally:
        await source.close()
        await db.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill yield-curve spread history")
    parser.add_argument("--limit", type=int, default=DEFAULT_LIMIT, help="Observations to fetch")
    args = parser.parse_args()

    return 0 if asyncio.run(backfill(args.limit)) else 1


if __name__ == "__main__":
    sys.exit(main())
