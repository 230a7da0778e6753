"""
Indicator Service - Market Sentiment Snapshots

Scheduled/on-demand service that:
1. Fetches put/call ratio (CBOE, Yahoo fallback) and yield-curve spread (FRED)
2. Classifies each reading into normal / warning / danger
3. Degrades to last-known-good values when every source fails
4. Persists to ClickHouse (intraday, daily, sparklines) + caches in Redis
"""

from services.indicator_service.approximation import ApproximationEngine
from services.indicator_service.persistence import SnapshotPersistence
from services.indicator_service.recorder import EndOfDayRecorder
from services.indicator_service.service import IndicatorService, RefreshState
from services.indicator_service.store import TimeSeriesStore

__all__ = [
    "ApproximationEngine",
    "EndOfDayRecorder",
    "IndicatorService",
    "RefreshState",
    "SnapshotPersistence",
    "TimeSeriesStore",
]
