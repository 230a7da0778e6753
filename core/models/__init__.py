"""Models module - Pydantic data models"""

from .indicators import (
    DailyRecord,
    HistoryPoint,
    IndicatorKind,
    IndicatorObservation,
    IndicatorSnapshot,
    IntradayRecord,
    ObservationBatch,
    SparklinePoint,
    Status,
    Timeframe,
)

__all__ = [
    "IndicatorKind",
    "Status",
    "Timeframe",
    "IndicatorObservation",
    "ObservationBatch",
    "HistoryPoint",
    "IndicatorSnapshot",
    "IntradayRecord",
    "DailyRecord",
    "SparklinePoint",
]
