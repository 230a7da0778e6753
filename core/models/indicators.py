"""
Indicator data models

Pydantic models for the indicator pipeline:
- IndicatorObservation: one raw reading from an upstream provider
- ObservationBatch: what a source adapter returns for one fetch
- IndicatorSnapshot: the "current" view served to clients
- IntradayRecord / DailyRecord / SparklinePoint: the three persisted tiers
"""

import datetime as dt
import math
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class IndicatorKind(str, Enum):
    """Market-sentiment indicators tracked by the pipeline"""

    PUT_CALL_RATIO = "put-call-ratio"
    YIELD_CURVE_SPREAD = "yield-curve-spread"
    VIX = "vix"


class Status(str, Enum):
    """Discrete status band produced by the classifier"""

    NORMAL = "normal"
    WARNING = "warning"
    DANGER = "danger"
    ERROR = "error"


class Timeframe(str, Enum):
    """Sparkline buckets"""

    ONE_MONTH = "1m"
    THREE_MONTHS = "3m"
    SIX_MONTHS = "6m"
    ONE_YEAR = "1y"
    TWO_YEARS = "2y"
    FIVE_YEARS = "5y"


# Retention window per bucket (calendar days)
DEFAULT_RETENTION_DAYS: dict[Timeframe, int] = {
    Timeframe.ONE_MONTH: 30,
    Timeframe.THREE_MONTHS: 90,
    Timeframe.SIX_MONTHS: 180,
    Timeframe.ONE_YEAR: 365,
    Timeframe.TWO_YEARS: 730,
    Timeframe.FIVE_YEARS: 1825,
}


class IndicatorObservation(BaseModel):
    """
    One raw or derived indicator reading

    Immutable once created. `value` is None when the provider published a
    placeholder (e.g. FRED's "." for a market holiday).
    """

    model_config = ConfigDict(frozen=True)

    indicator_id: IndicatorKind = Field(description="Indicator this reading belongs to")
    value: Decimal | None = Field(description="Reading in normalized units")
    timestamp: datetime = Field(description="Observation instant (UTC)")
    source_label: str = Field(description="Human readable provider name")

    @property
    def observation_date(self) -> dt.date:
        return self.timestamp.date()


class ObservationBatch(BaseModel):
    """
    Result of one source adapter fetch

    Observations are ordered oldest first; the last one is the latest reading.
    """

    model_config = ConfigDict(frozen=True)

    indicator_id: IndicatorKind
    observations: tuple[IndicatorObservation, ...] = Field(default_factory=tuple)
    source_label: str
    trailing_average: float | None = Field(
        default=None, description="Provider-supplied trailing average, if any"
    )
    is_approximate: bool = Field(
        default=False, description="Derived by a secondary source, not an authoritative reading"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Indicator-specific extras passed through to the response (camelCase keys)",
    )

    @property
    def valid_observations(self) -> list[IndicatorObservation]:
        """Observations carrying a value"""
        return [o for o in self.observations if o.value is not None]

    @property
    def latest(self) -> IndicatorObservation | None:
        """Most recent observation with a value"""
        valid = self.valid_observations
        return valid[-1] if valid else None


class HistoryPoint(BaseModel):
    """One `{date, value}` point of a snapshot history or sparkline"""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    value: float


class IndicatorSnapshot(BaseModel):
    """
    The current, servable view of an indicator

    Owned by the IndicatorService: rebuilt on every refresh, never mutated
    (use model_copy(update=...) to derive a variant). History is ordered
    oldest first, most recent last.
    """

    model_config = ConfigDict(frozen=True)

    indicator_id: IndicatorKind
    value: float | None
    trailing_average: float | None = None
    status: Status
    change_from_average: float | None = Field(default=None, description="Signed percent")
    history: tuple[HistoryPoint, ...] = Field(default_factory=tuple)
    is_approximate: bool = False
    fetched_at: datetime
    source: str
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    def age_seconds(self, now: datetime) -> float:
        """Seconds elapsed since the snapshot was built"""
        return (now - self.fetched_at).total_seconds()

    def to_response(self) -> dict:
        """
        Serialize to the dashboard JSON shape

        `change` and `error` are omitted when absent; `details` (volumes, VIX
        term structure) are merged in at the top level.
        """
        body = {
            "value": self.value,
            "trailingAverage": self.trailing_average,
            "status": self.status.value,
            "history": [{"date": p.date.isoformat(), "value": p.value} for p in self.history],
            "isApproximate": self.is_approximate,
            "source": self.source,
            "lastUpdated": self.fetched_at.isoformat(),
        }
        body.update(self.details)
        change = format_change(self.change_from_average)
        if change is not None:
            body["change"] = change
        if self.error:
            body["error"] = self.error
        return body


def format_change(percent: float | None) -> str | None:
    """Format a signed percentage, e.g. -13.333 → "-13.3%" """
    if percent is None or math.isnan(percent):
        return None
    return f"{percent:+.1f}%"


class IntradayRecord(BaseModel):
    """Append-only same-day observation, keyed on (indicator_id, timestamp)"""

    indicator_id: IndicatorKind
    timestamp: datetime
    date: dt.date = Field(description="Market calendar date of the timestamp")
    value: float
    status: Status
    is_approximate: bool = False

    def to_row(self) -> dict:
        """Convert to dictionary for database insertion"""
        return {
            "indicator_id": self.indicator_id.value,
            "timestamp": self.timestamp,
            "date": self.date,
            "value": self.value,
            "status": self.status.value,
            "is_approximate": 1 if self.is_approximate else 0,
        }


class DailyRecord(BaseModel):
    """Committed end-of-day value, one per (indicator_id, date)"""

    indicator_id: IndicatorKind
    date: dt.date
    value: float
    status: Status
    created_at: datetime
    updated_at: datetime

    def to_row(self) -> dict:
        """Convert to dictionary for database insertion"""
        return {
            "indicator_id": self.indicator_id.value,
            "date": self.date,
            "value": self.value,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class SparklinePoint(BaseModel):
    """Chart point, unique per (indicator_id, date, timeframe)"""

    indicator_id: IndicatorKind
    date: dt.date
    timeframe: Timeframe
    value: float
    is_approximate: bool = False

    def to_row(self) -> dict:
        """Convert to dictionary for database insertion"""
        return {
            "indicator_id": self.indicator_id.value,
            "date": self.date,
            "timeframe": self.timeframe.value,
            "value": self.value,
            "is_approximate": 1 if self.is_approximate else 0,
        }
