"""
Indicator classifier

Pure mapping of an indicator reading (and optionally its trailing average)
to a discrete status band. No I/O, no side effects.

Bands:
- Yield-curve spread (decimal units, 0.01 = 1%):
    spread < 0          → danger (inversion)
    spread < 0.001      → warning
    otherwise           → normal
- Put/call ratio with a trailing average (banded relative to the average):
    value <= avg × 1.10 → normal
    value <= avg × 1.25 → warning
    otherwise           → danger
- Put/call ratio without a usable average (fixed bands):
    value <= 0.7        → normal
    value <= 1.0        → warning
    otherwise           → danger
- VIX (index points, absolute):
    vix <= 20           → normal
    vix <= 30           → warning
    otherwise           → danger

Tie-break: a value exactly at a threshold belongs to the safer band
(SAFER_BAND_ON_TIE).
"""

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import numpy as np

from core.models.indicators import IndicatorKind, Status

# A value exactly on a band edge is classified into the safer of the two bands
SAFER_BAND_ON_TIE = True


@dataclass(frozen=True)
class Thresholds:
    """Band edges for every indicator kind (overridable from indicators.yaml)"""

    spread_danger: float = 0.0
    spread_warning: float = 0.001
    average_warning_band: float = 0.10
    average_danger_band: float = 0.25
    ratio_warning: float = 0.7
    ratio_danger: float = 1.0
    vix_warning: float = 20.0
    vix_danger: float = 30.0


DEFAULT_THRESHOLDS = Thresholds()


def _worse_when_above(value: float, edge: float) -> bool:
    """True if `value` crosses an upper edge (higher is worse)"""
    return value > edge if SAFER_BAND_ON_TIE else value >= edge


def _worse_when_below(value: float, edge: float) -> bool:
    """True if `value` crosses a lower edge (lower is worse)"""
    return value < edge if SAFER_BAND_ON_TIE else value <= edge


def _is_missing(value: float | None) -> bool:
    return value is None or math.isnan(value)


def classify_yield_curve(
    value: float, trailing_average: float | None, thresholds: Thresholds
) -> Status:
    """Spread bands are absolute; the trailing average is not used"""
    if _worse_when_below(value, thresholds.spread_danger):
        return Status.DANGER
    if _worse_when_below(value, thresholds.spread_warning):
        return Status.WARNING
    return Status.NORMAL


def classify_put_call(
    value: float, trailing_average: float | None, thresholds: Thresholds
) -> Status:
    """Relative to the trailing average when one exists, fixed bands otherwise"""
    if _is_missing(trailing_average) or trailing_average <= 0:
        warning_edge = thresholds.ratio_warning
        danger_edge = thresholds.ratio_danger
    else:
        warning_edge = trailing_average * (1 + thresholds.average_warning_band)
        danger_edge = trailing_average * (1 + thresholds.average_danger_band)

    if _worse_when_above(value, danger_edge):
        return Status.DANGER
    if _worse_when_above(value, warning_edge):
        return Status.WARNING
    return Status.NORMAL


def classify_vix(
    value: float, trailing_average: float | None, thresholds: Thresholds
) -> Status:
    """VIX bands are absolute index levels"""
    if _worse_when_above(value, thresholds.vix_danger):
        return Status.DANGER
    if _worse_when_above(value, thresholds.vix_warning):
        return Status.WARNING
    return Status.NORMAL


_CLASSIFIERS: dict[IndicatorKind, Callable[[float, float | None, Thresholds], Status]] = {
    IndicatorKind.YIELD_CURVE_SPREAD: classify_yield_curve,
    IndicatorKind.PUT_CALL_RATIO: classify_put_call,
    IndicatorKind.VIX: classify_vix,
}


def classify(
    value: float | None,
    trailing_average: float | None,
    kind: IndicatorKind,
    thresholds: Thresholds | None = None,
) -> Status:
    """
    Classify an indicator reading

    Args:
        value: Current reading (None → error)
        trailing_average: Trailing average of the indicator, if known
        kind: Indicator kind
        thresholds: Band edges (default: DEFAULT_THRESHOLDS)

    Returns:
        Status band

    Example:
        >>> classify(-0.002, None, IndicatorKind.YIELD_CURVE_SPREAD)
        <Status.DANGER: 'danger'>
        >>> classify(0.65, 0.75, IndicatorKind.PUT_CALL_RATIO)
        <Status.NORMAL: 'normal'>
    """
    if _is_missing(value):
        return Status.ERROR

    classifier = _CLASSIFIERS.get(IndicatorKind(kind))
    if classifier is None:
        raise ValueError(f"No classifier registered for {kind}")

    return classifier(float(value), trailing_average, thresholds or DEFAULT_THRESHOLDS)


def change_from_average(value: float | None, trailing_average: float | None) -> float | None:
    """
    Signed percent change of `value` from its trailing average

    Returns None when either input is missing or the average is zero.

    Example:
        >>> round(change_from_average(0.65, 0.75), 1)
        -13.3
    """
    if _is_missing(value) or _is_missing(trailing_average) or trailing_average == 0:
        return None
    return (value - trailing_average) / abs(trailing_average) * 100


def trailing_average(values: Sequence[float], window: int) -> float | None:
    """Simple moving average of the last `window` values (None if empty)"""
    recent = np.array([v for v in values if not _is_missing(v)][-window:], dtype=float)
    if recent.size == 0:
        return None
    return float(np.mean(recent))


# Long-run VIX range used to place a reading (all-time low ~9, crisis peaks ~80)
VIX_HISTORICAL_MIN = 9.0
VIX_HISTORICAL_MAX = 80.0


def vix_percentile(value: float | None) -> int | None:
    """
    Position of a VIX reading within its long-run range, 0-100

    Example:
        >>> vix_percentile(44.5)
        50
    """
    if _is_missing(value):
        return None
    position = (value - VIX_HISTORICAL_MIN) / (VIX_HISTORICAL_MAX - VIX_HISTORICAL_MIN) * 100
    return int(min(100, max(0, round(position))))
