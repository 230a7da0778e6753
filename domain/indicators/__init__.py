"""
Market sentiment indicators module

Exports:
- classify: reading (+ trailing average) → status band
- Thresholds / DEFAULT_THRESHOLDS: band edges
- change_from_average, trailing_average, vix_percentile: helpers
"""

from domain.indicators.classifier import (
    DEFAULT_THRESHOLDS,
    SAFER_BAND_ON_TIE,
    Thresholds,
    change_from_average,
    classify,
    trailing_average,
    vix_percentile,
)

__all__ = [
    "classify",
    "Thresholds",
    "DEFAULT_THRESHOLDS",
    "SAFER_BAND_ON_TIE",
    "change_from_average",
    "trailing_average",
    "vix_percentile",
]
