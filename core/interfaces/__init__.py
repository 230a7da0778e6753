"""Interfaces module - Abstract base classes for storage and upstream sources"""

from .cache import BaseCacheClient
from .database import BaseTimeSeriesDB
from .sources import BaseIndicatorSource

__all__ = [
    "BaseTimeSeriesDB",
    "BaseCacheClient",
    "BaseIndicatorSource",
]
