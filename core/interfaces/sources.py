"""
Abstract interface for upstream indicator sources

One adapter per provider; each isolates provider-specific parsing and unit
normalization behind fetch_latest().
"""

from abc import ABC, abstractmethod
from typing import Any

from core.models.indicators import IndicatorKind, ObservationBatch


class BaseIndicatorSource(ABC):
    """
    Source adapter interface

    Implementations:
    - FredRestAPI (providers/fred/rest_api.py) - yield-curve spread
    - CboeRestAPI (providers/cboe/rest_api.py) - put/call ratio
    - YahooOptionsSource (providers/yahoo/options.py) - approximate put/call ratio

    Contract:
    - Returns an ObservationBatch ordered oldest first
    - Raises a FetchError subclass on failure (core/exceptions.py)
    - Never writes to the store
    """

    name: str = "base"

    @property
    @abstractmethod
    def supported_kinds(self) -> set[IndicatorKind]:
        """Indicator kinds this source can serve"""

    @abstractmethod
    async def fetch_latest(
        self, kind: IndicatorKind, options: dict[str, Any] | None = None
    ) -> ObservationBatch:
        """
        Fetch the latest observations for `kind`

        Args:
            kind: Indicator kind
            options: Provider-specific options (series_id, limit, ...)

        Returns:
            ObservationBatch

        Raises:
            UpstreamUnreachable, UpstreamBadStatus, UpstreamMalformed, UpstreamEmpty
        """

    def check_kind(self, kind: IndicatorKind) -> None:
        """Raise ValueError if this source cannot serve `kind`"""
        if kind not in self.supported_kinds:
            raise ValueError(f"{self.name} does not provide {kind.value}")

    @abstractmethod
    async def close(self) -> None:
        """Release network resources"""
