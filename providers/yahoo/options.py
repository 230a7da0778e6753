"""
Yahoo Finance options-chain source (secondary put/call ratio).

Sums put and call volume over the nearest SPY expirations. The result is an
equity-options proxy for the CBOE total ratio, so every batch is flagged
approximate. The summed volumes travel with the batch.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import yfinance as yf

from config.settings import get_settings
from core.exceptions import UpstreamEmpty, UpstreamUnreachable
from core.interfaces.sources import BaseIndicatorSource
from core.models.indicators import IndicatorKind, IndicatorObservation, ObservationBatch

logger = logging.getLogger(__name__)

SOURCE_LABEL = "Yahoo Finance (approximate)"


def _column_total(frame: Any, column: str) -> float:
    """Sum a volume column, treating missing values as zero"""
    if frame is None or column not in frame:
        return 0.0
    return float(frame[column].fillna(0).sum())


class YahooOptionsSource(BaseIndicatorSource):
    """
    yfinance-backed put/call approximation

    yfinance is synchronous; chain downloads run in a worker thread.
    """

    name = "yahoo"

    def __init__(self, ticker_factory: Callable[[str], Any] = yf.Ticker):
        settings = get_settings()
        self.symbol = settings.YAHOO_OPTIONS_SYMBOL
        self.max_expirations = settings.YAHOO_MAX_EXPIRATIONS
        self._ticker_factory = ticker_factory
        logger.info(f"YahooOptionsSource initialized ({self.symbol})")

    @property
    def supported_kinds(self) -> set[IndicatorKind]:
        return {IndicatorKind.PUT_CALL_RATIO}

    def _volume_totals(self, symbol: str, max_expirations: int) -> tuple[float, float, int]:
        """Blocking: (put volume, call volume, expirations read)"""
        ticker = self._ticker_factory(symbol)
        expirations = list(ticker.options or [])[:max_expirations]

        put_volume = 0.0
        call_volume = 0.0
        read = 0
        for expiration in expirations:
            try:
                chain = ticker.option_chain(expiration)
            except Exception as e:
                logger.warning(f"Failed to fetch {symbol} options for {expiration}: {e}")
                continue
            put_volume += _column_total(chain.puts, "volume")
            call_volume += _column_total(chain.calls, "volume")
            read += 1

        return put_volume, call_volume, read

    async def fetch_latest(
        self, kind: IndicatorKind, options: dict[str, Any] | None = None
    ) -> ObservationBatch:
        """
        Compute put volume / call volume across the nearest expirations

        Args:
            kind: Must be put-call-ratio
            options: symbol, max_expirations (defaults from sources.yaml)

        Returns:
            ObservationBatch with one approximate observation
        """
        self.check_kind(kind)
        options = options or {}
        symbol = options.get("symbol") or self.symbol
        max_expirations = int(options.get("max_expirations") or self.max_expirations)

        try:
            put_volume, call_volume, read = await asyncio.to_thread(
                self._volume_totals, symbol, max_expirations
            )
        except Exception as e:
            raise UpstreamUnreachable(f"Yahoo options request failed: {e}", source=self.name) from e

        if read == 0 or call_volume <= 0:
            raise UpstreamEmpty(
                f"No usable {symbol} option volume ({read} expirations read)", source=self.name
            )

        ratio = Decimal(str(round(put_volume / call_volume, 4)))
        logger.info(
            f"Approximated put/call ratio {ratio} from {read} {symbol} expirations "
            f"(puts={put_volume:.0f}, calls={call_volume:.0f})"
        )

        observation = IndicatorObservation(
            indicator_id=kind,
            value=ratio,
            timestamp=datetime.now(UTC),
            source_label=SOURCE_LABEL,
        )
        return ObservationBatch(
            indicator_id=kind,
            observations=(observation,),
            source_label=SOURCE_LABEL,
            is_approximate=True,
            details={
                "putsVolume": int(put_volume),
                "callsVolume": int(call_volume),
                "totalVolume": int(put_volume + call_volume),
            },
        )

    async def close(self) -> None:
        """Nothing to release (yfinance manages its own session)"""
