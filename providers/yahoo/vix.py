"""
Yahoo Finance source for the CBOE Volatility Index (VIX).

Daily ^VIX closes become the observation batch; the response extras carry
the previous close, the long-run percentile and the volatility term
structure (1, 3 and 6 month indices).
"""

import asyncio
import logging
import math
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo

import yfinance as yf

from config.settings import get_settings
from core.exceptions import UpstreamEmpty, UpstreamUnreachable
from core.interfaces.sources import BaseIndicatorSource
from core.models.indicators import IndicatorKind, IndicatorObservation, ObservationBatch
from domain.indicators.classifier import vix_percentile

logger = logging.getLogger(__name__)

SOURCE_LABEL = "Yahoo Finance"
TERMS = ("oneMonth", "threeMonth", "sixMonth")

# Index close (US/Eastern) used as the observation timestamp
SESSION_CLOSE = time(16, 15)


def _closes(frame: Any) -> list[tuple[date, float]]:
    """(session date, close) pairs from a yfinance history frame, NaNs dropped"""
    if frame is None or "Close" not in frame:
        return []
    closes = []
    for index, close in frame["Close"].items():
        if close is None or not math.isfinite(close):
            continue
        session = index.date() if hasattr(index, "date") else index
        closes.append((session, float(close)))
    closes.sort(key=lambda c: c[0])
    return closes


class YahooVixSource(BaseIndicatorSource):
    """
    yfinance-backed VIX level and term structure

    yfinance is synchronous; downloads run in a worker thread.
    """

    name = "yahoo_vix"

    def __init__(self, ticker_factory: Callable[[str], Any] = yf.Ticker):
        settings = get_settings()
        self.symbol = settings.YAHOO_VIX_SYMBOL
        self.lookback_days = settings.YAHOO_VIX_LOOKBACK_DAYS
        self.term_symbols = settings.YAHOO_VIX_TERM_SYMBOLS
        self.market_tz = ZoneInfo(settings.MARKET_TIMEZONE)
        self._ticker_factory = ticker_factory
        logger.info(f"YahooVixSource initialized ({self.symbol})")

    @property
    def supported_kinds(self) -> set[IndicatorKind]:
        return {IndicatorKind.VIX}

    def _history(self, symbol: str, start: date) -> list[tuple[date, float]]:
        """Blocking: daily closes since `start`"""
        return _closes(self._ticker_factory(symbol).history(start=start.isoformat(), interval="1d"))

    def _term_structure(self, start: date) -> dict[str, float | None]:
        """Blocking: latest close per term from the first symbol set that answers"""
        for symbol_set in self.term_symbols:
            terms: dict[str, float | None] = dict.fromkeys(TERMS)
            for term in TERMS:
                symbol = symbol_set.get(term)
                if not symbol:
                    continue
                try:
                    closes = self._history(symbol, start)
                except Exception as e:
                    logger.debug(f"Term {term} ({symbol}) unavailable: {e}")
                    continue
                if closes:
                    terms[term] = closes[-1][1]

            if any(v is not None for v in terms.values()):
                return terms

        logger.warning("No VIX term structure quote available")
        return dict.fromkeys(TERMS)

    async def fetch_latest(
        self, kind: IndicatorKind, options: dict[str, Any] | None = None
    ) -> ObservationBatch:
        """
        Fetch recent daily VIX closes plus the term structure

        Args:
            kind: Must be vix
            options: symbol, limit (most recent closes kept, default all)

        Returns:
            ObservationBatch ordered oldest first, values in index points
        """
        self.check_kind(kind)
        options = options or {}
        symbol = options.get("symbol") or self.symbol
        limit = options.get("limit")
        start = datetime.now(self.market_tz).date() - timedelta(days=self.lookback_days)

        try:
            closes = await asyncio.to_thread(self._history, symbol, start)
        except Exception as e:
            raise UpstreamUnreachable(f"Yahoo {symbol} history request failed: {e}", source=self.name) from e

        if not closes:
            raise UpstreamEmpty(f"Yahoo returned no {symbol} closes since {start}", source=self.name)
        if limit:
            closes = closes[-int(limit):]

        term_structure = await asyncio.to_thread(self._term_structure, start)

        current = closes[-1][1]
        previous = closes[-2][1] if len(closes) > 1 else None
        logger.info(f"Fetched {len(closes)} {symbol} closes, latest {closes[-1][0]} = {current}")

        observations = tuple(
            IndicatorObservation(
                indicator_id=kind,
                value=Decimal(str(round(close, 4))),
                timestamp=datetime.combine(session, SESSION_CLOSE, tzinfo=self.market_tz),
                source_label=SOURCE_LABEL,
            )
            for session, close in closes
        )
        return ObservationBatch(
            indicator_id=kind,
            observations=observations,
            source_label=SOURCE_LABEL,
            details={
                "currentVix": current,
                "previousClose": previous,
                "historicalPercentile": vix_percentile(current),
                "termStructure": term_structure,
            },
        )

    async def close(self) -> None:
        """Nothing to release (yfinance manages its own session)"""
