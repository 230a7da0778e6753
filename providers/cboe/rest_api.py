"""
CBOE daily market statistics client for the total put/call ratio.

CBOE publishes one JSON document per trading session at
{base_url}/{YYYY-MM-DD}_daily_options. Weekends and holidays have no
document, so the client walks back day by day to the latest session.
"""

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any
from zoneinfo import ZoneInfo

import httpx

from config.settings import get_settings
from core.exceptions import UpstreamBadStatus, UpstreamEmpty, UpstreamMalformed
from core.models.indicators import IndicatorKind, IndicatorObservation, ObservationBatch
from providers.http_source import HttpIndicatorSource

logger = logging.getLogger(__name__)

RATIO_NAME = "TOTAL PUT/CALL RATIO"
SOURCE_LABEL = "CBOE"

# Statuses meaning "no document for this session"
MISSING_SESSION_STATUS = {403, 404}

# Session close (US/Eastern) used as the observation timestamp
SESSION_CLOSE = time(16, 15)


class CboeRestAPI(HttpIndicatorSource):
    """
    CBOE daily options statistics client

    Only the total put/call ratio is read; one observation per fetch.
    """

    name = "cboe"

    def __init__(self, client: httpx.AsyncClient | None = None, **kwargs):
        settings = get_settings()
        super().__init__(settings.CBOE_BASE_URL, client=client, **kwargs)
        self.lookback_days = settings.CBOE_LOOKBACK_DAYS
        self.market_tz = ZoneInfo(settings.MARKET_TIMEZONE)
        logger.info("CboeRestAPI initialized")

    @property
    def supported_kinds(self) -> set[IndicatorKind]:
        return {IndicatorKind.PUT_CALL_RATIO}

    async def fetch_latest(
        self, kind: IndicatorKind, options: dict[str, Any] | None = None
    ) -> ObservationBatch:
        """
        Fetch the most recent published put/call ratio

        Args:
            kind: Must be put-call-ratio
            options: as_of (date to start walking back from, default today)

        Returns:
            ObservationBatch with a single observation
        """
        self.check_kind(kind)
        options = options or {}
        as_of: date = options.get("as_of") or datetime.now(self.market_tz).date()

        for offset in range(self.lookback_days + 1):
            session = as_of - timedelta(days=offset)
            if session.weekday() >= 5:
                continue

            url = f"{self.base_url}/{session.isoformat()}_daily_options"
            try:
                payload = await self.get_json(url)
            except UpstreamBadStatus as e:
                if e.status_code in MISSING_SESSION_STATUS:
                    logger.debug(f"No CBOE statistics for {session} ({e.status_code})")
                    continue
                raise

            ratio = self.parse_ratio(payload)
            observation = IndicatorObservation(
                indicator_id=kind,
                value=ratio,
                timestamp=datetime.combine(session, SESSION_CLOSE, tzinfo=self.market_tz),
                source_label=SOURCE_LABEL,
            )
            logger.info(f"Fetched CBOE put/call ratio {ratio} for {session}")
            return ObservationBatch(
                indicator_id=kind,
                observations=(observation,),
                source_label=SOURCE_LABEL,
            )

        raise UpstreamEmpty(
            f"No CBOE session published in the {self.lookback_days} days up to {as_of}",
            source=self.name,
        )

    def parse_ratio(self, payload: Any) -> Decimal:
        """
        Extract the total put/call ratio from a daily statistics document

        The ratio is an entry {"name": "TOTAL PUT/CALL RATIO", "value": "0.92"}
        in the "ratios" list.
        """
        if not isinstance(payload, dict):
            raise UpstreamMalformed("CBOE payload is not an object", source=self.name)

        ratios = payload.get("ratios")
        if not isinstance(ratios, list):
            raise UpstreamMalformed("CBOE payload has no ratios list", source=self.name)

        for entry in ratios:
            if isinstance(entry, dict) and str(entry.get("name", "")).strip().upper() == RATIO_NAME:
                try:
                    value = Decimal(str(entry["value"]))
                except (KeyError, InvalidOperation) as e:
                    raise UpstreamMalformed(
                        f"Non-numeric {RATIO_NAME}: {entry.get('value')!r}", source=self.name
                    ) from e
                if not value.is_finite() or value <= 0:
                    raise UpstreamMalformed(f"Implausible {RATIO_NAME}: {value}", source=self.name)
                return value

        raise UpstreamMalformed(f"{RATIO_NAME} not found in CBOE payload", source=self.name)
