"""
FRED REST API client for the 10-year minus 2-year treasury spread (T10Y2Y).

FRED publishes the spread in percent; observations are normalized to
decimal units (0.01 = 1%) before leaving the adapter.
"""

import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
from pydantic import ValidationError

from config.settings import get_settings
from core.exceptions import FetchError, UpstreamEmpty, UpstreamMalformed
from core.models.indicators import IndicatorKind, IndicatorObservation, ObservationBatch
from providers.http_source import HttpIndicatorSource

logger = logging.getLogger(__name__)

DEFAULT_SERIES_ID = "T10Y2Y"
MISSING_VALUE = "."
SOURCE_LABEL = "FRED"


class FredRestAPI(HttpIndicatorSource):
    """
    FRED series/observations client

    Request shape:
    - sort_order=desc, limit=N (newest first from FRED, reversed here)
    - observation_end=tomorrow so a same-day release is never cut off
    - cache-defeating `_` parameter (HttpIndicatorSource)
    """

    name = "fred"

    def __init__(self, client: httpx.AsyncClient | None = None, api_key: str | None = None, **kwargs):
        settings = get_settings()
        super().__init__(settings.FRED_BASE_URL, client=client, **kwargs)
        self.api_key = api_key if api_key is not None else settings.FRED_API_KEY
        self.default_limit = settings.FRED_DEFAULT_LIMIT
        logger.info("FredRestAPI initialized")

    @property
    def supported_kinds(self) -> set[IndicatorKind]:
        return {IndicatorKind.YIELD_CURVE_SPREAD}

    async def fetch_latest(
        self, kind: IndicatorKind, options: dict[str, Any] | None = None
    ) -> ObservationBatch:
        """
        Fetch the latest observations of a FRED series

        Args:
            kind: Must be yield-curve-spread
            options: series_id (default T10Y2Y), limit (default 30)

        Returns:
            ObservationBatch ordered oldest first, values in decimal units
        """
        self.check_kind(kind)
        options = options or {}
        series_id = options.get("series_id") or DEFAULT_SERIES_ID
        limit = int(options.get("limit") or self.default_limit)

        if not self.api_key:
            raise FetchError("FRED_API_KEY is not configured", source=self.name)

        tomorrow = (datetime.now(UTC) + timedelta(days=1)).date()
        params = {
            "series_id": series_id,
            "api_key": self.api_key,
            "file_type": "json",
            "sort_order": "desc",
            "limit": limit,
            "observation_end": tomorrow.isoformat(),
        }

        logger.debug(f"Fetching FRED {series_id} (limit={limit}, end={tomorrow})")
        payload = await self.get_json(f"{self.base_url}/series/observations", params=params)

        observations = self.parse_observations(kind, payload)
        if not observations:
            raise UpstreamEmpty(f"FRED returned no usable observations for {series_id}", source=self.name)

        logger.info(
            f"Fetched {len(observations)} FRED observations for {series_id}, "
            f"latest {observations[-1].observation_date}"
        )
        return ObservationBatch(
            indicator_id=kind,
            observations=tuple(observations),
            source_label=SOURCE_LABEL,
        )

    def parse_observations(self, kind: IndicatorKind, payload: Any) -> list[IndicatorObservation]:
        """
        Convert a FRED observations payload into observations (oldest first)

        Missing observations ("." on market holidays) are skipped.
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("observations"), list):
            raise UpstreamMalformed("FRED payload has no observations list", source=self.name)

        parsed = []
        for raw in payload["observations"]:
            try:
                raw_value = raw["value"]
                observed = datetime.strptime(raw["date"], "%Y-%m-%d").replace(tzinfo=UTC)
            except (KeyError, TypeError, ValueError) as e:
                raise UpstreamMalformed(f"Malformed FRED observation {raw!r}: {e}", source=self.name) from e

            if raw_value == MISSING_VALUE:
                continue

            try:
                percent = Decimal(str(raw_value))
            except InvalidOperation as e:
                raise UpstreamMalformed(f"Non-numeric FRED value {raw_value!r}", source=self.name) from e
            if not percent.is_finite():
                raise UpstreamMalformed(f"Non-finite FRED value {raw_value!r}", source=self.name)

            try:
                observation = IndicatorObservation(
                    indicator_id=kind,
                    value=percent / 100,
                    timestamp=observed,
                    source_label=SOURCE_LABEL,
                )
            except ValidationError as e:
                raise UpstreamMalformed(f"Invalid FRED observation {raw!r}: {e}", source=self.name) from e
            parsed.append(observation)

        parsed.sort(key=lambda o: o.timestamp)
        return parsed
