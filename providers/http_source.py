"""
Shared HTTP plumbing for REST indicator sources

- One httpx.AsyncClient per adapter (lazily created, closed by close())
- Cache-defeating headers and `_=<epoch-ms>` on every request
- Retries with exponential backoff on transport errors and 429/5xx
  (429 honours Retry-After)
- Maps failures onto the FetchError taxonomy
"""

import asyncio
import logging
import time
from typing import Any

import httpx

from config.settings import get_settings
from core.exceptions import UpstreamBadStatus, UpstreamMalformed, UpstreamUnreachable
from core.interfaces.sources import BaseIndicatorSource

logger = logging.getLogger(__name__)

RETRY_ON_STATUS = {429, 500, 502, 503, 504}
RETRY_ON_EXCEPTIONS = (httpx.TimeoutException, httpx.TransportError)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}


class HttpIndicatorSource(BaseIndicatorSource):
    """Base class for sources that speak JSON over HTTP"""

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
    ):
        settings = get_settings()
        self.base_url = base_url.rstrip("/")
        self.timeout = settings.HTTP_TIMEOUT_SECONDS
        self.user_agent = settings.HTTP_USER_AGENT
        self.max_retries = settings.HTTP_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_seconds = (
            settings.HTTP_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self._client = client

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            )
        return self._client

    def _retry_delay(self, attempt: int, response: httpx.Response | None = None) -> float:
        """Exponential backoff, or the server's Retry-After on 429"""
        if response is not None and response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            if retry_after and retry_after.isdigit():
                return float(retry_after)
        return self.backoff_seconds * (2**attempt)

    async def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """
        GET a JSON document with retries

        Raises:
            UpstreamUnreachable: Transport failure after all attempts
            UpstreamBadStatus: Non-2xx response (after retries for 429/5xx)
            UpstreamMalformed: Body is not JSON
        """
        client = self._ensure_client()
        attempts = max(self.max_retries, 1)

        for attempt in range(attempts):
            request_params = dict(params or {})
            request_params["_"] = str(int(time.time() * 1000))
            last_attempt = attempt == attempts - 1

            try:
                response = await client.get(url, params=request_params, headers=NO_CACHE_HEADERS)
            except RETRY_ON_EXCEPTIONS as e:
                if last_attempt:
                    raise UpstreamUnreachable(
                        f"{self.name} unreachable after {attempts} attempts: {e}", source=self.name
                    ) from e
                delay = self._retry_delay(attempt)
                logger.warning(
                    f"{self.name} request failed ({type(e).__name__}), "
                    f"retrying in {delay:.1f}s (attempt {attempt + 1}/{attempts})"
                )
                await asyncio.sleep(delay)
                continue

            if response.status_code in RETRY_ON_STATUS and not last_attempt:
                delay = self._retry_delay(attempt, response)
                logger.warning(
                    f"{self.name} returned {response.status_code}, "
                    f"retrying in {delay:.1f}s (attempt {attempt + 1}/{attempts})"
                )
                await asyncio.sleep(delay)
                continue

            if not response.is_success:
                raise UpstreamBadStatus(
                    f"{self.name} returned HTTP {response.status_code}",
                    status_code=response.status_code,
                    source=self.name,
                )

            try:
                return response.json()
            except ValueError as e:
                raise UpstreamMalformed(
                    f"{self.name} returned a non-JSON body: {e}", source=self.name
                ) from e

        # Unreachable: the last attempt always returns or raises
        raise UpstreamUnreachable(f"{self.name} request not attempted", source=self.name)

    async def close(self) -> None:
        """Close the HTTP client"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info(f"{self.name} HTTP client closed")
