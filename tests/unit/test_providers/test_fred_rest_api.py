"""
Unit tests for the FRED REST API client

HTTP is served by httpx.MockTransport; no network access.
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import httpx
import pytest

from core.exceptions import (
    FetchError,
    UpstreamBadStatus,
    UpstreamEmpty,
    UpstreamMalformed,
    UpstreamUnreachable,
)
from core.models.indicators import IndicatorKind
from providers.fred.rest_api import FredRestAPI

SPREAD = IndicatorKind.YIELD_CURVE_SPREAD


def fred_payload(*observations):
    """FRED returns newest first with sort_order=desc"""
    return {"observations": [{"date": d, "value": v} for d, v in observations]}


def make_client(handler) -> FredRestAPI:
    transport = httpx.MockTransport(handler)
    return FredRestAPI(
        client=httpx.AsyncClient(transport=transport),
        api_key="test-key",
        max_retries=3,
        backoff_seconds=0,
    )


@pytest.mark.unit
class TestFredFetchLatest:
    """Successful fetches"""

    async def test_normalizes_percent_to_decimal(self):
        def handler(request):
            return httpx.Response(
                200,
                json=fred_payload(("2024-03-01", "0.52"), ("2024-02-29", "-0.20")),
            )

        api = make_client(handler)
        batch = await api.fetch_latest(SPREAD)

        assert [o.value for o in batch.observations] == [Decimal("-0.002"), Decimal("0.0052")]
        assert batch.latest.observation_date == date(2024, 3, 1)
        assert batch.source_label == "FRED"
        assert batch.is_approximate is False
        await api.close()

    async def test_skips_missing_observations(self):
        def handler(request):
            return httpx.Response(
                200,
                json=fred_payload(("2024-03-01", "."), ("2024-02-29", "0.40"), ("2024-02-28", "0.38")),
            )

        api = make_client(handler)
        batch = await api.fetch_latest(SPREAD)

        assert len(batch.observations) == 2
        assert batch.latest.observation_date == date(2024, 2, 29)

    async def test_request_parameters(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            seen["headers"] = request.headers
            seen["path"] = request.url.path
            return httpx.Response(200, json=fred_payload(("2024-03-01", "0.5")))

        api = make_client(handler)
        await api.fetch_latest(SPREAD, {"series_id": "T10Y2Y", "limit": 45})

        params = seen["params"]
        tomorrow = (datetime.now(UTC) + timedelta(days=1)).date().isoformat()
        assert seen["path"].endswith("/series/observations")
        assert params["series_id"] == "T10Y2Y"
        assert params["limit"] == "45"
        assert params["sort_order"] == "desc"
        assert params["file_type"] == "json"
        assert params["api_key"] == "test-key"
        assert params["observation_end"] == tomorrow
        assert params["_"].isdigit()
        assert "no-cache" in seen["headers"]["Cache-Control"]
        assert seen["headers"]["Pragma"] == "no-cache"


@pytest.mark.unit
class TestFredFailures:
    """Failures map onto the FetchError taxonomy"""

    async def test_empty_observations(self):
        api = make_client(lambda request: httpx.Response(200, json={"observations": []}))

        with pytest.raises(UpstreamEmpty):
            await api.fetch_latest(SPREAD)

    async def test_only_missing_observations(self):
        api = make_client(
            lambda request: httpx.Response(200, json=fred_payload(("2024-03-01", ".")))
        )

        with pytest.raises(UpstreamEmpty):
            await api.fetch_latest(SPREAD)

    async def test_malformed_payload(self):
        api = make_client(lambda request: httpx.Response(200, json={"error_message": "bad"}))

        with pytest.raises(UpstreamMalformed):
            await api.fetch_latest(SPREAD)

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-inf", "abc"])
    async def test_non_finite_value_is_malformed(self, value):
        api = make_client(
            lambda request: httpx.Response(
                200, json=fred_payload(("2024-03-01", value), ("2024-02-29", "0.35"))
            )
        )

        with pytest.raises(UpstreamMalformed):
            await api.fetch_latest(SPREAD)

    def test_parse_rejects_nan(self):
        api = make_client(lambda request: httpx.Response(200))

        with pytest.raises(UpstreamMalformed, match="Non-finite"):
            api.parse_observations(SPREAD, fred_payload(("2024-03-01", "NaN")))

    async def test_non_json_body(self):
        api = make_client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))

        with pytest.raises(UpstreamMalformed):
            await api.fetch_latest(SPREAD)

    async def test_bad_status_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, json={"error_message": "Bad Request"})

        api = make_client(handler)
        with pytest.raises(UpstreamBadStatus) as exc_info:
            await api.fetch_latest(SPREAD)

        assert exc_info.value.status_code == 400
        assert len(calls) == 1

    async def test_retries_server_errors_then_succeeds(self):
        responses = iter(
            [
                httpx.Response(503),
                httpx.Response(429, headers={"Retry-After": "0"}),
                httpx.Response(200, json=fred_payload(("2024-03-01", "0.5"))),
            ]
        )
        api = make_client(lambda request: next(responses))

        batch = await api.fetch_latest(SPREAD)

        assert batch.latest.value == Decimal("0.005")

    async def test_retries_exhausted_on_status(self):
        api = make_client(lambda request: httpx.Response(502))

        with pytest.raises(UpstreamBadStatus) as exc_info:
            await api.fetch_latest(SPREAD)

        assert exc_info.value.status_code == 502

    async def test_transport_error_is_unreachable(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        api = make_client(handler)
        with pytest.raises(UpstreamUnreachable):
            await api.fetch_latest(SPREAD)

        assert len(calls) == 3

    async def test_missing_api_key(self):
        api = FredRestAPI(client=httpx.AsyncClient(), api_key="")

        with pytest.raises(FetchError, match="FRED_API_KEY"):
            await api.fetch_latest(SPREAD)
        await api.close()

    async def test_rejects_unsupported_kind(self):
        api = make_client(lambda request: httpx.Response(200, json={}))

        with pytest.raises(ValueError):
            await api.fetch_latest(IndicatorKind.PUT_CALL_RATIO)
