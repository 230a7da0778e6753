"""
HTTP API - serves indicator snapshots to the dashboard

Routes:
- GET /api/indicators/{kind}           current snapshot (refresh, no-cache, _, timestamp force a refresh)
- GET /api/indicators/{kind}/history   sparkline points for one timeframe
- GET /health                          liveness

Every response carries no-cache headers.
"""

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import get_settings
from core.exceptions import StoreError, UnknownIndicator
from core.models.indicators import IndicatorSnapshot, Status, Timeframe
from services.indicator_service.service import IndicatorService

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

# Query parameters whose presence forces a refresh
FORCE_REFRESH_PARAMS = ("no-cache", "_", "timestamp")


def _json(body: dict, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=body, status_code=status_code, headers=NO_CACHE_HEADERS)


def wants_refresh(request: Request) -> bool:
    """
    refresh=true, or any cache-busting parameter

    Browser and proxy cache-busters (`_=<ms>`, `timestamp=<n>`) count too, so
    clients that append them on every poll bypass the freshness window and
    hit upstream each time. Plain polling should omit them and let the
    periodic refresh keep snapshots current.
    """
    params = request.query_params
    if params.get("refresh", "").lower() in ("1", "true", "yes"):
        return True
    return any(name in params for name in FORCE_REFRESH_PARAMS)


def create_app(service: IndicatorService | None = None) -> FastAPI:
    """
    Create the FastAPI application

    Args:
        service: Pre-built service (tests). When omitted, the lifespan builds
                 one from configuration and runs its periodic refresh.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        runtime = None
        if service is None:
            from services.indicator_service.runtime import IndicatorRuntime

            runtime = IndicatorRuntime()
            await runtime.connect()
            app.state.service = runtime.build_service()
            await app.state.service.start()
        else:
            app.state.service = service

        yield

        if runtime is not None:
            await app.state.service.stop()
            await runtime.close()

    settings = get_settings()
    app = FastAPI(
        title="Market Sentiment Indicators",
        description="Put/call ratio and yield-curve spread snapshots",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.API_CORS_ORIGINS,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health(request: Request):
        svc: IndicatorService = request.app.state.service
        return _json(
            {
                "status": "ok",
                "indicators": {k.value: svc.get_state(k).value for k in svc.configs},
            }
        )

    @app.get("/api/indicators/{kind}")
    async def get_indicator(kind: str, request: Request):
        svc: IndicatorService = request.app.state.service
        try:
            resolved = svc.resolve_kind(kind)
        except UnknownIndicator as e:
            return _json({"error": str(e)}, status_code=404)

        try:
            snapshot = await svc.get_snapshot(resolved, force_refresh=wants_refresh(request))
        except Exception as e:
            logger.error(f"❌ Failed to serve {resolved.value}: {e}", exc_info=True)
            error_snapshot = IndicatorSnapshot(
                indicator_id=resolved,
                value=None,
                status=Status.ERROR,
                is_approximate=True,
                fetched_at=datetime.now(UTC),
                source="unavailable",
                error=f"Failed to fetch {resolved.value}: {e}",
            )
            return _json(error_snapshot.to_response(), status_code=500)

        return _json(snapshot.to_response())

    @app.get("/api/indicators/{kind}/history")
    async def get_indicator_history(
        kind: str, request: Request, timeframe: Timeframe = Timeframe.ONE_MONTH
    ):
        svc: IndicatorService = request.app.state.service
        try:
            resolved = svc.resolve_kind(kind)
        except UnknownIndicator as e:
            return _json({"error": str(e)}, status_code=404)

        if svc.store is None:
            return _json({"error": "History store unavailable"}, status_code=503)

        store = svc.store
        today = store.market_date(datetime.now(UTC))
        since = today - timedelta(days=store.retention_days.get(timeframe, 30))
        try:
            points = await store.query_sparkline(resolved, timeframe, since=since)
        except StoreError as e:
            logger.error(f"❌ History query failed for {resolved.value}/{timeframe.value}: {e}")
            return _json({"error": "History temporarily unavailable"}, status_code=503)

        return _json(
            {
                "indicator": resolved.value,
                "timeframe": timeframe.value,
                "points": [
                    {"date": p.date.isoformat(), "value": p.value, "isApproximate": p.is_approximate}
                    for p in reversed(points)
                ],
            }
        )

    return app
