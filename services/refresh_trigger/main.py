"""
Refresh Trigger - force a fresh fetch of one or more indicators

Either runs the pipeline in-process, or asks a running API server to
refresh (`refresh=true` plus a cache-busting timestamp).

Usage:
    python -m services.refresh_trigger.main
    python -m services.refresh_trigger.main put-call-ratio
    python -m services.refresh_trigger.main --api-url http://localhost:8000

Exit code 1 if any indicator ends in the error status.
"""

import argparse
import asyncio
import sys
import time
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import httpx

from config.settings import get_settings
from core.models.indicators import IndicatorKind, Status
from core.utils.logging import setup_logging

logger = setup_logging("refresh_trigger", get_settings().LOG_LEVEL)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Force-refresh market sentiment indicators")
    parser.add_argument(
        "kinds",
        nargs="*",
        choices=[k.value for k in IndicatorKind],
        help="Indicators to refresh (default: all enabled)",
    )
    parser.add_argument("--api-url", help="Refresh through a running API server instead")
    parser.add_argument("--timeout", type=float, default=60.0, help="HTTP timeout (seconds)")
    return parser.parse_args(argv)


def report(kind: str, body: dict) -> bool:
    """Print one result line; False if the indicator is in error"""
    status = body.get("status")
    if status == Status.ERROR.value or body.get("value") is None:
        print(f"✗ {kind}: {body.get('error', 'no value')}")
        return False

    approximate = " (approximate)" if body.get("isApproximate") else ""
    print(f"✓ {kind}: {body['value']} [{status}]{approximate} source={body.get('source')}")
    return True


async def refresh_via_api(
    api_url: str,
    kinds: list[str],
    timeout: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Hit GET /api/indicators/{kind}?refresh=true for each kind"""
    ok = True
    async with httpx.AsyncClient(
        base_url=api_url.rstrip("/"), timeout=timeout, transport=transport
    ) as client:
        for kind in kinds:
            try:
                response = await client.get(
                    f"/api/indicators/{kind}",
                    params={"refresh": "true", "timestamp": str(int(time.time() * 1000))},
                    headers={"Cache-Control": "no-cache"},
                )
                body = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"❌ Refresh request for {kind} failed: {e}")
                ok = False
                continue

            ok = report(kind, body) and ok
    return ok


async def refresh_in_process(kinds: list[str]) -> bool:
    """Run the pipeline locally with a forced refresh"""
    from services.indicator_service.runtime import IndicatorRuntime

    runtime = IndicatorRuntime()
    try:
        await runtime.connect()
        service = runtime.build_service()
        snapshots = await service.refresh(kinds)
        results = [report(kind.value, snapshots[kind].to_response()) for kind in snapshots]
        return bool(results) and all(results) and len(snapshots) == len(kinds)
    finally:
        await runtime.close()


async def run(args: argparse.Namespace) -> bool:
    if args.kinds:
        kinds = list(dict.fromkeys(args.kinds))
    else:
        from config.loader import get_enabled_indicators

        kinds = [k.value for k in get_enabled_indicators()]

    logger.info(f"Forcing refresh of: {', '.join(kinds)}")
    if args.api_url:
        return await refresh_via_api(args.api_url, kinds, args.timeout)
    return await refresh_in_process(kinds)


def main(argv: list[str] | None = None) -> int:
    """Main entry point"""
    args = parse_args(argv)
    try:
        ok = asyncio.run(run(args))
    except Exception as e:
        logger.error(f"❌ Refresh failed: {e}", exc_info=True)
        ok = False
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
