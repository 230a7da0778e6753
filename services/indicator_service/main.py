"""
Indicator Service - Scheduled Refresh (headless)

Runs the periodic refresh loop without the HTTP API, so the intraday and
sparkline tiers keep filling while the dashboard is served elsewhere.

- Refresh every indicator every `refresh_interval_seconds` (indicators.yaml)
- Write-through to ClickHouse, last-good snapshot to Redis
- SIGINT/SIGTERM → graceful stop (in-flight fetches cancelled)

Usage:
    python -m services.indicator_service.main
"""

import asyncio
import signal
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from config.settings import get_settings
from core.utils.logging import setup_logging
from services.indicator_service.runtime import IndicatorRuntime

logger = setup_logging("indicator_service", get_settings().LOG_LEVEL)


class ScheduledIndicatorService:
    """Runtime + IndicatorService loop until asked to stop"""

    def __init__(self):
        self.settings = get_settings()
        self.runtime = IndicatorRuntime()
        self.service = None
        self._stop_event = asyncio.Event()

    def request_stop(self):
        self._stop_event.set()

    async def start(self):
        """Start the refresh loop and block until stopped"""
        logger.info("=" * 60)
        logger.info("Indicator Service started (scheduled mode)")
        logger.info("=" * 60)
        logger.info(f"  Interval: {self.settings.INDICATOR_REFRESH_INTERVAL_SECONDS}s")
        logger.info(f"  Indicators: {', '.join(k.value for k in self.runtime.configs)}")
        logger.info("=" * 60)

        try:
            await self.runtime.connect()
            self.service = self.runtime.build_service()
            await self.service.start()
            await self._stop_event.wait()

        except Exception as e:
            logger.error(f"❌ Fatal error: {e}", exc_info=True)
        finally:
            await self.stop()

    async def stop(self):
        """Graceful shutdown"""
        if self.service is not None:
            await self.service.stop()
            self.service = None
        await self.runtime.close()


async def main():
    """Main entry point"""
    scheduled = ScheduledIndicatorService()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, scheduled.request_stop)

    await scheduled.start()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Goodbye!")
