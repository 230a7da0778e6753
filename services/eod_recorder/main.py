"""
End-of-Day Recorder - commit today's indicator values to the daily tier

Scheduled once per trading day after the close (e.g. cron 16:30
America/New_York). Reads the latest intraday observation of each indicator
and upserts the daily record; never calls upstream providers.

Usage:
    python -m services.eod_recorder.main

Exit code 0 when every indicator was recorded, 1 otherwise.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from config.settings import get_settings
from core.utils.logging import setup_logging
from services.indicator_service.runtime import IndicatorRuntime

logger = setup_logging("eod_recorder", get_settings().LOG_LEVEL)


async def run() -> bool:
    """Record every indicator; True on full success"""
    runtime = IndicatorRuntime()
    try:
        await runtime.connect(with_sources=False, require_store=True)
        recorder = runtime.build_recorder()
        logger.info(f"Recording end-of-day values for {recorder.today()}")
        return await recorder.record_all()

    except Exception as e:
        logger.error(f"❌ End-of-day recording failed: {e}", exc_info=True)
        return False

    finally:
        await runtime.close()


def main() -> int:
    """Main entry point"""
    ok = asyncio.run(run())
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
