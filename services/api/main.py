"""
API Server - serves indicator snapshots over HTTP

Runs the FastAPI app under uvicorn; the app's lifespan connects the store,
cache and sources and starts the periodic refresh loop.

Usage:
    python -m services.api.main
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import uvicorn

from config.settings import get_settings
from core.utils.logging import setup_logging
from services.api.app import create_app

logger = setup_logging("api_server", get_settings().LOG_LEVEL)


def main():
    """Main entry point"""
    settings = get_settings()
    logger.info(f"Starting API server on {settings.API_HOST}:{settings.API_PORT}")

    uvicorn.run(
        create_app(),
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_config=None,
    )


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Goodbye!")
