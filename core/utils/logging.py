"""
Logging setup shared by every entry point

Console at LOG_LEVEL, errors also to data/logs/<service>_errors.log
(5MB x 3 rotation).
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

LOG_DIR = "data/logs"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(service_name: str, level: str | int = logging.INFO) -> logging.Logger:
    """
    Configure root logging for a service process

    Args:
        service_name: Used for the error log file name
        level: Console level (name or number)

    Returns:
        Logger named after the service
    """
    os.makedirs(LOG_DIR, exist_ok=True)

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    _console = logging.StreamHandler(sys.stdout)
    _console.setLevel(level)
    _console.setFormatter(logging.Formatter(LOG_FORMAT))

    _file = RotatingFileHandler(
        f"{LOG_DIR}/{service_name}_errors.log",
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=3,
    )
    _file.setLevel(logging.ERROR)
    _file.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(level=level, handlers=[_console, _file], force=True)

    # Third-party request logs are noisy at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("yfinance").setLevel(logging.WARNING)

    return logging.getLogger(service_name)
