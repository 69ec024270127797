"""
Logging configuration
"""

import logging
import sys
from typing import Optional
from core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Libraries whose INFO output drowns out pipeline events
NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler")


def setup_logging(level: Optional[str] = None, show_info_events: bool = False):
    """
    Configure logging for pipeline runs.

    Args:
        level: Root log level; defaults to settings.LOG_LEVEL
        show_info_events: Also print pipeline `info` events, which the
            event log mirrors at DEBUG
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if show_info_events:
        logging.getLogger("ingestion.events").setLevel(logging.DEBUG)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {level_name} level ({settings.ENVIRONMENT})")
