"""Logging setup for Family Calendar."""

import logging
from typing import Optional

from family_calendar.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure root logging from settings.

    Safe to call more than once; later calls only adjust the level.
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level)

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)

    # Discovery cache warnings are noise for us
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)
