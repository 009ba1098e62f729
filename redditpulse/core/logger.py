# redditpulse/core/logger.py
import logging

from redditpulse.core.settings import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

logger = logging.getLogger("redditpulse")
