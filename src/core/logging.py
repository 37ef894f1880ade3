"""
Loguru configuration shared by the API and the processing pipeline.

Structured context is passed as keyword arguments on each log call
(e.g. ``logger.info("Bill created", bill_id=...)``) and lands in the
record's ``extra`` dict, which the console format prints and the JSON
sink serializes.
"""

import sys
from loguru import logger
from .config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level> | {extra}"
)


def setup_logging(level: str | None = None, json_logs: bool | None = None):
    """
    Replace loguru's default sink with one configured from settings.

    Args:
        level: Override for LOG_LEVEL
        json_logs: Override for LOG_JSON (serialize records as JSON lines)

    Returns:
        The configured loguru logger
    """
    level = (level or settings.log_level).upper()
    serialize = settings.log_json if json_logs is None else json_logs

    logger.remove()
    if serialize:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    logger.debug("Logging configured", level=level, serialize=serialize)
    return logger
