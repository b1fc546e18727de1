"""
Logging setup for the relay service.
"""

import logging
import sys

from loguru import logger

HUMAN_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(log_level: str = "INFO", enable_json: bool = False) -> None:
    """
    Configure loguru as the single console sink.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_json: Serialize records as JSON instead of the coloured format
    """
    # Remove default loguru handler and add custom one
    logger.remove()

    if enable_json:
        logger.add(sys.stdout, level=log_level.upper(), serialize=True)
    else:
        logger.add(
            sys.stdout,
            level=log_level.upper(),
            format=HUMAN_FORMAT,
            colorize=True,
            backtrace=True,
            diagnose=False,
        )

    # Set third-party loggers to WARNING to reduce noise
    for logger_name in ["httpx", "httpcore"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger.info("Logging configured at level: {}", log_level.upper())
