# utils/logger.py - Logging for the chat backend
"""
Every component logs to stdout under the "chat." namespace:

    chat.server     request lifecycle, validation failures, completion errors
    chat.crawler    page renders, crawl summaries, per-page failures
    chat.pipeline   URL extraction, context truncation, completion timing
    chat.ratelimit  quota store setup, denials, store failures

The level comes from LOG_LEVEL (config.py) unless one is passed explicitly.
"""

import logging
import sys

from config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-16s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NAMESPACE = "chat"


def setup_logger(name: str, level=None) -> logging.Logger:
    """Return the named logger, attaching a stdout handler the first time."""
    logger = logging.getLogger(name)
    level = level if level is not None else logging.getLevelName(LOG_LEVEL)

    # One handler per logger, however often it is requested
    if not logger.handlers:
        logger.setLevel(level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(console_handler)

    return logger


def get_server_logger():
    return setup_logger(f"{NAMESPACE}.server")


def get_crawler_logger():
    return setup_logger(f"{NAMESPACE}.crawler")


def get_pipeline_logger():
    return setup_logger(f"{NAMESPACE}.pipeline")


def get_ratelimit_logger():
    return setup_logger(f"{NAMESPACE}.ratelimit")
