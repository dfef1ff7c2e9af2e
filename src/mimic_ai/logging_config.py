"""
Logging setup for the web app. Modules log through `logging.getLogger(__name__)`;
this installs one stream handler on the package logger.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_initialized = False


def setup_logging(level: str = "INFO") -> logging.Logger:
    global _initialized

    logger = logging.getLogger("mimic_ai")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if _initialized:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    logger.handlers = [handler]
    logger.propagate = False
    _initialized = True
    return logger
