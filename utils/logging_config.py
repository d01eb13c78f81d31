"""
Production Cycle Client - Structured Logging Configuration

Provides centralized logging setup so that the queue protocol, the controller
channel and the CLI share one format and level.

The drain loop and the polling helpers issue a request every few milliseconds,
so the per-request loggers of the HTTP and WebSocket libraries are held at
WARNING unless ``PCC_LOG_LEVELS`` says otherwise.

Usage:
    from utils.logging_config import get_logger
    logger = get_logger("order_queue")
    logger.info("Order queue length is %d", 10)

Environment:
    PCC_LOG_LEVEL=DEBUG
    PCC_LOG_LEVELS=order_queue.drain=WARNING,httpx=INFO
"""

import logging
import os
import sys
from typing import Dict


LOG_LEVEL = os.environ.get("PCC_LOG_LEVEL", "INFO").upper()
LOG_LEVELS = os.environ.get("PCC_LOG_LEVELS", "")
LOG_FORMAT = os.environ.get(
    "PCC_LOG_FORMAT",
    "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# One line per request at INFO/DEBUG
QUIET_LOGGERS = ("httpx", "httpcore", "websockets")

_configured = False


def parse_logger_levels(spec: str) -> Dict[str, int]:
    """Parse ``"name=LEVEL,name=LEVEL"`` into logger levels, skipping bad items."""
    levels = {}
    for item in spec.split(","):
        name, _, level = item.strip().partition("=")
        level_value = getattr(logging, level.strip().upper(), None)
        if name and isinstance(level_value, int):
            levels[name.strip()] = level_value
    return levels


def setup_logging(level: str = None) -> None:
    """Configure the root logger for the production cycle client.

    Parameters
    ----------
    level : str, optional
        Overrides ``PCC_LOG_LEVEL`` when given, e.g. ``"DEBUG"``. Calls after
        the first one only change the root level.
    """
    global _configured
    root = logging.getLogger()
    if level:
        root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if _configured:
        return

    if not level:
        root.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    # Avoid adding duplicate handlers on repeated calls
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    for name, level_value in parse_logger_levels(LOG_LEVELS).items():
        logging.getLogger(name).setLevel(level_value)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a named logger, ensuring the root logger is configured.

    Parameters
    ----------
    name : str
        Dot-separated logger name, e.g. ``"order_queue"`` or
        ``"controller_client.graph"``.
    """
    setup_logging()
    return logging.getLogger(name)
